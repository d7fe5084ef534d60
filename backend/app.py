from fastapi import FastAPI

from backend import state
from backend.routes import router
from hiro.config import Settings
from hiro.llm import SourceFactory


def create_app(
    settings: Settings | None = None, source_factory: SourceFactory | None = None
) -> FastAPI:
    state.init_state(settings, source_factory)

    app = FastAPI(title="Hiro Prompt Builder")
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (reads HIRO_* env vars / .env)
app = create_app()
