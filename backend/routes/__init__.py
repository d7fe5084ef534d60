"""FastAPI API endpoints under /api.

Endpoint groups: settings/health, role inference + prompt assembly,
chat sessions (send/regenerate/stop/clear), and the streaming chat proxy.
"""

from fastapi import APIRouter

from .chat import router as chat_router
from .inference import router as inference_router
from .sessions import router as sessions_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(inference_router)
router.include_router(sessions_router)
router.include_router(chat_router)
