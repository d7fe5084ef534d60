"""Runtime configuration read from the environment (and .env, if present)."""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

ROOT = Path(__file__).parent.parent

_ENV_DEFAULTS: dict[str, str] = {
    "HIRO_PROXY_URL": "http://localhost:13013",
    "HIRO_OLLAMA_URL": "http://127.0.0.1:11434",
    "HIRO_API_KEY": "",
    "HIRO_PROVIDER": "openai",
    "HIRO_MODEL": "gpt-4o-mini",
    "HIRO_HTTP_TIMEOUT": "120",
    "HIRO_LEXICON_PATH": "",
}


class Settings(BaseModel):
    proxy_url: str
    ollama_url: str
    api_key: str = ""
    provider: str = "openai"
    model: str = "gpt-4o-mini"
    http_timeout: float = 120.0
    lexicon_path: Path | None = None  # JSON lexicon; built-in lexicon when unset


def load_settings(env_file: Path | None = None) -> Settings:
    """Build Settings from HIRO_* environment variables.

    Values already set in the environment win over the .env file.
    """
    load_dotenv(env_file or ROOT / ".env")

    def _get(key: str) -> str:
        return os.getenv(key, _ENV_DEFAULTS[key])

    lexicon_path = _get("HIRO_LEXICON_PATH")
    return Settings(
        proxy_url=_get("HIRO_PROXY_URL"),
        ollama_url=_get("HIRO_OLLAMA_URL"),
        api_key=_get("HIRO_API_KEY"),
        provider=_get("HIRO_PROVIDER"),
        model=_get("HIRO_MODEL"),
        http_timeout=float(_get("HIRO_HTTP_TIMEOUT")),
        lexicon_path=Path(lexicon_path) if lexicon_path else None,
    )
