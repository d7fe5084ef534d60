"""Health check, settings, and Ollama model listing endpoints."""

from fastapi import APIRouter

from backend import state
from hiro.llm import list_ollama_models

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/settings")
async def get_settings():
    """Provider defaults (the API key is never returned)."""
    return state.settings().model_dump(mode="json", exclude={"api_key"})


@router.get("/ollama/models")
async def ollama_models():
    """Models installed in the local Ollama, or [] if it is not running."""
    return {"models": await list_ollama_models(state.settings().ollama_url)}
