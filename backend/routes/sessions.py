"""Chat session endpoints: create, read history, send, regenerate, stop, clear.

send and regenerate hold the request open until the reply has finished
streaming; stop and clear can be called meanwhile from another request.
"""

from fastapi import APIRouter, HTTPException

from backend import state
from hiro.session import ChatSessionController

from .models import CreateSession, SendBody, UpdateSession

router = APIRouter()


def _require(session_id: str) -> ChatSessionController:
    session = state.get_session(session_id)
    if session is None:
        raise HTTPException(404, "Session not found")
    return session


def _snapshot(session: ChatSessionController) -> dict:
    return {
        "busy": session.busy,
        "messages": [m.model_dump() for m in session.history],
    }


@router.post("/sessions")
async def create_session(body: CreateSession):
    """Start a new in-memory chat session."""
    session_id = state.create_session(body.system, body.provider, body.model)
    return {"id": session_id, **_snapshot(state.get_session(session_id))}


@router.get("/sessions/{session_id}/messages")
async def get_messages(session_id: str):
    """Current history, including any partially streamed reply."""
    return _snapshot(_require(session_id))


@router.patch("/sessions/{session_id}")
async def update_session(session_id: str, body: UpdateSession):
    """Change the system prompt, provider, or model for subsequent sends."""
    session = _require(session_id)
    if body.system is not None:
        session.system = body.system
    if body.model is not None:
        session.model = body.model
    if body.provider is not None and body.provider != session.provider:
        session.provider = body.provider
        session.source_factory = state.source_factory(body.provider)
    return {"system": session.system, "provider": session.provider, "model": session.model}


@router.delete("/sessions/{session_id}")
async def delete_session(session_id: str):
    if not state.delete_session(session_id):
        raise HTTPException(404, "Session not found")
    return {"ok": True}


@router.post("/sessions/{session_id}/send")
async def send(session_id: str, body: SendBody):
    """Send a user message and wait for the streamed reply to finish."""
    session = _require(session_id)
    if session.busy:
        raise HTTPException(409, "A reply is still streaming")
    if not body.text.strip():
        raise HTTPException(400, "Message is empty")
    result = await session.send(body.text)
    return {"result": result.model_dump() if result else None, **_snapshot(session)}


@router.post("/sessions/{session_id}/regenerate")
async def regenerate(session_id: str):
    """Re-ask the last user message, discarding the replies that followed it."""
    session = _require(session_id)
    if session.busy:
        raise HTTPException(409, "A reply is still streaming")
    result = await session.regenerate()
    return {"result": result.model_dump() if result else None, **_snapshot(session)}


@router.post("/sessions/{session_id}/stop")
async def stop(session_id: str):
    session = _require(session_id)
    session.stop()
    return _snapshot(session)


@router.post("/sessions/{session_id}/clear")
async def clear(session_id: str):
    session = _require(session_id)
    session.clear()
    return _snapshot(session)
