"""Streaming chat route: POST /api/chat {messages, system, provider, model}.

Replies as SSE (`data: {"text": "..."}` lines, ending with `data: [DONE]`).
provider "ollama" relays a local Ollama /api/chat NDJSON stream; any other
provider answers with a stub token until a hosted backend is wired in.
"""

import json
import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from backend import state
from hiro.llm import HttpChunkSource, LLMError
from hiro.models import ChatRequest
from hiro.stream import TERMINAL, LineBuffer, Text, close_source, extract_token

from .models import ChatProxyBody

logger = logging.getLogger(__name__)

router = APIRouter()

SSE_DONE = "data: [DONE]\n\n"
STUB_TEXT = "stub: wire OpenAI/Anthropic here"


def sse_text(text: str) -> str:
    return f"data: {json.dumps({'text': text}, ensure_ascii=False)}\n\n"


async def relay_as_sse(source: AsyncIterator[str]) -> AsyncIterator[str]:
    """Re-frame any upstream framing as SSE text events plus a final [DONE]."""
    buffer = LineBuffer()
    try:
        async for chunk in source:
            for line in buffer.feed(chunk):
                token = extract_token(line)
                if token is TERMINAL:
                    yield SSE_DONE
                    return
                if isinstance(token, Text) and token.fragment:
                    yield sse_text(token.fragment)
        for line in buffer.flush():
            token = extract_token(line)
            if isinstance(token, Text) and token.fragment:
                yield sse_text(token.fragment)
    except LLMError as e:
        logger.warning("chat relay upstream failed: %s", e)
        yield sse_text(f"Error: {e}")
    finally:
        await close_source(source)
    yield SSE_DONE


async def _stub() -> AsyncIterator[str]:
    yield sse_text(STUB_TEXT)
    yield SSE_DONE


@router.post("/chat")
async def chat(body: ChatProxyBody):
    """Provider proxy: stream a reply as SSE."""
    if body.provider == "ollama":
        settings = state.settings()
        upstream = HttpChunkSource(settings.ollama_url, "ollama", timeout=settings.http_timeout)
        request = ChatRequest(
            messages=body.messages, system=body.system,
            provider=body.provider, model=body.model or "llama3",
        )
        stream = relay_as_sse(upstream(request))
    else:
        stream = _stub()
    return StreamingResponse(
        stream,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
