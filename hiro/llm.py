"""Chunk sources: HTTP connections to a streaming chat backend.

The session controller opens streams through a source factory matching:

    def __call__(self, request: ChatRequest) -> AsyncIterator[str]: ...

Each call returns a fresh async iterator of raw text chunks (any split,
any framing). Framing is decoded downstream by hiro.stream.

Implementations:

    HttpChunkSource: real HTTP client for the app's own chat route ("openai"
        format, SSE) and Ollama's /api/chat (NDJSON), chosen by provider_format.
    EchoChunkSource: streams the last user message back as SSE lines, for
        smoke-testing the session wiring without a running model.
    StaticChunkSource: replays a fixed list of chunks (tests).
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Iterable
from typing import Protocol

import httpx

from hiro.config import Settings
from hiro.models import ChatRequest, Message, ProviderFormat
from hiro.stream import LineBuffer, StreamAggregator, StructuredValue, decode_payload

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol: every source factory must match this signature
# ---------------------------------------------------------------------------

class SourceFactory(Protocol):
    def __call__(self, request: ChatRequest) -> AsyncIterator[str]: ...


# ---------------------------------------------------------------------------
# HttpChunkSource: streams from a real backend
# ---------------------------------------------------------------------------

class HttpChunkSource:
    """Async streaming client for chat backends.

    Supported formats:
      "openai": POST {base}/api/chat  {"messages", "system", "provider", "model"}
                Response: SSE lines `data: {"text": "..."}` ending in `data: [DONE]`
      "ollama": POST {base}/api/chat  {"model", "stream": true, "messages"}
                Response: NDJSON `{"message": {"content": "..."}, "done": false}`;
                the line carrying `"done": true` ends the source.

    Args:
        base_url:        Base URL of the backend, e.g. "http://127.0.0.1:11434".
        provider_format: Wire format to use. Defaults to "openai".
        api_key:         Bearer token, or empty string if not required.
        timeout:         HTTP timeout in seconds. Defaults to 120.
    """

    def __init__(
        self,
        base_url: str,
        provider_format: ProviderFormat = "openai",
        api_key: str = "",
        timeout: float = 120.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._format = provider_format
        self._api_key = api_key
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, request: ChatRequest) -> tuple[str, dict]:
        """Return (url, body) for the configured format."""
        messages = [m.model_dump() for m in request.messages]
        url = f"{self._base_url}/api/chat"

        if self._format == "ollama":
            if request.system:
                messages = [{"role": "system", "content": request.system}, *messages]
            return url, {"model": request.model, "stream": True, "messages": messages}

        # openai-style proxy (default)
        return url, {
            "messages": messages,
            "system": request.system,
            "provider": request.provider,
            "model": request.model,
        }

    def __call__(self, request: ChatRequest) -> AsyncIterator[str]:
        return self.stream(request)

    async def stream(self, request: ChatRequest) -> AsyncIterator[str]:
        url, body = self._build_request(request)
        logger.debug(
            "llm stream format=%s url=%s messages=%d",
            self._format, url, len(request.messages),
        )

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                async with client.stream("POST", url, json=body, headers=self._headers()) as resp:
                    if resp.status_code >= 400:
                        raise LLMError(f"LLM backend returned HTTP {resp.status_code}")
                    chunks = resp.aiter_text()
                    if self._format == "ollama":
                        chunks = stop_at_done(chunks)
                    async for chunk in chunks:
                        yield chunk
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise LLMError(f"LLM stream failed: {e}") from e


def _is_done(line: str) -> bool:
    payload = decode_payload(line.strip())
    return (
        isinstance(payload, StructuredValue)
        and isinstance(payload.value, dict)
        and payload.value.get("done") is True
    )


async def stop_at_done(chunks: AsyncIterator[str]) -> AsyncIterator[str]:
    """Re-frame NDJSON chunks as lines and end after a `"done": true` payload.

    The done line itself is still forwarded: it may carry a final token.
    """
    buffer = LineBuffer()
    async for chunk in chunks:
        for line in buffer.feed(chunk):
            yield line + "\n"
            if _is_done(line):
                return
    for line in buffer.flush():
        yield line


def source_for(provider: str, settings: Settings) -> HttpChunkSource:
    """Pick the backend for a provider name: Ollama direct, else the chat proxy."""
    if provider == "ollama":
        return HttpChunkSource(settings.ollama_url, "ollama", timeout=settings.http_timeout)
    return HttpChunkSource(
        settings.proxy_url, "openai",
        api_key=settings.api_key, timeout=settings.http_timeout,
    )


async def list_ollama_models(base_url: str, timeout: float = 5.0) -> list[str]:
    """Model names from Ollama's /api/tags. Returns [] when Ollama is unreachable."""
    url = f"{base_url.rstrip('/')}/api/tags"
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            resp = await client.get(url)
            resp.raise_for_status()
        data = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.debug("ollama model list unavailable url=%s: %s", url, e)
        return []
    models = data.get("models") if isinstance(data, dict) else None
    return [m["name"] for m in models or [] if isinstance(m, dict) and m.get("name")]


async def collect_text(source: AsyncIterator[str]) -> str:
    """Drain a source into one string. Raises LLMError if the source fails."""
    scratch = Message(role="assistant")
    result = await StreamAggregator(scratch).run(source)
    if result.status == "failed":
        raise LLMError(result.error or "stream failed")
    return scratch.content


# ---------------------------------------------------------------------------
# EchoChunkSource / StaticChunkSource (no network)
# ---------------------------------------------------------------------------

class EchoChunkSource:
    """Streams the last user message back word by word as SSE lines."""

    async def _stream(self, request: ChatRequest) -> AsyncIterator[str]:
        last_user = next(
            (m.content for m in reversed(request.messages) if m.role == "user"), ""
        )
        logger.debug("EchoChunkSource messages=%d", len(request.messages))
        for i, word in enumerate(last_user.split(" ")):
            token = word if i == 0 else f" {word}"
            yield f"data: {json.dumps({'text': token})}\n\n"
            await asyncio.sleep(0)
        yield "data: [DONE]\n\n"

    def __call__(self, request: ChatRequest) -> AsyncIterator[str]:
        return self._stream(request)


class StaticChunkSource:
    """Replays the same chunks for every request."""

    def __init__(self, chunks: Iterable[str]) -> None:
        self._chunks = list(chunks)
        self.requests: list[ChatRequest] = []

    async def _stream(self) -> AsyncIterator[str]:
        for chunk in self._chunks:
            await asyncio.sleep(0)
            yield chunk

    def __call__(self, request: ChatRequest) -> AsyncIterator[str]:
        self.requests.append(request)
        return self._stream()


# ---------------------------------------------------------------------------
# LLMError: raised by HttpChunkSource for all connection and protocol failures
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an error."""
