"""Streaming response reassembly.

Turns an async source of arbitrarily split text chunks into fragments
appended to one chat Message:

    chunks ──► LineBuffer ──► extract_token ──► StreamAggregator ──► Message

Servers may frame lines as SSE (`data: {"text":"..."}` … `data: [DONE]`)
or as raw newline-delimited JSON (Ollama), or send plain text lines. The
framing is detected per line, never declared up front.

Cancellation is cooperative: a CancellationToken is checked before every
chunk read and before every append. Cancelling also interrupts a read that
is already waiting on the network, and the source is always closed when the
aggregator stops.
"""

from __future__ import annotations

import asyncio
import codecs
import json
import logging
import re
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Any

from hiro.models import Message, StreamResult

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"
SSE_PREFIX = "data:"

# Field priority for structured payloads: text > delta > message.content > response
_FIELD_PATHS: tuple[tuple[str, ...], ...] = (
    ("text",),
    ("delta",),
    ("message", "content"),
    ("response",),  # Ollama /api/generate
)

_LINE_SPLIT = re.compile(r"\r?\n")


# ---------------------------------------------------------------------------
# LineBuffer
# ---------------------------------------------------------------------------

class LineBuffer:
    """Reassembles chunked text into complete lines.

    The trailing unterminated fragment is kept until the next chunk (or
    flush()); data is never dropped.
    """

    def __init__(self) -> None:
        self._pending = ""

    @property
    def pending(self) -> str:
        return self._pending

    def feed(self, chunk: str) -> list[str]:
        parts = _LINE_SPLIT.split(self._pending + chunk)
        self._pending = parts.pop()
        return parts

    def flush(self) -> list[str]:
        """End of stream: emit the pending fragment as a final line, if any."""
        if not self._pending:
            return []
        line, self._pending = self._pending, ""
        return [line]


# ---------------------------------------------------------------------------
# Payload decoding
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StructuredValue:
    value: Any


@dataclass(frozen=True)
class PlainString:
    text: str


@dataclass(frozen=True)
class DecodeFailure:
    raw: str


DecodedPayload = StructuredValue | PlainString | DecodeFailure


def decode_payload(raw: str) -> DecodedPayload:
    try:
        value = json.loads(raw)
    except (ValueError, RecursionError):
        # JSONDecodeError, oversized int literals, runaway nesting
        return DecodeFailure(raw)
    if isinstance(value, str):
        return PlainString(value)
    return StructuredValue(value)


# ---------------------------------------------------------------------------
# TokenExtractor
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Text:
    fragment: str


class Terminal:
    """End-of-stream sentinel. Use the TERMINAL instance."""

    def __repr__(self) -> str:
        return "TERMINAL"


TERMINAL = Terminal()

DecodedToken = Text | Terminal | None


def _lookup(value: Any, path: tuple[str, ...]) -> Any:
    for key in path:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def extract_field(value: Any) -> str | None:
    """First non-empty field by priority, stringified; None if there is none."""
    for path in _FIELD_PATHS:
        found = _lookup(value, path)
        if found:
            return _stringify(found)
    return None


def extract_token(line: str) -> DecodedToken:
    """Decode one line into Text, TERMINAL, or None (ignorable)."""
    s = line.strip()
    if not s:
        return None
    if s.startswith(SSE_PREFIX):
        s = s[len(SSE_PREFIX):].strip()
        if not s:
            return None  # bare "data:" keep-alive
    if s == DONE_SENTINEL:
        return TERMINAL

    payload = decode_payload(s)
    if isinstance(payload, DecodeFailure):
        return Text(payload.raw)  # plain token
    if isinstance(payload, PlainString):
        return Text(payload.text)
    fragment = extract_field(payload.value)
    return Text(fragment) if fragment is not None else None


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------

class CancellationToken:
    """Shared flag checked at every suspension point of a stream.

    Callbacks registered with on_cancel() run synchronously, once, when
    cancel() is first called.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a callback; returns a function that unregisters it."""
        if self._cancelled:
            callback()
            return lambda: None
        self._callbacks.append(callback)

        def _remove() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return _remove


# ---------------------------------------------------------------------------
# StreamAggregator
# ---------------------------------------------------------------------------

ChunkSource = AsyncIterator[str]

_END = object()


async def _read(iterator: ChunkSource) -> Any:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return _END


async def close_source(source: Any) -> None:
    """Close an async chunk source if it supports aclose()."""
    aclose = getattr(source, "aclose", None)
    if aclose is None:
        return
    try:
        await aclose()
    except Exception as e:
        logger.warning("Error while closing chunk source: %s", e)


class StreamAggregator:
    """Appends decoded fragments from one chunk source to one target Message.

    Args:
        target:    Message whose content grows while streaming.
        token:     Cancellation token; a fresh one is created if omitted.
        on_update: Called with the target after every append.
    """

    def __init__(
        self,
        target: Message,
        token: CancellationToken | None = None,
        on_update: Callable[[Message], None] | None = None,
    ) -> None:
        self._target = target
        self._token = token or CancellationToken()
        self._on_update = on_update
        self._buffer = LineBuffer()
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._fragments = 0
        self._result: StreamResult | None = None

    @property
    def token(self) -> CancellationToken:
        return self._token

    @property
    def result(self) -> StreamResult | None:
        """Final outcome; None while the stream is still running."""
        return self._result

    def _append(self, fragment: str) -> bool:
        """Append one fragment unless cancelled. Returns False when cancelled."""
        if self._token.cancelled:
            return False
        self._target.content += fragment
        self._fragments += 1
        if self._on_update is not None:
            self._on_update(self._target)
        return True

    def _consume(self, lines: list[str]) -> StreamResult | None:
        """Process complete lines; returns a final result if the stream ended."""
        for line in lines:
            token = extract_token(line)
            if token is None:
                continue
            if token is TERMINAL:
                return self._finish("cancelled" if self._token.cancelled else "completed")
            if not self._append(token.fragment):
                return self._finish("cancelled")
        return None

    def _finish(self, status: str, error: str | None = None) -> StreamResult:
        self._result = StreamResult(status=status, fragments=self._fragments, error=error)
        logger.debug(
            "stream %s fragments=%d chars=%d",
            status, self._fragments, len(self._target.content),
        )
        return self._result

    async def run(self, source: ChunkSource) -> StreamResult:
        """Drive `source` to completion, cancellation, or failure."""
        if self._result is not None:
            raise RuntimeError("StreamAggregator.run() can only be called once")

        iterator = aiter(source)
        reading: asyncio.Task | None = None

        def _interrupt() -> None:
            if reading is not None and not reading.done():
                reading.cancel()

        unregister = self._token.on_cancel(_interrupt)
        try:
            while True:
                if self._token.cancelled:
                    return self._finish("cancelled")

                reading = asyncio.ensure_future(_read(iterator))
                try:
                    chunk = await reading
                except asyncio.CancelledError:
                    if self._token.cancelled:
                        return self._finish("cancelled")
                    raise
                except Exception as e:
                    logger.warning("Chunk source failed: %s", e)
                    return self._finish("failed", error=str(e) or type(e).__name__)
                finally:
                    reading = None

                if chunk is _END:
                    break
                if isinstance(chunk, bytes):
                    chunk = self._decoder.decode(chunk)

                result = self._consume(self._buffer.feed(chunk))
                if result is not None:
                    return result

            if self._token.cancelled:
                return self._finish("cancelled")
            result = self._consume(self._buffer.flush())
            return result or self._finish("completed")
        finally:
            unregister()
            await close_source(iterator)
