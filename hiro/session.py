"""Chat session controller: message history plus send/regenerate/stop/clear.

State machine over one in-memory chat:

    idle ──send(text)──► busy ──(done | source error | stop)──► idle

While busy, exactly one assistant placeholder Message is being filled by a
StreamAggregator; send() and regenerate() are ignored. stop() cancels the
active stream. clear() resets the history immediately, even mid-stream: the
orphaned stream is cancelled and can no longer touch the new history.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from hiro.llm import SourceFactory
from hiro.models import ChatRequest, Message, StreamResult
from hiro.stream import CancellationToken, StreamAggregator

logger = logging.getLogger(__name__)

GREETING = "Chat ready. Type a message."
RESET_GREETING = "Chat reset."


class ChatSessionController:
    """Owns one chat history and drives at most one stream at a time.

    Args:
        source_factory: Opens a chunk source for a ChatRequest.
        system:         System prompt sent with every request.
        provider:       Provider name forwarded to the backend.
        model:          Model name forwarded to the backend.
        on_update:      Called with the streaming Message after every append.
    """

    def __init__(
        self,
        source_factory: SourceFactory,
        *,
        system: str = "",
        provider: str = "openai",
        model: str = "",
        on_update: Callable[[Message], None] | None = None,
    ) -> None:
        self.source_factory = source_factory
        self.system = system
        self.provider = provider
        self.model = model
        self._on_update = on_update
        self._history: list[Message] = [Message(role="assistant", content=GREETING)]
        self._busy = False
        self._token: CancellationToken | None = None

    @property
    def history(self) -> list[Message]:
        return list(self._history)

    @property
    def busy(self) -> bool:
        return self._busy

    def _request(self) -> ChatRequest:
        # Everything but the placeholder that is about to be filled
        prior = [m.model_copy() for m in self._history[:-1]]
        return ChatRequest(
            messages=prior, system=self.system,
            provider=self.provider, model=self.model,
        )

    async def send(self, text: str) -> StreamResult | None:
        """Append the user message, stream a reply into a placeholder.

        Returns None when the command was ignored (busy or empty text).
        """
        text = (text or "").strip()
        if self._busy or not text:
            return None

        self._history.append(Message(role="user", content=text))
        placeholder = Message(role="assistant")
        self._history.append(placeholder)
        request = self._request()

        token = CancellationToken()
        self._token = token
        self._busy = True
        logger.debug("send provider=%s model=%s history=%d", self.provider, self.model, len(request.messages))

        aggregator = StreamAggregator(placeholder, token, on_update=self._on_update)
        try:
            try:
                source = self.source_factory(request)
            except Exception as e:
                logger.warning("Could not open chunk source: %s", e)
                result = StreamResult(status="failed", error=str(e) or type(e).__name__)
            else:
                result = await aggregator.run(source)
        finally:
            current = self._token is token
            if current:
                self._token = None
                self._busy = False

        if result.status == "failed" and current:
            self._surface_error(placeholder, result.error or "stream failed")
        return result

    def _surface_error(self, placeholder: Message, error: str) -> None:
        """Show a transport failure as assistant content, keeping partial output."""
        text = f"Error: {error}"
        if placeholder.content:
            entry = Message(role="assistant", content=text)
            self._history.append(entry)
        else:
            placeholder.content = text
            entry = placeholder
        if self._on_update is not None:
            self._on_update(entry)

    async def regenerate(self) -> StreamResult | None:
        """Drop the last user turn and everything after it, then resend it."""
        if self._busy:
            return None
        for idx in range(len(self._history) - 1, -1, -1):
            if self._history[idx].role == "user":
                break
        else:
            return None
        text = self._history[idx].content
        del self._history[idx:]
        return await self.send(text)

    def stop(self) -> None:
        if self._token is not None:
            logger.debug("stop requested")
            self._token.cancel()

    def clear(self) -> None:
        if self._token is not None:
            self._token.cancel()
        self._token = None
        self._busy = False
        self._history = [Message(role="assistant", content=RESET_GREETING)]
