"""Core domain models.

Role inference results, chat messages, and stream outcomes. Pydantic is
used for validation and serialisation at every data boundary.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

MessageRole = Literal["user", "assistant", "system"]
ProviderFormat = Literal["openai", "ollama"]
StreamStatus = Literal["completed", "cancelled", "failed"]


class RankedRole(BaseModel):
    role: str
    score: float


class RoleInference(BaseModel):
    """Chosen role plus the data the prompt builder needs from it."""

    role: str
    stages: list[str]
    scope: str
    confidence: float = Field(ge=0, le=1)
    top: list[RankedRole] = Field(default_factory=list)  # top-3, for display


class Message(BaseModel):
    """One chat entry. `content` grows token by token while streaming."""

    role: MessageRole
    content: str = ""


class ChatRequest(BaseModel):
    """What a chunk source needs to open a stream.

    Mirrors the wire body posted to the chat route:
    {messages, system, provider, model}.
    """

    messages: list[Message]
    system: str = ""
    provider: str = "openai"
    model: str = ""


class StreamResult(BaseModel):
    status: StreamStatus
    fragments: int = 0  # number of Text fragments appended
    error: str | None = None
