"""Pydantic request/response models for API endpoints."""

from pydantic import BaseModel

from hiro.models import Message


class InferBody(BaseModel):
    needs: str = ""
    tech_stack: str = ""


class CreateSession(BaseModel):
    system: str = ""
    provider: str | None = None
    model: str | None = None


class UpdateSession(BaseModel):
    system: str | None = None
    provider: str | None = None
    model: str | None = None


class SendBody(BaseModel):
    text: str


class ChatProxyBody(BaseModel):
    """Wire body of the streaming chat route."""

    messages: list[Message]
    system: str = ""
    provider: str = "openai"
    model: str = ""


class SuggestBody(BaseModel):
    provider: str | None = None
    model: str | None = None
