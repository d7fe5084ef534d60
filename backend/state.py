"""Process-wide state: settings, the inference engine, and chat sessions.

Everything here is in-memory and lives for the lifetime of the process;
nothing is persisted.
"""

import uuid

from hiro.config import Settings, load_settings
from hiro.inference import RoleInferenceEngine
from hiro.lexicon import DEFAULT_LEXICON, load_lexicon
from hiro.llm import SourceFactory, source_for
from hiro.session import ChatSessionController

_settings: Settings | None = None
_engine: RoleInferenceEngine | None = None
_source_override: SourceFactory | None = None
_sessions: dict[str, ChatSessionController] = {}


def init_state(
    settings: Settings | None = None, source_factory: SourceFactory | None = None
) -> None:
    """(Re)initialise state. `source_factory` replaces HTTP sources (tests, demos)."""
    global _settings, _engine, _source_override
    _settings = settings or load_settings()
    lexicon = load_lexicon(_settings.lexicon_path) if _settings.lexicon_path else DEFAULT_LEXICON
    _engine = RoleInferenceEngine(lexicon)
    _source_override = source_factory
    _sessions.clear()


def settings() -> Settings:
    assert _settings is not None, "Call init_state() before using state"
    return _settings


def engine() -> RoleInferenceEngine:
    assert _engine is not None, "Call init_state() before using state"
    return _engine


def source_factory(provider: str) -> SourceFactory:
    if _source_override is not None:
        return _source_override
    return source_for(provider, settings())


def create_session(system: str = "", provider: str | None = None, model: str | None = None) -> str:
    provider = provider or settings().provider
    session_id = uuid.uuid4().hex
    _sessions[session_id] = ChatSessionController(
        source_factory(provider),
        system=system,
        provider=provider,
        model=model or settings().model,
    )
    return session_id


def get_session(session_id: str) -> ChatSessionController | None:
    return _sessions.get(session_id)


def delete_session(session_id: str) -> bool:
    session = _sessions.pop(session_id, None)
    if session is None:
        return False
    session.clear()
    return True
