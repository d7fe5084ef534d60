import pytest

from backend import state
from hiro.config import Settings

TEST_SETTINGS = Settings(
    proxy_url="http://proxy.test",
    ollama_url="http://ollama.test",
    provider="openai",
    model="test-model",
    http_timeout=5.0,
)


@pytest.fixture(autouse=True)
def reset_state():
    """Fresh in-memory sessions and settings before every test."""
    state.init_state(TEST_SETTINGS)
    yield
