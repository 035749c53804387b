import pytest

from plotline.variables import VariableStore

_ENV_VARS = (
    "PLOTLINE_CONFIG",
    "PLOTLINE_MATCHER_URL",
    "PLOTLINE_MATCHER_API_KEY",
    "PLOTLINE_MATCHER_FORMAT",
    "PLOTLINE_MATCHER_MODEL",
    "PLOTLINE_MATCHER_TIMEOUT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep a developer's .env or shell from leaking into tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def variables() -> VariableStore:
    return VariableStore()
