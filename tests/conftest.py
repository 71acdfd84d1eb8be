from __future__ import annotations

import os
import sys

# Add repository root to sys.path for `import byok_image_gen.*` in tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from typing import Any  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402

from byok_image_gen.engines.base_engine import ImageEngine  # noqa: E402
from byok_image_gen.settings import get_settings  # noqa: E402

_ENV_VARS = (
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "GEMINI_API_KEY",
    "GEMINI_BASE_URL",
    "XAI_API_KEY",
    "XAI_BASE_URL",
    "USE_MOCK",
    "MOCK_DELAY_SECONDS",
    "REQUEST_TIMEOUT",
)


class ScriptedTransport:
    """Replays canned responses in order; the last one repeats forever.

    Each item is either ``(status, body)`` or an exception to raise, e.g.
    ``httpx.ConnectError``. Dict/list bodies are sent as JSON.
    """

    def __init__(self, *responses: tuple[int, Any] | Exception) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses[min(len(self.requests), len(self.responses)) - 1]
        if isinstance(item, Exception):
            raise item
        status, body = item
        if isinstance(body, (dict, list)):
            return httpx.Response(status, json=body)
        return httpx.Response(status, text=body or "")

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def scripted() -> type[ScriptedTransport]:
    return ScriptedTransport


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _no_retry_delay(monkeypatch):
    monkeypatch.setattr(ImageEngine, "retry_delay", 0.0)
