from __future__ import annotations

import asyncio
from typing import Any

import httpx
import pytest
from pydantic import Field

from byok_image_gen.engines.base_engine import ImageEngine, backoff_delay
from byok_image_gen.engines.openai import OpenAIEngine
from byok_image_gen.engines.xai import XAIEngine
from byok_image_gen.exceptions import ImageGenerationError
from byok_image_gen.schema import ApiKeyValidationResult, CapabilityReport, ImageGenerationOptions
from byok_image_gen.shard.enums import ErrorType, Provider

OK_BODY = {"created": 1, "data": [{"url": "https://img.example.com/1.png"}]}


class FlakyEngine(ImageEngine):
    """In-memory engine that raises the scripted failures before succeeding."""

    name: str = "flaky"
    provider: Provider = Provider.OPENAI
    api_key: str = "sk-test-key-123"
    base_url: str = "memory://"
    failures: list[BaseException] = Field(default_factory=list)
    attempts: list[int] = Field(default_factory=list)

    def get_capability_report(self) -> CapabilityReport:
        return CapabilityReport(provider=self.provider, engine=self.name)

    def _build_payload(self, prompt: str, model: str, options: ImageGenerationOptions) -> dict[str, Any]:
        return {"prompt": prompt}

    async def _request_images(self, payload, model, options):
        self.attempts.append(len(self.attempts) + 1)
        if self.failures:
            raise self.failures.pop(0)
        return ["https://img.example.com/ok.png"], None

    async def validate_api_key(self, api_key: str | None = None) -> ApiKeyValidationResult:
        return ApiKeyValidationResult(is_valid=True, message="ok")


def test_backoff_is_linear():
    assert backoff_delay(0, 1.0) == 1.0
    assert backoff_delay(1, 1.0) == 2.0
    assert backoff_delay(2, 0.5) == 1.5


async def test_always_retryable_makes_exactly_three_attempts(scripted):
    transport = scripted((503, {"error": {"message": "overloaded", "type": "server_error"}}))
    engine = OpenAIEngine(api_key="sk-test-key-123", http_client=transport.client())

    with pytest.raises(ImageGenerationError) as exc_info:
        await engine.generate_images("a lighthouse")

    assert len(transport.requests) == 3
    assert exc_info.value.type is ErrorType.SERVER_ERROR
    assert exc_info.value.retryable is True
    assert exc_info.value.status_code == 503


async def test_unauthorized_short_circuits_after_one_attempt(scripted):
    transport = scripted((401, {"error": {"message": "Incorrect API key provided", "code": "invalid_api_key"}}))
    engine = OpenAIEngine(api_key="sk-test-key-123", http_client=transport.client())

    with pytest.raises(ImageGenerationError) as exc_info:
        await engine.generate_images("a lighthouse")

    assert len(transport.requests) == 1
    assert exc_info.value.type is ErrorType.AUTHENTICATION
    assert exc_info.value.retryable is False


async def test_rate_limit_then_success_recovers(scripted):
    rate_limited = (429, {"error": {"message": "Rate limit reached", "type": "requests"}})
    transport = scripted(rate_limited, rate_limited, (200, OK_BODY))
    engine = OpenAIEngine(api_key="sk-test-key-123", http_client=transport.client())

    result = await engine.generate_images("a lighthouse")

    assert len(transport.requests) == 3
    assert result.image_urls == ["https://img.example.com/1.png"]


async def test_network_failure_is_retried_and_classified(scripted):
    transport = scripted(httpx.ConnectError("connection refused"))
    engine = XAIEngine(api_key="xai-test-key-123", http_client=transport.client())

    with pytest.raises(ImageGenerationError) as exc_info:
        await engine.generate_images("a lighthouse")

    assert len(transport.requests) == 3
    assert exc_info.value.type is ErrorType.NETWORK_ERROR
    assert exc_info.value.retryable is True


async def test_blank_prompt_never_reaches_the_network(scripted):
    transport = scripted((200, OK_BODY))
    engine = XAIEngine(api_key="xai-test-key-123", http_client=transport.client())

    with pytest.raises(ImageGenerationError) as exc_info:
        await engine.generate_images("🎉🎉🎉")

    assert exc_info.value.type is ErrorType.INVALID_PROMPT
    assert exc_info.value.retryable is False
    assert transport.requests == []


async def test_missing_key_is_authentication_error_without_request(scripted):
    transport = scripted((200, OK_BODY))
    engine = OpenAIEngine(api_key="", http_client=transport.client())

    with pytest.raises(ImageGenerationError) as exc_info:
        await engine.generate_images("a lighthouse")

    assert exc_info.value.type is ErrorType.AUTHENTICATION
    assert transport.requests == []


async def test_successful_response_without_images_is_retryable_server_error(scripted):
    transport = scripted((200, {"created": 1, "data": []}))
    engine = OpenAIEngine(api_key="sk-test-key-123", http_client=transport.client())

    with pytest.raises(ImageGenerationError) as exc_info:
        await engine.generate_images("a lighthouse")

    assert len(transport.requests) == 3
    assert exc_info.value.type is ErrorType.SERVER_ERROR


async def test_unclassified_failures_surface_as_unknown():
    engine = FlakyEngine(failures=[RuntimeError("boom")] * 3)

    with pytest.raises(ImageGenerationError) as exc_info:
        await engine.generate_images("a lighthouse")

    assert engine.attempts == [1, 2, 3]
    assert exc_info.value.type is ErrorType.UNKNOWN
    assert isinstance(exc_info.value.__cause__, RuntimeError)


async def test_unclassified_failure_then_success():
    engine = FlakyEngine(failures=[ValueError("garbled")])

    result = await engine.generate_images("a lighthouse")

    assert engine.attempts == [1, 2]
    assert result.image_urls == ["https://img.example.com/ok.png"]


async def test_cancellation_is_not_retried():
    engine = FlakyEngine(failures=[asyncio.CancelledError()])

    with pytest.raises(asyncio.CancelledError):
        await engine.generate_images("a lighthouse")

    assert engine.attempts == [1]


async def test_sleeps_follow_linear_backoff(monkeypatch):
    monkeypatch.setattr(ImageEngine, "retry_delay", 1.0)
    sleeps: list[float] = []

    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    monkeypatch.setattr("byok_image_gen.engines.base_engine.asyncio.sleep", fake_sleep)
    error = ImageGenerationError("busy", ErrorType.RATE_LIMIT, status_code=429)
    engine = FlakyEngine(failures=[error, error, error])

    with pytest.raises(ImageGenerationError):
        await engine.generate_images("a lighthouse")

    # No sleep after the final attempt
    assert sleeps == [1.0, 2.0]


async def test_foreign_client_error_is_not_retried():
    class UpstreamError(Exception):
        status_code = 400

    engine = FlakyEngine(failures=[UpstreamError("bad request")])

    with pytest.raises(ImageGenerationError) as exc_info:
        await engine.generate_images("a lighthouse")

    assert engine.attempts == [1]
    assert exc_info.value.type is ErrorType.UNKNOWN
    assert isinstance(exc_info.value.__cause__, UpstreamError)


async def test_retry_budget_follows_class_setting(monkeypatch):
    monkeypatch.setattr(ImageEngine, "max_retries", 2)
    error = ImageGenerationError("busy", ErrorType.SERVER_ERROR, status_code=503)
    engine = FlakyEngine(failures=[error, error, error])

    with pytest.raises(ImageGenerationError) as exc_info:
        await engine.generate_images("a lighthouse")

    assert engine.attempts == [1, 2]
    assert exc_info.value is error
