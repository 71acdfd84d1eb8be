from __future__ import annotations

import pytest

from byok_image_gen.engines.mock import MockEngine
from byok_image_gen.exceptions import ImageGenerationError
from byok_image_gen.schema import ImageGenerationOptions
from byok_image_gen.shard import constants as C
from byok_image_gen.shard.enums import ErrorType, Provider


def _mock(provider: Provider) -> MockEngine:
    return MockEngine(name=f"mock:{provider.value}", provider=provider, delay_seconds=0)


async def test_dalle3_default_returns_single_url():
    result = await _mock(Provider.OPENAI).generate_images("a cat", ImageGenerationOptions(count=4))

    assert result.image_urls == [C.MOCK_IMAGE_URLS[0]]
    assert result.metadata["model"] == "dall-e-3"
    assert result.metadata["is_mock"] is True


async def test_other_models_cap_at_four():
    result = await _mock(Provider.XAI).generate_images("a cat", ImageGenerationOptions(count=9))

    assert len(result.image_urls) == 4
    assert result.metadata["model"] == "grok-2-image-1212"


async def test_base64_returns_data_urls():
    result = await _mock(Provider.GEMINI).generate_images("a cat", ImageGenerationOptions(count=2, return_base64=True))

    assert result.image_urls == [f"data:image/png;base64,{C.MOCK_PNG_BASE64}"] * 2


async def test_mock_honors_provider_sanitization():
    with pytest.raises(ImageGenerationError) as exc_info:
        await _mock(Provider.XAI).generate_images("🎉🎉🎉")

    assert exc_info.value.type is ErrorType.INVALID_PROMPT


async def test_mock_generates_without_key():
    result = await _mock(Provider.OPENAI).generate_images("a cat")
    assert result.image_urls


async def test_mock_delay_is_applied(monkeypatch):
    sleeps: list[float] = []

    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    monkeypatch.setattr("byok_image_gen.engines.mock.asyncio.sleep", fake_sleep)
    engine = MockEngine(name="mock:openai", provider=Provider.OPENAI, delay_seconds=2.0)

    await engine.generate_images("a cat")

    assert sleeps == [2.0]


@pytest.mark.parametrize(
    ("provider", "key", "valid"),
    [
        (Provider.OPENAI, "sk-anything", True),
        (Provider.OPENAI, "xai-anything", False),
        (Provider.XAI, "xai-anything", True),
        (Provider.GEMINI, "AIzaSyAnything", True),
        (Provider.GEMINI, "", False),
    ],
)
async def test_validation_by_prefix(provider, key, valid):
    result = await _mock(provider).validate_api_key(key)

    assert result.is_valid is valid
    assert result.details == {"is_mock": True}
