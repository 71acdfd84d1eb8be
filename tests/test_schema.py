from __future__ import annotations

import pytest
from pydantic import ValidationError

from byok_image_gen.schema import ImageGenerationOptions, ImageGenerationResult, ImageToolStructured
from byok_image_gen.shard.enums import OutputFormat, Provider


def test_options_are_all_optional():
    options = ImageGenerationOptions()
    assert options.count is None
    assert options.additional_params == {}
    assert options.wants_base64 is False


def test_wants_base64_precedence():
    assert ImageGenerationOptions(response_format=OutputFormat.B64_JSON).wants_base64 is True
    assert ImageGenerationOptions(response_format="b64_json", return_base64=False).wants_base64 is False
    assert ImageGenerationOptions(response_format=OutputFormat.URL, return_base64=True).wants_base64 is True


def test_additional_params_none_becomes_empty():
    assert ImageGenerationOptions(additional_params=None).additional_params == {}


def test_count_must_be_positive():
    with pytest.raises(ValidationError):
        ImageGenerationOptions(count=0)


def test_raw_response_is_not_serialized():
    result = ImageGenerationResult(image_urls=["https://a"], raw_response={"secret": "payload"}, metadata={"model": "dall-e-3", "prompt": "a"})
    dumped = result.model_dump()
    assert "raw_response" not in dumped
    assert result.raw_response == {"secret": "payload"}


def test_structured_defaults():
    structured = ImageToolStructured(provider=Provider.XAI)
    assert structured.ok is True
    assert structured.image_urls == []
    assert structured.model_dump(mode="json")["provider"] == "xai"
