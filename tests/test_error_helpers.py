from __future__ import annotations

import asyncio

import httpx
import pytest

from byok_image_gen.exceptions import ImageGenerationError, is_retryable_error
from byok_image_gen.shard.enums import ErrorType, Provider
from byok_image_gen.utils.error_helpers import classify_failure, mask_secret, user_message_for


@pytest.mark.parametrize(
    ("status", "message", "code", "expected"),
    [
        (401, "Incorrect API key provided", None, (ErrorType.AUTHENTICATION, False)),
        (401, "you exceeded your quota", None, (ErrorType.AUTHENTICATION, False)),
        (402, "Payment required", None, (ErrorType.BILLING, False)),
        (429, "Rate limit reached", None, (ErrorType.RATE_LIMIT, True)),
        (429, "You exceeded your current quota", "insufficient_quota", (ErrorType.RATE_LIMIT, True)),
        (500, "Internal error", None, (ErrorType.SERVER_ERROR, True)),
        (503, "", None, (ErrorType.SERVER_ERROR, True)),
        (400, "Billing hard limit has been reached", "billing_hard_limit_reached", (ErrorType.BILLING, False)),
        (400, "Your account is out of credits", None, (ErrorType.BILLING, False)),
        (400, "Your request was rejected as a result of our safety system.", "content_policy_violation", (ErrorType.CONTENT_POLICY, False)),
        (400, "Prompt blocked by safety filters", None, (ErrorType.CONTENT_POLICY, False)),
        (400, "Invalid value for 'size'", None, (ErrorType.INVALID_PROMPT, False)),
        (400, "API key not valid. Please pass a valid API key.", "API_KEY_INVALID", (ErrorType.AUTHENTICATION, False)),
        (403, "The caller does not have permission", "PERMISSION_DENIED", (ErrorType.AUTHENTICATION, False)),
        (400, "Quota exceeded", "RESOURCE_EXHAUSTED", (ErrorType.RATE_LIMIT, True)),
        (404, "Model not found", None, (ErrorType.UNKNOWN, False)),
        (None, "", None, (ErrorType.UNKNOWN, False)),
    ],
)
def test_classify_failure_table(status, message, code, expected):
    assert classify_failure(status, message, code) == expected


def test_retryable_defaults_follow_type():
    assert ImageGenerationError("x", ErrorType.RATE_LIMIT).retryable is True
    assert ImageGenerationError("x", ErrorType.NETWORK_ERROR).retryable is True
    assert ImageGenerationError("x", ErrorType.AUTHENTICATION).retryable is False
    assert ImageGenerationError("x").type is ErrorType.UNKNOWN
    assert ImageGenerationError("x").retryable is False


def test_is_retryable_error_for_foreign_exceptions():
    assert is_retryable_error(httpx.ConnectError("down"))
    assert is_retryable_error(RuntimeError("unclassified"))
    assert is_retryable_error(ImageGenerationError("x", ErrorType.SERVER_ERROR))
    assert not is_retryable_error(ImageGenerationError("x", ErrorType.AUTHENTICATION))
    assert not is_retryable_error(asyncio.CancelledError())

    class StatusError(Exception):
        def __init__(self, status_code: int) -> None:
            self.status_code = status_code

    assert is_retryable_error(StatusError(429))
    assert is_retryable_error(StatusError(502))
    assert not is_retryable_error(StatusError(400))


def test_user_message_distinguishes_retryable():
    transient = ImageGenerationError("upstream 503", ErrorType.SERVER_ERROR, provider=Provider.XAI)
    permanent = ImageGenerationError("bad key", ErrorType.AUTHENTICATION, provider=Provider.OPENAI)
    assert "try again later" in transient.user_message
    assert "xAI" in transient.user_message
    assert "OpenAI" in permanent.user_message
    assert "try again later" not in permanent.user_message


def test_user_message_without_provider():
    assert "the image provider" in user_message_for(ImageGenerationError("x", ErrorType.CONTENT_POLICY))


def test_mask_secret_never_returns_full_key():
    key = "sk-abcdefghijklmnopqrstuvwxyz"
    masked = mask_secret(key)
    assert key not in masked
    assert masked.startswith("sk-ab") and masked.endswith("vwxyz")
    assert mask_secret("short") == "*****"
    assert mask_secret(None) == "<empty>"
