from __future__ import annotations

from typing import TYPE_CHECKING

from ..shard.enums import ErrorType

if TYPE_CHECKING:
    from ..exceptions import ImageGenerationError


# ============================================================================
# Provider error vocabulary
# ============================================================================

# Structured codes providers put in error bodies (OpenAI ``code``/``type``,
# Google ``status``/``details[].reason``). Compared lower-cased.
AUTH_CODES = frozenset(
    {
        "invalid_api_key",
        "api_key_invalid",
        "invalid_authentication",
        "unauthenticated",
        "permission_denied",
        "authentication_error",
    }
)
BILLING_CODES = frozenset({"billing_hard_limit_reached", "insufficient_quota", "billing_not_active"})
RATE_LIMIT_CODES = frozenset({"rate_limit_exceeded", "resource_exhausted"})
SERVER_CODES = frozenset({"internal", "unavailable", "server_error", "deadline_exceeded"})
CONTENT_POLICY_CODES = frozenset({"content_policy_violation", "moderation_blocked", "safety"})


def _mentions(text: str, keywords: list[str]) -> bool:
    lower = text.lower()
    return any(k in lower for k in keywords)


# Heuristic fallbacks, only consulted when status and codes are inconclusive.
# Provider wording changes without notice; keep these lists short.
_AUTH_KEYWORDS = [
    "invalid api key",
    "incorrect api key",
    "api key not valid",
    "invalid key",
    "expired key",
    "api key expired",
    "unauthorized",
    "invalid authentication",
]

_BILLING_KEYWORDS = [
    "billing",
    "credit",
    "quota",
    "payment",
    "insufficient funds",
]

_CONTENT_POLICY_KEYWORDS = [
    "content policy",
    "content_policy",
    "safety system",
    "safety",
    "moderation",
    "blocked",
]


def classify_failure(status_code: int | None, message: str = "", code: str | None = None) -> tuple[ErrorType, bool]:
    """Map an HTTP failure onto the shared taxonomy.

    HTTP status decides first; structured provider codes refine it; message
    keywords are a last resort. Returns ``(type, retryable)``.
    """
    text = message or ""
    normalized_code = (code or "").strip().lower()

    if status_code == 401:
        return ErrorType.AUTHENTICATION, False
    if status_code == 402:
        return ErrorType.BILLING, False
    if status_code == 429:
        return ErrorType.RATE_LIMIT, True
    if status_code is not None and status_code >= 500:
        return ErrorType.SERVER_ERROR, True

    if normalized_code in AUTH_CODES:
        return ErrorType.AUTHENTICATION, False
    if normalized_code in BILLING_CODES:
        return ErrorType.BILLING, False
    if normalized_code in RATE_LIMIT_CODES:
        return ErrorType.RATE_LIMIT, True
    if normalized_code in SERVER_CODES:
        return ErrorType.SERVER_ERROR, True
    if normalized_code in CONTENT_POLICY_CODES:
        return ErrorType.CONTENT_POLICY, False

    if _mentions(text, _AUTH_KEYWORDS):
        return ErrorType.AUTHENTICATION, False
    if _mentions(text, _BILLING_KEYWORDS):
        return ErrorType.BILLING, False

    if status_code == 400:
        if _mentions(text, _CONTENT_POLICY_KEYWORDS):
            return ErrorType.CONTENT_POLICY, False
        return ErrorType.INVALID_PROMPT, False

    return ErrorType.UNKNOWN, False


# ============================================================================
# User-facing messages
# ============================================================================

_USER_MESSAGES: dict[ErrorType, str] = {
    ErrorType.AUTHENTICATION: "The API key was rejected by {provider}. Check that it is correct and has not expired, then try again.",
    ErrorType.BILLING: "The account at {provider} has a billing or credit problem. Add credits or update billing details, then resubmit.",
    ErrorType.RATE_LIMIT: "Requests are being rate limited by {provider}. Please wait a moment and try again later.",
    ErrorType.CONTENT_POLICY: "The prompt was rejected under the content policy of {provider}. Rephrase the prompt and resubmit.",
    ErrorType.INVALID_PROMPT: "The prompt or parameters were not accepted by {provider}. Adjust your input and resubmit.",
    ErrorType.SERVER_ERROR: "A temporary server problem occurred at {provider}. Please try again later.",
    ErrorType.NETWORK_ERROR: "Could not reach {provider}. Check your connection and try again later.",
    ErrorType.UNKNOWN: "Image generation with {provider} failed unexpectedly. Please try again.",
}


def user_message_for(error: ImageGenerationError, provider_label: str | None = None) -> str:
    """Render caller-facing text for a classified error.

    Retryable errors read as transient; everything else asks the user to fix
    their input or credentials before resubmitting.
    """
    template = _USER_MESSAGES.get(error.type, _USER_MESSAGES[ErrorType.UNKNOWN])
    return template.format(provider=provider_label or "the image provider")


def mask_secret(value: str | None, visible: int = 5) -> str:
    """Render a credential for logs without exposing it."""
    if not value:
        return "<empty>"
    if len(value) <= visible * 2:
        return "*" * len(value)
    return f"{value[:visible]}...{value[-visible:]}"


__all__ = [
    "AUTH_CODES",
    "BILLING_CODES",
    "RATE_LIMIT_CODES",
    "SERVER_CODES",
    "CONTENT_POLICY_CODES",
    "classify_failure",
    "user_message_for",
    "mask_secret",
]
