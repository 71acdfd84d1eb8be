from __future__ import annotations

from enum import StrEnum
from typing import Self


class Provider(StrEnum):
    """Provider identifiers used for routing image requests.

    Values match the public vocabulary callers send. Aliases (``google``,
    ``grok``) are normalized by :meth:`from_str`; the enum itself stays closed.
    """

    OPENAI = "openai"
    GEMINI = "gemini"
    XAI = "xai"

    @classmethod
    def from_str(cls, value: str | None) -> Self | None:
        if not value:
            return None
        v = value.strip().lower()
        v = PROVIDER_ALIASES.get(v, v)
        try:
            return cls(v)  # type: ignore[arg-type]
        except ValueError:
            return None

    @property
    def label(self) -> str:
        """Human-readable provider name for user-facing messages."""
        return _PROVIDER_LABELS[self]


PROVIDER_ALIASES: dict[str, str] = {
    "google": "gemini",
    "imagen": "gemini",
    "grok": "xai",
    "x.ai": "xai",
}

_PROVIDER_LABELS: dict[Provider, str] = {
    Provider.OPENAI: "OpenAI",
    Provider.GEMINI: "Google Gemini",
    Provider.XAI: "xAI",
}


class ErrorType(StrEnum):
    """Closed failure taxonomy shared by every adapter.

    New providers map their errors onto this set; callers branch on it to
    decide between retrying and asking the user to fix something.
    """

    AUTHENTICATION = "authentication"
    BILLING = "billing"
    RATE_LIMIT = "rate_limit"
    CONTENT_POLICY = "content_policy"
    INVALID_PROMPT = "invalid_prompt"
    SERVER_ERROR = "server_error"
    NETWORK_ERROR = "network_error"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        return self in _RETRYABLE_TYPES


_RETRYABLE_TYPES: frozenset[ErrorType] = frozenset({ErrorType.RATE_LIMIT, ErrorType.SERVER_ERROR, ErrorType.NETWORK_ERROR})


class OutputFormat(StrEnum):
    """Response payload shape requested from OpenAI-compatible providers."""

    URL = "url"
    B64_JSON = "b64_json"


class Model(StrEnum):
    """Known model IDs per provider.

    Callers may pass other ids through ``options.model``; these are the ones
    the adapters have explicit parameter rules for.
    """

    # OpenAI
    DALL_E_2 = "dall-e-2"
    DALL_E_3 = "dall-e-3"
    GPT_IMAGE_1 = "gpt-image-1"

    # Google
    IMAGEN_3 = "imagen-3.0-generate-002"

    # xAI
    GROK_2_IMAGE = "grok-2-image-1212"


# ---------------------- Provider-native helper enums ---------------------- #


class ImagenAspectRatio(StrEnum):
    """Native aspect ratio strings accepted by Imagen."""

    ONE_ONE = "1:1"
    SIXTEEN_NINE = "16:9"
    NINE_SIXTEEN = "9:16"
    THREE_FOUR = "3:4"
    FOUR_THREE = "4:3"


class ImagenSafetyFilter(StrEnum):
    BLOCK_LOW_AND_ABOVE = "BLOCK_LOW_AND_ABOVE"
    BLOCK_MEDIUM_AND_ABOVE = "BLOCK_MEDIUM_AND_ABOVE"
    BLOCK_ONLY_HIGH = "BLOCK_ONLY_HIGH"


class ImagenPersonGeneration(StrEnum):
    DONT_ALLOW = "DONT_ALLOW"
    ALLOW_ADULT = "ALLOW_ADULT"


__all__ = [
    "Provider",
    "PROVIDER_ALIASES",
    "ErrorType",
    "OutputFormat",
    "Model",
    "ImagenAspectRatio",
    "ImagenSafetyFilter",
    "ImagenPersonGeneration",
]
