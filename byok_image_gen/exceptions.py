from __future__ import annotations

from typing import Any

import httpx
import openai

from .shard.enums import ErrorType, Provider
from .utils.error_helpers import user_message_for


class ImageGenerationError(Exception):
    """Classified failure raised by every adapter.

    ``retryable`` defaults to what the error type implies; pass it explicitly
    only when a provider tells us otherwise.
    """

    def __init__(
        self,
        message: str,
        type: ErrorType = ErrorType.UNKNOWN,
        *,
        status_code: int | None = None,
        retryable: bool | None = None,
        provider: Provider | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.type = type
        self.status_code = status_code
        self.retryable = type.retryable if retryable is None else retryable
        self.provider = provider
        self.details = details

    @property
    def user_message(self) -> str:
        return user_message_for(self, self.provider.label if self.provider else None)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(type={self.type.value!r}, status_code={self.status_code!r}, retryable={self.retryable!r}, message={self.message!r})"


def is_retryable_error(exc: BaseException) -> bool:
    """Retry predicate for the engine retry loop.

    Classified errors answer with their own flag. Exceptions carrying an HTTP
    status retry on 429 and 5xx only. Any other ``Exception`` is unclassified
    and retried; ``BaseException``s such as cancellation never are.
    """
    if isinstance(exc, ImageGenerationError):
        return exc.retryable
    if not isinstance(exc, Exception):
        return False
    if isinstance(exc, (httpx.TransportError, openai.APIConnectionError)):
        return True
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status == 429 or status >= 500
    return True


__all__ = ["ImageGenerationError", "is_retryable_error"]
