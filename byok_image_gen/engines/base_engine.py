from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, ClassVar, TypeVar

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_incrementing

from ..exceptions import ImageGenerationError, is_retryable_error
from ..schema import (
    ApiKeyValidationResult,
    CapabilityReport,
    ImageGenerationOptions,
    ImageGenerationResult,
)
from ..shard import constants as C
from ..shard.enums import ErrorType, Provider
from ..utils.prompt import is_blank, sanitize_prompt

T = TypeVar("T")


def backoff_delay(attempt_index: int, delay: float) -> float:
    """Linear backoff: the first retry waits ``delay``, the second ``2 * delay``."""
    return delay * (attempt_index + 1)


class ImageEngine(ABC, BaseModel):
    """Abstract base for provider adapters.

    Subclasses fill in payload building, the HTTP call and key validation.
    Sanitization, the blank-prompt guard, the retry loop and result shaping
    are shared so every provider behaves the same way at the edges.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    provider: Provider
    api_key: str = Field(default="", repr=False)
    base_url: str
    timeout: float = C.DEFAULT_TIMEOUT_SECONDS
    # Optional shared transport; the engine never closes a client it was handed.
    http_client: httpx.AsyncClient | None = Field(default=None, exclude=True, repr=False)

    max_retries: ClassVar[int] = C.MAX_RETRIES
    retry_delay: ClassVar[float] = C.RETRY_DELAY_SECONDS

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------
    async def generate_images(self, prompt: str, options: ImageGenerationOptions | None = None) -> ImageGenerationResult:
        """Generate images for ``prompt``.

        Raises:
            ImageGenerationError: classified failure; ``retryable`` errors have
                already been retried up to ``max_retries`` attempts.
        """
        opts = options or ImageGenerationOptions()
        sanitized = sanitize_prompt(prompt, self.provider)
        if is_blank(sanitized):
            raise ImageGenerationError(
                "Prompt is empty after removing unsupported characters.",
                ErrorType.INVALID_PROMPT,
                retryable=False,
                provider=self.provider,
            )
        self._ensure_api_key()

        model = self.resolve_model(opts.model)
        payload = self._build_payload(sanitized, model, opts)
        logger.info(f"{self.name}: generating with model={model} fields={sorted(payload)}")

        async def _attempt() -> tuple[list[str], Any]:
            image_urls, raw = await self._request_images(payload, model, opts)
            if not image_urls:
                raise ImageGenerationError(
                    f"{self.provider.label} returned a successful response without images.",
                    ErrorType.SERVER_ERROR,
                    retryable=True,
                    provider=self.provider,
                )
            return image_urls, raw

        image_urls, raw = await self._run_with_retries(_attempt)
        return ImageGenerationResult(
            image_urls=image_urls,
            raw_response=raw,
            metadata=self._result_metadata(prompt, sanitized, model, image_urls),
        )

    async def _run_with_retries(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` up to ``max_retries`` times.

        Non-retryable classified errors propagate on the first failure. Other
        failures back off linearly; caller cancellation is never swallowed.
        An unclassified last failure is raised as ``UNKNOWN`` chained from it.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            # start + increment * (attempt - 1) == backoff_delay(attempt - 1, retry_delay)
            wait=wait_incrementing(start=self.retry_delay, increment=self.retry_delay),
            retry=retry_if_exception(is_retryable_error),
            before_sleep=self._log_retry,
            sleep=asyncio.sleep,
            reraise=True,
        )
        try:
            return await retrying(operation)
        except ImageGenerationError:
            raise
        except Exception as e:
            raise ImageGenerationError(
                f"Image generation failed: {e}",
                ErrorType.UNKNOWN,
                provider=self.provider,
            ) from e

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(f"{self.name}: attempt {retry_state.attempt_number} failed ({error!r}); retrying in {delay:.1f}s")

    def _ensure_api_key(self) -> None:
        if not self.api_key:
            raise ImageGenerationError(
                f"No API key configured for {self.provider.label}.",
                ErrorType.AUTHENTICATION,
                provider=self.provider,
            )

    def _result_metadata(self, prompt: str, sanitized: str, model: str, image_urls: list[str]) -> dict[str, Any]:
        return {
            "model": model,
            "prompt": prompt,
            "sanitized_prompt": sanitized,
            "provider": self.provider.value,
            "count": len(image_urls),
        }

    def resolve_model(self, requested: str | None) -> str:
        """Map an optional model id or alias to the id sent upstream."""
        if not requested or not requested.strip():
            return C.DEFAULT_MODELS[self.provider].value
        value = requested.strip()
        alias = C.MODEL_ALIASES.get(value.lower())
        return alias.value if alias else value

    def _error(self, message: str, type: ErrorType, *, status_code: int | None = None, retryable: bool | None = None, details: dict[str, Any] | None = None) -> ImageGenerationError:
        return ImageGenerationError(message, type, status_code=status_code, retryable=retryable, provider=self.provider, details=details)

    # ------------------------------------------------------------------
    # Provider hooks
    # ------------------------------------------------------------------
    @abstractmethod
    def _build_payload(self, prompt: str, model: str, options: ImageGenerationOptions) -> dict[str, Any]:
        """Build the provider request body from the allow-listed options only."""
        raise NotImplementedError

    @abstractmethod
    async def _request_images(self, payload: dict[str, Any], model: str, options: ImageGenerationOptions) -> tuple[list[str], Any]:
        """Perform one HTTP attempt and return ``(image_urls, raw_response)``.

        Implementations raise classified ``ImageGenerationError``s.
        """
        raise NotImplementedError

    @abstractmethod
    async def validate_api_key(self, api_key: str | None = None) -> ApiKeyValidationResult:
        """Check a key against the provider's model listing. Never raises."""
        raise NotImplementedError

    @abstractmethod
    def get_capability_report(self) -> CapabilityReport:
        """Return the models and parameter rules this engine exposes."""
        raise NotImplementedError


__all__ = ["ImageEngine", "backoff_delay"]
