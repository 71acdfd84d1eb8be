from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, ClassVar

import openai
from loguru import logger
from openai import AsyncOpenAI
from pydantic import field_validator

from ..exceptions import ImageGenerationError
from ..schema import ApiKeyValidationResult, ImageGenerationOptions
from ..shard import constants as C
from ..shard.enums import ErrorType, Model
from ..utils.error_helpers import classify_failure, mask_secret
from ..utils.image_utils import mime_for_format, to_image_url
from .base_engine import ImageEngine

# Fields ``images.generate`` takes as keyword arguments; anything else rides in ``extra_body``.
_SDK_IMAGE_FIELDS = ("model", "prompt", "n", "size", "quality", "style", "response_format")


class OpenAICompatibleEngine(ImageEngine):
    """Shared plumbing for providers speaking the OpenAI images API.

    The SDK's own retries are disabled (``max_retries=0``) so the engine's
    retry loop is the only one.
    """

    default_mime: ClassVar[str] = C.DEFAULT_MIME

    @field_validator("api_key", mode="before")
    @classmethod
    def _validate_api_key(cls, value: Any) -> str:
        return cls._clean_api_key(value or "")

    @classmethod
    def _clean_api_key(cls, api_key: str) -> str:
        return api_key.strip()

    def _default_headers(self, api_key: str) -> dict[str, str]:
        return {}

    # Client management
    def _client(self, api_key: str | None = None) -> AsyncOpenAI:
        key = api_key if api_key is not None else self.api_key
        return AsyncOpenAI(
            api_key=key,
            base_url=self.base_url,
            timeout=self.timeout,
            max_retries=0,
            default_headers=self._default_headers(key),
            http_client=self.http_client,
        )

    @asynccontextmanager
    async def _open_client(self, api_key: str | None = None) -> AsyncIterator[AsyncOpenAI]:
        client = self._client(api_key)
        try:
            yield client
        finally:
            # Closing the SDK client closes its transport too; leave injected ones alone.
            if self.http_client is None:
                await client.close()

    # Error handling
    def _normalize_error_body(self, body: Any) -> tuple[str, str | None]:
        """Extract ``(message, code)`` from ``{"error": {"message", "code", "type"}}``."""
        if isinstance(body, dict):
            err = body.get("error")
            if isinstance(err, dict):
                return str(err.get("message") or ""), err.get("code") or err.get("type")
            return str(body.get("message") or ""), body.get("code")
        return (str(body) if body else ""), None

    def _classify_status_error(self, exc: openai.APIStatusError) -> ImageGenerationError:
        message, code = self._normalize_error_body(self._safe_json(exc))
        message = message or str(exc)
        error_type, retryable = classify_failure(exc.status_code, message, code)
        logger.warning(f"{self.name}: HTTP {exc.status_code} classified as {error_type.value} (code={code!r})")
        return self._error(message, error_type, status_code=exc.status_code, retryable=retryable, details={"code": code} if code else None)

    # API operations
    async def _request_images(self, payload: dict[str, Any], model: str, options: ImageGenerationOptions) -> tuple[list[str], Any]:
        kwargs = {k: v for k, v in payload.items() if k in _SDK_IMAGE_FIELDS}
        extra = {k: v for k, v in payload.items() if k not in _SDK_IMAGE_FIELDS}
        try:
            async with self._open_client() as client:
                result = await client.images.generate(**kwargs, extra_body=extra or None)
        except openai.APIStatusError as e:
            raise self._classify_status_error(e) from e
        except openai.APIConnectionError as e:
            # Includes APITimeoutError
            raise self._error(f"Could not reach {self.provider.label}: {e}", ErrorType.NETWORK_ERROR) from e
        except UnicodeEncodeError as e:
            # Raised while building request headers, before anything is sent
            raise self._error(f"{self.provider.label} API key contains characters that cannot be sent: {e.reason}", ErrorType.AUTHENTICATION) from e
        except (openai.APIResponseValidationError, ValueError) as e:
            raise self._error(f"Malformed response from {self.provider.label}: {e}", ErrorType.SERVER_ERROR, retryable=True) from e

        return self._collect_images(result, options), result

    def _collect_images(self, result: Any, options: ImageGenerationOptions) -> list[str]:
        mime = mime_for_format(options.image_format, self.default_mime)
        urls: list[str] = []
        for item in getattr(result, "data", None) or []:
            url = to_image_url(getattr(item, "url", None), getattr(item, "b64_json", None), want_b64=options.wants_base64, mime=mime)
            if url:
                urls.append(url)
        return urls

    # Key validation
    def _image_model_markers(self) -> tuple[str, ...]:
        return C.IMAGE_MODEL_MARKERS[self.provider]

    async def validate_api_key(self, api_key: str | None = None) -> ApiKeyValidationResult:
        key = self._clean_api_key(api_key) if api_key is not None else self.api_key
        label = self.provider.label
        if not key:
            return ApiKeyValidationResult(is_valid=False, message=f"{label} API key is empty.")

        try:
            async with self._open_client(key) as client:
                page = await client.models.list()
                model_ids = [str(m.id) for m in getattr(page, "data", None) or [] if getattr(m, "id", None)]
        except openai.APIStatusError as e:
            message, code = self._normalize_error_body(self._safe_json(e))
            logger.info(f"{self.name}: key {mask_secret(key)} rejected with HTTP {e.status_code}")
            if e.status_code in (401, 403):
                return ApiKeyValidationResult(
                    is_valid=False,
                    message=f"Invalid or expired {label} API key.",
                    details={"status_code": e.status_code, "code": code},
                )
            return ApiKeyValidationResult(
                is_valid=False,
                message=f"{label} API error: {message or e}",
                details={"status_code": e.status_code, "code": code},
            )
        except Exception as e:
            logger.info(f"{self.name}: key validation failed for {mask_secret(key)}: {e}")
            return ApiKeyValidationResult(is_valid=False, message=f"Could not validate {label} API key: {e}")

        has_image_models = any(marker in model_id for model_id in model_ids for marker in self._image_model_markers())
        details: dict[str, Any] = {"models": model_ids, "has_image_models": has_image_models}
        if not has_image_models:
            details["warning"] = f"No image model ({', '.join(self._image_model_markers())}) is listed for this key."
        logger.info(f"{self.name}: key {mask_secret(key)} is valid (image models: {has_image_models})")
        return ApiKeyValidationResult(is_valid=True, message=f"{label} API key is valid.", details=details)

    @staticmethod
    def _safe_json(exc: openai.APIStatusError) -> Any:
        try:
            return exc.response.json()
        except ValueError:
            return exc.response.text

    @staticmethod
    def _clamp_count(count: int | None, max_n: int) -> int:
        return max(1, min(count or C.DEFAULT_N, max_n))

    def _max_n(self, model: str) -> int:
        return C.MAX_N_BY_MODEL.get(model, C.MAX_N_BY_MODEL[Model.DALL_E_2])


__all__ = ["OpenAICompatibleEngine"]
