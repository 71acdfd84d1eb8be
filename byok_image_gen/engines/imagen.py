from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx
from loguru import logger
from pydantic import field_validator

from ..exceptions import ImageGenerationError
from ..schema import ApiKeyValidationResult, CapabilityReport, ImageGenerationOptions, ModelCapability
from ..shard import constants as C
from ..shard.enums import ErrorType, ImagenAspectRatio, Model, Provider
from ..utils.error_helpers import classify_failure, mask_secret
from ..utils.image_utils import mime_for_format, size_to_aspect_ratio, to_image_url
from .base_engine import ImageEngine

_ASPECT_RATIOS: tuple[str, ...] = tuple(r.value for r in ImagenAspectRatio)

# Keys the engine owns; additional_params may not override them.
_OWNED_FIELDS = frozenset({"prompt", "number_of_images", "aspect_ratio"})


class ImagenEngine(ImageEngine):
    """Imagen 3 through the Generative Language REST API.

    Talks plain JSON over ``httpx`` with the key in the ``key`` query
    parameter. Size, quality and style are not Imagen knobs; size is only used
    to infer an aspect ratio when none is given.
    """

    name: str = "imagen"
    provider: Provider = Provider.GEMINI
    base_url: str = C.GEMINI_BASE_URL

    @field_validator("api_key", mode="before")
    @classmethod
    def _strip_api_key(cls, value: Any) -> str:
        return (value or "").strip()

    # Client management
    @asynccontextmanager
    async def _open_client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.http_client is not None:
            yield self.http_client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    def _url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    # Capability discovery
    def get_capability_report(self) -> CapabilityReport:
        return CapabilityReport(
            provider=self.provider,
            engine=self.name,
            models=[
                ModelCapability(
                    model=Model.IMAGEN_3,
                    max_n=C.MAX_N_BY_MODEL[Model.IMAGEN_3],
                    accepted_options=["aspect_ratio", "count", "model", "return_base64", "size"],
                    aspect_ratios=list(_ASPECT_RATIOS),
                    default=True,
                )
            ],
        )

    # Parameter normalization
    def _aspect_ratio(self, options: ImageGenerationOptions) -> str:
        default = C.IMAGEN_DEFAULT_ASPECT_RATIO.value
        if options.aspect_ratio:
            ratio = options.aspect_ratio.strip()
            if ratio in _ASPECT_RATIOS:
                return ratio
            logger.debug(f"{self.name}: unsupported aspect ratio {ratio!r}, using {default}")
            return default
        return size_to_aspect_ratio(options.size, _ASPECT_RATIOS, default)

    def _build_payload(self, prompt: str, model: str, options: ImageGenerationOptions) -> dict[str, Any]:
        extra = dict(options.additional_params)
        payload: dict[str, Any] = {
            "prompt": {"text": prompt},
            "number_of_images": max(1, min(options.count or C.DEFAULT_N, C.MAX_N_BY_MODEL[Model.IMAGEN_3])),
            "aspect_ratio": self._aspect_ratio(options),
            "safety_filter_level": extra.pop("safety_filter_level", C.IMAGEN_DEFAULT_SAFETY_FILTER.value),
            "person_generation": extra.pop("person_generation", C.IMAGEN_DEFAULT_PERSON_GENERATION.value),
        }
        for key, value in extra.items():
            if key in _OWNED_FIELDS:
                logger.debug(f"{self.name}: dropping additional param '{key}'")
                continue
            payload[key] = value
        return payload

    # Error handling
    @staticmethod
    def _normalize_error_body(body: Any) -> tuple[str, str | None]:
        """Extract ``(message, code)`` from a Google RPC error body.

        ``details[].reason`` (e.g. ``API_KEY_INVALID``) is the most specific
        signal, then ``error.status`` (e.g. ``RESOURCE_EXHAUSTED``).
        """
        if not isinstance(body, dict) or not isinstance(body.get("error"), dict):
            return (str(body) if body else ""), None
        err = body["error"]
        details = err.get("details")
        reason = next(
            (d.get("reason") for d in (details if isinstance(details, list) else []) if isinstance(d, dict) and d.get("reason")),
            None,
        )
        return str(err.get("message") or ""), reason or err.get("status")

    def _classify_response(self, response: httpx.Response) -> ImageGenerationError:
        try:
            body: Any = response.json()
        except ValueError:
            body = response.text
        message, code = self._normalize_error_body(body)
        message = message or f"Google Imagen API error (HTTP {response.status_code})"
        error_type, retryable = classify_failure(response.status_code, message, code)
        logger.warning(f"{self.name}: HTTP {response.status_code} classified as {error_type.value} (code={code!r})")
        return self._error(message, error_type, status_code=response.status_code, retryable=retryable, details={"code": code} if code else None)

    # API operations
    async def _request_images(self, payload: dict[str, Any], model: str, options: ImageGenerationOptions) -> tuple[list[str], Any]:
        try:
            async with self._open_client() as client:
                response = await client.post(self._url(f"models/{model}:generateImages"), params={"key": self.api_key}, json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise self._classify_response(e.response) from e
        except httpx.TransportError as e:
            raise self._error(f"Could not reach {self.provider.label}: {e}", ErrorType.NETWORK_ERROR) from e
        except ValueError as e:
            raise self._error(f"Malformed response from {self.provider.label}: {e}", ErrorType.SERVER_ERROR, retryable=True) from e

        return self._collect_images(data, options), data

    def _collect_images(self, data: Any, options: ImageGenerationOptions) -> list[str]:
        images = data.get("images") if isinstance(data, dict) else None
        mime = mime_for_format(options.image_format)
        urls: list[str] = []
        for item in images or []:
            if not isinstance(item, dict):
                continue
            b64 = item.get("base64") or item.get("bytesBase64Encoded")
            url = to_image_url(item.get("url"), b64, want_b64=options.wants_base64, mime=item.get("mimeType") or mime)
            if url:
                urls.append(url)
        return urls

    # Key validation
    async def validate_api_key(self, api_key: str | None = None) -> ApiKeyValidationResult:
        key = api_key.strip() if api_key is not None else self.api_key
        label = self.provider.label
        if not key:
            return ApiKeyValidationResult(is_valid=False, message=f"{label} API key is empty.")

        try:
            async with self._open_client() as client:
                response = await client.get(self._url("models"), params={"key": key})
                body: Any = response.json() if response.content else {}
        except Exception as e:
            logger.info(f"{self.name}: key validation failed for {mask_secret(key)}: {e}")
            return ApiKeyValidationResult(is_valid=False, message=f"Could not reach the {label} API: {e}")

        if response.is_success:
            listed = body.get("models") if isinstance(body, dict) else None
            models = [str(m.get("name") or "") for m in listed if isinstance(m, dict)] if isinstance(listed, list) else []
            has_image_models = any(marker in name for name in models for marker in C.IMAGE_MODEL_MARKERS[self.provider])
            details: dict[str, Any] = {"models": models, "has_image_models": has_image_models}
            if not has_image_models:
                details["warning"] = "No Imagen model is listed for this key."
            logger.info(f"{self.name}: key {mask_secret(key)} is valid (image models: {has_image_models})")
            return ApiKeyValidationResult(is_valid=True, message=f"{label} API key is valid.", details=details)

        message, code = self._normalize_error_body(body)
        status = body.get("error", {}).get("status") if isinstance(body, dict) and isinstance(body.get("error"), dict) else None
        logger.info(f"{self.name}: key {mask_secret(key)} rejected with HTTP {response.status_code}")
        if response.status_code in (401, 403) or (response.status_code == 400 and status == "INVALID_ARGUMENT"):
            return ApiKeyValidationResult(
                is_valid=False,
                message=f"Invalid {label} API key.",
                details={"status_code": response.status_code, "code": code},
            )
        return ApiKeyValidationResult(
            is_valid=False,
            message=f"{label} API error: {message or 'unknown error'}",
            details={"status_code": response.status_code, "code": code},
        )


__all__ = ["ImagenEngine"]
