from __future__ import annotations

import asyncio
from typing import Any

from loguru import logger

from ..schema import ApiKeyValidationResult, CapabilityReport, ImageGenerationOptions, ModelCapability
from ..shard import constants as C
from ..shard.enums import Model
from ..utils.image_utils import mime_for_format, to_data_url
from .base_engine import ImageEngine


class MockEngine(ImageEngine):
    """Deterministic stand-in for any provider: no network, no billing.

    Sanitization and the blank-prompt guard still apply for the provider it
    stands in for, so behavior at the edges matches the real adapter.
    """

    base_url: str = "mock://images"
    delay_seconds: float = C.MOCK_DELAY_SECONDS

    def _ensure_api_key(self) -> None:
        return None

    def get_capability_report(self) -> CapabilityReport:
        default = C.DEFAULT_MODELS[self.provider]
        return CapabilityReport(
            provider=self.provider,
            engine=self.name,
            models=[ModelCapability(model=default, max_n=1 if default == Model.DALL_E_3 else C.MOCK_MAX_N, accepted_options=["count", "model", "return_base64"], default=True)],
        )

    def _build_payload(self, prompt: str, model: str, options: ImageGenerationOptions) -> dict[str, Any]:
        n = 1 if model == Model.DALL_E_3 else max(1, min(options.count or C.DEFAULT_N, C.MOCK_MAX_N))
        return {"model": model, "prompt": prompt, "n": n}

    async def _request_images(self, payload: dict[str, Any], model: str, options: ImageGenerationOptions) -> tuple[list[str], Any]:
        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)
        n = payload["n"]
        if options.wants_base64:
            mime = mime_for_format(options.image_format)
            urls = [to_data_url(C.MOCK_PNG_BASE64, mime) for _ in range(n)]
        else:
            urls = [C.MOCK_IMAGE_URLS[i % len(C.MOCK_IMAGE_URLS)] for i in range(n)]
        logger.debug(f"{self.name}: returning {n} mock image(s)")
        return urls, {"mock": True, "payload": payload}

    def _result_metadata(self, prompt: str, sanitized: str, model: str, image_urls: list[str]) -> dict[str, Any]:
        metadata = super()._result_metadata(prompt, sanitized, model, image_urls)
        metadata["is_mock"] = True
        return metadata

    async def validate_api_key(self, api_key: str | None = None) -> ApiKeyValidationResult:
        key = (api_key if api_key is not None else self.api_key).strip()
        prefix = C.KEY_PREFIXES[self.provider]
        if key.startswith(prefix):
            return ApiKeyValidationResult(is_valid=True, message=f"{self.provider.label} API key accepted (mock).", details={"is_mock": True})
        return ApiKeyValidationResult(
            is_valid=False,
            message=f"{self.provider.label} API keys start with '{prefix}' (mock).",
            details={"is_mock": True},
        )


__all__ = ["MockEngine"]
