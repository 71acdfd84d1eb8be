from __future__ import annotations

from typing import Any, ClassVar

from ..schema import CapabilityReport, ImageGenerationOptions, ModelCapability
from ..shard import constants as C
from ..shard.enums import Model, OutputFormat, Provider
from ..utils.prompt import strict_ascii
from .openai_compat import OpenAICompatibleEngine


class XAIEngine(OpenAICompatibleEngine):
    """Grok image generation through xAI's OpenAI-compatible endpoint.

    The request body is fixed to ``model``, ``prompt``, ``n`` and
    ``response_format``; size, quality, style and additional params are not
    accepted by the endpoint and are dropped.
    """

    name: str = "xai"
    provider: Provider = Provider.XAI
    base_url: str = C.XAI_BASE_URL

    default_mime: ClassVar[str] = C.XAI_DEFAULT_MIME

    @classmethod
    def _clean_api_key(cls, api_key: str) -> str:
        # Header encoders reject anything beyond printable ASCII.
        return strict_ascii(api_key).replace(" ", "")

    def _default_headers(self, api_key: str) -> dict[str, str]:
        return {"X-API-Key": api_key}

    def get_capability_report(self) -> CapabilityReport:
        return CapabilityReport(
            provider=self.provider,
            engine=self.name,
            models=[
                ModelCapability(
                    model=Model.GROK_2_IMAGE,
                    max_n=C.MAX_N_BY_MODEL[Model.GROK_2_IMAGE],
                    accepted_options=["count", "model", "response_format", "return_base64"],
                    default=True,
                )
            ],
        )

    def _build_payload(self, prompt: str, model: str, options: ImageGenerationOptions) -> dict[str, Any]:
        return {
            "model": model,
            "prompt": prompt,
            "n": self._clamp_count(options.count, C.MAX_N_BY_MODEL[Model.GROK_2_IMAGE]),
            "response_format": (OutputFormat.B64_JSON if options.wants_base64 else OutputFormat.URL).value,
        }

    def _normalize_error_body(self, body: Any) -> tuple[str, str | None]:
        """xAI sends either ``{"error": "text", "code": "..."}`` or the OpenAI shape."""
        if isinstance(body, dict) and isinstance(body.get("error"), str):
            return body["error"], body.get("code")
        return super()._normalize_error_body(body)


__all__ = ["XAIEngine"]
