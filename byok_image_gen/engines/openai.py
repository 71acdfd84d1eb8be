from __future__ import annotations

import re
from typing import Any

from loguru import logger

from ..schema import CapabilityReport, ImageGenerationOptions, ModelCapability
from ..shard import constants as C
from ..shard.enums import Model, OutputFormat, Provider
from .openai_compat import OpenAICompatibleEngine

# Option fields OpenAI understands; each model accepts a subset.
_OPTION_FIELDS = frozenset({"size", "quality", "style", "response_format"})

# Per-model allow-lists. gpt-image-1 rejects quality/style/response_format
# outright, so those keys must be absent rather than null.
_MODEL_FIELDS: dict[str, frozenset[str]] = {
    Model.DALL_E_3: frozenset({"size", "quality", "style", "response_format"}),
    Model.DALL_E_2: frozenset({"size", "response_format"}),
    Model.GPT_IMAGE_1: frozenset({"size"}),
}

# Keys the engine sets itself; additional_params may not override them.
_OWNED_FIELDS = frozenset({"model", "prompt", "n"})

_KEY_DISALLOWED = re.compile(r"[^A-Za-z0-9_-]")


class OpenAIEngine(OpenAICompatibleEngine):
    """DALL·E 2/3 and gpt-image-1 via the official OpenAI SDK."""

    name: str = "openai"
    provider: Provider = Provider.OPENAI
    base_url: str = C.OPENAI_BASE_URL

    @classmethod
    def _clean_api_key(cls, api_key: str) -> str:
        # Pasted keys often carry quotes, whitespace or zero-width characters.
        return _KEY_DISALLOWED.sub("", api_key.strip())

    # Capability discovery
    def get_capability_report(self) -> CapabilityReport:
        default = C.DEFAULT_MODELS[self.provider]
        return CapabilityReport(
            provider=self.provider,
            engine=self.name,
            models=[
                ModelCapability(
                    model=model,
                    max_n=C.MAX_N_BY_MODEL[model],
                    accepted_options=sorted(fields),
                    default=model == default,
                )
                for model, fields in _MODEL_FIELDS.items()
            ],
        )

    # Parameter normalization
    @staticmethod
    def _allowed_fields(model: str) -> frozenset[str]:
        """Unknown model ids follow the most conservative DALL·E rules."""
        return _MODEL_FIELDS.get(model, _MODEL_FIELDS[Model.DALL_E_2])

    def _build_payload(self, prompt: str, model: str, options: ImageGenerationOptions) -> dict[str, Any]:
        allowed = self._allowed_fields(model)
        payload: dict[str, Any] = {
            "model": model,
            "prompt": prompt,
            "n": self._clamp_count(options.count, self._max_n(model)),
        }
        if "size" in allowed:
            payload["size"] = options.size or C.DEFAULT_SIZE
        if "quality" in allowed:
            payload["quality"] = options.quality or C.DALLE_DEFAULT_QUALITY
        if "style" in allowed:
            payload["style"] = options.style or C.DALLE_DEFAULT_STYLE
        if "response_format" in allowed:
            payload["response_format"] = (OutputFormat.B64_JSON if options.wants_base64 else OutputFormat.URL).value

        forbidden = _OWNED_FIELDS | (_OPTION_FIELDS - allowed)
        for key, value in options.additional_params.items():
            if key in forbidden:
                logger.debug(f"{self.name}: dropping additional param '{key}' for {model}")
                continue
            payload[key] = value
        return payload


__all__ = ["OpenAIEngine"]
