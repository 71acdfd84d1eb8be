from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from .shard.enums import Model, OutputFormat, Provider

# ------------------------------ Error handling ------------------------------ #


class Error(BaseModel):
    """Normalized error provided on failures.

    ``code`` carries the error type from the shared taxonomy so clients can
    branch on it; ``message`` is safe to show to an end user.
    """

    code: str = Field(description="Stable machine-readable error code, e.g. 'rate_limit'.")
    message: str = Field(description="Human-readable error message with remediation tips when possible.")
    details: dict[str, Any] | None = Field(
        default=None,
        description="Optional provider/debug details; treat as best-effort and unstable for parsing.",
    )


# ------------------------------- Generate API -------------------------------- #


class ImageGenerationOptions(BaseModel):
    """Provider-agnostic generation knobs.

    Every field is optional. Adapters apply their own defaults and silently
    drop fields their provider or model does not accept.
    """

    count: int | None = Field(default=None, ge=1, description="Requested number of images; clamped per model.")
    size: str | None = Field(default=None, description="Native 'WIDTHxHEIGHT' size, e.g. '1024x1024'.")
    aspect_ratio: str | None = Field(default=None, description="Aspect ratio such as '16:9' (Imagen).")
    quality: str | None = Field(default=None, description="Quality knob, e.g. 'standard' | 'hd' (dall-e-3 only).")
    style: str | None = Field(default=None, description="Style knob, e.g. 'vivid' | 'natural' (dall-e-3 only).")
    model: str | None = Field(default=None, description="Model id or short alias; provider default when omitted.")
    additional_params: dict[str, Any] = Field(default_factory=dict, description="Provider-specific extras merged into the request body.")
    response_format: OutputFormat | None = Field(default=None, description="'url' or 'b64_json' for OpenAI-compatible providers.")
    return_base64: bool | None = Field(default=None, description="Force data URIs in the result instead of remote URLs.")
    image_format: str | None = Field(default=None, description="Mime subtype used when wrapping base64 payloads, e.g. 'png'.")

    @field_validator("additional_params", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def wants_base64(self) -> bool:
        if self.return_base64 is not None:
            return self.return_base64
        return self.response_format == OutputFormat.B64_JSON


class ImageGenerationResult(BaseModel):
    """Uniform result of a generation call."""

    image_urls: list[str] = Field(default_factory=list, description="HTTP(S) URLs or 'data:image/<fmt>;base64,...' URIs, in provider order.")
    raw_response: Any = Field(default=None, exclude=True, description="Provider payload kept for diagnostics.")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Always includes the resolved 'model' and the original 'prompt'.")


class ApiKeyValidationResult(BaseModel):
    """Outcome of a key check. Validation never raises."""

    is_valid: bool
    message: str
    details: dict[str, Any] | None = None


# ------------------------------ Capability schema --------------------------- #


class ModelCapability(BaseModel):
    """Model-specific parameter rules within a provider engine."""

    model: Model = Field(description="Model identifier.")
    max_n: int = Field(description="Maximum images per request for this model.")
    accepted_options: list[str] = Field(default_factory=list, description="Option fields forwarded to the provider for this model.")
    aspect_ratios: list[str] | None = Field(default=None, description="Supported aspect ratios, when the provider takes ratios instead of sizes.")
    default: bool = Field(default=False, description="Whether this model is used when options.model is omitted.")


class CapabilityReport(BaseModel):
    """Advertises the models and parameter rules one engine exposes."""

    provider: Provider = Field(description="Provider id for routing: openai | gemini | xai.")
    engine: str = Field(description="Engine name.")
    models: list[ModelCapability] = Field(default_factory=list, description="Capabilities per model exposed by this engine.")


class CapabilitiesResponse(BaseModel):
    """Response for get_provider_capabilities tool."""

    ok: bool = Field(default=True, description="Always true when the request succeeds.")
    capabilities: list[CapabilityReport] = Field(default_factory=list)


class ImageToolStructured(BaseModel):
    """Structured payload returned by the generate_image tool."""

    ok: bool = Field(default=True, description="True on success; false when an error occurred.")
    provider: Provider = Field(description="Provider that served (or failed) the request.")
    model: str | None = Field(default=None, description="Resolved model id.")
    image_count: int = Field(default=0)
    image_urls: list[str] = Field(default_factory=list)
    meta: dict[str, Any] = Field(default_factory=dict, description="Provider/runtime metadata (no image data).")
    error: Error | None = Field(default=None, description="Error information when ok == false.")


__all__ = [
    "Error",
    "ImageGenerationOptions",
    "ImageGenerationResult",
    "ApiKeyValidationResult",
    "ModelCapability",
    "CapabilityReport",
    "CapabilitiesResponse",
    "ImageToolStructured",
]
