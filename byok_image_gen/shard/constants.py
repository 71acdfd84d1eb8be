"""Project constants for the image generation adapters.

Defaults, limits and endpoints shared across adapters live here. Provider
translations (field names, allow-lists) belong in the individual engines.
"""

from __future__ import annotations

from typing import Final

from .enums import ImagenAspectRatio, ImagenPersonGeneration, ImagenSafetyFilter, Model, Provider

# ------------------------------ Retry policy ------------------------------- #

# Total attempts per generation call, including the first one.
MAX_RETRIES: Final[int] = 3

# Base delay in seconds; attempt ``i`` (0-based) waits ``RETRY_DELAY_SECONDS * (i + 1)``.
RETRY_DELAY_SECONDS: Final[float] = 1.0

# Per-request HTTP timeout in seconds.
DEFAULT_TIMEOUT_SECONDS: Final[float] = 120.0

# ----------------------------- General defaults ----------------------------- #

DEFAULT_SIZE: Final[str] = "1024x1024"

# Default number of images to request when ``count`` is omitted.
DEFAULT_N: Final[int] = 1

# Default mime type for base64 payloads when the provider does not say.
DEFAULT_MIME: Final[str] = "image/png"

# ------------------------------ Endpoints ----------------------------------- #

OPENAI_BASE_URL: Final[str] = "https://api.openai.com/v1"
GEMINI_BASE_URL: Final[str] = "https://generativelanguage.googleapis.com/v1"
XAI_BASE_URL: Final[str] = "https://api.x.ai/v1"

# ------------------------------ Model defaults ------------------------------ #

DEFAULT_MODELS: Final[dict[Provider, Model]] = {
    Provider.OPENAI: Model.DALL_E_3,
    Provider.GEMINI: Model.IMAGEN_3,
    Provider.XAI: Model.GROK_2_IMAGE,
}

# Short names accepted in ``options.model`` and resolved to full ids.
MODEL_ALIASES: Final[dict[str, Model]] = {
    "imagen-3": Model.IMAGEN_3,
    "imagen3": Model.IMAGEN_3,
    "grok-2-image": Model.GROK_2_IMAGE,
}

# Upper bound on images per request.
MAX_N_BY_MODEL: Final[dict[str, int]] = {
    Model.DALL_E_2: 10,
    Model.DALL_E_3: 1,
    Model.GPT_IMAGE_1: 10,
    Model.IMAGEN_3: 4,
    Model.GROK_2_IMAGE: 10,
}

# Models whose presence in a /models listing marks the key as image-capable.
IMAGE_MODEL_MARKERS: Final[dict[Provider, tuple[str, ...]]] = {
    Provider.OPENAI: (Model.DALL_E_3.value, Model.GPT_IMAGE_1.value),
    Provider.GEMINI: ("imagen",),
    Provider.XAI: (Model.GROK_2_IMAGE.value,),
}

# ------------------------------ OpenAI knobs -------------------------------- #

DALLE_DEFAULT_QUALITY: Final[str] = "standard"
DALLE_DEFAULT_STYLE: Final[str] = "vivid"

# ------------------------------ Imagen knobs -------------------------------- #

IMAGEN_DEFAULT_ASPECT_RATIO: Final[ImagenAspectRatio] = ImagenAspectRatio.ONE_ONE
IMAGEN_DEFAULT_SAFETY_FILTER: Final[ImagenSafetyFilter] = ImagenSafetyFilter.BLOCK_MEDIUM_AND_ABOVE
IMAGEN_DEFAULT_PERSON_GENERATION: Final[ImagenPersonGeneration] = ImagenPersonGeneration.ALLOW_ADULT

# ------------------------------ xAI knobs ----------------------------------- #

XAI_DEFAULT_MIME: Final[str] = "image/jpeg"

# ------------------------------ Mock adapter -------------------------------- #

MOCK_DELAY_SECONDS: Final[float] = 2.0
MOCK_MAX_N: Final[int] = 4
MOCK_IMAGE_URLS: Final[tuple[str, ...]] = (
    "https://images.example.com/mock/landscape.png",
    "https://images.example.com/mock/portrait.png",
    "https://images.example.com/mock/abstract.png",
    "https://images.example.com/mock/still-life.png",
)
# 1x1 transparent PNG
MOCK_PNG_BASE64: Final[str] = "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR4nGMAAQAABQAB/9k3WQAAAABJRU5ErkJggg=="

# ---------------------------- Credential hints ------------------------------ #

# Deterministic key-shape checks used by the mock validator.
KEY_PREFIXES: Final[dict[Provider, str]] = {
    Provider.OPENAI: "sk-",
    Provider.GEMINI: "AIza",
    Provider.XAI: "xai-",
}

# Keys shorter than this trigger a warning at engine creation.
MIN_API_KEY_LENGTH: Final[int] = 10
