from __future__ import annotations

import importlib

import httpx
from loguru import logger

from ..schema import ApiKeyValidationResult, CapabilityReport
from ..settings import get_settings
from ..shard import constants as C
from ..shard.enums import Provider
from ..utils.error_helpers import mask_secret
from .base_engine import ImageEngine

# Provider-to-engine mappings. Store import paths to avoid circular imports at
# module import time. Insertion order matters: the first entry is the fallback.
PROVIDER_ENGINE_MAP: dict[Provider, type[ImageEngine] | str] = {
    Provider.OPENAI: "byok_image_gen.engines.openai.OpenAIEngine",
    Provider.GEMINI: "byok_image_gen.engines.imagen.ImagenEngine",
    Provider.XAI: "byok_image_gen.engines.xai.XAIEngine",
}

MOCK_ENGINE: type[ImageEngine] | str = "byok_image_gen.engines.mock.MockEngine"

FALLBACK_PROVIDER: Provider = next(iter(PROVIDER_ENGINE_MAP))


def _load_engine_class(path_or_cls: type[ImageEngine] | str) -> type[ImageEngine]:
    """Resolve an engine class from either a direct class or an import path string."""
    if isinstance(path_or_cls, str):
        module_path, class_name = path_or_cls.rsplit(".", 1)
        module = importlib.import_module(module_path)
        return getattr(module, class_name)
    return path_or_cls


def _resolve_provider(provider_id: Provider | str | None) -> Provider:
    """Normalize a provider id; unknown or empty ids fall back instead of raising."""
    if isinstance(provider_id, Provider):
        return provider_id
    provider = Provider.from_str(provider_id)
    if provider is None:
        logger.warning(f"Unknown provider '{provider_id}', falling back to {FALLBACK_PROVIDER.value}")
        return FALLBACK_PROVIDER
    return provider


# Public API - EngineFactory


class EngineFactory:
    """
    Builds provider adapters from loosely-typed provider ids and user keys.

    ``create`` is total: it never raises for an unknown provider. A wrong
    guess surfaces later as a clean authentication or validation error.
    """

    @classmethod
    def resolve_provider(cls, provider_id: Provider | str | None) -> Provider:
        return _resolve_provider(provider_id)

    @classmethod
    def create(
        cls,
        provider_id: Provider | str | None,
        api_key: str | None,
        base_url: str | None = None,
        use_mock: bool = False,
        *,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> ImageEngine:
        """Create an engine for the provider.

        Base URL precedence: explicit argument, settings override, engine default.
        """
        provider = _resolve_provider(provider_id)
        settings = get_settings()
        key = api_key or ""

        if key and len(key.strip()) < C.MIN_API_KEY_LENGTH:
            logger.warning(f"API key for {provider.value} looks too short ({len(key.strip())} chars)")

        if use_mock:
            mock_cls = _load_engine_class(MOCK_ENGINE)
            logger.info(f"Using mock engine for {provider.value}")
            return mock_cls(name=f"mock:{provider.value}", provider=provider, api_key=key, delay_seconds=settings.mock_delay_seconds)

        engine_cls = _load_engine_class(PROVIDER_ENGINE_MAP[provider])
        kwargs: dict[str, object] = {"api_key": key, "timeout": timeout or settings.request_timeout}
        resolved_url = base_url or settings.base_url_for(provider)
        if resolved_url:
            kwargs["base_url"] = resolved_url
        if http_client is not None:
            kwargs["http_client"] = http_client

        logger.debug(f"Creating {engine_cls.__name__} for {provider.value} with key {mask_secret(key)}")
        return engine_cls(**kwargs)

    @classmethod
    async def validate_api_key(cls, provider_id: Provider | str | None, api_key: str | None, use_mock: bool = False) -> ApiKeyValidationResult:
        """Create the provider's engine and check ``api_key`` against it. Never raises."""
        engine = cls.create(provider_id, api_key, use_mock=use_mock)
        return await engine.validate_api_key(api_key or "")

    @classmethod
    def get_supported_providers(cls) -> list[Provider]:
        return list(PROVIDER_ENGINE_MAP.keys())

    @classmethod
    def get_default_engine_class(cls, provider: Provider) -> type[ImageEngine]:
        return _load_engine_class(PROVIDER_ENGINE_MAP[provider])

    @classmethod
    def get_capabilities(cls, provider: Provider | None = None) -> list[CapabilityReport]:
        """Collect capability reports, optionally for a single provider."""
        providers = [provider] if provider else cls.get_supported_providers()
        reports: list[CapabilityReport] = []
        for p in providers:
            try:
                engine = cls.get_default_engine_class(p)()
                reports.append(engine.get_capability_report())
            except Exception as e:
                logger.warning(f"Failed to get capabilities for provider {p.value}: {e}")
                continue
        return reports


__all__ = ["EngineFactory", "PROVIDER_ENGINE_MAP", "FALLBACK_PROVIDER"]
