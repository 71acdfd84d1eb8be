from __future__ import annotations

from functools import lru_cache
from typing import ClassVar

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .shard import constants as C
from .shard.enums import Provider


class Settings(BaseSettings):
    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(env_nested_delimiter="__")

    openai_api_key: str | None = Field(default=None, description="Fallback API key for OpenAI")
    openai_base_url: str | None = Field(default=None, description="Override for the OpenAI API base URL")

    gemini_api_key: str | None = Field(default=None, description="Fallback API key for Google Gemini / Imagen")
    gemini_base_url: str | None = Field(default=None, description="Override for the Generative Language API base URL")

    xai_api_key: str | None = Field(default=None, description="Fallback API key for xAI")
    xai_base_url: str | None = Field(default=None, description="Override for the xAI API base URL")

    request_timeout: float = Field(default=C.DEFAULT_TIMEOUT_SECONDS, gt=0, description="Per-request HTTP timeout in seconds")

    use_mock: bool = Field(default=False, description="Serve every request from the mock adapter (no network, no billing)")
    mock_delay_seconds: float = Field(default=C.MOCK_DELAY_SECONDS, ge=0, description="Artificial latency of the mock adapter")

    log_level: str = Field(default="INFO", description="Loguru level for the stderr sink")

    def api_key_for(self, provider: Provider) -> str | None:
        """Return the configured fallback key for a provider, if any."""
        return {
            Provider.OPENAI: self.openai_api_key,
            Provider.GEMINI: self.gemini_api_key,
            Provider.XAI: self.xai_api_key,
        }.get(provider)

    def base_url_for(self, provider: Provider) -> str | None:
        """Return the configured base URL override for a provider, if any."""
        return {
            Provider.OPENAI: self.openai_base_url,
            Provider.GEMINI: self.gemini_base_url,
            Provider.XAI: self.xai_base_url,
        }.get(provider)


@lru_cache
def get_settings() -> Settings:
    return Settings()
