"""
Model Gateway Configuration Module

This module manages application settings and environment variables using
pydantic-settings for type-safe configuration management.

Environment variables are loaded from .env file or system environment.
All provider API keys use SecretStr to prevent accidental logging.
"""

from functools import lru_cache
from typing import Literal
import logging
import sys

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


ROUTING_STRATEGIES = ("smart", "cost", "speed", "priority")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Pydantic Settings automatically reads from:
    1. Environment variables
    2. .env file in working directory
    3. Default values defined here

    Provider API keys are optional: a model whose provider has no key is
    still registered, and its adapter reports an auth error when called.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore unknown env vars
    )

    deepseek_api_key: SecretStr | None = Field(
        default=None, description="DeepSeek API key"
    )

    openai_api_key: SecretStr | None = Field(
        default=None, description="OpenAI API key"
    )

    anthropic_api_key: SecretStr | None = Field(
        default=None, description="Anthropic API key"
    )

    zhipu_api_key: SecretStr | None = Field(
        default=None, description="Zhipu AI (GLM) API key"
    )

    qwen_api_key: SecretStr | None = Field(
        default=None, description="Alibaba DashScope (Qwen) API key"
    )

    moonshot_api_key: SecretStr | None = Field(
        default=None, description="Moonshot API key"
    )

    groq_api_key: SecretStr | None = Field(
        default=None, description="Groq API key"
    )

    models_file: str | None = Field(
        default=None,
        description="JSON file with model configurations and prices (default set when unset)",
    )

    default_strategy: str = Field(
        default="smart",
        description="Routing strategy used when a request does not name one",
    )

    request_timeout_seconds: float = Field(
        default=5.0,
        description="Per-adapter call timeout in seconds",
    )

    stats_window_size: int = Field(
        default=20,
        ge=1,
        le=10_000,
        description="Number of recent latency samples kept per model",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Application log level"
    )

    host: str = Field(default="0.0.0.0", description="Server bind host")

    port: int = Field(default=8000, description="Server bind port")

    debug: bool = Field(default=False, description="Enable debug mode")

    @field_validator("default_strategy")
    @classmethod
    def validate_default_strategy(cls, v: str) -> str:
        """Ensure default_strategy names a known routing strategy."""
        v = v.lower()
        if v not in ROUTING_STRATEGIES:
            raise ValueError(f"default_strategy must be one of {ROUTING_STRATEGIES}")
        return v

    @field_validator("request_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        return v

    def provider_api_key(self, provider_id: str) -> SecretStr | None:
        """Return the configured key for a provider, or None."""
        return getattr(self, f"{provider_id.lower()}_api_key", None)


@lru_cache
def get_settings() -> Settings:
    """
    Returns cached settings instance.

    Using lru_cache ensures settings are loaded once and reused,
    avoiding repeated file reads and environment parsing.

    Returns:
        Settings: The application settings.
    """
    return Settings()


def configure_logging(settings: Settings) -> None:
    """
    Configure application logging based on settings.

    Sets up structured logging with timestamps and reduces noise
    from the provider SDKs and their HTTP libraries.

    Args:
        settings: The application settings instance.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("groq").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)
