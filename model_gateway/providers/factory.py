"""
Adapter Factory

Builds the adapter variant registered for a model's provider family.
Importing this module imports every bundled adapter module, which
registers the variants through @register_adapter.
"""

from model_gateway.errors import ValidationError
from model_gateway.providers import anthropic_adapter, groq_adapter, openai_compatible  # noqa: F401
from model_gateway.providers.base import (
    ADAPTER_REGISTRY,
    DEFAULT_TIMEOUT_SECONDS,
    ProviderAdapter,
)
from model_gateway.registry.models import ModelConfig, ModelProvider


def create_adapter(
    config: ModelConfig, timeout: float = DEFAULT_TIMEOUT_SECONDS
) -> ProviderAdapter:
    """
    Create the adapter for a model configuration.

    Raises:
        ValidationError: If no adapter variant is registered for the provider
    """
    adapter_cls = ADAPTER_REGISTRY.get(config.provider)
    if adapter_cls is None:
        raise ValidationError(f"No adapter registered for provider '{config.provider.value}'")
    return adapter_cls(config, timeout=timeout)


def supported_providers() -> list[ModelProvider]:
    """Provider families with a registered adapter, in enum order."""
    return [p for p in ModelProvider if p in ADAPTER_REGISTRY]
