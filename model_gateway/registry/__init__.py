"""
Registry module: Model pool configuration.

This module contains:
- models.py: ModelConfig schema and the thread-safe ModelRegistry
- loader.py: JSON models file loader, default model set, credential stores

Public API:
- ModelProvider: Enum for provider families
- ModelCapability: Enum for capability tags
- ModelConfig: Pydantic model for one routable model
- ModelRegistry: Insertion-ordered registry

The loader depends on the price table in model_gateway.metrics, so it is
imported from model_gateway.registry.loader directly.
"""

from model_gateway.registry.models import (
    ModelCapability,
    ModelConfig,
    ModelProvider,
    ModelRegistry,
)

__all__ = [
    "ModelProvider",
    "ModelCapability",
    "ModelConfig",
    "ModelRegistry",
]
