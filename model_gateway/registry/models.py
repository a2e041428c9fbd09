"""
Model Registry

This module defines the model configuration schema and the registry that
holds the configured model pool. Each entry describes one routable model:

- Unique id and provider family
- Provider-side model name and optional base URL override
- Secret reference for the provider API key (never logged)
- Priority (lower = preferred) and enabled flag
- Capability tags used for capability lookups

The registry preserves insertion order, which the routing policies use as
the final tie-breaker.
"""

import logging
import threading
from collections.abc import Iterable
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from model_gateway.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class ModelProvider(str, Enum):
    """Supported provider families."""

    DEEPSEEK = "deepseek"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    ZHIPU = "zhipu"  # GLM models, OpenAI-compatible endpoint
    QWEN = "qwen"  # DashScope compatible mode
    MOONSHOT = "moonshot"
    GROQ = "groq"


class ModelCapability(str, Enum):
    """Capability tags for matching requests to models."""

    CHAT = "chat"
    REASONING = "reasoning"
    CODE = "code"
    VISION = "vision"
    FUNCTION_CALLING = "function_calling"


class ModelConfig(BaseModel):
    """
    Complete configuration for a registered model.

    Instances are immutable: enabling or disabling a model replaces the
    registry entry with an updated copy, so snapshots handed out earlier
    never change underneath their holders.
    """

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    id: str = Field(
        ...,
        min_length=1,
        description="Unique identifier used in routing decisions",
    )

    provider: ModelProvider = Field(
        ...,
        description="Provider family that serves this model",
    )

    model_name: str = Field(
        ...,
        min_length=1,
        description="Model name used in provider API calls",
    )

    display_name: str | None = Field(
        default=None,
        description="Human-readable model name",
    )

    api_key: SecretStr | None = Field(
        default=None,
        description="Provider API key captured at load time",
        repr=False,
    )

    base_url: str | None = Field(
        default=None,
        description="Override for the provider's default API endpoint",
    )

    priority: int = Field(
        default=100,
        description="Routing priority, lower values are preferred",
    )

    enabled: bool = Field(
        default=True,
        description="Whether the model takes part in routing",
    )

    capabilities: frozenset[ModelCapability] = Field(
        default_factory=lambda: frozenset({ModelCapability.CHAT}),
        description="Capability tags",
    )

    max_tokens: int = Field(
        default=1024,
        gt=0,
        description="Default max output tokens",
    )

    temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Default sampling temperature",
    )

    @property
    def label(self) -> str:
        """Display name, falling back to the id."""
        return self.display_name or self.id


class ModelRegistry:
    """
    Registry of configured models.

    Backed by an insertion-ordered dict guarded by a lock, so concurrent
    callers always see a consistent snapshot. Configs are immutable and
    replaced wholesale on enable/disable.

    Example:
        registry = ModelRegistry([config_a, config_b])
        registry.disable("model-b")
        enabled = registry.list(enabled_only=True)
    """

    def __init__(self, configs: Iterable[ModelConfig] = ()) -> None:
        self._lock = threading.RLock()
        self._models: dict[str, ModelConfig] = {}
        for config in configs:
            self.add(config)

    def add(self, config: ModelConfig) -> ModelConfig:
        """
        Register a model.

        Args:
            config: The model configuration to register

        Returns:
            The registered configuration

        Raises:
            ValidationError: On a duplicate id or an empty capability set
        """
        if not config.capabilities:
            raise ValidationError(f"Model '{config.id}' must declare at least one capability")

        with self._lock:
            if config.id in self._models:
                raise ValidationError(f"Model id '{config.id}' is already registered")
            self._models[config.id] = config

        logger.info(
            f"Registered model: {config.id} "
            f"(provider={config.provider.value}, priority={config.priority}, "
            f"enabled={config.enabled})"
        )
        return config

    def remove(self, model_id: str) -> bool:
        """
        Remove a model.

        Returns:
            True if the model was removed, False if it was not registered
        """
        with self._lock:
            removed = self._models.pop(model_id, None)

        if removed is None:
            return False
        logger.info(f"Removed model: {model_id}")
        return True

    def enable(self, model_id: str) -> ModelConfig:
        """Enable a model. Raises NotFoundError if absent."""
        return self._set_enabled(model_id, True)

    def disable(self, model_id: str) -> ModelConfig:
        """Disable a model. Raises NotFoundError if absent."""
        return self._set_enabled(model_id, False)

    def _set_enabled(self, model_id: str, enabled: bool) -> ModelConfig:
        with self._lock:
            current = self._models.get(model_id)
            if current is None:
                raise NotFoundError(f"Model not found: {model_id}", model_id=model_id)
            if current.enabled == enabled:
                return current
            # Reassigning an existing key keeps its insertion position
            updated = current.model_copy(update={"enabled": enabled})
            self._models[model_id] = updated

        logger.info(f"Model {model_id} {'enabled' if enabled else 'disabled'}")
        return updated

    def get(self, model_id: str) -> ModelConfig | None:
        """
        Retrieve a model configuration by id.

        Args:
            model_id: The unique identifier of the model

        Returns:
            ModelConfig if found, None otherwise
        """
        with self._lock:
            return self._models.get(model_id)

    def find_by_capability(self, capability: ModelCapability) -> list[ModelConfig]:
        """Return enabled models carrying the given capability tag."""
        return [m for m in self.list(enabled_only=True) if capability in m.capabilities]

    def ids(self) -> list[str]:
        """Return all registered model ids in insertion order."""
        with self._lock:
            return list(self._models.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._models)

    def __contains__(self, model_id: object) -> bool:
        with self._lock:
            return model_id in self._models

    # Defined last: the method name shadows the builtin in the class body
    def list(self, enabled_only: bool = False) -> list[ModelConfig]:
        """
        Return a snapshot of registered models in insertion order.

        Args:
            enabled_only: Only include enabled models

        Returns:
            A new list; mutating it does not affect the registry
        """
        with self._lock:
            models = list(self._models.values())
        if enabled_only:
            return [m for m in models if m.enabled]
        return models
