"""
Model Configuration Loader

Builds the initial model pool and price table from a JSON models file,
falling back to a built-in default set when no file is configured.

File Structure:
{
    "models": [
        { id, provider, model_name, display_name, base_url, priority,
          enabled, capabilities, max_tokens, temperature }
    ],
    "prices": {
        "models":    { model_id: { input_per_1m, output_per_1m } },
        "providers": { provider: { input_per_1m, output_per_1m } }
    }
}

A bare JSON array is accepted as the "models" section with no prices.

API keys never appear in the file: each model's key is resolved from a
CredentialStore by provider id when the file is loaded.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from pydantic import SecretStr
from pydantic import ValidationError as PydanticValidationError

from model_gateway.config import Settings
from model_gateway.errors import ValidationError
from model_gateway.metrics.cost import PriceTable
from model_gateway.registry.models import ModelConfig

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# CREDENTIALS
# ═══════════════════════════════════════════════════════════════════════════════


class CredentialStore(Protocol):
    """Resolves provider API keys by provider id."""

    def get(self, provider_id: str) -> SecretStr | None: ...


class SettingsCredentialStore:
    """Credential store backed by the <PROVIDER>_API_KEY settings fields."""

    def __init__(self, settings: Settings):
        self._settings = settings

    def get(self, provider_id: str) -> SecretStr | None:
        key = self._settings.provider_api_key(provider_id)
        if key is None or not key.get_secret_value():
            return None
        return key


class StaticCredentialStore:
    """Credential store over a plain mapping, for tests and scripts."""

    def __init__(self, keys: dict[str, str] | None = None):
        self._keys = {k.lower(): SecretStr(v) for k, v in (keys or {}).items()}

    def get(self, provider_id: str) -> SecretStr | None:
        return self._keys.get(provider_id.lower())


# ═══════════════════════════════════════════════════════════════════════════════
# DEFAULTS
# ═══════════════════════════════════════════════════════════════════════════════


DEFAULT_MODELS: list[dict] = [
    {
        "id": "deepseek-chat",
        "provider": "deepseek",
        "model_name": "deepseek-chat",
        "display_name": "DeepSeek Chat",
        "priority": 1,
        "capabilities": ["chat", "reasoning", "code"],
        "max_tokens": 4096,
    },
    {
        "id": "gpt-4o-mini",
        "provider": "openai",
        "model_name": "gpt-4o-mini",
        "display_name": "GPT-4o Mini",
        "priority": 2,
        "capabilities": ["chat", "code", "vision", "function_calling"],
        "max_tokens": 4096,
    },
    {
        "id": "claude-3-5-sonnet",
        "provider": "anthropic",
        "model_name": "claude-3-5-sonnet-20241022",
        "display_name": "Claude 3.5 Sonnet",
        "priority": 3,
        "capabilities": ["chat", "reasoning", "code", "vision"],
        "max_tokens": 4096,
    },
]

DEFAULT_PRICES: dict = {
    "models": {
        "deepseek-chat": {"input_per_1m": 0.5, "output_per_1m": 2.0},
        "gpt-4o-mini": {"input_per_1m": 0.15, "output_per_1m": 0.6},
        "claude-3-5-sonnet": {"input_per_1m": 3.0, "output_per_1m": 15.0},
    },
    "providers": {},
}


# ═══════════════════════════════════════════════════════════════════════════════
# LOADER
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class LoadedConfig:
    """
    Result of loading a models file.

    Attributes:
        models: Model configurations in file order, keys resolved
        prices: Price table from the file's "prices" section
        source: File path, or "defaults" for the built-in set
    """

    models: list[ModelConfig]
    prices: PriceTable
    source: str


class ConfigLoader:
    """
    Load model configurations and prices.

    Example:
        >>> loader = ConfigLoader("models.json", credentials)
        >>> loaded = loader.load()
        >>> registry = ModelRegistry(loaded.models)
    """

    def __init__(
        self,
        path: str | Path | None = None,
        credentials: CredentialStore | None = None,
    ):
        """
        Initialize the loader.

        Args:
            path: JSON models file; None selects the built-in defaults
            credentials: Key source; models get no key when omitted
        """
        self._path = Path(path) if path is not None else None
        self._credentials = credentials

    @property
    def path(self) -> Path | None:
        return self._path

    def load(self) -> LoadedConfig:
        """
        Load and validate the configured models.

        Returns:
            LoadedConfig with models and prices

        Raises:
            ValidationError: If the file is malformed or a model entry is invalid
        """
        if self._path is None:
            logger.info("No models file configured, using default model set")
            return self._build(DEFAULT_MODELS, DEFAULT_PRICES, source="defaults")

        if not self._path.exists():
            logger.warning(f"Models file not found: {self._path}, using default model set")
            return self._build(DEFAULT_MODELS, DEFAULT_PRICES, source="defaults")

        logger.info(f"Loading models from {self._path}")
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Models file {self._path} is not valid JSON: {e}") from e

        if isinstance(data, list):
            models_data, prices_data = data, {}
        elif isinstance(data, dict):
            models_data = data.get("models", [])
            prices_data = data.get("prices", {})
        else:
            raise ValidationError(
                f"Invalid models file format: expected list or dict, got {type(data).__name__}"
            )

        return self._build(models_data, prices_data, source=str(self._path))

    def _build(self, models_data: list[dict], prices_data: dict, source: str) -> LoadedConfig:
        models = [self.parse_model(entry, index=i) for i, entry in enumerate(models_data)]

        try:
            prices = PriceTable.from_dict(prices_data)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid price table in {source}: {e}") from e

        keyless = sorted({m.provider.value for m in models if m.api_key is None})
        if keyless:
            logger.warning(f"No API key configured for providers: {', '.join(keyless)}")

        logger.info(f"Loaded {len(models)} models from {source}")
        return LoadedConfig(models=models, prices=prices, source=source)

    def parse_model(self, entry: dict, index: int = 0) -> ModelConfig:
        """
        Validate one model entry and attach its provider key.

        Raises:
            ValidationError: If the entry is invalid
        """
        if not isinstance(entry, dict):
            raise ValidationError(f"Model entry {index} must be an object")

        data = dict(entry)
        data.pop("api_key", None)
        provider = str(data.get("provider", "")).lower()
        if self._credentials is not None and provider:
            data["api_key"] = self._credentials.get(provider)

        try:
            return ModelConfig.model_validate(data)
        except PydanticValidationError as e:
            label = entry.get("id", f"#{index}")
            raise ValidationError(f"Invalid model entry {label}: {e}") from e
