"""
Configuration Loader Tests

Validates loading of models files, the built-in default set, and key
resolution through credential stores.
"""

import json

import pytest

from model_gateway.config import Settings
from model_gateway.errors import ValidationError
from model_gateway.registry import ModelProvider
from model_gateway.registry.loader import (
    DEFAULT_MODELS,
    ConfigLoader,
    SettingsCredentialStore,
    StaticCredentialStore,
)


@pytest.fixture
def models_file(tmp_path):
    """Write a models file and return its path."""

    def _write(data) -> str:
        path = tmp_path / "models.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        return str(path)

    return _write


class TestDefaults:
    """Built-in default model set."""

    def test_no_path_uses_defaults(self):
        loaded = ConfigLoader().load()

        assert loaded.source == "defaults"
        assert [m.id for m in loaded.models] == [m["id"] for m in DEFAULT_MODELS]
        assert loaded.prices.lookup(loaded.models[1]).input_per_1m == 0.15

    def test_missing_file_uses_defaults(self, tmp_path):
        loaded = ConfigLoader(tmp_path / "absent.json").load()

        assert loaded.source == "defaults"
        assert len(loaded.models) == len(DEFAULT_MODELS)

    def test_defaults_without_credentials_have_no_keys(self):
        loaded = ConfigLoader().load()

        assert all(m.api_key is None for m in loaded.models)


class TestModelsFile:
    """Parsing of JSON models files."""

    def test_models_and_prices(self, models_file):
        path = models_file(
            {
                "models": [
                    {"id": "glm", "provider": "zhipu", "model_name": "glm-4-flash", "priority": 2},
                    {"id": "kimi", "provider": "moonshot", "model_name": "moonshot-v1-8k"},
                ],
                "prices": {
                    "models": {"glm": {"input_per_1m": 0.1, "output_per_1m": 0.1}},
                    "providers": {"moonshot": {"input_per_1m": 1.7, "output_per_1m": 1.7}},
                },
            }
        )

        loaded = ConfigLoader(path).load()

        assert loaded.source == path
        assert [m.id for m in loaded.models] == ["glm", "kimi"]
        assert loaded.models[0].provider == ModelProvider.ZHIPU
        assert loaded.prices.lookup(loaded.models[1]).input_per_1m == 1.7

    def test_bare_list(self, models_file):
        path = models_file([{"id": "q", "provider": "qwen", "model_name": "qwen-plus"}])

        loaded = ConfigLoader(path).load()

        assert [m.id for m in loaded.models] == ["q"]
        assert loaded.prices.to_dict() == {"models": {}, "providers": {}}

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "models.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(ValidationError, match="not valid JSON"):
            ConfigLoader(path).load()

    def test_invalid_top_level(self, models_file):
        with pytest.raises(ValidationError):
            ConfigLoader(models_file("models")).load()

    def test_invalid_entry(self, models_file):
        path = models_file([{"id": "bad", "provider": "nope", "model_name": "x"}])

        with pytest.raises(ValidationError, match="bad"):
            ConfigLoader(path).load()

    def test_invalid_price(self, models_file):
        path = models_file(
            {
                "models": [],
                "prices": {"models": {"x": {"input_per_1m": -1, "output_per_1m": 0}}},
            }
        )

        with pytest.raises(ValidationError):
            ConfigLoader(path).load()


class TestCredentials:
    """Key resolution through credential stores."""

    def test_keys_resolved_by_provider(self, models_file):
        path = models_file(
            [
                {"id": "gpt", "provider": "openai", "model_name": "gpt-4o-mini"},
                {"id": "llama", "provider": "groq", "model_name": "llama-3.1-8b-instant"},
            ]
        )
        credentials = StaticCredentialStore({"openai": "sk-openai"})

        loaded = ConfigLoader(path, credentials).load()

        assert loaded.models[0].api_key.get_secret_value() == "sk-openai"
        assert loaded.models[1].api_key is None

    def test_file_keys_ignored(self, models_file):
        """Keys embedded in the file never reach the configuration."""
        path = models_file(
            [{"id": "gpt", "provider": "openai", "model_name": "gpt-4o", "api_key": "sk-leaked"}]
        )

        loaded = ConfigLoader(path, StaticCredentialStore()).load()

        assert loaded.models[0].api_key is None

    def test_static_store_case_insensitive(self):
        store = StaticCredentialStore({"OpenAI": "sk-1"})

        assert store.get("openai").get_secret_value() == "sk-1"
        assert store.get("groq") is None

    def test_settings_store(self):
        settings = Settings(_env_file=None, openai_api_key="sk-settings", groq_api_key="")
        store = SettingsCredentialStore(settings)

        assert store.get("openai").get_secret_value() == "sk-settings"
        # Empty keys count as missing
        assert store.get("groq") is None
        assert store.get("unknown-provider") is None
