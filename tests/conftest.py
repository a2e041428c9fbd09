"""
Pytest configuration and shared fixtures.

Provides fake adapters, model configuration factories, and a TestClient
for the model gateway test suite.

IMPORTANT: Environment variables must be set BEFORE importing
model_gateway modules that use pydantic-settings.
"""

import os

# Set test environment variables before importing model_gateway modules
os.environ["OPENAI_API_KEY"] = "test-key-not-real"
os.environ["DEEPSEEK_API_KEY"] = "test-key-not-real"
os.environ["ANTHROPIC_API_KEY"] = "test-key-not-real"
os.environ.pop("GROQ_API_KEY", None)
os.environ.pop("MODELS_FILE", None)
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["DEBUG"] = "false"

# Now safe to import everything else
import pytest
from fastapi.testclient import TestClient

from tests.fixtures import FakeAdapterFactory, make_config


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "asyncio: mark test as async")
    config.addinivalue_line(
        "markers", "integration: mark test as requiring real API calls"
    )


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """
    Reset the cached Settings between tests.

    Tests that change environment variables get freshly parsed settings.
    """
    from model_gateway.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def config_factory():
    """
    Factory fixture for ModelConfig objects with an API key attached.

    Usage:
        config = config_factory("model-a", priority=1)
    """
    return make_config


@pytest.fixture
def three_models():
    """Models A(priority=1), B(priority=5), C(priority=1) in insertion order A, B, C."""
    return [
        make_config("model-a", priority=1),
        make_config("model-b", priority=5),
        make_config("model-c", priority=1),
    ]


@pytest.fixture
def registry(three_models):
    """Registry holding the three standard models."""
    from model_gateway.registry import ModelRegistry

    return ModelRegistry(three_models)


@pytest.fixture
def stats():
    """Fresh stats store with the default window."""
    from model_gateway.metrics import StatsStore

    return StatsStore(window_size=20)


@pytest.fixture
def prices():
    """Price table pricing model-a and model-b, leaving model-c unpriced."""
    from model_gateway.metrics import ModelPrice, PriceTable

    return PriceTable(
        by_model={
            "model-a": ModelPrice(input_per_1m=3.0, output_per_1m=15.0),
            "model-b": ModelPrice(input_per_1m=0.15, output_per_1m=0.6),
        }
    )


@pytest.fixture
def fake_factory():
    """Adapter factory whose adapters succeed unless configured otherwise."""
    return FakeAdapterFactory()


@pytest.fixture
def gateway(registry, stats, prices, fake_factory):
    """GatewayCore over the three standard models with fake adapters."""
    from model_gateway.gateway import GatewayCore

    return GatewayCore(
        registry=registry,
        stats=stats,
        prices=prices,
        timeout=0.2,
        default_strategy="priority",
        adapter_factory=fake_factory,
    )


@pytest.fixture
def completion_request():
    """
    Factory fixture for CompletionRequest objects.

    Usage:
        request = completion_request("Hello", strategy="cost")
    """
    from model_gateway.schemas import CompletionRequest

    def _create(content: str = "Hello", **kwargs):
        return CompletionRequest(
            messages=[{"role": "user", "content": content}], **kwargs
        )

    return _create


@pytest.fixture
def test_client(gateway):
    """
    FastAPI TestClient serving the fake-adapter gateway.

    The lifespan runs, so the app exercises its real startup path with the
    injected gateway instead of one built from settings.
    """
    from model_gateway.main import create_app
    from model_gateway.registry.loader import StaticCredentialStore

    app = create_app(
        gateway=gateway,
        credentials=StaticCredentialStore({"openai": "sk-test", "anthropic": "sk-ant-test"}),
    )
    with TestClient(app) as client:
        yield client
