"""
Providers module: capability-polymorphic clients for model providers.

Each provider family registers an adapter variant; the gateway dispatches
through the common ProviderAdapter interface only.

Key exports:
- ProviderAdapter: Abstract adapter with timeout and failure classification
- AdapterRequest / AdapterResult: Normalized request and outcome
- TokenUsage: Token consumption for cost calculation
- TestResult: Outcome of a connectivity check
- StreamChunk: One increment of a streamed completion
- create_adapter(): Build the variant registered for a model's provider
- register_adapter(): Decorator for adding provider variants
"""

from model_gateway.providers.base import (
    # Data classes
    AdapterRequest,
    AdapterResult,
    ProviderFailure,
    StreamChunk,
    TestResult,
    TokenUsage,
    # Adapter contract
    DEFAULT_TIMEOUT_SECONDS,
    MalformedResponseError,
    ProviderAdapter,
    classify_status,
    register_adapter,
)
from model_gateway.providers.openai_compatible import (
    PROVIDER_ENDPOINTS,
    OpenAICompatibleAdapter,
)
from model_gateway.providers.groq_adapter import GroqAdapter
from model_gateway.providers.anthropic_adapter import AnthropicAdapter
from model_gateway.providers.factory import create_adapter, supported_providers

__all__ = [
    # Data classes
    "AdapterRequest",
    "AdapterResult",
    "ProviderFailure",
    "StreamChunk",
    "TestResult",
    "TokenUsage",
    # Adapter contract
    "DEFAULT_TIMEOUT_SECONDS",
    "MalformedResponseError",
    "ProviderAdapter",
    "classify_status",
    "register_adapter",
    # Variants
    "PROVIDER_ENDPOINTS",
    "OpenAICompatibleAdapter",
    "GroqAdapter",
    "AnthropicAdapter",
    # Factory
    "create_adapter",
    "supported_providers",
]
