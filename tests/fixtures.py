"""
Test Fixtures

Fake provider adapters and configuration helpers shared by the test suite.

FakeAdapter subclasses the real ProviderAdapter, so timeout handling,
failure classification and test() logic run exactly as in production;
only the provider call itself is scripted.
"""

import asyncio
from collections.abc import AsyncIterator

from pydantic import SecretStr

from model_gateway.providers.base import AdapterRequest, ProviderAdapter, StreamChunk, TokenUsage
from model_gateway.registry.models import ModelCapability, ModelConfig, ModelProvider


class FakeStatusError(Exception):
    """Stand-in for an SDK status error; classified through status_code."""

    def __init__(self, status_code: int, message: str = "fake provider error"):
        super().__init__(message)
        self.status_code = status_code


def make_config(
    model_id: str,
    provider: ModelProvider | str = ModelProvider.OPENAI,
    priority: int = 100,
    enabled: bool = True,
    capabilities: set[ModelCapability] | None = None,
    api_key: str | None = "sk-test",
    **kwargs,
) -> ModelConfig:
    """Build a ModelConfig with sensible test defaults."""
    return ModelConfig(
        id=model_id,
        provider=provider,
        model_name=kwargs.pop("model_name", model_id),
        priority=priority,
        enabled=enabled,
        capabilities=frozenset(capabilities or {ModelCapability.CHAT}),
        api_key=SecretStr(api_key) if api_key is not None else None,
        **kwargs,
    )


class FakeAdapter(ProviderAdapter):
    """
    Scripted adapter.

    Args:
        config: Model configuration
        timeout: Per-call timeout
        content: Text returned on success
        error: Exception raised by every call (None for success)
        delay: Seconds slept before answering
        input_tokens / output_tokens: Usage reported on success
        chunks: Text pieces yielded by _stream() (one blocking call when None)
        fail_after: Raise `error` after this many chunks instead of before the first
    """

    def __init__(
        self,
        config: ModelConfig,
        timeout: float = 5.0,
        content: str | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
        input_tokens: int = 100,
        output_tokens: int = 50,
        chunks: list[str] | None = None,
        fail_after: int | None = None,
    ):
        super().__init__(config, timeout)
        self.content = content if content is not None else f"reply from {config.id}"
        self.error = error
        self.delay = delay
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.chunks = chunks
        self.fail_after = fail_after
        self.calls: list[AdapterRequest] = []
        self.closed = False

    async def _call(self, request: AdapterRequest) -> tuple[str, TokenUsage]:
        self.calls.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.content, TokenUsage(
            input_tokens=self.input_tokens, output_tokens=self.output_tokens
        )

    async def _stream(self, request: AdapterRequest) -> AsyncIterator[StreamChunk]:
        if self.chunks is None:
            async for chunk in super()._stream(request):
                yield chunk
            return

        self.calls.append(request)
        for index, text in enumerate(self.chunks):
            if self.error is not None and index == (self.fail_after or 0):
                raise self.error
            if self.delay:
                await asyncio.sleep(self.delay)
            yield StreamChunk(content=text)
        if self.error is not None:
            raise self.error
        yield StreamChunk(
            tokens=TokenUsage(input_tokens=self.input_tokens, output_tokens=self.output_tokens)
        )

    async def aclose(self) -> None:
        self.closed = True


class FakeAdapterFactory:
    """
    Adapter factory for GatewayCore that builds FakeAdapters.

    Behaviour per model id is set with configure(); every adapter created
    is kept in `adapters` for inspection.

    Example:
        factory = FakeAdapterFactory()
        factory.configure("model-a", error=FakeStatusError(500))
        gateway = GatewayCore(registry, adapter_factory=factory)
    """

    def __init__(self):
        self.behaviors: dict[str, dict] = {}
        self.adapters: dict[str, FakeAdapter] = {}
        self.created = 0

    def configure(self, model_id: str, **behavior) -> None:
        self.behaviors[model_id] = behavior

    def __call__(self, config: ModelConfig, timeout: float) -> FakeAdapter:
        adapter = FakeAdapter(config, timeout, **self.behaviors.get(config.id, {}))
        self.adapters[config.id] = adapter
        self.created += 1
        return adapter
