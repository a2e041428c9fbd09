"""
Provider Adapter Base - normalized, never-raising provider calls.

Every provider family implements ProviderAdapter. The base class owns the
parts that are identical across providers:

- Bounded per-call timeout (asyncio.wait_for around the SDK call)
- Latency measurement
- Conversion of every outcome into an AdapterResult value; adapters never
  let an exception escape complete() or test()
- HTTP status classification into the ProviderErrorKind taxonomy

Subclasses only implement _call() (issue the request, parse the response),
and optionally _stream() (native streaming) and _classify() (map SDK
exceptions to failures).
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field

from model_gateway.errors import ProviderError, ProviderErrorKind
from model_gateway.registry.models import ModelConfig, ModelProvider

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0

TEST_MESSAGES = [{"role": "user", "content": "Hi"}]
TEST_MAX_TOKENS = 10


@dataclass
class TokenUsage:
    """
    Token usage from model inference.

    Used for cost calculation based on PriceTable pricing.
    """

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        """Total tokens consumed (input + output)."""
        return self.input_tokens + self.output_tokens


@dataclass
class AdapterRequest:
    """
    Provider-agnostic chat request handed to an adapter.

    Attributes:
        messages: Ordered {role, content} messages
        max_tokens: Output token limit (model default when None)
        temperature: Sampling temperature (model default when None)
    """

    messages: list[dict[str, str]]
    max_tokens: int | None = None
    temperature: float | None = None


@dataclass
class ProviderFailure:
    """Classified failure of a single provider call."""

    kind: ProviderErrorKind
    message: str
    status_code: int | None = None


@dataclass
class AdapterResult:
    """
    Outcome of one adapter call.

    Exactly one of (content, tokens) or failure is meaningful:
    success is True when failure is None.
    """

    model_id: str
    provider: str
    latency_ms: float
    content: str = ""
    tokens: TokenUsage = field(default_factory=TokenUsage)
    failure: ProviderFailure | None = None

    @property
    def success(self) -> bool:
        """Check if the call completed without a failure."""
        return self.failure is None

    def to_error(self) -> ProviderError:
        """Convert a failed result into a ProviderError."""
        if self.failure is None:
            raise ValueError("Successful results have no error")
        return ProviderError(
            model_id=self.model_id,
            provider=self.provider,
            kind=self.failure.kind,
            message=self.failure.message,
            status_code=self.failure.status_code,
            latency_ms=self.latency_ms,
        )


@dataclass
class TestResult:
    """
    Result of a connectivity check.

    Attributes:
        model_id: Model that was tested
        success: Whether the test call succeeded
        latency_ms: Round-trip time in milliseconds
        error: "<kind>: <message>" when the test failed
    """

    __test__ = False  # not a pytest test class

    model_id: str
    success: bool
    latency_ms: float
    error: str | None = None


@dataclass
class StreamChunk:
    """
    One increment of a streamed completion.

    Content chunks carry text only. The final chunk has done=True, no
    content, and carries the token usage and total latency; the gateway
    adds the cost before handing it to the caller.
    """

    content: str = ""
    model_id: str | None = None
    done: bool = False
    tokens: TokenUsage | None = None
    latency_ms: float | None = None
    cost_usd: float | None = None


class MalformedResponseError(Exception):
    """Raised inside _call() when a 2xx response cannot be normalized."""


def classify_status(status_code: int | None) -> ProviderErrorKind:
    """
    Map an HTTP status code to a failure kind.

    401/403 are auth errors, 429 is rate limiting, 408 is a timeout.
    Everything else, including 5xx and unexpected 4xx, is a server error.
    """
    if status_code in (401, 403):
        return ProviderErrorKind.AUTH_ERROR
    if status_code == 429:
        return ProviderErrorKind.RATE_LIMITED
    if status_code == 408:
        return ProviderErrorKind.TIMEOUT
    return ProviderErrorKind.SERVER_ERROR


class ProviderAdapter(ABC):
    """
    Abstract client for one configured model.

    Args:
        config: Model configuration (model name, key, base URL, defaults)
        timeout: Per-call timeout in seconds
    """

    def __init__(self, config: ModelConfig, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.config = config
        self.timeout = timeout

    @property
    def model_id(self) -> str:
        return self.config.id

    @property
    def provider_name(self) -> str:
        return self.config.provider.value

    def _api_key(self) -> str | None:
        if self.config.api_key is None:
            return None
        return self.config.api_key.get_secret_value() or None

    @abstractmethod
    async def _call(self, request: AdapterRequest) -> tuple[str, TokenUsage]:
        """
        Issue the provider request and normalize the response.

        Returns:
            (content, token usage)

        Raises:
            MalformedResponseError: If the response lacks content or usage
            Exception: Any SDK/transport error, classified by _classify()
        """

    async def _stream(self, request: AdapterRequest) -> AsyncIterator[StreamChunk]:
        """
        Issue a streaming request and yield chunks as they arrive.

        Variants with native streaming override this. The default makes one
        blocking call and yields its whole content as a single chunk.
        A chunk carrying `tokens` reports the usage of the whole stream.
        """
        content, tokens = await self._call(request)
        yield StreamChunk(content=content, tokens=tokens)

    def _classify(self, exc: Exception) -> ProviderFailure:
        """Map an exception raised by _call() to a failure. Override per SDK."""
        status_code = getattr(exc, "status_code", None)
        return ProviderFailure(
            kind=classify_status(status_code),
            message=f"{type(exc).__name__}: {exc}",
            status_code=status_code,
        )

    def _failure(
        self, start: float, failure: ProviderFailure
    ) -> AdapterResult:
        latency_ms = (time.perf_counter() - start) * 1000
        logger.warning(
            f"{self.provider_name} call failed: model={self.model_id}, "
            f"kind={failure.kind.value}, latency={latency_ms:.0f}ms, error={failure.message}"
        )
        return AdapterResult(
            model_id=self.model_id,
            provider=self.provider_name,
            latency_ms=latency_ms,
            failure=failure,
        )

    async def complete(self, request: AdapterRequest) -> AdapterResult:
        """
        Run one completion under the adapter timeout.

        Never raises: auth problems, timeouts, transport errors and
        malformed responses are all returned as failed AdapterResults.
        """
        start = time.perf_counter()

        if self._api_key() is None:
            return self._failure(
                start,
                ProviderFailure(
                    kind=ProviderErrorKind.AUTH_ERROR,
                    message=f"No API key configured for provider '{self.provider_name}'",
                ),
            )

        try:
            content, tokens = await asyncio.wait_for(self._call(request), self.timeout)
        except asyncio.TimeoutError:
            return self._failure(
                start,
                ProviderFailure(
                    kind=ProviderErrorKind.TIMEOUT,
                    message=f"No response within {self.timeout:.1f}s",
                ),
            )
        except MalformedResponseError as e:
            return self._failure(
                start,
                ProviderFailure(kind=ProviderErrorKind.MALFORMED_RESPONSE, message=str(e)),
            )
        except Exception as e:
            return self._failure(start, self._classify(e))

        latency_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"{self.provider_name} call completed: model={self.model_id}, "
            f"latency={latency_ms:.0f}ms, tokens={tokens.total_tokens}"
        )
        return AdapterResult(
            model_id=self.model_id,
            provider=self.provider_name,
            latency_ms=latency_ms,
            content=content,
            tokens=tokens,
        )

    async def stream(self, request: AdapterRequest) -> AsyncIterator[StreamChunk]:
        """
        Stream one completion.

        Each chunk must arrive within the adapter timeout. Unlike
        complete(), failures cannot be returned as values once chunks have
        been yielded, so they are raised as ProviderError, classified the
        same way. The last chunk yielded has done=True.

        Raises:
            ProviderError: On a missing key, timeout, SDK error or
                malformed chunk, before or after the first chunk
        """
        start = time.perf_counter()

        if self._api_key() is None:
            raise self._failure(
                start,
                ProviderFailure(
                    kind=ProviderErrorKind.AUTH_ERROR,
                    message=f"No API key configured for provider '{self.provider_name}'",
                ),
            ).to_error()

        chunks = self._stream(request)
        tokens = TokenUsage()
        try:
            while True:
                try:
                    chunk = await asyncio.wait_for(chunks.__anext__(), self.timeout)
                except StopAsyncIteration:
                    break
                except asyncio.TimeoutError:
                    raise self._failure(
                        start,
                        ProviderFailure(
                            kind=ProviderErrorKind.TIMEOUT,
                            message=f"No stream chunk within {self.timeout:.1f}s",
                        ),
                    ).to_error() from None
                except MalformedResponseError as e:
                    raise self._failure(
                        start,
                        ProviderFailure(
                            kind=ProviderErrorKind.MALFORMED_RESPONSE, message=str(e)
                        ),
                    ).to_error() from e
                except Exception as e:
                    raise self._failure(start, self._classify(e)).to_error() from e

                if chunk.tokens is not None:
                    tokens = chunk.tokens
                if chunk.content:
                    yield StreamChunk(content=chunk.content, model_id=self.model_id)
        finally:
            await chunks.aclose()

        latency_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"{self.provider_name} stream completed: model={self.model_id}, "
            f"latency={latency_ms:.0f}ms, tokens={tokens.total_tokens}"
        )
        yield StreamChunk(
            model_id=self.model_id,
            done=True,
            tokens=tokens,
            latency_ms=latency_ms,
        )

    async def test(self) -> TestResult:
        """
        Issue a minimal, cheap completion to check connectivity.

        Returns:
            TestResult; never raises.
        """
        result = await self.complete(
            AdapterRequest(messages=list(TEST_MESSAGES), max_tokens=TEST_MAX_TOKENS)
        )
        error = None
        if result.failure is not None:
            error = f"{result.failure.kind.value}: {result.failure.message}"
        return TestResult(
            model_id=self.model_id,
            success=result.success,
            latency_ms=result.latency_ms,
            error=error,
        )

    async def aclose(self) -> None:
        """Release network resources held by the adapter."""


# Provider family -> adapter variant. Populated by @register_adapter.
ADAPTER_REGISTRY: dict[ModelProvider, type[ProviderAdapter]] = {}


def register_adapter(*providers: ModelProvider):
    """
    Class decorator registering an adapter variant for provider families.

    New providers plug in by decorating their adapter class; the gateway
    never branches on provider.

    Example:
        @register_adapter(ModelProvider.OPENAI, ModelProvider.DEEPSEEK)
        class OpenAICompatibleAdapter(ProviderAdapter):
            ...
    """

    def decorator(cls: type[ProviderAdapter]) -> type[ProviderAdapter]:
        for provider in providers:
            if provider in ADAPTER_REGISTRY:
                logger.warning(
                    f"Replacing adapter for {provider.value}: "
                    f"{ADAPTER_REGISTRY[provider].__name__} -> {cls.__name__}"
                )
            ADAPTER_REGISTRY[provider] = cls
        return cls

    return decorator
