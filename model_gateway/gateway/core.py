"""
Gateway Core - routing, dispatch, and bounded failover.

GatewayCore owns one ModelRegistry and one StatsStore for its lifetime and
ties the components together:

1. An explicit model override is used as-is (no policy, no failover).
2. Otherwise a routing policy ranks the enabled models.
3. Adapters are attempted in rank order, each under its own timeout.
   A failed attempt is recorded in the stats store and the next candidate
   is tried.
4. The first success records its latency and cost and is returned with the
   routing reason.
5. When every candidate failed, AllProvidersFailedError carries one
   ProviderError per attempt, in attempt order.

There is exactly one pass over the candidates: no retries beyond it.
stream() routes the same way but only attempts the top candidate.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass, field, replace
from typing import Callable

from model_gateway.config import Settings
from model_gateway.errors import (
    AllProvidersFailedError,
    NoModelsAvailableError,
    NotFoundError,
    ProviderError,
)
from model_gateway.gateway.health import HealthChecker
from model_gateway.metrics.cost import CostCalculator, PriceTable
from model_gateway.metrics.store import StatsSample, StatsStore
from model_gateway.providers import (
    DEFAULT_TIMEOUT_SECONDS,
    AdapterRequest,
    ProviderAdapter,
    StreamChunk,
    TestResult,
    TokenUsage,
    create_adapter,
)
from model_gateway.registry.loader import ConfigLoader, CredentialStore, SettingsCredentialStore
from model_gateway.registry.models import ModelConfig, ModelRegistry
from model_gateway.router.policies import RoutingDecision, RoutingStrategy, rank
from model_gateway.schemas.gateway import ChatMessage, CompletionRequest

logger = logging.getLogger(__name__)

EXPLICIT_STRATEGY = "explicit"

AdapterFactory = Callable[[ModelConfig, float], ProviderAdapter]


@dataclass
class CompletionResult:
    """
    Successful completion with its routing explanation.

    Attributes:
        model: Configuration of the model that served the request
        strategy: Strategy used, or "explicit" for a model override
        reason: Why the serving model was ranked first
        ranked_ids: Dispatch order that was followed
        content: Generated text
        latency_ms: Latency of the successful attempt
        cost_usd: Cost of the successful attempt (0.0 when unpriced)
        tokens: Token usage reported by the provider
        failed_attempts: Failures that preceded the success, in order
    """

    model: ModelConfig
    strategy: str
    reason: str
    ranked_ids: tuple[str, ...]
    content: str
    latency_ms: float
    cost_usd: float
    tokens: TokenUsage = field(default_factory=TokenUsage)
    failed_attempts: list[ProviderError] = field(default_factory=list)

    @property
    def model_id(self) -> str:
        return self.model.id


class GatewayCore:
    """
    Multi-provider completion gateway.

    Safe for concurrent use once constructed: every complete() call is an
    independent coroutine, the registry hands out snapshots, and the stats
    store locks per model.

    Example:
        gateway = GatewayCore(ModelRegistry(configs), prices=prices)
        result = await gateway.complete(
            CompletionRequest(messages=[{"role": "user", "content": "Hi"}])
        )
        print(result.model_id, result.reason)
    """

    def __init__(
        self,
        registry: ModelRegistry,
        stats: StatsStore | None = None,
        prices: PriceTable | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        default_strategy: RoutingStrategy | str = RoutingStrategy.SMART,
        adapter_factory: AdapterFactory = create_adapter,
    ):
        """
        Initialize the gateway.

        Args:
            registry: Model pool to route over
            stats: Statistics store (a fresh window-20 store when omitted)
            prices: Price table for cost routing and cost figures
            timeout: Per-adapter call timeout in seconds
            default_strategy: Strategy for requests that name none
            adapter_factory: Builds the adapter for a model configuration
        """
        self._registry = registry
        self._stats = stats if stats is not None else StatsStore()
        self._prices = prices if prices is not None else PriceTable()
        self._costs = CostCalculator(self._prices)
        self._timeout = timeout
        self._default_strategy = RoutingStrategy(default_strategy)
        self._adapter_factory = adapter_factory
        self._adapters: dict[str, ProviderAdapter] = {}
        self._health = HealthChecker(registry, self._adapter_for)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        credentials: CredentialStore | None = None,
        adapter_factory: AdapterFactory = create_adapter,
    ) -> "GatewayCore":
        """
        Build a gateway from application settings.

        Loads models and prices from settings.models_file (or the default
        set) and resolves keys from the credential store, which defaults to
        the provider keys in settings.
        """
        loader = ConfigLoader(
            settings.models_file,
            credentials if credentials is not None else SettingsCredentialStore(settings),
        )
        loaded = loader.load()
        return cls(
            registry=ModelRegistry(loaded.models),
            stats=StatsStore(window_size=settings.stats_window_size),
            prices=loaded.prices,
            timeout=settings.request_timeout_seconds,
            default_strategy=settings.default_strategy,
            adapter_factory=adapter_factory,
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Accessors
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def registry(self) -> ModelRegistry:
        return self._registry

    @property
    def stats(self) -> StatsStore:
        return self._stats

    @property
    def prices(self) -> PriceTable:
        return self._prices

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def default_strategy(self) -> RoutingStrategy:
        return self._default_strategy

    @property
    def health(self) -> HealthChecker:
        return self._health

    def _adapter_for(self, config: ModelConfig) -> ProviderAdapter:
        adapter = self._adapters.get(config.id)
        if adapter is None:
            adapter = self._adapter_factory(config, self._timeout)
            self._adapters[config.id] = adapter
        return adapter

    # ─────────────────────────────────────────────────────────────────────────
    # Routing
    # ─────────────────────────────────────────────────────────────────────────

    def _strategy_for(self, request: CompletionRequest) -> RoutingStrategy:
        return RoutingStrategy(request.strategy) if request.strategy else self._default_strategy

    def _explicit_model(self, model_id: str) -> ModelConfig:
        config = self._registry.get(model_id)
        if config is None:
            raise NotFoundError(f"Model not found: {model_id}", model_id=model_id)
        if not config.enabled:
            raise NotFoundError(f"Model is disabled: {model_id}", model_id=model_id)
        return config

    def explain(self, request: CompletionRequest) -> RoutingDecision:
        """
        Return the routing decision for a request without dispatching it.

        Raises:
            NotFoundError: If an explicit model is unknown or disabled
            NoModelsAvailableError: If no model is enabled
        """
        strategy = self._strategy_for(request)
        if request.model:
            config = self._explicit_model(request.model)
            return RoutingDecision(
                strategy=strategy,
                ranked_ids=(config.id,),
                reason=f"explicit model override: {config.id}",
            )

        candidates = self._registry.list(enabled_only=True)
        if not candidates:
            raise NoModelsAvailableError("No enabled models available for routing")
        return rank(strategy, request, candidates, self._stats, self._prices)

    def benchmark_routing(
        self, messages: list[ChatMessage] | list[dict] | None = None
    ) -> list[RoutingDecision]:
        """
        Rank the enabled models with every strategy for the same request.

        Nothing is dispatched; the result shows how the strategies disagree
        given the current statistics and prices.

        Returns:
            One decision per strategy, in RoutingStrategy order
        """
        request = CompletionRequest(
            messages=messages or [ChatMessage(role="user", content="Hi")]
        )
        candidates = self._registry.list(enabled_only=True)
        if not candidates:
            raise NoModelsAvailableError("No enabled models available for routing")
        return [
            rank(strategy, request, candidates, self._stats, self._prices)
            for strategy in RoutingStrategy
        ]

    # ─────────────────────────────────────────────────────────────────────────
    # Dispatch
    # ─────────────────────────────────────────────────────────────────────────

    @staticmethod
    def _adapter_request(request: CompletionRequest) -> AdapterRequest:
        return AdapterRequest(
            messages=request.to_provider_messages(),
            max_tokens=request.max_tokens,
            temperature=request.temperature,
        )

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        """
        Route a request and dispatch it with bounded failover.

        Args:
            request: Validated completion request

        Returns:
            CompletionResult from the first candidate that succeeded

        Raises:
            NotFoundError: If an explicit model is unknown or disabled
            NoModelsAvailableError: If no model is enabled
            AllProvidersFailedError: If every attempted candidate failed
        """
        decision = self.explain(request)
        strategy_name = EXPLICIT_STRATEGY if request.model else decision.strategy.value

        adapter_request = self._adapter_request(request)

        logger.info(
            f"Routing request: strategy={strategy_name}, "
            f"candidates={list(decision.ranked_ids)}, reason={decision.reason}"
        )

        errors: list[ProviderError] = []
        total = len(decision.ranked_ids)

        for attempt, model_id in enumerate(decision.ranked_ids, start=1):
            config = self._registry.get(model_id)
            if config is None:
                # Removed concurrently after ranking
                logger.warning(f"Skipping {model_id}: removed after routing")
                continue

            adapter = self._adapter_for(config)
            result = await adapter.complete(adapter_request)

            if result.success:
                cost = self._costs.calculate(
                    config, result.tokens.input_tokens, result.tokens.output_tokens
                )
                self._stats.record(
                    model_id,
                    StatsSample(
                        success=True,
                        latency_ms=result.latency_ms,
                        cost_delta=cost.total_cost_usd,
                    ),
                )
                if errors:
                    logger.info(
                        f"Failover succeeded on attempt {attempt}/{total}: {model_id}"
                    )
                return CompletionResult(
                    model=config,
                    strategy=strategy_name,
                    reason=decision.reason,
                    ranked_ids=decision.ranked_ids,
                    content=result.content,
                    latency_ms=result.latency_ms,
                    cost_usd=cost.total_cost_usd,
                    tokens=result.tokens,
                    failed_attempts=errors,
                )

            self._stats.record(
                model_id, StatsSample(success=False, latency_ms=result.latency_ms)
            )
            error = result.to_error()
            errors.append(error)
            if attempt < total:
                logger.warning(
                    f"Attempt {attempt}/{total} failed ({model_id}: {error.kind.value}), "
                    f"failing over to {decision.ranked_ids[attempt]}"
                )

        logger.error(f"All {len(errors)} provider attempts failed")
        raise AllProvidersFailedError(errors)

    async def stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        """
        Route a request and stream the top-ranked model's completion.

        Routing is the same as complete(), but only the first candidate is
        attempted: once text has reached the caller a different model cannot
        take over. The final chunk (done=True) carries usage, latency and
        cost; one stats sample is recorded when the stream ends. A stream
        abandoned by the caller records nothing.

        Raises:
            NotFoundError: If an explicit model is unknown or disabled
            NoModelsAvailableError: If no model is enabled
            AllProvidersFailedError: With one entry, if the attempt failed
                before or during the stream
        """
        decision = self.explain(request)
        strategy_name = EXPLICIT_STRATEGY if request.model else decision.strategy.value
        config = self._registry.get(decision.top)
        if config is None:
            raise NotFoundError(f"Model not found: {decision.top}", model_id=decision.top)

        logger.info(
            f"Streaming request: strategy={strategy_name}, model={config.id}, "
            f"reason={decision.reason}"
        )

        adapter = self._adapter_for(config)
        try:
            async with aclosing(adapter.stream(self._adapter_request(request))) as chunks:
                async for chunk in chunks:
                    if chunk.done:
                        tokens = chunk.tokens or TokenUsage()
                        cost = self._costs.calculate(
                            config, tokens.input_tokens, tokens.output_tokens
                        )
                        self._stats.record(
                            config.id,
                            StatsSample(
                                success=True,
                                latency_ms=chunk.latency_ms or 0.0,
                                cost_delta=cost.total_cost_usd,
                            ),
                        )
                        chunk = replace(chunk, cost_usd=cost.total_cost_usd)
                    yield chunk
        except ProviderError as e:
            self._stats.record(config.id, StatsSample(success=False, latency_ms=e.latency_ms))
            logger.error(f"Stream from {config.id} failed: {e.kind.value}")
            raise AllProvidersFailedError([e]) from e

    async def test_all(self) -> list[TestResult]:
        """Test every registered model concurrently; see HealthChecker.check_all."""
        return await self._health.check_all()

    async def test_model(self, model_id: str) -> TestResult:
        """Test one model; raises NotFoundError if it is not registered."""
        return await self._health.check(model_id)

    # ─────────────────────────────────────────────────────────────────────────
    # Registry management
    # ─────────────────────────────────────────────────────────────────────────

    def add_model(self, config: ModelConfig) -> ModelConfig:
        """Register a model. Raises ValidationError on a duplicate id."""
        return self._registry.add(config)

    async def remove_model(self, model_id: str) -> bool:
        """Remove a model and close its cached adapter."""
        removed = self._registry.remove(model_id)
        adapter = self._adapters.pop(model_id, None)
        if adapter is not None:
            await adapter.aclose()
        return removed

    def enable_model(self, model_id: str) -> ModelConfig:
        return self._registry.enable(model_id)

    def disable_model(self, model_id: str) -> ModelConfig:
        return self._registry.disable(model_id)

    def list_models(self, enabled_only: bool = False) -> list[ModelConfig]:
        return self._registry.list(enabled_only=enabled_only)

    def get_model(self, model_id: str) -> ModelConfig | None:
        return self._registry.get(model_id)

    async def aclose(self) -> None:
        """Close every cached adapter."""
        adapters = list(self._adapters.values())
        self._adapters.clear()
        for adapter in adapters:
            await adapter.aclose()
        logger.info(f"Closed {len(adapters)} provider adapters")
