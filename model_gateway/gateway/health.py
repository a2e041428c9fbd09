"""
Health Checker

Tests models with ProviderAdapter.test(): one short user message capped
at a few output tokens. Checks run concurrently and are isolated from each
other, so one slow or failing provider never aborts or delays the rest.
The checker keeps no state of its own.
"""

import asyncio
import logging
from typing import Callable

from model_gateway.errors import NotFoundError
from model_gateway.providers.base import ProviderAdapter, TestResult
from model_gateway.registry.models import ModelConfig, ModelRegistry

logger = logging.getLogger(__name__)


class HealthChecker:
    """
    Run connectivity checks against registered models.

    Args:
        registry: Registry whose models are tested
        adapter_for: Returns the adapter for a model configuration
    """

    def __init__(
        self,
        registry: ModelRegistry,
        adapter_for: Callable[[ModelConfig], ProviderAdapter],
    ):
        self._registry = registry
        self._adapter_for = adapter_for

    async def _run_test(self, config: ModelConfig) -> TestResult:
        try:
            return await self._adapter_for(config).test()
        except Exception as e:
            # Adapters report failures as values; this covers a broken adapter
            logger.exception(f"Connectivity test for {config.id} raised unexpectedly")
            return TestResult(
                model_id=config.id,
                success=False,
                latency_ms=0.0,
                error=f"{type(e).__name__}: {e}",
            )

    async def check(self, model_id: str) -> TestResult:
        """
        Test a single model.

        Raises:
            NotFoundError: If the model is not registered
        """
        config = self._registry.get(model_id)
        if config is None:
            raise NotFoundError(f"Model not found: {model_id}", model_id=model_id)
        return await self._run_test(config)

    async def check_all(self) -> list[TestResult]:
        """
        Test every registered model concurrently.

        Disabled models are tested too, so an operator can verify a model
        before enabling it.

        Returns:
            One TestResult per model, in registry order
        """
        models = self._registry.list()
        if not models:
            return []

        logger.info(f"Testing {len(models)} models")
        results = await asyncio.gather(*(self._run_test(m) for m in models))

        passed = sum(1 for r in results if r.success)
        logger.info(f"Model tests complete: {passed}/{len(results)} passed")
        return list(results)
