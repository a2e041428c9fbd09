"""
Metrics Module: Prices, Cost Tracking, and Routing Statistics

Components:
    ModelPrice: USD per 1M input/output tokens
    PriceTable: Per-model and per-provider price lookup
    CostCalculator: Turn token usage into a CostBreakdown
    StatsStore: Thread-safe rolling per-model latency/error/cost statistics
    StatsSample: One dispatch outcome recorded into the store
    StatsSnapshot: Consistent point-in-time view of one model's statistics

The StatsReporter (GET /stats responses) lives in
model_gateway.metrics.reporter, which depends on the API schemas.

Usage:
    from model_gateway.metrics import StatsStore, StatsSample

    store = StatsStore(window_size=20)
    store.record("gpt-4o-mini", StatsSample(success=True, latency_ms=412.0))
    store.avg_latency("gpt-4o-mini")  # 412.0
"""

# Cost calculation
from model_gateway.metrics.cost import (
    CostBreakdown,
    CostCalculator,
    ModelPrice,
    PriceTable,
)

# Storage
from model_gateway.metrics.store import (
    StatsEntry,
    StatsSample,
    StatsSnapshot,
    StatsStore,
)


__all__ = [
    # Cost calculation
    "ModelPrice",
    "PriceTable",
    "CostCalculator",
    "CostBreakdown",
    # Storage
    "StatsStore",
    "StatsEntry",
    "StatsSample",
    "StatsSnapshot",
]
