"""
Routing Policies - pure ranking functions over enabled models.

Every policy has the same signature:

    policy(request, candidates, stats, prices) -> RoutingDecision

and never mutates its inputs. Candidates arrive in registry insertion
order; Python's stable sort makes insertion order the final tie-breaker.

Strategies:
    priority: ascending configured priority
    speed:    ascending average latency from the stats window; unsampled
              models rank after sampled ones, so with no samples at all the
              order equals the priority order
    cost:     ascending configured price (input, then output per 1M tokens),
              ties broken by priority; unpriced models rank last
    smart:    lowest weighted composite of normalized latency, error rate,
              price and priority (see SMART_WEIGHTS); priority order when
              no candidate has statistics

The reason string always names the figure that decided the top pick.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable

from model_gateway.errors import NoModelsAvailableError
from model_gateway.metrics.cost import PriceTable
from model_gateway.metrics.store import StatsStore
from model_gateway.registry.models import ModelConfig

if TYPE_CHECKING:
    from model_gateway.schemas.gateway import CompletionRequest


class RoutingStrategy(str, Enum):
    """Available routing strategies."""

    SMART = "smart"
    COST = "cost"
    SPEED = "speed"
    PRIORITY = "priority"


# Composite score weights for the smart strategy. Each term is normalized to
# 0.0 (best among candidates) .. 1.0 (worst) before weighting.
SMART_WEIGHTS: dict[str, float] = {
    "latency": 0.35,
    "error_rate": 0.30,
    "cost": 0.20,
    "priority": 0.15,
}


@dataclass(frozen=True)
class RoutingDecision:
    """
    Result of a routing decision.

    Attributes:
        strategy: Strategy that produced the ranking
        ranked_ids: Candidate model ids, best first
        reason: Human-readable explanation of the top pick
        scores: Per-model sort figure (latency, price or composite score)
    """

    strategy: RoutingStrategy
    ranked_ids: tuple[str, ...]
    reason: str
    scores: dict[str, float | None] = field(default_factory=dict)

    @property
    def top(self) -> str:
        return self.ranked_ids[0]

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "strategy": self.strategy.value,
            "ranked_ids": list(self.ranked_ids),
            "reason": self.reason,
            "scores": {
                k: (round(v, 4) if v is not None else None)
                for k, v in self.scores.items()
            },
        }


Policy = Callable[
    ["CompletionRequest | None", list[ModelConfig], StatsStore, PriceTable],
    RoutingDecision,
]


def _require_candidates(candidates: list[ModelConfig]) -> None:
    if not candidates:
        raise NoModelsAvailableError("No enabled models available for routing")


def _plural(n: int) -> str:
    return f"{n} enabled model" + ("" if n == 1 else "s")


def _min_max(values: dict[str, float | None]) -> dict[str, float]:
    """
    Normalize values to 0.0..1.0 across candidates.

    Missing values normalize to 1.0 (worst). When every known value is
    equal, known values normalize to 0.0.
    """
    known = [v for v in values.values() if v is not None]
    if not known:
        return {k: 1.0 for k in values}
    low, high = min(known), max(known)
    span = high - low
    return {
        k: 1.0 if v is None else ((v - low) / span if span > 0 else 0.0)
        for k, v in values.items()
    }


def rank_by_priority(
    request: "CompletionRequest | None",
    candidates: list[ModelConfig],
    stats: StatsStore,
    prices: PriceTable,
) -> RoutingDecision:
    """Rank by ascending configured priority; ties keep insertion order."""
    _require_candidates(candidates)
    ranked = sorted(candidates, key=lambda m: m.priority)
    top = ranked[0]
    tied = sum(1 for m in candidates if m.priority == top.priority)
    reason = (
        f"highest configured priority (priority={top.priority}) "
        f"among {_plural(len(candidates))}"
    )
    if tied > 1:
        reason += f"; {tied} models share it, earliest registered wins"
    return RoutingDecision(
        strategy=RoutingStrategy.PRIORITY,
        ranked_ids=tuple(m.id for m in ranked),
        reason=reason,
        scores={m.id: float(m.priority) for m in ranked},
    )


def rank_by_speed(
    request: "CompletionRequest | None",
    candidates: list[ModelConfig],
    stats: StatsStore,
    prices: PriceTable,
) -> RoutingDecision:
    """Rank by ascending average latency; unsampled models count as +inf."""
    _require_candidates(candidates)
    latencies = {m.id: stats.avg_latency(m.id) for m in candidates}
    sampled = [m for m in candidates if latencies[m.id] is not None]

    ranked = sorted(
        candidates,
        key=lambda m: (
            latencies[m.id] if latencies[m.id] is not None else math.inf,
            m.priority,
        ),
    )
    top = ranked[0]

    if not sampled:
        reason = (
            f"no latency samples for any of {_plural(len(candidates))}; "
            f"fell back to configured priority (priority={top.priority})"
        )
    else:
        reason = (
            f"lowest average latency ({latencies[top.id]:.0f}ms) "
            f"among {_plural(len(candidates))}"
        )
        unsampled = len(candidates) - len(sampled)
        if unsampled:
            reason += f"; {unsampled} without samples ranked last"

    return RoutingDecision(
        strategy=RoutingStrategy.SPEED,
        ranked_ids=tuple(m.id for m in ranked),
        reason=reason,
        scores=latencies,
    )


def rank_by_cost(
    request: "CompletionRequest | None",
    candidates: list[ModelConfig],
    stats: StatsStore,
    prices: PriceTable,
) -> RoutingDecision:
    """Rank by ascending configured price; ties broken by priority."""
    _require_candidates(candidates)
    table = {m.id: prices.lookup(m) for m in candidates}

    def sort_key(m: ModelConfig):
        price = table[m.id]
        if price is None:
            return (math.inf, math.inf, m.priority)
        return (price.input_per_1m, price.output_per_1m, m.priority)

    ranked = sorted(candidates, key=sort_key)
    top = ranked[0]
    top_price = table[top.id]

    if top_price is None:
        reason = (
            f"no prices configured for any of {_plural(len(candidates))}; "
            f"fell back to configured priority (priority={top.priority})"
        )
    else:
        reason = (
            f"lowest price (${top_price.input_per_1m:g}/1M input, "
            f"${top_price.output_per_1m:g}/1M output tokens) "
            f"among {_plural(len(candidates))}"
        )

    return RoutingDecision(
        strategy=RoutingStrategy.COST,
        ranked_ids=tuple(m.id for m in ranked),
        reason=reason,
        scores={
            m_id: (price.input_per_1m if price is not None else None)
            for m_id, price in table.items()
        },
    )


_SMART_LABELS = {
    "latency": "average latency",
    "error_rate": "error rate",
    "cost": "price",
    "priority": "configured priority",
}


def rank_smart(
    request: "CompletionRequest | None",
    candidates: list[ModelConfig],
    stats: StatsStore,
    prices: PriceTable,
) -> RoutingDecision:
    """
    Rank by weighted composite score (lower is better).

    score = 0.35 * latency + 0.30 * error_rate + 0.20 * cost + 0.15 * priority

    Latency, cost and priority are min-max normalized across the candidates;
    error rate is already a 0..1 fraction. Unsampled latency and unpriced
    cost count as worst (1.0).
    """
    _require_candidates(candidates)
    snapshots = {m.id: stats.snapshot(m.id) for m in candidates}

    if not any(s.total_requests for s in snapshots.values()):
        fallback = rank_by_priority(request, candidates, stats, prices)
        top = next(m for m in candidates if m.id == fallback.top)
        return RoutingDecision(
            strategy=RoutingStrategy.SMART,
            ranked_ids=fallback.ranked_ids,
            reason=(
                f"no statistics recorded for any of {_plural(len(candidates))}; "
                f"fell back to configured priority (priority={top.priority})"
            ),
            scores=fallback.scores,
        )

    blended_prices: dict[str, float | None] = {}
    for m in candidates:
        price = prices.lookup(m)
        blended_prices[m.id] = (
            price.input_per_1m + price.output_per_1m if price is not None else None
        )

    components = {
        "latency": _min_max({m.id: snapshots[m.id].avg_latency_ms for m in candidates}),
        "error_rate": {m.id: snapshots[m.id].error_rate for m in candidates},
        "cost": _min_max(blended_prices),
        "priority": _min_max({m.id: float(m.priority) for m in candidates}),
    }

    scores = {
        m.id: sum(SMART_WEIGHTS[name] * components[name][m.id] for name in SMART_WEIGHTS)
        for m in candidates
    }
    ranked = sorted(candidates, key=lambda m: (scores[m.id], m.priority))
    top = ranked[0]

    reason = f"lowest composite score ({scores[top.id]:.3f}) among {_plural(len(candidates))}"
    if len(ranked) > 1:
        runner_up = ranked[1]
        # The term contributing most to the gap between first and second place
        gaps = {
            name: SMART_WEIGHTS[name]
            * (components[name][runner_up.id] - components[name][top.id])
            for name in SMART_WEIGHTS
        }
        driver = max(gaps, key=gaps.get)
        if gaps[driver] > 0:
            reason += (
                f", driven by {_SMART_LABELS[driver]} "
                f"({_describe(driver, top, snapshots, blended_prices)} vs "
                f"{_describe(driver, runner_up, snapshots, blended_prices)} "
                f"for {runner_up.id})"
            )

    return RoutingDecision(
        strategy=RoutingStrategy.SMART,
        ranked_ids=tuple(m.id for m in ranked),
        reason=reason,
        scores=scores,
    )


def _describe(
    component: str,
    model: ModelConfig,
    snapshots: dict,
    blended_prices: dict[str, float | None],
) -> str:
    if component == "latency":
        value = snapshots[model.id].avg_latency_ms
        return f"{value:.0f}ms" if value is not None else "no samples"
    if component == "error_rate":
        return f"{snapshots[model.id].error_rate:.0%}"
    if component == "cost":
        value = blended_prices[model.id]
        return f"${value:g}/1M" if value is not None else "unpriced"
    return f"priority={model.priority}"


POLICIES: dict[RoutingStrategy, Policy] = {
    RoutingStrategy.SMART: rank_smart,
    RoutingStrategy.COST: rank_by_cost,
    RoutingStrategy.SPEED: rank_by_speed,
    RoutingStrategy.PRIORITY: rank_by_priority,
}


def rank(
    strategy: RoutingStrategy | str,
    request: "CompletionRequest | None",
    candidates: list[ModelConfig],
    stats: StatsStore,
    prices: PriceTable,
) -> RoutingDecision:
    """
    Rank candidates with the named strategy.

    Raises:
        ValueError: If the strategy is unknown
        NoModelsAvailableError: If candidates is empty
    """
    policy = POLICIES[RoutingStrategy(strategy)]
    return policy(request, candidates, stats, prices)
