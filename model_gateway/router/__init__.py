"""
Router module: Ranking candidate models for a request.

Policies are pure functions of (request, candidates, stats, prices); the
gateway core calls them and dispatches in the returned order.

Public API:
- RoutingStrategy: Enum of strategies (smart, cost, speed, priority)
- RoutingDecision: Ranked ids plus a human-readable reason
- rank(): Dispatch to the named strategy
- SMART_WEIGHTS: Composite score weights for the smart strategy
"""

from model_gateway.router.policies import (
    POLICIES,
    SMART_WEIGHTS,
    RoutingDecision,
    RoutingStrategy,
    rank,
    rank_by_cost,
    rank_by_priority,
    rank_by_speed,
    rank_smart,
)

__all__ = [
    # Types
    "RoutingStrategy",
    "RoutingDecision",
    # Policies
    "rank",
    "rank_by_priority",
    "rank_by_speed",
    "rank_by_cost",
    "rank_smart",
    "POLICIES",
    "SMART_WEIGHTS",
]
