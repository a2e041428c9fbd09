"""
Routing Policy Tests

Validates the four ranking strategies, their fallbacks, and the reasons
they generate.

Test Categories:
1. TestPriorityPolicy
2. TestSpeedPolicy
3. TestCostPolicy
4. TestSmartPolicy
5. TestRankDispatch - Strategy table, empty candidates, purity
"""

import pytest

from model_gateway.errors import NoModelsAvailableError
from model_gateway.metrics import ModelPrice, PriceTable, StatsSample, StatsStore
from model_gateway.router import (
    RoutingStrategy,
    rank,
    rank_by_cost,
    rank_by_priority,
    rank_by_speed,
    rank_smart,
)
from tests.fixtures import make_config


def record_latencies(stats: StatsStore, model_id: str, *latencies: float) -> None:
    for latency in latencies:
        stats.record(model_id, StatsSample(success=True, latency_ms=latency))


class TestPriorityPolicy:
    """Tests for the priority strategy."""

    def test_ties_broken_by_insertion_order(self, three_models, stats):
        """A(1), B(5), C(1) inserted A, B, C ranks [A, C, B]."""
        decision = rank_by_priority(None, three_models, stats, PriceTable())

        assert decision.ranked_ids == ("model-a", "model-c", "model-b")
        assert decision.strategy == RoutingStrategy.PRIORITY

    def test_reason_names_priority(self, three_models, stats):
        decision = rank_by_priority(None, three_models, stats, PriceTable())

        assert "priority=1" in decision.reason
        assert "3 enabled models" in decision.reason


class TestSpeedPolicy:
    """Tests for the speed strategy."""

    def test_no_stats_equals_priority_order(self, three_models, stats):
        """With zero recorded statistics, speed ranks exactly like priority."""
        speed = rank_by_speed(None, three_models, stats, PriceTable())
        priority = rank_by_priority(None, three_models, stats, PriceTable())

        assert speed.ranked_ids == priority.ranked_ids
        assert "no latency samples" in speed.reason

    def test_fastest_first(self, three_models, stats):
        record_latencies(stats, "model-a", 900.0, 1100.0)
        record_latencies(stats, "model-b", 400.0, 424.0)
        record_latencies(stats, "model-c", 700.0)

        decision = rank_by_speed(None, three_models, stats, PriceTable())

        assert decision.ranked_ids == ("model-b", "model-c", "model-a")
        assert decision.reason.startswith("lowest average latency (412ms)")

    def test_unsampled_models_rank_last(self, three_models, stats):
        """Models without samples count as infinitely slow."""
        record_latencies(stats, "model-b", 3000.0)

        decision = rank_by_speed(None, three_models, stats, PriceTable())

        assert decision.ranked_ids[0] == "model-b"
        # Unsampled models keep priority order among themselves
        assert decision.ranked_ids[1:] == ("model-a", "model-c")
        assert "2 without samples" in decision.reason

    def test_failures_only_do_not_count_as_samples(self, three_models, stats):
        stats.record("model-b", StatsSample(success=False, latency_ms=1.0))

        decision = rank_by_speed(None, three_models, stats, PriceTable())

        assert decision.ranked_ids == ("model-a", "model-c", "model-b")


class TestCostPolicy:
    """Tests for the cost strategy."""

    def test_cheapest_first_unpriced_last(self, three_models, stats, prices):
        """model-b is cheapest, model-a priced, model-c unpriced."""
        decision = rank_by_cost(None, three_models, stats, prices)

        assert decision.ranked_ids == ("model-b", "model-a", "model-c")
        assert "$0.15/1M input" in decision.reason

    def test_ties_broken_by_priority(self, stats):
        models = [
            make_config("late-cheap", priority=9),
            make_config("early-cheap", priority=2),
        ]
        same = ModelPrice(input_per_1m=1.0, output_per_1m=1.0)
        prices = PriceTable(by_model={"late-cheap": same, "early-cheap": same})

        decision = rank_by_cost(None, models, stats, prices)

        assert decision.ranked_ids == ("early-cheap", "late-cheap")

    def test_output_price_breaks_input_ties(self, stats):
        models = [make_config("x", priority=1), make_config("y", priority=2)]
        prices = PriceTable(
            by_model={
                "x": ModelPrice(input_per_1m=1.0, output_per_1m=8.0),
                "y": ModelPrice(input_per_1m=1.0, output_per_1m=2.0),
            }
        )

        decision = rank_by_cost(None, models, stats, prices)

        assert decision.ranked_ids == ("y", "x")

    def test_provider_prices_apply(self, stats):
        models = [
            make_config("gpt", provider="openai"),
            make_config("ds", provider="deepseek"),
        ]
        prices = PriceTable(
            by_provider={
                "openai": ModelPrice(input_per_1m=2.5, output_per_1m=10.0),
                "deepseek": ModelPrice(input_per_1m=0.5, output_per_1m=2.0),
            }
        )

        decision = rank_by_cost(None, models, stats, prices)

        assert decision.top == "ds"

    def test_no_prices_degrades_to_priority(self, three_models, stats):
        decision = rank_by_cost(None, three_models, stats, PriceTable())

        assert decision.ranked_ids == ("model-a", "model-c", "model-b")
        assert "no prices configured" in decision.reason


class TestSmartPolicy:
    """Tests for the composite smart strategy."""

    def test_no_stats_degrades_to_priority(self, three_models, stats, prices):
        decision = rank_smart(None, three_models, stats, prices)

        assert decision.ranked_ids == ("model-a", "model-c", "model-b")
        assert decision.strategy == RoutingStrategy.SMART
        assert "no statistics recorded" in decision.reason

    def test_failing_model_demoted(self, stats):
        """A model that keeps failing loses to a healthy one despite priority."""
        models = [make_config("flaky", priority=1), make_config("steady", priority=2)]
        for _ in range(5):
            stats.record("flaky", StatsSample(success=False, latency_ms=100.0))
        record_latencies(stats, "steady", 300.0)

        decision = rank_smart(None, models, stats, PriceTable())

        assert decision.ranked_ids == ("steady", "flaky")
        assert "composite score" in decision.reason

    def test_fast_cheap_model_wins(self, stats):
        models = [make_config("slow-pricey", priority=1), make_config("fast-cheap", priority=2)]
        prices = PriceTable(
            by_model={
                "slow-pricey": ModelPrice(input_per_1m=3.0, output_per_1m=15.0),
                "fast-cheap": ModelPrice(input_per_1m=0.15, output_per_1m=0.6),
            }
        )
        record_latencies(stats, "slow-pricey", 2000.0)
        record_latencies(stats, "fast-cheap", 300.0)

        decision = rank_smart(None, models, stats, prices)

        assert decision.top == "fast-cheap"
        # Latency carries the largest weight, so it drives the decision
        assert "driven by average latency (300ms vs 2000ms for slow-pricey)" in decision.reason

    def test_scores_are_bounded(self, three_models, stats, prices):
        record_latencies(stats, "model-a", 100.0)
        record_latencies(stats, "model-b", 900.0)
        stats.record("model-c", StatsSample(success=False, latency_ms=1.0))

        decision = rank_smart(None, three_models, stats, prices)

        assert all(0.0 <= s <= 1.0 for s in decision.scores.values())

    def test_single_candidate(self, stats):
        record_latencies(stats, "only", 250.0)

        decision = rank_smart(None, [make_config("only")], stats, PriceTable())

        assert decision.ranked_ids == ("only",)
        assert "1 enabled model" in decision.reason


class TestRankDispatch:
    """Tests for the strategy table and shared behaviour."""

    @pytest.mark.parametrize("strategy", ["smart", "cost", "speed", "priority"])
    def test_rank_by_name(self, strategy, three_models, stats, prices):
        decision = rank(strategy, None, three_models, stats, prices)

        assert decision.strategy.value == strategy
        assert sorted(decision.ranked_ids) == ["model-a", "model-b", "model-c"]

    def test_unknown_strategy_rejected(self, three_models, stats, prices):
        with pytest.raises(ValueError):
            rank("random", None, three_models, stats, prices)

    @pytest.mark.parametrize("strategy", list(RoutingStrategy))
    def test_empty_candidates_raise(self, strategy, stats, prices):
        with pytest.raises(NoModelsAvailableError):
            rank(strategy, None, [], stats, prices)

    def test_policies_do_not_mutate_candidates(self, three_models, stats, prices):
        original = list(three_models)

        for strategy in RoutingStrategy:
            rank(strategy, None, three_models, stats, prices)

        assert three_models == original

    def test_decision_to_dict(self, three_models, stats, prices):
        data = rank("priority", None, three_models, stats, prices).to_dict()

        assert data["strategy"] == "priority"
        assert data["ranked_ids"] == ["model-a", "model-c", "model-b"]
        assert data["scores"]["model-b"] == 5.0
