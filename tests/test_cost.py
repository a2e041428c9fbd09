"""
Cost Calculation Tests

Validates price lookup precedence and per-completion cost calculation.

Test Categories:
1. TestPriceTable - Model/provider precedence, parsing, serialization
2. TestCostBreakdown - CostBreakdown dataclass validation
3. TestCostCalculator - Per-completion cost calculation
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from model_gateway.metrics.cost import CostBreakdown, CostCalculator, ModelPrice, PriceTable
from tests.fixtures import make_config


class TestPriceTable:
    """Tests for PriceTable lookups."""

    def test_model_entry_wins_over_provider_entry(self):
        """A per-model price overrides the provider price."""
        table = PriceTable(
            by_model={"gpt-4o-mini": ModelPrice(input_per_1m=0.15, output_per_1m=0.6)},
            by_provider={"openai": ModelPrice(input_per_1m=5.0, output_per_1m=15.0)},
        )

        price = table.lookup(make_config("gpt-4o-mini", provider="openai"))

        assert price.input_per_1m == 0.15

    def test_provider_entry_used_as_fallback(self):
        """Models without their own entry use the provider price."""
        table = PriceTable(
            by_provider={"deepseek": ModelPrice(input_per_1m=0.5, output_per_1m=2.0)}
        )

        price = table.lookup(make_config("deepseek-reasoner", provider="deepseek"))

        assert price.output_per_1m == 2.0

    def test_unpriced_model_returns_none(self):
        """Lookup returns None when neither table prices the model."""
        assert PriceTable().lookup(make_config("mystery")) is None

    def test_from_dict(self):
        """Parse the prices section of a models file."""
        table = PriceTable.from_dict(
            {
                "models": {"claude-3-5-sonnet": {"input_per_1m": 3, "output_per_1m": 15}},
                "providers": {"DeepSeek": {"input_per_1m": 0.5, "output_per_1m": 2}},
            }
        )

        assert table.lookup(make_config("claude-3-5-sonnet", provider="anthropic")).input_per_1m == 3
        # Provider keys are case-insensitive
        assert table.lookup(make_config("ds", provider="deepseek")).input_per_1m == 0.5

    def test_from_dict_none(self):
        """An absent prices section yields an empty table."""
        assert PriceTable.from_dict(None).to_dict() == {"models": {}, "providers": {}}

    def test_negative_price_rejected(self):
        """Prices must be non-negative."""
        with pytest.raises(PydanticValidationError):
            ModelPrice(input_per_1m=-1.0, output_per_1m=0.0)

    def test_set_prices(self):
        """Prices can be updated after construction."""
        table = PriceTable()
        table.set_provider_price("OpenAI", ModelPrice(input_per_1m=1.0, output_per_1m=2.0))
        table.set_model_price("gpt-4o", ModelPrice(input_per_1m=2.5, output_per_1m=10.0))

        assert table.lookup(make_config("gpt-4o")).input_per_1m == 2.5
        assert table.lookup(make_config("gpt-4.1")).input_per_1m == 1.0
        assert table.to_dict()["providers"]["openai"]["output_per_1m"] == 2.0


class TestCostBreakdown:
    """Tests for CostBreakdown dataclass."""

    def test_total_tokens_property(self):
        """Verify total_tokens property calculates correctly."""
        breakdown = CostBreakdown(
            input_tokens=100,
            output_tokens=50,
            input_cost_usd=0.0001,
            output_cost_usd=0.00005,
            total_cost_usd=0.00015,
            priced=True,
            model_used="gpt-4o-mini",
        )

        assert breakdown.total_tokens == 150


class TestCostCalculator:
    """Tests for CostCalculator."""

    @pytest.fixture
    def calculator(self):
        return CostCalculator(
            PriceTable(
                by_model={
                    "gpt-4o-mini": ModelPrice(input_per_1m=0.15, output_per_1m=0.6),
                    "claude-3-5-sonnet": ModelPrice(input_per_1m=3.0, output_per_1m=15.0),
                }
            )
        )

    def test_calculate_cost(self, calculator):
        """Cost is tokens / 1M times the per-1M price, summed."""
        cost = calculator.calculate(make_config("gpt-4o-mini"), 1_000_000, 500_000)

        assert cost.input_cost_usd == pytest.approx(0.15)
        assert cost.output_cost_usd == pytest.approx(0.3)
        assert cost.total_cost_usd == pytest.approx(0.45)
        assert cost.priced is True
        assert cost.model_used == "gpt-4o-mini"

    def test_small_request_cost(self, calculator):
        """Typical short completion costs fractions of a cent."""
        cost = calculator.calculate(
            make_config("claude-3-5-sonnet", provider="anthropic"), 150, 50
        )

        expected = (150 * 3.0 + 50 * 15.0) / 1_000_000
        assert cost.total_cost_usd == pytest.approx(expected)

    def test_unpriced_model_costs_zero(self, calculator):
        """Unpriced models cost nothing and are flagged as unpriced."""
        cost = calculator.calculate(make_config("local-llama"), 1000, 1000)

        assert cost.total_cost_usd == 0.0
        assert cost.priced is False
        assert cost.total_tokens == 2000

    def test_zero_tokens(self, calculator):
        """Zero tokens cost nothing."""
        cost = calculator.calculate(make_config("gpt-4o-mini"), 0, 0)

        assert cost.total_cost_usd == 0.0
        assert cost.priced is True
