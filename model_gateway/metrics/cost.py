"""
Cost Calculator for Model Inference

Prices are configuration-supplied: a PriceTable holds per-model entries
that take precedence over per-provider entries. The CostCalculator turns
token usage into a USD figure for the model that served a request, and the
cost routing policy ranks candidates by the same table.
"""

from dataclasses import dataclass

from pydantic import BaseModel, Field

from model_gateway.registry.models import ModelConfig


class ModelPrice(BaseModel):
    """Price of one model in USD per 1M tokens."""

    input_per_1m: float = Field(..., ge=0, description="USD per 1M input tokens")
    output_per_1m: float = Field(..., ge=0, description="USD per 1M output tokens")


class PriceTable:
    """
    Per-model and per-provider price lookup.

    Example:
        prices = PriceTable(
            by_model={"gpt-4o-mini": ModelPrice(input_per_1m=0.15, output_per_1m=0.6)},
            by_provider={"deepseek": ModelPrice(input_per_1m=0.5, output_per_1m=2)},
        )
        price = prices.lookup(model_config)  # None when unpriced
    """

    def __init__(
        self,
        by_model: dict[str, ModelPrice] | None = None,
        by_provider: dict[str, ModelPrice] | None = None,
    ):
        self._by_model: dict[str, ModelPrice] = dict(by_model or {})
        self._by_provider: dict[str, ModelPrice] = dict(by_provider or {})

    @classmethod
    def from_dict(cls, data: dict | None) -> "PriceTable":
        """
        Build a table from the "prices" section of a models file.

        Expected shape:
            {"models": {id: {input_per_1m, output_per_1m}},
             "providers": {provider: {input_per_1m, output_per_1m}}}
        """
        data = data or {}
        return cls(
            by_model={
                key: ModelPrice.model_validate(value)
                for key, value in (data.get("models") or {}).items()
            },
            by_provider={
                key.lower(): ModelPrice.model_validate(value)
                for key, value in (data.get("providers") or {}).items()
            },
        )

    def lookup(self, model: ModelConfig) -> ModelPrice | None:
        """Return the price for a model, or None if neither table prices it."""
        price = self._by_model.get(model.id)
        if price is None:
            price = self._by_provider.get(model.provider.value)
        return price

    def set_model_price(self, model_id: str, price: ModelPrice) -> None:
        self._by_model[model_id] = price

    def set_provider_price(self, provider: str, price: ModelPrice) -> None:
        self._by_provider[provider.lower()] = price

    def to_dict(self) -> dict:
        return {
            "models": {k: v.model_dump() for k, v in self._by_model.items()},
            "providers": {k: v.model_dump() for k, v in self._by_provider.items()},
        }


@dataclass
class CostBreakdown:
    """
    Cost breakdown for a single completion.

    Attributes:
        input_tokens: Number of input tokens processed
        output_tokens: Number of output tokens generated
        input_cost_usd: Cost for input tokens in USD
        output_cost_usd: Cost for output tokens in USD
        total_cost_usd: Total cost (input + output)
        priced: False when the model has no price entry (costs are zero)
        model_used: ID of the model that processed the request
    """

    input_tokens: int
    output_tokens: int
    input_cost_usd: float
    output_cost_usd: float
    total_cost_usd: float
    priced: bool
    model_used: str

    @property
    def total_tokens(self) -> int:
        """Total tokens processed (input + output)."""
        return self.input_tokens + self.output_tokens


class CostCalculator:
    """
    Calculate inference costs from a PriceTable.

    The calculator only reads the table, so one instance is shared by all
    concurrent dispatches.

    Example:
        calculator = CostCalculator(prices)
        cost = calculator.calculate(model, input_tokens=150, output_tokens=50)
        print(f"${cost.total_cost_usd:.6f}")
    """

    def __init__(self, prices: PriceTable):
        self._prices = prices

    @property
    def prices(self) -> PriceTable:
        return self._prices

    def calculate(
        self, model: ModelConfig, input_tokens: int, output_tokens: int
    ) -> CostBreakdown:
        """
        Calculate cost breakdown for a completion.

        Args:
            model: Model that served the request
            input_tokens: Number of input tokens used
            output_tokens: Number of output tokens generated

        Returns:
            CostBreakdown; all costs are zero for unpriced models
        """
        price = self._prices.lookup(model)
        if price is None:
            return CostBreakdown(
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                input_cost_usd=0.0,
                output_cost_usd=0.0,
                total_cost_usd=0.0,
                priced=False,
                model_used=model.id,
            )

        input_cost = (input_tokens / 1_000_000) * price.input_per_1m
        output_cost = (output_tokens / 1_000_000) * price.output_per_1m

        return CostBreakdown(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            input_cost_usd=input_cost,
            output_cost_usd=output_cost,
            total_cost_usd=input_cost + output_cost,
            priced=True,
            model_used=model.id,
        )
