"""Cost calculation for token usage, with per-model pricing and currency conversion."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional, Protocol

_SCALE = 1e6
_PER_MILLION = 1_000_000


@dataclass(frozen=True)
class ModelPricing:
    """Prices in USD per million tokens."""

    input: float = 0.0
    output: float = 0.0
    cache_creation: float = 0.0
    cache_read: float = 0.0


class PricingProvider(Protocol):
    """A source of pricing looked up per model; raises if a model is unknown."""

    def get_pricing(self, model: str) -> ModelPricing: ...


@dataclass
class CostResult:
    """Cost of one usage entry, broken down by token kind."""

    model: str = ""
    input_cost: float = 0.0
    output_cost: float = 0.0
    cache_creation_cost: float = 0.0
    cache_read_cost: float = 0.0
    total_cost: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    total_tokens: int = 0


@dataclass
class BatchCostResult:
    """Costs of many entries, in total, per model and per entry."""

    total_cost: float = 0.0
    total_tokens: int = 0
    entry_count: int = 0
    model_results: dict[str, CostResult] = field(default_factory=dict)
    details: list[CostResult] = field(default_factory=list)


def _round_half_away(value: float) -> float:
    truncated = math.trunc(value)
    if abs(value - truncated) >= 0.5:
        truncated += math.copysign(1.0, value)
    return float(truncated)


def round_cost(cost: float) -> float:
    """Round a cost to 6 decimal places, halves away from zero."""
    rounded = _round_half_away(cost * _SCALE) / _SCALE
    return _round_half_away(rounded * _SCALE) / _SCALE


def token_cost(tokens: int, rate_per_million: float) -> float:
    """Cost of ``tokens`` at a price per million; non-positive counts cost nothing."""
    if tokens <= 0:
        return 0.0
    return tokens * rate_per_million / _PER_MILLION


@dataclass
class _TokenUsage:
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    total_tokens: int = 0


class CostCalculator:
    """Computes costs from a pricing table or a pricing provider.

    Entries are any objects with ``model``, ``input_tokens``, ``output_tokens``,
    ``cache_creation_tokens``, ``cache_read_tokens`` and ``total_tokens``.
    Models missing from the table are priced with ``fallback``.
    """

    def __init__(
        self,
        pricing: Optional[Mapping[str, ModelPricing]] = None,
        rates: Optional[Mapping[str, float]] = None,
        provider: Optional[PricingProvider] = None,
        fallback: Optional[ModelPricing] = None,
    ) -> None:
        self.pricing: dict[str, ModelPricing] = dict(pricing or {})
        self.rates: dict[str, float] = dict(rates) if rates is not None else {"USD": 1.0}
        self.provider = provider
        self.fallback = fallback

    def _pricing_for(self, model: str) -> ModelPricing:
        if self.provider is not None:
            return self.provider.get_pricing(model)
        pricing = self.pricing.get(model)
        if pricing is not None:
            return pricing
        if self.fallback is not None:
            return self.fallback
        raise KeyError(f"no pricing for model: {model}")

    def calculate(self, entry: Any) -> CostResult:
        """Cost of one entry; raise ValueError if it names no model."""
        model = getattr(entry, "model", "") or ""
        if not model:
            raise ValueError("model name cannot be empty")

        pricing = self._pricing_for(model)
        input_tokens = getattr(entry, "input_tokens", 0) or 0
        output_tokens = getattr(entry, "output_tokens", 0) or 0
        creation_tokens = getattr(entry, "cache_creation_tokens", 0) or 0
        read_tokens = getattr(entry, "cache_read_tokens", 0) or 0

        input_cost = token_cost(input_tokens, pricing.input)
        output_cost = token_cost(output_tokens, pricing.output)
        creation_cost = token_cost(creation_tokens, pricing.cache_creation)
        read_cost = token_cost(read_tokens, pricing.cache_read)
        total = input_cost + output_cost + creation_cost + read_cost

        return CostResult(
            model=model,
            input_cost=round_cost(input_cost),
            output_cost=round_cost(output_cost),
            cache_creation_cost=round_cost(creation_cost),
            cache_read_cost=round_cost(read_cost),
            total_cost=round_cost(total),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cache_creation_tokens=creation_tokens,
            cache_read_tokens=read_tokens,
            total_tokens=getattr(entry, "total_tokens", 0) or 0,
        )

    def calculate_batch(self, entries: list[Any]) -> BatchCostResult:
        """Costs of several entries; raise ValueError if there are none."""
        if not entries:
            raise ValueError("entries slice cannot be empty")

        result = BatchCostResult(entry_count=len(entries))
        for entry in entries:
            cost = self.calculate(entry)
            result.details.append(cost)
            result.total_cost += cost.total_cost
            result.total_tokens += cost.total_tokens

            aggregate = result.model_results.get(cost.model)
            if aggregate is None:
                result.model_results[cost.model] = replace(cost)
                continue
            aggregate.input_tokens += cost.input_tokens
            aggregate.output_tokens += cost.output_tokens
            aggregate.cache_creation_tokens += cost.cache_creation_tokens
            aggregate.cache_read_tokens += cost.cache_read_tokens
            aggregate.total_tokens += cost.total_tokens
            aggregate.input_cost += cost.input_cost
            aggregate.output_cost += cost.output_cost
            aggregate.cache_creation_cost += cost.cache_creation_cost
            aggregate.cache_read_cost += cost.cache_read_cost
            aggregate.total_cost += cost.total_cost

        result.total_cost = round_cost(result.total_cost)
        return result

    def calculate_with_currency(self, entry: Any, currency: str) -> CostResult:
        """Cost of one entry converted to ``currency``; raise ValueError if unknown."""
        result = self.calculate(entry)
        rate = self.rates.get(currency)
        if rate is None:
            raise ValueError("unsupported currency: " + currency)
        result.input_cost = round_cost(result.input_cost * rate)
        result.output_cost = round_cost(result.output_cost * rate)
        result.cache_creation_cost = round_cost(result.cache_creation_cost * rate)
        result.cache_read_cost = round_cost(result.cache_read_cost * rate)
        result.total_cost = round_cost(result.total_cost * rate)
        return result

    def get_cost_for_tokens(
        self,
        model: str,
        input_tokens: int,
        output_tokens: int,
        cache_creation_tokens: int,
        cache_read_tokens: int,
    ) -> float:
        """Total cost of the given token counts for ``model``."""
        usage = _TokenUsage(
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cache_creation_tokens=cache_creation_tokens,
            cache_read_tokens=cache_read_tokens,
            total_tokens=input_tokens + output_tokens + cache_creation_tokens + cache_read_tokens,
        )
        return self.calculate(usage).total_cost

    def update_pricing(self, model: str, pricing: ModelPricing) -> None:
        """Set the pricing used for ``model``."""
        self.pricing[model] = pricing

    def update_currency_rate(self, currency: str, rate: float) -> None:
        """Set a conversion rate from USD; raise ValueError unless it is positive."""
        if rate <= 0:
            raise ValueError("currency rate must be positive")
        self.rates[currency] = rate

    def supported_currencies(self) -> list[str]:
        """Currencies that costs can be converted to."""
        return list(self.rates)

    def pricing_for_model(self, model: str) -> Optional[ModelPricing]:
        """The pricing table's entry for ``model``, or ``None``."""
        return self.pricing.get(model)

    def estimate_cost_from_rate(self, cost_per_hour: float, duration: float) -> float:
        """Cost of ``duration`` hours at ``cost_per_hour``."""
        return round_cost(cost_per_hour * duration)

    def compare_costs(
        self,
        input_tokens: int,
        output_tokens: int,
        cache_creation_tokens: int,
        cache_read_tokens: int,
        model1: str,
        model2: str,
    ) -> dict[str, float]:
        """Costs of the same usage under two models, with their difference."""
        tokens = (input_tokens, output_tokens, cache_creation_tokens, cache_read_tokens)
        cost1 = self.get_cost_for_tokens(model1, *tokens)
        cost2 = self.get_cost_for_tokens(model2, *tokens)
        return {
            model1: cost1,
            model2: cost2,
            "difference": round_cost(abs(cost1 - cost2)),
            "savings": round_cost(max(cost1, cost2) - min(cost1, cost2)),
        }