import math
from dataclasses import dataclass
from typing import Any

from factoriolp.parsing import parse_number, parse_optional_number


### Results ###


@dataclass
class ItemResult:
    name: str
    amount: float | None = None
    amount_min: float | None = None
    amount_max: float | None = None
    probability: float = 1.0
    ignored_by_stats: float | None = None
    ignored_by_productivity: float | None = None
    extra_count_fraction: float = 0.0

    def ignored_amount(self) -> float:
        return math.floor(_ignored(self.ignored_by_productivity, self.ignored_by_stats))

    def normalized_output(self) -> tuple[float, float]:
        """Expected units per cycle, and the units per cycle productivity acts on."""
        p = self.probability
        e = self.extra_count_fraction
        d = self.ignored_amount()

        if self.amount is not None:
            a = math.floor(self.amount)
            base = a * p + e
            bonus = (
                max((a - d) * p * (1.0 - e), 0.0)
                + max((a + 1.0 - d) * p * e, 0.0)
                + max((1.0 - d) * (1.0 - p) * e, 0.0)
            )
            return (base, bonus)

        low = math.floor(self.amount_min or 0.0)
        high = math.floor(self.amount_max) if self.amount_max is not None else low
        high = max(high, low)

        base = (low + high) / 2.0 * p + e
        bonus = (
            _discrete_positive_mean(low, high, d) * p * (1.0 - e)
            + _discrete_positive_mean(low + 1, high + 1, d) * p * e
            + max((1.0 - d) * (1.0 - p) * e, 0.0)
        )
        return (base, bonus)


@dataclass
class FluidResult:
    name: str
    amount: float | None = None
    amount_min: float | None = None
    amount_max: float | None = None
    probability: float = 1.0
    ignored_by_stats: float | None = None
    ignored_by_productivity: float | None = None
    temperature: float | None = None

    def ignored_amount(self) -> float:
        return _ignored(self.ignored_by_productivity, self.ignored_by_stats)

    def normalized_output(self) -> tuple[float, float]:
        p = self.probability
        d = self.ignored_amount()

        if self.amount is not None:
            return _fluid_fixed(self.amount, p, d)

        low = self.amount_min or 0.0
        high = self.amount_max if self.amount_max is not None else low
        high = max(high, low)
        if high == low:
            return _fluid_fixed(low, p, d)

        base = (low + high) / 2.0 * p
        start = max(low, d)
        if start >= high:
            bonus = 0.0
        else:
            bonus = ((high - d) ** 2 - (start - d) ** 2) / 2.0 / (high - low) * p
        return (base, bonus)


RecipeResult = ItemResult | FluidResult


def _ignored(by_productivity: float | None, by_stats: float | None) -> float:
    if by_productivity is not None:
        return by_productivity
    if by_stats is not None:
        return by_stats
    return 0.0


def _discrete_positive_mean(low: int, high: int, offset: float) -> float:
    # mean of max(k - offset, 0) over the integers low..high
    start = max(low, math.ceil(offset))
    if start > high:
        return 0.0
    terms = high - start + 1
    total = ((start - offset) + (high - offset)) * terms / 2.0
    return total / (high - low + 1)


def _fluid_fixed(amount: float, probability: float, ignored: float) -> tuple[float, float]:
    return (amount * probability, max((amount - ignored) * probability, 0.0))


### Parsing ###


def parse_result(entry: dict[str, Any]) -> RecipeResult:
    type_ = entry.get("type", "item")
    name = entry["name"]
    common = dict(
        name=name,
        amount=parse_optional_number(entry.get("amount"), f"{name}.amount"),
        amount_min=parse_optional_number(entry.get("amount_min"), f"{name}.amount_min"),
        amount_max=parse_optional_number(entry.get("amount_max"), f"{name}.amount_max"),
        probability=parse_number(entry.get("probability", 1.0), f"{name}.probability"),
        ignored_by_stats=parse_optional_number(
            entry.get("ignored_by_stats"), f"{name}.ignored_by_stats"
        ),
        ignored_by_productivity=parse_optional_number(
            entry.get("ignored_by_productivity"), f"{name}.ignored_by_productivity"
        ),
    )
    if type_ == "item":
        return ItemResult(
            extra_count_fraction=parse_number(
                entry.get("extra_count_fraction", 0.0), f"{name}.extra_count_fraction"
            ),
            **common,
        )
    assert type_ == "fluid", f"unknown result type {type_!r} for {name}"
    return FluidResult(
        temperature=parse_optional_number(entry.get("temperature"), f"{name}.temperature"),
        **common,
    )
