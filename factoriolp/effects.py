from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Any, Iterable, Sequence

from factoriolp.parsing import parse_number

if TYPE_CHECKING:
    from factoriolp.context import GameDataContext
    from factoriolp.prototypes import EffectReceiver, QualityPrototype


### Constants ###


EFFECT_MIN = -0.8
BONUS_EFFECT_MIN = 0.0
EFFECT_MAX = 327.67


### Effect vector ###


@dataclass(frozen=True)
class Effect:
    consumption: float = 0.0
    speed: float = 0.0
    productivity: float = 0.0
    pollution: float = 0.0
    quality: float = 0.0

    def __add__(self, other: Effect) -> Effect:
        return Effect(
            consumption=self.consumption + other.consumption,
            speed=self.speed + other.speed,
            productivity=self.productivity + other.productivity,
            pollution=self.pollution + other.pollution,
            quality=self.quality + other.quality,
        )

    def scaled(self, factor: float) -> Effect:
        return Effect(
            consumption=self.consumption * factor,
            speed=self.speed * factor,
            productivity=self.productivity * factor,
            pollution=self.pollution * factor,
            quality=self.quality * factor,
        )

    def clamped(self) -> Effect:
        return Effect(
            consumption=clamp(self.consumption, EFFECT_MIN, EFFECT_MAX),
            speed=clamp(self.speed, EFFECT_MIN, EFFECT_MAX),
            productivity=clamp(self.productivity, BONUS_EFFECT_MIN, EFFECT_MAX),
            pollution=clamp(self.pollution, EFFECT_MIN, EFFECT_MAX),
            quality=clamp(self.quality, BONUS_EFFECT_MIN, EFFECT_MAX),
        )

    def to_dict(self) -> dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name)}


def clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def parse_effect(entry: dict[str, Any] | None) -> Effect:
    if not entry:
        return Effect()
    values: dict[str, float] = {}
    for f in fields(Effect):
        raw = entry.get(f.name)
        if raw is None:
            continue
        # older dumps wrap each value as {"bonus": x}
        if isinstance(raw, dict):
            raw = raw.get("bonus", 0.0)
        values[f.name] = parse_number(raw, f"effect.{f.name}")
    return Effect(**values)


def combine(contributions: Iterable[Effect]) -> Effect:
    # clamping happens once, after every contribution is summed
    total = Effect()
    for contribution in contributions:
        total = total + contribution
    return total.clamped()


### Module configuration ###


@dataclass
class BeaconConfig:
    beacon: tuple[str, int]
    modules: list[tuple[str, int]] = field(default_factory=list)
    count: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "beacon": list(self.beacon),
            "modules": [list(module) for module in self.modules],
            "count": self.count,
        }


@dataclass
class ModuleConfig:
    modules: list[tuple[str, int]] = field(default_factory=list)
    beacons: list[BeaconConfig] = field(default_factory=list)
    extra_effect: Effect = field(default_factory=Effect)

    def to_dict(self) -> dict[str, Any]:
        return {
            "modules": [list(module) for module in self.modules],
            "beacons": [beacon.to_dict() for beacon in self.beacons],
            "extra_effect": self.extra_effect.to_dict(),
        }


def parse_id_with_quality(value: Any) -> tuple[str, int]:
    if isinstance(value, str):
        return (value, 0)
    assert isinstance(value, (list, tuple)) and len(value) == 2, f"bad id: {value!r}"
    name, quality = value
    return (str(name), int(quality))


def parse_module_config(entry: dict[str, Any] | None) -> ModuleConfig:
    if not entry:
        return ModuleConfig()
    beacons = [
        BeaconConfig(
            beacon=parse_id_with_quality(beacon["beacon"]),
            modules=[parse_id_with_quality(m) for m in beacon.get("modules", [])],
            count=int(beacon.get("count", 1)),
        )
        for beacon in entry.get("beacons", [])
    ]
    return ModuleConfig(
        modules=[parse_id_with_quality(m) for m in entry.get("modules", [])],
        beacons=beacons,
        extra_effect=parse_effect(entry.get("extra_effect")),
    )


def module_contributions(
    config: ModuleConfig,
    ctx: GameDataContext,
    receiver: EffectReceiver | None = None,
) -> list[Effect]:
    use_module_effects = receiver is None or receiver.use_module_effects
    use_beacon_effects = receiver is None or receiver.use_beacon_effects

    contributions: list[Effect] = []
    if use_module_effects:
        for name, _quality in config.modules:
            contributions.append(ctx.module(name).effect)
    if use_beacon_effects:
        for beacon_config in config.beacons:
            beacon_name, beacon_quality = beacon_config.beacon
            beacon = ctx.beacon(beacon_name)
            level = ctx.quality(beacon_quality).level
            multiplier = beacon_config.count * (
                beacon.distribution_effectivity
                + beacon.distribution_effectivity_bonus_per_quality_level * level
            )
            for name, _quality in beacon_config.modules:
                contributions.append(ctx.module(name).effect.scaled(multiplier))
    contributions.append(config.extra_effect)
    if receiver is not None:
        contributions.append(receiver.base_effect)
    return contributions


def effective_effect(
    config: ModuleConfig,
    ctx: GameDataContext,
    receiver: EffectReceiver | None = None,
) -> Effect:
    return combine(module_contributions(config, ctx, receiver))


### Quality ###


def quality_distribution(
    qualities: Sequence[QualityPrototype],
    quality_bonus: float,
    base_quality: int,
    maximum_quality: int | None = None,
) -> list[float]:
    """Probability of each quality tier for one unit of product.

    ``quality_bonus`` is the raw quality effect as the data stores it. Each
    tier's ``next_probability`` scales what reached that tier into the chance
    of reaching the next one. Tiers above ``maximum_quality`` are never reached.
    """
    count = len(qualities)
    assert 0 <= base_quality < count, f"quality index out of range: {base_quality}"
    top = count - 1
    if maximum_quality is not None:
        top = min(max(maximum_quality, base_quality), top)

    result = [0.0] * count
    result[base_quality] = quality_bonus
    for index in range(base_quality, top):
        result[index + 1] = result[index] * qualities[index].next_probability
    for index in range(base_quality + 1, count):
        result[index - 1] -= result[index]
    result[base_quality] += 1.0 - quality_bonus
    # a bonus above 1 overshoots the lower tiers; carry the deficit upwards
    for index in range(count - 1):
        if result[index] < 0.0:
            result[index + 1] += result[index]
            result[index] = 0.0
    return result
