from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from factoriolp.debug import warn
from factoriolp.effects import Effect
from factoriolp.errors import MissingReference
from factoriolp.identity import (
    Electricity,
    Flow,
    FluidFuel,
    FluidHeat,
    Heat,
    Item,
    ItemFuel,
    Pollution,
    fluid_identity,
    update_flow,
)
from factoriolp.parsing import (
    TICKS_PER_SECOND,
    as_list,
    parse_number,
    parse_optional_energy,
    parse_optional_number,
)

if TYPE_CHECKING:
    from factoriolp.context import GameDataContext


# electric machines without an explicit drain idle at 1/30 of their draw
DEFAULT_DRAIN_DIVISOR = 30.0


### Energy sources ###


@dataclass
class EnergySource:
    emissions_per_minute: dict[str, float] = field(default_factory=dict)


@dataclass
class ElectricEnergySource(EnergySource):
    # J/tick
    drain: float | None = None


@dataclass
class BurnerEnergySource(EnergySource):
    effectivity: float = 1.0
    burner_usage: str = "fuel"
    fuel_categories: list[str] = field(default_factory=lambda: ["chemical"])


@dataclass
class HeatEnergySource(EnergySource):
    max_temperature: float = 0.0


@dataclass
class FluidBox:
    filter: str | None = None
    minimum_temperature: float | None = None
    maximum_temperature: float | None = None


@dataclass
class FluidEnergySource(EnergySource):
    effectivity: float = 1.0
    fluid_usage_per_tick: float = 0.0
    scale_fluid_usage: bool = False
    maximum_temperature: float = 0.0
    burns_fluid: bool = False
    fluid_box: FluidBox = field(default_factory=FluidBox)


@dataclass
class VoidEnergySource(EnergySource):
    pass


def parse_emissions(value: Any) -> dict[str, float]:
    if value is None:
        return {}
    # 1.x dumps give a single number for the default pollutant
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return {"pollution": float(value)}
    return {
        pollutant: parse_number(amount, f"emissions_per_minute.{pollutant}")
        for pollutant, amount in value.items()
    }


def parse_fluid_box(entry: dict[str, Any] | None) -> FluidBox:
    if not entry:
        return FluidBox()
    return FluidBox(
        filter=entry.get("filter"),
        minimum_temperature=parse_optional_number(
            entry.get("minimum_temperature"), "fluid_box.minimum_temperature"
        ),
        maximum_temperature=parse_optional_number(
            entry.get("maximum_temperature"), "fluid_box.maximum_temperature"
        ),
    )


def parse_energy_source(entry: dict[str, Any]) -> EnergySource:
    type_ = entry.get("type")
    emissions = parse_emissions(entry.get("emissions_per_minute"))

    if type_ == "electric":
        return ElectricEnergySource(
            emissions_per_minute=emissions,
            drain=parse_optional_energy(entry.get("drain")),
        )
    if type_ == "burner":
        effectivity = parse_number(entry.get("effectivity", 1.0), "burner.effectivity")
        assert effectivity > 0, f"burner effectivity must be positive: {effectivity}"
        fuel_categories = as_list(entry.get("fuel_categories"))
        if not fuel_categories and "fuel_category" in entry:
            fuel_categories = [entry["fuel_category"]]
        return BurnerEnergySource(
            emissions_per_minute=emissions,
            effectivity=effectivity,
            burner_usage=entry.get("burner_usage", "fuel"),
            fuel_categories=fuel_categories or ["chemical"],
        )
    if type_ == "heat":
        return HeatEnergySource(
            emissions_per_minute=emissions,
            max_temperature=parse_number(
                entry.get("max_temperature", 0.0), "heat.max_temperature"
            ),
        )
    if type_ == "fluid":
        effectivity = parse_number(entry.get("effectivity", 1.0), "fluid.effectivity")
        assert effectivity > 0, f"fluid effectivity must be positive: {effectivity}"
        return FluidEnergySource(
            emissions_per_minute=emissions,
            effectivity=effectivity,
            fluid_usage_per_tick=parse_number(
                entry.get("fluid_usage_per_tick", 0.0), "fluid.fluid_usage_per_tick"
            ),
            scale_fluid_usage=bool(entry.get("scale_fluid_usage", False)),
            maximum_temperature=parse_number(
                entry.get("maximum_temperature", 0.0), "fluid.maximum_temperature"
            ),
            burns_fluid=bool(entry.get("burns_fluid", False)),
            fluid_box=parse_fluid_box(entry.get("fluid_box")),
        )
    if type_ == "void":
        return VoidEnergySource(emissions_per_minute=emissions)
    raise ValueError(f"unknown energy source type: {type_!r}")


### Energy flow ###


def energy_flow(
    source: EnergySource,
    power_draw: float,
    effects: Effect,
    ctx: GameDataContext,
    concrete_fuel: tuple[str, int] | None = None,
) -> tuple[Flow, float]:
    """Per-second flow caused by powering one machine, and its fulfillment ratio.

    ``power_draw`` is in watts. ``concrete_fuel`` binds burner sources to an
    (item, quality) pair and fluid sources to a (fluid, temperature) pair;
    without it the demand is charged against an abstract fuel identity.
    The fulfillment ratio drops below 1 only when a fluid source cannot pass
    enough fluid to cover the demand.
    """
    flow: Flow = {}
    fulfillment = 1.0
    usage = power_draw * (1.0 + effects.consumption)

    if isinstance(source, ElectricEnergySource):
        update_flow(flow, Electricity(), -usage)
        if source.drain is not None:
            drain = source.drain * TICKS_PER_SECOND
        else:
            drain = power_draw / DEFAULT_DRAIN_DIVISOR
        update_flow(flow, Electricity(), -drain)

    elif isinstance(source, HeatEnergySource):
        update_flow(flow, Heat(), -usage)

    elif isinstance(source, BurnerEnergySource):
        demand = usage / source.effectivity
        if concrete_fuel is None:
            update_flow(flow, ItemFuel(source.burner_usage), -demand)
        else:
            name, quality = concrete_fuel
            item = ctx.item(name)
            if item.fuel_value is None:
                raise MissingReference("fuel", name, "item has no fuel value")
            category = item.fuel_category
            if category is not None and category not in source.fuel_categories:
                warn(
                    f"fuel {name} is {category}, burner takes "
                    f"{', '.join(source.fuel_categories)}"
                )
            if item.fuel_value <= 0:
                warn(f"fuel {name} has a non-positive fuel value, machine cannot run")
                fulfillment = 0.0
            else:
                burn_rate = demand / item.fuel_value
                update_flow(flow, Item(name, quality), -burn_rate)
                if item.burnt_result is not None:
                    update_flow(flow, Item(item.burnt_result, quality), burn_rate)

    elif isinstance(source, FluidEnergySource):
        fulfillment = _fluid_energy_flow(flow, source, usage, ctx, concrete_fuel)

    else:
        assert isinstance(source, VoidEnergySource), f"unknown energy source {source!r}"

    for pollutant, emission in source.emissions_per_minute.items():
        update_flow(
            flow,
            Pollution(pollutant),
            emission * (1.0 + effects.pollution) * (1.0 + effects.consumption) / 60.0,
        )

    return (flow, fulfillment)


def _fluid_energy_flow(
    flow: Flow,
    source: FluidEnergySource,
    usage: float,
    ctx: GameDataContext,
    concrete_fuel: tuple[str, int] | None,
) -> float:
    demand = usage / source.effectivity

    if concrete_fuel is None:
        abstract = FluidFuel if source.burns_fluid else FluidHeat
        update_flow(flow, abstract(source.fluid_box.filter), -demand)
        return 1.0

    name, temperature = concrete_fuel
    fluid = ctx.fluid(name)
    if source.burns_fluid:
        if fluid.fuel_value is None:
            raise MissingReference("fuel", name, "fluid has no fuel value")
        energy_per_unit = fluid.fuel_value
    else:
        if fluid.heat_capacity is None:
            raise MissingReference("fuel", name, "fluid has no heat capacity")
        temperature_delta = temperature - fluid.default_temperature
        if (
            not source.scale_fluid_usage
            and source.maximum_temperature > 0
            and source.fluid_usage_per_tick == 0
        ):
            temperature_delta = source.maximum_temperature - fluid.default_temperature
        energy_per_unit = fluid.heat_capacity * temperature_delta

    if energy_per_unit <= 0:
        warn(f"fluid {name} carries no usable energy at {temperature}, machine cannot run")
        return 0.0

    fulfillment = 1.0
    rate = demand / energy_per_unit
    limit = source.fluid_usage_per_tick * TICKS_PER_SECOND
    if limit > 0 and rate > limit:
        fulfillment = limit / rate
        rate = limit
    if not source.scale_fluid_usage and rate < limit:
        rate = limit

    # the consumed fluid is not pinned to a temperature
    update_flow(flow, fluid_identity(name), -rate)
    return fulfillment
