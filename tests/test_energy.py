import pytest

from factoriolp.effects import Effect
from factoriolp.energy import (
    BurnerEnergySource,
    ElectricEnergySource,
    FluidBox,
    FluidEnergySource,
    HeatEnergySource,
    VoidEnergySource,
    energy_flow,
    parse_energy_source,
)
from factoriolp.errors import MissingReference
from factoriolp.identity import (
    Electricity,
    Fluid,
    FluidFuel,
    FluidHeat,
    Heat,
    Item,
    ItemFuel,
    Pollution,
)

NO_EFFECT = Effect()


def test_electric_source_with_default_drain(ctx):
    source = ElectricEnergySource(emissions_per_minute={"pollution": 60.0})
    flow, fulfillment = energy_flow(source, 90000.0, NO_EFFECT, ctx)
    assert fulfillment == 1.0
    assert flow[Electricity()] == pytest.approx(-90000.0 - 3000.0)
    assert flow[Pollution("pollution")] == pytest.approx(1.0)


def test_electric_source_with_explicit_drain(ctx):
    source = parse_energy_source({"type": "electric", "drain": "5kW"})
    flow, _ = energy_flow(source, 150000.0, Effect(consumption=1.0), ctx)
    assert flow[Electricity()] == pytest.approx(-300000.0 - 5000.0)


def test_emissions_scale_with_pollution_and_consumption(ctx):
    source = VoidEnergySource(emissions_per_minute={"pollution": 60.0, "spores": 6.0})
    flow, _ = energy_flow(source, 1000.0, Effect(consumption=0.5, pollution=0.2), ctx)
    assert flow == pytest.approx({Pollution("pollution"): 1.8, Pollution("spores"): 0.18})


def test_heat_source(ctx):
    flow, _ = energy_flow(HeatEnergySource(max_temperature=1000), 1e6, NO_EFFECT, ctx)
    assert flow == {Heat(): -1e6}


def test_burner_with_abstract_fuel(ctx):
    source = BurnerEnergySource(effectivity=0.5)
    flow, _ = energy_flow(source, 90000.0, NO_EFFECT, ctx)
    assert flow == pytest.approx({ItemFuel("fuel"): -180000.0})


def test_burner_with_bound_fuel(ctx):
    flow, fulfillment = energy_flow(BurnerEnergySource(), 90000.0, NO_EFFECT, ctx, ("coal", 0))
    assert fulfillment == 1.0
    assert flow == pytest.approx({Item("coal", 0): -0.0225})


def test_burner_produces_burnt_result(ctx):
    fuel = ("uranium-fuel-cell", 1)
    source = BurnerEnergySource(fuel_categories=["nuclear"])
    flow, _ = energy_flow(source, 40e6, NO_EFFECT, ctx, fuel)
    assert flow == pytest.approx(
        {
            Item("uranium-fuel-cell", 1): -0.005,
            Item("depleted-uranium-fuel-cell", 1): 0.005,
        }
    )


def test_burner_warns_about_foreign_fuel_category(ctx, capsys):
    energy_flow(BurnerEnergySource(), 40e6, NO_EFFECT, ctx, ("uranium-fuel-cell", 0))
    assert "burner takes chemical" in capsys.readouterr().out
    energy_flow(BurnerEnergySource(), 90000.0, NO_EFFECT, ctx, ("coal", 0))
    assert "WARNING" not in capsys.readouterr().out


def test_burner_fuel_without_fuel_value(ctx):
    with pytest.raises(MissingReference) as excinfo:
        energy_flow(BurnerEnergySource(), 90000.0, NO_EFFECT, ctx, ("iron-plate", 0))
    assert excinfo.value.category == "fuel"


def heat_exchanger_source(**kwargs) -> FluidEnergySource:
    return FluidEnergySource(fluid_usage_per_tick=1.0, fluid_box=FluidBox(filter="steam"), **kwargs)


def test_fluid_source_fixed_usage_exceeds_demand(ctx):
    # 150 degrees above default at 200 J/degree: 30 steam/s covers the demand,
    # but the fixed usage is 60/s
    flow, fulfillment = energy_flow(
        heat_exchanger_source(), 900000.0, NO_EFFECT, ctx, ("steam", 165)
    )
    assert fulfillment == 1.0
    assert flow == pytest.approx({Fluid("steam"): -60.0})


def test_fluid_source_scaled_usage_follows_demand(ctx):
    source = heat_exchanger_source(scale_fluid_usage=True)
    flow, _ = energy_flow(source, 900000.0, NO_EFFECT, ctx, ("steam", 165))
    assert flow == pytest.approx({Fluid("steam"): -30.0})


def test_fluid_source_flow_limit_reduces_fulfillment(ctx):
    source = heat_exchanger_source(scale_fluid_usage=True)
    flow, fulfillment = energy_flow(source, 2.7e6, NO_EFFECT, ctx, ("steam", 165))
    assert fulfillment == pytest.approx(60.0 / 90.0)
    assert flow == pytest.approx({Fluid("steam"): -60.0})


def test_fluid_source_unscaled_uses_maximum_temperature(ctx):
    source = FluidEnergySource(maximum_temperature=500.0)
    # delta is 500 - 15 regardless of the bound temperature
    flow, _ = energy_flow(source, 970000.0, NO_EFFECT, ctx, ("steam", 165))
    assert flow == pytest.approx({Fluid("steam"): -10.0})


def test_fluid_source_burning_fuel(ctx):
    source = FluidEnergySource(burns_fluid=True, scale_fluid_usage=True)
    flow, _ = energy_flow(source, 1.8e6, NO_EFFECT, ctx, ("light-oil", 25))
    assert flow == pytest.approx({Fluid("light-oil"): -2.0})


def test_fluid_source_without_energy_cannot_run(ctx):
    source = FluidEnergySource(scale_fluid_usage=True)
    flow, fulfillment = energy_flow(source, 1e6, NO_EFFECT, ctx, ("steam", 15))
    assert fulfillment == 0.0
    assert flow == {}


def test_fluid_source_with_abstract_fuel(ctx):
    flow, _ = energy_flow(FluidEnergySource(effectivity=0.5), 1e6, NO_EFFECT, ctx)
    assert flow == pytest.approx({FluidHeat(None): -2e6})
    flow, _ = energy_flow(
        FluidEnergySource(burns_fluid=True, fluid_box=FluidBox(filter="light-oil")),
        1e6,
        NO_EFFECT,
        ctx,
    )
    assert flow == pytest.approx({FluidFuel("light-oil"): -1e6})


def test_parse_energy_source():
    source = parse_energy_source(
        {
            "type": "burner",
            "fuel_category": "nuclear",
            "effectivity": 2,
            "emissions_per_minute": 3,
        }
    )
    assert isinstance(source, BurnerEnergySource)
    assert source.fuel_categories == ["nuclear"]
    assert source.effectivity == 2.0
    assert source.emissions_per_minute == {"pollution": 3.0}

    fluid = parse_energy_source(
        {"type": "fluid", "fluid_box": {"filter": "steam"}, "scale_fluid_usage": True}
    )
    assert isinstance(fluid, FluidEnergySource)
    assert fluid.fluid_box.filter == "steam"

    with pytest.raises(ValueError):
        parse_energy_source({"type": "nuclear-magic"})
