import json

import pytest

from factoriolp.context import load_context, load_context_file
from factoriolp.energy import BurnerEnergySource, ElectricEnergySource
from factoriolp.errors import MalformedEnergyString, MalformedNumericField, MissingReference
from factoriolp.prototypes import CraftingMachinePrototype, ResourcePrototype
from factoriolp.yields import FluidResult


def test_tables_are_loaded(ctx):
    assert set(ctx.recipes) == {"iron-plate", "iron-gear-wheel", "steam-cracking", "empty-recipe"}
    assert set(ctx.crafters) == {"assembling-machine-1", "assembling-machine-2", "stone-furnace"}
    assert "speed-module" in ctx.items
    assert ctx.module("speed-module").effect.speed == pytest.approx(0.2)
    assert isinstance(ctx.entities["stone-furnace"], CraftingMachinePrototype)
    assert isinstance(ctx.entities["iron-ore"], ResourcePrototype)
    assert "electric-mining-drill" in ctx.entities
    assert "beacon" in ctx.entities


def test_energy_literals_are_converted(ctx):
    machine = ctx.crafter("assembling-machine-1")
    assert machine.energy_usage == pytest.approx(1250.0)
    assert machine.power_draw == pytest.approx(75000.0)
    assert isinstance(machine.energy_source, ElectricEnergySource)
    assert isinstance(ctx.crafter("stone-furnace").energy_source, BurnerEnergySource)
    assert ctx.item("coal").fuel_value == pytest.approx(4e6)
    assert ctx.fluid("steam").heat_capacity == pytest.approx(200.0)


def test_collision_box_forms_and_footprint(ctx):
    assert ctx.crafter("assembling-machine-1").footprint() == 9
    assert ctx.crafter("assembling-machine-2").footprint() == 9
    assert ctx.crafter("stone-furnace").footprint() == 4
    assert ctx.resource("uranium-ore").footprint() == 1


def test_recipe_defaults(ctx):
    recipe = ctx.recipe("iron-gear-wheel")
    assert recipe.category == "crafting"
    assert recipe.maximum_productivity == 3.0
    empty = ctx.recipe("empty-recipe")
    assert empty.ingredients == []
    assert empty.results == []


def test_minable_properties(ctx):
    uranium = ctx.resource("uranium-ore").minable
    assert uranium.required_fluid == "sulfuric-acid"
    assert uranium.fluid_amount == 10.0
    oil = ctx.resource("crude-oil")
    assert oil.infinite
    assert isinstance(oil.minable.results[0], FluidResult)


def test_quality_chain(ctx):
    assert [quality.name for quality in ctx.qualities] == ["normal", "uncommon", "rare"]
    assert [quality.index for quality in ctx.qualities] == [0, 1, 2]
    assert ctx.quality(1).crafting_machine_speed_multiplier == pytest.approx(1.3)
    assert ctx.quality_index("rare") == 2


def test_missing_quality_table_gives_implicit_normal(raw_data):
    del raw_data["quality"]
    ctx = load_context(raw_data)
    assert [quality.name for quality in ctx.qualities] == ["normal"]
    assert ctx.quality(0).next_probability == 0.0


def test_lookups_raise_missing_reference(ctx):
    with pytest.raises(MissingReference) as excinfo:
        ctx.recipe("warp-drive")
    assert excinfo.value.category == "recipe"
    assert excinfo.value.name == "warp-drive"
    with pytest.raises(MissingReference):
        ctx.quality(3)
    with pytest.raises(KeyError):
        ctx.miner("burner-mining-drill")


def test_crafters_for(ctx):
    names = [crafter.name for crafter in ctx.crafters_for(ctx.recipe("iron-gear-wheel"))]
    assert names == ["assembling-machine-1", "assembling-machine-2"]
    names = [crafter.name for crafter in ctx.crafters_for(ctx.recipe("iron-plate"))]
    assert names == ["stone-furnace"]
    names = [miner.name for miner in ctx.miners_for(ctx.resource("crude-oil"))]
    assert names == []


def test_malformed_literals_abort_loading(raw_data):
    raw_data["item"]["coal"]["fuel_value"] = "4 MJ"
    with pytest.raises(MalformedEnergyString):
        load_context(raw_data)


def test_malformed_numbers_abort_loading(raw_data):
    raw_data["recipe"]["iron-plate"]["energy_required"] = "slow"
    with pytest.raises(MalformedNumericField):
        load_context(raw_data)


def test_duplicate_prototypes_warn(raw_data, capsys):
    raw_data["ammo"] = {"coal": {"order": "z"}}
    ctx = load_context(raw_data)
    assert "WARNING: duplicate prototype 'coal'" in capsys.readouterr().out
    assert ctx.item("coal").order == "z"


def test_recipe_order_is_inherited_from_result(ctx):
    recipe = ctx.recipe("iron-gear-wheel")
    assert recipe.subgroup == "intermediate-product"
    assert recipe.order == "c[iron-gear-wheel]"


def test_entity_order_is_inherited_from_placing_item(ctx):
    assert ctx.entities["assembling-machine-1"].subgroup == "production-machine"


def test_order_info(ctx):
    groups = [group for group, _ in ctx.ordered_entries["item"]]
    # groups missing from the dump sort first
    assert groups == ["other", "production", "intermediate-products"]
    order = ctx.order_of_entries["item"]
    assert order["coal"] < order["iron-ore"] < order["iron-plate"] < order["iron-gear-wheel"]


def test_load_context_file(tmp_path, raw_data):
    path = tmp_path / "data-raw-dump.json"
    path.write_text(json.dumps(raw_data), encoding="utf-8")
    ctx = load_context_file(str(path))
    assert "iron-plate" in ctx.recipes
