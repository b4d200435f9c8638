import copy

import pytest

from factoriolp.context import load_context


ELECTRIC = {"type": "electric", "emissions_per_minute": {"pollution": 4}}

RAW_DATA = {
    "item-group": {
        "intermediate-products": {"order": "c"},
        "production": {"order": "b"},
    },
    "item-subgroup": {
        "raw-resource": {"group": "intermediate-products", "order": "a"},
        "raw-material": {"group": "intermediate-products", "order": "b"},
        "intermediate-product": {"group": "intermediate-products", "order": "c"},
        "production-machine": {"group": "production", "order": "a"},
    },
    "item": {
        "iron-ore": {"subgroup": "raw-resource", "order": "e[iron-ore]"},
        "uranium-ore": {"subgroup": "raw-resource", "order": "g[uranium-ore]"},
        "coal": {
            "subgroup": "raw-resource",
            "order": "b[coal]",
            "fuel_value": "4MJ",
            "fuel_category": "chemical",
        },
        "iron-plate": {"subgroup": "raw-material", "order": "a[iron-plate]"},
        "iron-gear-wheel": {"subgroup": "intermediate-product", "order": "c[iron-gear-wheel]"},
        "uranium-fuel-cell": {
            "subgroup": "intermediate-product",
            "order": "r[uranium-fuel-cell]",
            "fuel_value": "8GJ",
            "fuel_category": "nuclear",
            "burnt_result": "depleted-uranium-fuel-cell",
        },
        "depleted-uranium-fuel-cell": {"subgroup": "intermediate-product", "order": "s"},
        "assembling-machine-1": {
            "subgroup": "production-machine",
            "order": "a[assembling-machine-1]",
            "place_result": "assembling-machine-1",
        },
    },
    "module": {
        "speed-module": {
            "category": "speed",
            "tier": 1,
            "effect": {"speed": 0.2, "consumption": 0.5},
        },
        "productivity-module": {
            "category": "productivity",
            "tier": 1,
            "effect": {
                "productivity": 0.1,
                "consumption": 0.4,
                "speed": -0.05,
                "pollution": 0.05,
            },
        },
        "efficiency-module": {
            "category": "efficiency",
            "tier": 1,
            "effect": {"consumption": -0.3},
        },
        "quality-module": {
            "category": "quality",
            "tier": 1,
            "effect": {"quality": 0.1, "speed": -0.05},
        },
    },
    "fluid": {
        "water": {"default_temperature": 15, "heat_capacity": "2kJ"},
        "steam": {
            "default_temperature": 15,
            "max_temperature": 1000,
            "heat_capacity": "0.2kJ",
        },
        "light-oil": {
            "default_temperature": 25,
            "heat_capacity": "0.1kJ",
            "fuel_value": "900kJ",
        },
        "sulfuric-acid": {"default_temperature": 25, "heat_capacity": "0.1kJ"},
    },
    "recipe": {
        "iron-plate": {
            "category": "smelting",
            "energy_required": 3.2,
            "ingredients": [{"type": "item", "name": "iron-ore", "amount": 1}],
            "results": [{"type": "item", "name": "iron-plate", "amount": 1}],
            "allow_productivity": True,
        },
        "iron-gear-wheel": {
            "energy_required": 0.5,
            "ingredients": [{"type": "item", "name": "iron-plate", "amount": 2}],
            "results": [{"type": "item", "name": "iron-gear-wheel", "amount": 1}],
            "allow_productivity": True,
        },
        "steam-cracking": {
            "category": "chemistry",
            "energy_required": 1,
            "ingredients": [{"type": "fluid", "name": "water", "amount": 10}],
            "results": [{"type": "fluid", "name": "steam", "amount": 10, "temperature": 165}],
            "hidden": True,
        },
        "empty-recipe": {"energy_required": 0, "ingredients": {}, "results": {}},
    },
    "assembling-machine": {
        "assembling-machine-1": {
            "crafting_speed": 0.5,
            "crafting_categories": ["crafting"],
            "energy_usage": "75kW",
            "energy_source": ELECTRIC,
            "collision_box": [[-1.2, -1.2], [1.2, 1.2]],
        },
        "assembling-machine-2": {
            "crafting_speed": 0.75,
            "crafting_categories": ["crafting", "chemistry"],
            "energy_usage": "150kW",
            "energy_source": {"type": "electric", "drain": "5kW"},
            "module_slots": 2,
            "collision_box": {
                "left_top": {"x": -1.2, "y": -1.2},
                "right_bottom": {"x": 1.2, "y": 1.2},
            },
        },
    },
    "furnace": {
        "stone-furnace": {
            "crafting_speed": 1,
            "crafting_categories": ["smelting"],
            "energy_usage": "90kW",
            "energy_source": {
                "type": "burner",
                "effectivity": 1,
                "fuel_categories": ["chemical"],
                "emissions_per_minute": {"pollution": 2},
            },
            "collision_box": [[-0.7, -0.7], [0.7, 0.7]],
        },
    },
    "resource": {
        "iron-ore": {
            "category": "basic-solid",
            "minable": {"mining_time": 1, "result": "iron-ore"},
            "collision_box": [[-0.1, -0.1], [0.1, 0.1]],
        },
        "uranium-ore": {
            "category": "basic-solid",
            "minable": {
                "mining_time": 2,
                "result": "uranium-ore",
                "fluid_amount": 10,
                "required_fluid": "sulfuric-acid",
            },
        },
        "crude-oil": {
            "category": "basic-fluid",
            "infinite": True,
            "minable": {
                "mining_time": 1,
                "results": [{"type": "fluid", "name": "crude-oil", "amount": 10}],
            },
        },
    },
    "mining-drill": {
        "electric-mining-drill": {
            "mining_speed": 0.5,
            "resource_categories": ["basic-solid"],
            "energy_usage": "90kW",
            "energy_source": {"type": "electric"},
            "module_slots": 3,
            "collision_box": [[-1.4, -1.4], [1.4, 1.4]],
        },
    },
    "beacon": {
        "beacon": {
            "distribution_effectivity": 1.5,
            "distribution_effectivity_bonus_per_quality_level": 0.2,
            "energy_usage": "480kW",
            "energy_source": {"type": "electric"},
            "module_slots": 2,
            "collision_box": [[-1.2, -1.2], [1.2, 1.2]],
        },
    },
    "quality": {
        "normal": {"level": 0, "next": "uncommon", "next_probability": 0.1},
        "uncommon": {"level": 1, "next": "rare", "next_probability": 0.1},
        "rare": {"level": 2},
        "quality-unknown": {"level": 0, "hidden": True},
    },
}


@pytest.fixture
def raw_data():
    return copy.deepcopy(RAW_DATA)


@pytest.fixture
def ctx(raw_data):
    return load_context(raw_data)
