import math
from dataclasses import dataclass, field
from typing import Any

from factoriolp.effects import Effect, parse_effect
from factoriolp.energy import EnergySource, parse_energy_source
from factoriolp.parsing import (
    TICKS_PER_SECOND,
    as_list,
    as_optional_list,
    parse_number,
    parse_optional_energy,
    parse_optional_number,
)
from factoriolp.yields import RecipeResult, parse_result


### Prototype types ###


ITEM_TYPES = (
    "item",
    "ammo",
    "capsule",
    "gun",
    "item-with-entity-data",
    "item-with-label",
    "item-with-inventory",
    "item-with-tags",
    "module",
    "rail-planner",
    "space-platform-starter-pack",
    "tool",
    "armor",
    "repair-tool",
)

CRAFTING_MACHINE_TYPES = ("assembling-machine", "furnace", "rocket-silo")

# entities that only need a name and placement order
PLAIN_ENTITY_TYPES = (
    "boiler",
    "generator",
    "reactor",
    "lab",
    "inserter",
    "transport-belt",
    "pipe",
    "container",
    "electric-pole",
    "solar-panel",
    "accumulator",
)

QUALITY_MULTIPLIER_FIELDS = (
    "default_multiplier",
    "crafting_machine_speed_multiplier",
    "mining_drill_resource_drain_multiplier",
)


### Classes ###


@dataclass
class PrototypeBase:
    type_: str
    name: str
    order: str
    subgroup: str
    hidden: bool


@dataclass
class ItemGroup:
    name: str
    order: str


@dataclass
class ItemSubgroup:
    name: str
    order: str
    group: str


@dataclass
class ItemPrototype(PrototypeBase):
    # J per item
    fuel_value: float | None
    fuel_category: str | None
    burnt_result: str | None
    place_result: str | None


@dataclass
class FluidPrototype(PrototypeBase):
    default_temperature: float
    max_temperature: float | None
    # J per unit per degree
    heat_capacity: float | None
    # J per unit
    fuel_value: float | None


@dataclass
class ItemIngredient:
    name: str
    amount: float


@dataclass
class FluidIngredient:
    name: str
    amount: float
    temperature: float | None = None
    min_temperature: float | None = None
    max_temperature: float | None = None


RecipeIngredient = ItemIngredient | FluidIngredient


@dataclass
class RecipePrototype(PrototypeBase):
    category: str
    additional_categories: list[str]
    ingredients: list[RecipeIngredient]
    results: list[RecipeResult]
    main_product: str | None
    energy_required: float
    maximum_productivity: float
    allow_consumption: bool
    allow_speed: bool
    allow_productivity: bool
    allow_pollution: bool
    allow_quality: bool
    allowed_module_categories: list[str] | None

    @property
    def categories(self) -> list[str]:
        return [self.category] + self.additional_categories


@dataclass
class EffectReceiver:
    base_effect: Effect = field(default_factory=Effect)
    use_module_effects: bool = True
    use_beacon_effects: bool = True


@dataclass
class EntityPrototype(PrototypeBase):
    collision_box: tuple[tuple[float, float], tuple[float, float]] | None

    def footprint(self) -> float:
        if self.collision_box is None:
            return 1.0
        (x1, y1), (x2, y2) = self.collision_box
        return math.ceil(y2 - y1) * math.ceil(x2 - x1)


@dataclass
class PoweredEntity(EntityPrototype):
    # J/tick
    energy_usage: float | None
    energy_source: EnergySource
    effect_receiver: EffectReceiver
    module_slots: int
    allowed_effects: list[str] | None
    allowed_module_categories: list[str] | None

    @property
    def power_draw(self) -> float:
        # watts
        return (self.energy_usage or 0.0) * TICKS_PER_SECOND


@dataclass
class CraftingMachinePrototype(PoweredEntity):
    crafting_speed: float
    crafting_categories: list[str]
    crafting_speed_quality_multiplier: dict[str, float] | None
    fixed_recipe: str | None

    def can_craft(self, recipe: RecipePrototype) -> bool:
        return any(category in self.crafting_categories for category in recipe.categories)


@dataclass
class MinableProperties:
    mining_time: float
    result: str | None = None
    count: float | None = None
    results: list[RecipeResult] | None = None
    fluid_amount: float = 0.0
    required_fluid: str | None = None


@dataclass
class ResourcePrototype(EntityPrototype):
    category: str
    infinite: bool
    minable: MinableProperties | None


@dataclass
class MiningDrillPrototype(PoweredEntity):
    mining_speed: float
    resource_categories: list[str]
    resource_drain_rate_percent: float

    def can_mine(self, resource: ResourcePrototype) -> bool:
        return resource.category in self.resource_categories


@dataclass
class ModulePrototype(PrototypeBase):
    category: str
    tier: float
    effect: Effect


@dataclass
class BeaconPrototype(PoweredEntity):
    distribution_effectivity: float
    distribution_effectivity_bonus_per_quality_level: float


@dataclass
class QualityPrototype(PrototypeBase):
    level: float
    next: str | None
    next_probability: float
    index: int = 0
    multipliers: dict[str, float] = field(default_factory=dict)

    @property
    def default_multiplier(self) -> float:
        return self.multipliers.get("default_multiplier", 1.0 + 0.3 * self.level)

    @property
    def crafting_machine_speed_multiplier(self) -> float:
        return self.multipliers.get(
            "crafting_machine_speed_multiplier", self.default_multiplier
        )

    @property
    def mining_drill_resource_drain_multiplier(self) -> float:
        return self.multipliers.get("mining_drill_resource_drain_multiplier", 1.0)


NORMAL_QUALITY = "normal"


def implicit_normal_quality() -> QualityPrototype:
    return QualityPrototype(
        type_="quality",
        name=NORMAL_QUALITY,
        order="a",
        subgroup="qualities",
        hidden=False,
        level=0.0,
        next=None,
        next_probability=0.0,
    )


### Parsing helpers ###


def base_fields(entry: dict[str, Any], default_type: str) -> dict[str, Any]:
    return dict(
        type_=entry.get("type", default_type),
        name=entry["name"],
        order=entry.get("order", ""),
        subgroup=entry.get("subgroup", ""),
        hidden=bool(entry.get("hidden", False)),
    )


def parse_position(value: Any) -> tuple[float, float]:
    if isinstance(value, dict):
        return (parse_number(value["x"], "position.x"), parse_number(value["y"], "position.y"))
    assert isinstance(value, list) and len(value) >= 2, f"bad position: {value!r}"
    return (parse_number(value[0], "position.x"), parse_number(value[1], "position.y"))


def parse_bounding_box(
    value: Any,
) -> tuple[tuple[float, float], tuple[float, float]] | None:
    if value is None:
        return None
    if isinstance(value, dict):
        return (parse_position(value["left_top"]), parse_position(value["right_bottom"]))
    # [left_top, right_bottom] with an optional trailing orientation
    assert isinstance(value, list) and len(value) >= 2, f"bad bounding box: {value!r}"
    return (parse_position(value[0]), parse_position(value[1]))


def parse_effect_receiver(entry: dict[str, Any] | None) -> EffectReceiver:
    if not entry:
        return EffectReceiver()
    return EffectReceiver(
        base_effect=parse_effect(entry.get("base_effect")),
        use_module_effects=bool(entry.get("uses_module_effects", True)),
        use_beacon_effects=bool(entry.get("uses_beacon_effects", True)),
    )


def parse_allowed_effects(value: Any) -> list[str] | None:
    if value is None:
        return None
    if isinstance(value, str):
        return [value]
    return as_list(value)


### Items and fluids ###


def parse_item(entry: dict[str, Any]) -> ItemPrototype:
    return ItemPrototype(
        **base_fields(entry, "item"),
        fuel_value=parse_optional_energy(entry.get("fuel_value")),
        fuel_category=entry.get("fuel_category"),
        burnt_result=entry.get("burnt_result") or None,
        place_result=entry.get("place_result") or None,
    )


def parse_fluid(entry: dict[str, Any]) -> FluidPrototype:
    name = entry["name"]
    return FluidPrototype(
        **base_fields(entry, "fluid"),
        default_temperature=parse_number(
            entry.get("default_temperature", 15.0), f"{name}.default_temperature"
        ),
        max_temperature=parse_optional_number(
            entry.get("max_temperature"), f"{name}.max_temperature"
        ),
        heat_capacity=parse_optional_energy(entry.get("heat_capacity")),
        fuel_value=parse_optional_energy(entry.get("fuel_value")),
    )


def parse_group(entry: dict[str, Any]) -> ItemGroup:
    return ItemGroup(name=entry["name"], order=entry.get("order", ""))


def parse_subgroup(entry: dict[str, Any]) -> ItemSubgroup:
    return ItemSubgroup(
        name=entry["name"], order=entry.get("order", ""), group=entry.get("group", "")
    )


### Recipes ###


def parse_ingredient(entry: dict[str, Any]) -> RecipeIngredient:
    name = entry["name"]
    amount = parse_number(entry["amount"], f"{name}.amount")
    if entry.get("type", "item") == "fluid":
        return FluidIngredient(
            name=name,
            amount=amount,
            temperature=parse_optional_number(entry.get("temperature"), f"{name}.temperature"),
            min_temperature=parse_optional_number(
                entry.get("min_temperature"), f"{name}.min_temperature"
            ),
            max_temperature=parse_optional_number(
                entry.get("max_temperature"), f"{name}.max_temperature"
            ),
        )
    return ItemIngredient(name=name, amount=amount)


def parse_recipe(entry: dict[str, Any]) -> RecipePrototype:
    name = entry["name"]
    return RecipePrototype(
        **base_fields(entry, "recipe"),
        category=entry.get("category") or "crafting",
        additional_categories=as_list(entry.get("additional_categories")),
        ingredients=[parse_ingredient(i) for i in as_list(entry.get("ingredients"))],
        results=[parse_result(r) for r in as_list(entry.get("results"))],
        main_product=entry.get("main_product") or None,
        energy_required=parse_number(
            entry.get("energy_required", 0.5), f"{name}.energy_required"
        ),
        maximum_productivity=parse_number(
            entry.get("maximum_productivity", 3.0), f"{name}.maximum_productivity"
        ),
        allow_consumption=bool(entry.get("allow_consumption", True)),
        allow_speed=bool(entry.get("allow_speed", True)),
        allow_productivity=bool(entry.get("allow_productivity", False)),
        allow_pollution=bool(entry.get("allow_pollution", True)),
        allow_quality=bool(entry.get("allow_quality", True)),
        allowed_module_categories=as_optional_list(entry.get("allowed_module_categories")),
    )


### Entities ###


def parse_entity(entry: dict[str, Any]) -> EntityPrototype:
    return EntityPrototype(
        **base_fields(entry, "entity"),
        collision_box=parse_bounding_box(entry.get("collision_box")),
    )


def powered_fields(entry: dict[str, Any]) -> dict[str, Any]:
    name = entry["name"]
    return dict(
        **base_fields(entry, "entity"),
        collision_box=parse_bounding_box(entry.get("collision_box")),
        energy_usage=parse_optional_energy(entry.get("energy_usage")),
        energy_source=parse_energy_source(entry["energy_source"]),
        effect_receiver=parse_effect_receiver(entry.get("effect_receiver")),
        module_slots=int(parse_number(entry.get("module_slots", 0), f"{name}.module_slots")),
        allowed_effects=parse_allowed_effects(entry.get("allowed_effects")),
        allowed_module_categories=as_optional_list(entry.get("allowed_module_categories")),
    )


def parse_crafting_machine(entry: dict[str, Any]) -> CraftingMachinePrototype:
    name = entry["name"]
    multipliers = entry.get("crafting_speed_quality_multiplier")
    if multipliers is not None:
        multipliers = {
            quality: parse_number(value, f"{name}.crafting_speed_quality_multiplier")
            for quality, value in multipliers.items()
        }
    return CraftingMachinePrototype(
        **powered_fields(entry),
        crafting_speed=parse_number(
            entry.get("crafting_speed", 1.0), f"{name}.crafting_speed"
        ),
        crafting_categories=as_list(entry.get("crafting_categories")),
        crafting_speed_quality_multiplier=multipliers,
        fixed_recipe=entry.get("fixed_recipe") or None,
    )


def parse_minable(entry: dict[str, Any] | None, owner: str) -> MinableProperties | None:
    if entry is None:
        return None
    results = entry.get("results")
    count = parse_optional_number(entry.get("count"), f"{owner}.minable.count")
    return MinableProperties(
        mining_time=parse_number(
            entry.get("mining_time", 1.0), f"{owner}.minable.mining_time"
        ),
        result=entry.get("result") or None,
        count=float(math.floor(count)) if count is not None else None,
        results=[parse_result(r) for r in as_list(results)] if results is not None else None,
        fluid_amount=parse_number(
            entry.get("fluid_amount", 0.0), f"{owner}.minable.fluid_amount"
        ),
        required_fluid=entry.get("required_fluid") or None,
    )


def parse_resource(entry: dict[str, Any]) -> ResourcePrototype:
    return ResourcePrototype(
        **base_fields(entry, "resource"),
        collision_box=parse_bounding_box(entry.get("collision_box")),
        category=entry.get("category") or "basic-solid",
        infinite=bool(entry.get("infinite", False)),
        minable=parse_minable(entry.get("minable"), entry["name"]),
    )


def parse_mining_drill(entry: dict[str, Any]) -> MiningDrillPrototype:
    name = entry["name"]
    return MiningDrillPrototype(
        **powered_fields(entry),
        mining_speed=parse_number(entry.get("mining_speed", 1.0), f"{name}.mining_speed"),
        resource_categories=as_list(entry.get("resource_categories")),
        resource_drain_rate_percent=parse_number(
            entry.get("resource_drain_rate_percent", 100.0),
            f"{name}.resource_drain_rate_percent",
        ),
    )


### Modules and beacons ###


def parse_module(entry: dict[str, Any]) -> ModulePrototype:
    name = entry["name"]
    return ModulePrototype(
        **base_fields(entry, "module"),
        category=entry.get("category", ""),
        tier=parse_number(entry.get("tier", 0), f"{name}.tier"),
        effect=parse_effect(entry.get("effect")),
    )


def parse_beacon(entry: dict[str, Any]) -> BeaconPrototype:
    name = entry["name"]
    return BeaconPrototype(
        **powered_fields(entry),
        distribution_effectivity=parse_number(
            entry.get("distribution_effectivity", 0.0), f"{name}.distribution_effectivity"
        ),
        distribution_effectivity_bonus_per_quality_level=parse_number(
            entry.get("distribution_effectivity_bonus_per_quality_level", 0.0),
            f"{name}.distribution_effectivity_bonus_per_quality_level",
        ),
    )


def parse_quality(entry: dict[str, Any]) -> QualityPrototype:
    name = entry["name"]
    multipliers = {
        key: parse_number(entry[key], f"{name}.{key}")
        for key in QUALITY_MULTIPLIER_FIELDS
        if entry.get(key) is not None
    }
    return QualityPrototype(
        **base_fields(entry, "quality"),
        level=parse_number(entry.get("level", 0), f"{name}.level"),
        next=entry.get("next") or None,
        next_probability=parse_number(
            entry.get("next_probability", 0.0), f"{name}.next_probability"
        ),
        multipliers=multipliers,
    )
