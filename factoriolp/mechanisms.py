import copy
from dataclasses import dataclass, field
from typing import Any, ClassVar

from factoriolp.context import GameDataContext
from factoriolp.debug import debug_dump, warn
from factoriolp.effects import (
    Effect,
    ModuleConfig,
    effective_effect,
    parse_id_with_quality,
    parse_module_config,
    quality_distribution,
)
from factoriolp.energy import energy_flow
from factoriolp.identity import (
    Electricity,
    Entity,
    Flow,
    Fluid,
    Heat,
    Item,
    ItemIdentity,
    flow_to_keys,
    fluid_identity,
    parse_identity,
    update_flow,
)
from factoriolp.prototypes import (
    CraftingMachinePrototype,
    FluidIngredient,
    ModulePrototype,
    PoweredEntity,
    QualityPrototype,
    RecipePrototype,
)
from factoriolp.yields import ItemResult


### Constants ###


# cost of a mechanism that runs without a machine
HANDCRAFT_COST = 16.0
SOURCE_COST = 1024.0
ELECTRICITY_SOURCE_COST = 0.01

# mining fluid amounts are given per 10 cycles
MINING_FLUID_DIVISOR = 10.0

RECIPE_TYPE = "factorio:recipe"
MINING_TYPE = "factorio:mining"
SOURCE_TYPE = "factorio:source"


### Mechanisms ###


class Mechanism:
    type_name: ClassVar[str] = ""

    def as_flow(self, ctx: GameDataContext) -> Flow:
        raise NotImplementedError

    def cost(self, ctx: GameDataContext) -> float:
        raise NotImplementedError

    def editor_metadata(self, ctx: GameDataContext) -> dict[str, Any]:
        raise NotImplementedError

    def to_dict(self) -> dict[str, Any]:
        raise NotImplementedError


def crafting_speed_multiplier(
    crafter: CraftingMachinePrototype, quality: QualityPrototype
) -> float:
    if crafter.crafting_speed_quality_multiplier is not None:
        return crafter.crafting_speed_quality_multiplier.get(quality.name, 1.0)
    return quality.crafting_machine_speed_multiplier


def machine_cost(machine: PoweredEntity | None) -> float:
    if machine is None:
        return HANDCRAFT_COST
    return machine.footprint()


def add_energy_flow(
    flow: Flow,
    machine: PoweredEntity,
    effects: Effect,
    ctx: GameDataContext,
    fuel: tuple[str, int] | None,
) -> float:
    energy, fulfillment = energy_flow(
        machine.energy_source, machine.power_draw, effects, ctx, fuel
    )
    for identity, rate in energy.items():
        update_flow(flow, identity, rate)
    return fulfillment


def add_item_product(
    flow: Flow,
    ctx: GameDataContext,
    name: str,
    total: float,
    effects: Effect,
    base_quality: int,
):
    distribution = quality_distribution(ctx.qualities, effects.quality, base_quality)
    for quality, probability in enumerate(distribution):
        if probability > 0.0:
            update_flow(flow, Item(name, quality), total * probability)


def id_with_quality_to_list(value: tuple[str, int] | None) -> list[Any] | None:
    return list(value) if value is not None else None


### Module limits ###


EFFECT_TYPES = ("consumption", "speed", "productivity", "pollution", "quality")


def allowed_effect_types(
    machine: PoweredEntity | None, recipe: RecipePrototype | None = None
) -> list[str]:
    allowed = list(EFFECT_TYPES)
    if machine is not None and machine.allowed_effects is not None:
        allowed = [name for name in allowed if name in machine.allowed_effects]
    if recipe is not None:
        allowed = [name for name in allowed if getattr(recipe, f"allow_{name}")]
    return allowed


def allowed_module_categories(
    machine: PoweredEntity | None, recipe: RecipePrototype | None = None
) -> list[str] | None:
    # None: any category
    categories: list[str] | None = None
    limits = (
        machine.allowed_module_categories if machine is not None else None,
        recipe.allowed_module_categories if recipe is not None else None,
    )
    for limit in limits:
        if limit is None:
            continue
        if categories is None:
            categories = list(limit)
        else:
            categories = [category for category in categories if category in limit]
    return categories


def module_allowed(
    module: ModulePrototype, effect_types: list[str], categories: list[str] | None
) -> bool:
    if categories is not None and module.category not in categories:
        return False
    effect = module.effect
    return (
        ("consumption" in effect_types or effect.consumption >= 0)
        and ("speed" in effect_types or effect.speed <= 0)
        and ("productivity" in effect_types or effect.productivity <= 0)
        and ("pollution" in effect_types or effect.pollution <= 0)
        and ("quality" in effect_types or effect.quality <= 0)
    )


def allowed_modules(
    ctx: GameDataContext, machine: PoweredEntity | None, recipe: RecipePrototype | None = None
) -> list[str]:
    if machine is None or machine.module_slots <= 0:
        return []
    effect_types = allowed_effect_types(machine, recipe)
    categories = allowed_module_categories(machine, recipe)
    return [
        module.name
        for module in ctx.modules.values()
        if module_allowed(module, effect_types, categories)
    ]


def check_modules(
    ctx: GameDataContext,
    module_config: ModuleConfig,
    machine: PoweredEntity | None,
    recipe: RecipePrototype | None = None,
):
    allowed = allowed_modules(ctx, machine, recipe)
    where = machine.name if machine is not None else "hand"
    for name, _ in module_config.modules:
        if name not in allowed:
            warn(f"module {name} is not allowed in {where}")


@dataclass
class RecipeConfig(Mechanism):
    type_name: ClassVar[str] = RECIPE_TYPE

    recipe: str
    recipe_quality: int = 0
    machine: str | None = None
    machine_quality: int = 0
    module_config: ModuleConfig = field(default_factory=ModuleConfig)
    # (item, quality) for burners, (fluid, temperature) for fluid sources
    fuel: tuple[str, int] | None = None

    def as_flow(self, ctx: GameDataContext) -> Flow:
        flow: Flow = {}
        recipe = ctx.recipe(self.recipe)
        ctx.quality(self.recipe_quality)
        crafter = ctx.crafter(self.machine) if self.machine is not None else None
        receiver = crafter.effect_receiver if crafter is not None else None
        effects = effective_effect(self.module_config, ctx, receiver)
        check_modules(ctx, self.module_config, crafter, recipe)

        speed = 1.0
        if crafter is not None:
            if crafter.fixed_recipe is not None and crafter.fixed_recipe != recipe.name:
                warn(
                    f"{crafter.name} is fixed to recipe {crafter.fixed_recipe}, "
                    f"not {recipe.name}"
                )
            quality = ctx.quality(self.machine_quality)
            speed = crafter.crafting_speed * crafting_speed_multiplier(crafter, quality)
            if speed <= 0:
                warn(f"{crafter.name} has no crafting speed, {recipe.name} will not run")
            speed *= add_energy_flow(flow, crafter, effects, ctx, self.fuel)

        if recipe.energy_required <= 0:
            warn(f"recipe {recipe.name} has non-positive energy_required")
            cycle_rate = 0.0
        else:
            cycle_rate = max(speed, 0.0) / recipe.energy_required
        scale = (1.0 + effects.speed) * cycle_rate

        for ingredient in recipe.ingredients:
            if isinstance(ingredient, FluidIngredient):
                key: ItemIdentity = fluid_identity(ingredient.name, ingredient.temperature)
            else:
                key = Item(ingredient.name, self.recipe_quality)
            update_flow(flow, key, -ingredient.amount * scale)

        productivity = min(max(effects.productivity, 0.0), recipe.maximum_productivity)
        for result in recipe.results:
            base_yield, bonus_yield = result.normalized_output()
            total = (base_yield + bonus_yield * productivity) * scale
            if isinstance(result, ItemResult):
                add_item_product(flow, ctx, result.name, total, effects, self.recipe_quality)
            else:
                update_flow(flow, fluid_identity(result.name, result.temperature), total)

        return flow

    def cost(self, ctx: GameDataContext) -> float:
        crafter = ctx.crafter(self.machine) if self.machine is not None else None
        return machine_cost(crafter)

    def editor_metadata(self, ctx: GameDataContext) -> dict[str, Any]:
        recipe = ctx.recipe(self.recipe)
        crafter = ctx.crafter(self.machine) if self.machine is not None else None
        metadata: dict[str, Any] = {
            "type": self.type_name,
            "title": recipe.name,
            "icons": [("recipe", recipe.name, self.recipe_quality)],
            "machine": None,
            "module_slots": 0,
            "allowed_effects": allowed_effect_types(crafter, recipe),
            "allowed_module_categories": allowed_module_categories(crafter, recipe),
            "allowed_modules": allowed_modules(ctx, crafter, recipe),
            "fixed_recipe": None,
            "candidate_machines": [candidate.name for candidate in ctx.crafters_for(recipe)],
        }
        if crafter is not None:
            metadata["machine"] = crafter.name
            metadata["icons"].append(("entity", crafter.name, self.machine_quality))
            metadata["module_slots"] = crafter.module_slots
            metadata["fixed_recipe"] = crafter.fixed_recipe
        return metadata

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type_name,
            "recipe": [self.recipe, self.recipe_quality],
            "machine": id_with_quality_to_list(
                (self.machine, self.machine_quality) if self.machine is not None else None
            ),
            "module_config": self.module_config.to_dict(),
            "fuel": id_with_quality_to_list(self.fuel),
        }


@dataclass
class MiningConfig(Mechanism):
    type_name: ClassVar[str] = MINING_TYPE

    resource: str
    machine: str | None = None
    machine_quality: int = 0
    module_config: ModuleConfig = field(default_factory=ModuleConfig)
    fuel: tuple[str, int] | None = None

    def as_flow(self, ctx: GameDataContext) -> Flow:
        flow: Flow = {}
        resource = ctx.resource(self.resource)
        miner = ctx.miner(self.machine) if self.machine is not None else None
        receiver = miner.effect_receiver if miner is not None else None
        effects = effective_effect(self.module_config, ctx, receiver)
        check_modules(ctx, self.module_config, miner)

        drain_rate = ctx.quality(self.machine_quality).mining_drill_resource_drain_multiplier
        speed = 1.0
        if miner is not None:
            speed = miner.mining_speed
            drain_rate *= miner.resource_drain_rate_percent / 100.0
            speed *= add_energy_flow(flow, miner, effects, ctx, self.fuel)

        minable = resource.minable
        if minable is None:
            warn(f"resource {resource.name} is not minable")
            return flow
        if minable.mining_time <= 0:
            warn(f"resource {resource.name} has non-positive mining_time")
            cycle_rate = 0.0
        else:
            cycle_rate = max(speed, 0.0) / minable.mining_time
        scale = (1.0 + effects.speed) * cycle_rate

        update_flow(flow, Entity(resource.name, 0), -scale * drain_rate)
        if minable.required_fluid is not None:
            update_flow(
                flow,
                fluid_identity(minable.required_fluid),
                -scale * minable.fluid_amount / MINING_FLUID_DIVISOR,
            )

        if minable.results is not None:
            for result in minable.results:
                base_yield, bonus_yield = result.normalized_output()
                total = (base_yield + bonus_yield * effects.productivity) * scale
                if isinstance(result, ItemResult):
                    add_item_product(flow, ctx, result.name, total, effects, 0)
                else:
                    update_flow(flow, fluid_identity(result.name, result.temperature), total)
        else:
            assert minable.result is not None, f"{resource.name} has no mining result"
            count = minable.count if minable.count is not None else 1.0
            total = count * (1.0 + effects.productivity) * scale
            add_item_product(flow, ctx, minable.result, total, effects, 0)

        return flow

    def cost(self, ctx: GameDataContext) -> float:
        miner = ctx.miner(self.machine) if self.machine is not None else None
        return machine_cost(miner)

    def editor_metadata(self, ctx: GameDataContext) -> dict[str, Any]:
        resource = ctx.resource(self.resource)
        miner = ctx.miner(self.machine) if self.machine is not None else None
        metadata: dict[str, Any] = {
            "type": self.type_name,
            "title": resource.name,
            "icons": [("entity", resource.name, 0)],
            "machine": None,
            "module_slots": 0,
            "allowed_effects": allowed_effect_types(miner),
            "allowed_module_categories": allowed_module_categories(miner),
            "allowed_modules": allowed_modules(ctx, miner),
            "candidate_machines": [candidate.name for candidate in ctx.miners_for(resource)],
        }
        if miner is not None:
            metadata["machine"] = miner.name
            metadata["icons"].append(("entity", miner.name, self.machine_quality))
            metadata["module_slots"] = miner.module_slots
        return metadata

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type_name,
            "resource": self.resource,
            "machine": id_with_quality_to_list(
                (self.machine, self.machine_quality) if self.machine is not None else None
            ),
            "module_config": self.module_config.to_dict(),
            "fuel": id_with_quality_to_list(self.fuel),
        }


@dataclass
class InfiniteSource(Mechanism):
    """Unlimited supply of one identity, one unit per activity.

    A source costing nothing is rejected by the solver as unbounded whenever
    its output can be consumed, so give free supplies a small positive cost.
    """

    type_name: ClassVar[str] = SOURCE_TYPE

    item: ItemIdentity
    # None: priced by the kind of identity
    source_cost: float | None = None

    def as_flow(self, ctx: GameDataContext) -> Flow:
        return {self.item: 1.0}

    def cost(self, ctx: GameDataContext) -> float:
        if self.source_cost is not None:
            return self.source_cost
        if isinstance(self.item, (Electricity, Heat)):
            return ELECTRICITY_SOURCE_COST
        return SOURCE_COST

    def editor_metadata(self, ctx: GameDataContext) -> dict[str, Any]:
        icons = []
        if isinstance(self.item, (Item, Entity)):
            kind = "item" if isinstance(self.item, Item) else "entity"
            icons.append((kind, self.item.name, self.item.quality))
        elif isinstance(self.item, Fluid):
            icons.append(("fluid", self.item.name, 0))
        return {
            "type": self.type_name,
            "title": self.item.key,
            "icons": icons,
            "machine": None,
            "module_slots": 0,
            "allowed_effects": [],
            "allowed_module_categories": None,
            "allowed_modules": [],
            "candidate_machines": [],
        }

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.type_name, "item": self.item.key}
        if self.source_cost is not None:
            result["cost"] = self.source_cost
        return result


### Serialization ###


def parse_machine(value: Any) -> tuple[str | None, int]:
    if value is None:
        return (None, 0)
    return parse_id_with_quality(value)


def parse_fuel(value: Any) -> tuple[str, int] | None:
    if value is None:
        return None
    return parse_id_with_quality(value)


def mechanism_from_dict(entry: dict[str, Any]) -> Mechanism:
    type_ = entry.get("type")
    if type_ == RECIPE_TYPE:
        recipe, recipe_quality = parse_id_with_quality(entry["recipe"])
        machine, machine_quality = parse_machine(entry.get("machine"))
        return RecipeConfig(
            recipe=recipe,
            recipe_quality=recipe_quality,
            machine=machine,
            machine_quality=machine_quality,
            module_config=parse_module_config(entry.get("module_config")),
            fuel=parse_fuel(entry.get("fuel")),
        )
    if type_ == MINING_TYPE:
        machine, machine_quality = parse_machine(entry.get("machine"))
        return MiningConfig(
            resource=entry["resource"],
            machine=machine,
            machine_quality=machine_quality,
            module_config=parse_module_config(entry.get("module_config")),
            fuel=parse_fuel(entry.get("fuel")),
        )
    if type_ == SOURCE_TYPE:
        cost = entry.get("cost")
        return InfiniteSource(
            item=parse_identity(entry["item"]),
            source_cost=float(cost) if cost is not None else None,
        )
    raise ValueError(f"unknown mechanism type: {type_!r}")


### Batches ###


def collect_flows(
    mechanisms: dict[str, Mechanism], ctx: GameDataContext
) -> dict[str, tuple[Flow, float]]:
    # the batch works on its own copy so later edits cannot leak into it
    batch = copy.deepcopy(mechanisms)
    flows = {
        mechanism_id: (mechanism.as_flow(ctx), mechanism.cost(ctx))
        for mechanism_id, mechanism in batch.items()
    }
    debug_dump(
        "Mechanism flows",
        {
            mechanism_id: (flow_to_keys(flow), cost)
            for mechanism_id, (flow, cost) in flows.items()
        },
    )
    return flows


def suggest_recipes(
    ctx: GameDataContext, item: ItemIdentity, value: float
) -> list[RecipeConfig]:
    """Recipes that would help balance ``item``.

    A negative ``value`` is a deficit and asks for producers, a positive one
    is a surplus and asks for consumers. Each suggestion runs on the first
    machine able to craft it.
    """
    if isinstance(item, Item):
        name, quality = item.name, item.quality
    elif isinstance(item, Fluid):
        name, quality = item.name, 0
    else:
        return []
    if value == 0:
        return []

    suggestions: list[RecipeConfig] = []
    for recipe in ctx.recipes.values():
        if recipe.hidden:
            continue
        if value < 0:
            matches = any(result.name == name for result in recipe.results)
        else:
            matches = any(ingredient.name == name for ingredient in recipe.ingredients)
        if not matches:
            continue

        crafters = ctx.crafters_for(recipe)
        config = RecipeConfig(
            recipe=recipe.name,
            recipe_quality=quality,
            machine=crafters[0].name if crafters else None,
        )
        moved = config.as_flow(ctx).get(item, 0.0)
        if (value < 0 and moved <= 0) or (value > 0 and moved >= 0):
            continue
        suggestions.append(config)
    return suggestions
