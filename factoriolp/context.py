import json
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, TypeVar

from factoriolp.debug import debug_dump, warn
from factoriolp.errors import MissingReference
from factoriolp.prototypes import (
    CRAFTING_MACHINE_TYPES,
    ITEM_TYPES,
    NORMAL_QUALITY,
    PLAIN_ENTITY_TYPES,
    BeaconPrototype,
    CraftingMachinePrototype,
    EntityPrototype,
    FluidPrototype,
    ItemGroup,
    ItemPrototype,
    ItemSubgroup,
    MiningDrillPrototype,
    ModulePrototype,
    PrototypeBase,
    QualityPrototype,
    RecipePrototype,
    ResourcePrototype,
    implicit_normal_quality,
    parse_beacon,
    parse_crafting_machine,
    parse_entity,
    parse_fluid,
    parse_group,
    parse_item,
    parse_mining_drill,
    parse_module,
    parse_quality,
    parse_recipe,
    parse_resource,
    parse_subgroup,
)
from factoriolp.yields import ItemResult


T = TypeVar("T")

OTHER_GROUP = "other"

# group -> subgroup -> names, each level in display order
OrderInfo = list[tuple[str, list[tuple[str, list[str]]]]]
ReverseOrderInfo = dict[str, tuple[int, int, int]]

ORDERED_CATEGORIES = ("item", "fluid", "recipe", "entity")


### Context ###


@dataclass
class GameDataContext:
    items: dict[str, ItemPrototype] = field(default_factory=dict)
    fluids: dict[str, FluidPrototype] = field(default_factory=dict)
    entities: dict[str, EntityPrototype] = field(default_factory=dict)
    recipes: dict[str, RecipePrototype] = field(default_factory=dict)
    crafters: dict[str, CraftingMachinePrototype] = field(default_factory=dict)
    resources: dict[str, ResourcePrototype] = field(default_factory=dict)
    miners: dict[str, MiningDrillPrototype] = field(default_factory=dict)
    modules: dict[str, ModulePrototype] = field(default_factory=dict)
    beacons: dict[str, BeaconPrototype] = field(default_factory=dict)
    qualities: list[QualityPrototype] = field(
        default_factory=lambda: [implicit_normal_quality()]
    )
    groups: dict[str, ItemGroup] = field(default_factory=dict)
    subgroups: dict[str, ItemSubgroup] = field(default_factory=dict)
    ordered_entries: dict[str, OrderInfo] = field(default_factory=dict)
    order_of_entries: dict[str, ReverseOrderInfo] = field(default_factory=dict)

    def recipe(self, name: str) -> RecipePrototype:
        return lookup(self.recipes, "recipe", name)

    def crafter(self, name: str) -> CraftingMachinePrototype:
        return lookup(self.crafters, "crafting machine", name)

    def resource(self, name: str) -> ResourcePrototype:
        return lookup(self.resources, "resource", name)

    def miner(self, name: str) -> MiningDrillPrototype:
        return lookup(self.miners, "mining drill", name)

    def module(self, name: str) -> ModulePrototype:
        return lookup(self.modules, "module", name)

    def beacon(self, name: str) -> BeaconPrototype:
        return lookup(self.beacons, "beacon", name)

    def item(self, name: str) -> ItemPrototype:
        return lookup(self.items, "item", name)

    def fluid(self, name: str) -> FluidPrototype:
        return lookup(self.fluids, "fluid", name)

    def quality(self, index: int) -> QualityPrototype:
        if not 0 <= index < len(self.qualities):
            raise MissingReference("quality", str(index))
        return self.qualities[index]

    def quality_index(self, name: str) -> int:
        for quality in self.qualities:
            if quality.name == name:
                return quality.index
        raise MissingReference("quality", name)

    def crafters_for(self, recipe: RecipePrototype) -> list[CraftingMachinePrototype]:
        return [crafter for crafter in self.crafters.values() if crafter.can_craft(recipe)]

    def miners_for(self, resource: ResourcePrototype) -> list[MiningDrillPrototype]:
        return [miner for miner in self.miners.values() if miner.can_mine(resource)]


def lookup(table: dict[str, T], category: str, name: str) -> T:
    try:
        return table[name]
    except KeyError:
        raise MissingReference(category, name) from None


### Loading ###


def parse_table(
    raw: dict[str, Any],
    type_names: tuple[str, ...],
    parse: Callable[[dict[str, Any]], T],
) -> dict[str, T]:
    table: dict[str, T] = {}
    for type_name in type_names:
        for name, entry in raw.get(type_name, {}).items():
            if name in table:
                warn(f"duplicate prototype {name!r} in {type_name!r}, keeping the later one")
            # the dump keys entries by name; some entries omit it
            table[name] = parse({"name": name, "type": type_name, **entry})
    return table


def parse_quality_chain(raw: dict[str, Any]) -> list[QualityPrototype]:
    table = raw.get("quality") or {}
    if not table:
        return [implicit_normal_quality()]
    assert NORMAL_QUALITY in table, "quality table has no 'normal' tier"

    qualities: list[QualityPrototype] = []
    seen: set[str] = set()
    name: str | None = NORMAL_QUALITY
    while name is not None and name in table:
        assert name not in seen, f"quality chain loops at {name!r}"
        seen.add(name)
        quality = parse_quality({"name": name, "type": "quality", **table[name]})
        quality.index = len(qualities)
        qualities.append(quality)
        name = quality.next
    return qualities


def load_context(raw: dict[str, Any]) -> GameDataContext:
    crafters = parse_table(raw, CRAFTING_MACHINE_TYPES, parse_crafting_machine)
    resources = parse_table(raw, ("resource",), parse_resource)
    miners = parse_table(raw, ("mining-drill",), parse_mining_drill)
    beacons = parse_table(raw, ("beacon",), parse_beacon)

    entities: dict[str, EntityPrototype] = parse_table(raw, PLAIN_ENTITY_TYPES, parse_entity)
    for table in (crafters, resources, miners, beacons):
        entities.update(table)

    ctx = GameDataContext(
        items=parse_table(raw, ITEM_TYPES, parse_item),
        fluids=parse_table(raw, ("fluid",), parse_fluid),
        entities=entities,
        recipes=parse_table(raw, ("recipe",), parse_recipe),
        crafters=crafters,
        resources=resources,
        miners=miners,
        modules=parse_table(raw, ("module",), parse_module),
        beacons=beacons,
        qualities=parse_quality_chain(raw),
        groups=parse_table(raw, ("item-group",), parse_group),
        subgroups=parse_table(raw, ("item-subgroup",), parse_subgroup),
    )
    build_order_info(ctx)

    debug_dump(
        "Loaded prototype counts",
        {
            "items": len(ctx.items),
            "fluids": len(ctx.fluids),
            "entities": len(ctx.entities),
            "recipes": len(ctx.recipes),
            "crafters": len(ctx.crafters),
            "resources": len(ctx.resources),
            "miners": len(ctx.miners),
            "modules": len(ctx.modules),
            "beacons": len(ctx.beacons),
            "qualities": [quality.name for quality in ctx.qualities],
        },
    )
    return ctx


def load_context_file(path: str) -> GameDataContext:
    with open(path, encoding="utf-8") as f:
        return load_context(json.load(f))


### Display order ###


def get_order_info(
    prototypes: Mapping[str, PrototypeBase],
    groups: dict[str, ItemGroup],
    subgroups: dict[str, ItemSubgroup],
) -> OrderInfo:
    grouped: dict[str, dict[str, list[PrototypeBase]]] = {}
    for prototype in prototypes.values():
        subgroup = subgroups.get(prototype.subgroup)
        if subgroup is None:
            group_name, subgroup_name = OTHER_GROUP, ""
        elif subgroup.group in groups:
            group_name, subgroup_name = subgroup.group, subgroup.name
        else:
            group_name, subgroup_name = OTHER_GROUP, subgroup.name
        grouped.setdefault(group_name, {}).setdefault(subgroup_name, []).append(prototype)

    # unknown groups and subgroups sort first
    def group_key(name: str) -> tuple[bool, str, str]:
        group = groups.get(name)
        return (group is not None, group.order if group else "", name)

    def subgroup_key(name: str) -> tuple[bool, str, str]:
        subgroup = subgroups.get(name)
        return (subgroup is not None, subgroup.order if subgroup else "", name)

    result: OrderInfo = []
    for group_name in sorted(grouped, key=group_key):
        members = grouped[group_name]
        subgroup_entries = []
        for subgroup_name in sorted(members, key=subgroup_key):
            ordered = sorted(members[subgroup_name], key=lambda p: (p.order, p.name))
            subgroup_entries.append((subgroup_name, [p.name for p in ordered]))
        result.append((group_name, subgroup_entries))
    return result


def get_reverse_order_info(order_info: OrderInfo) -> ReverseOrderInfo:
    reverse: ReverseOrderInfo = {}
    for group_index, (_, subgroups) in enumerate(order_info):
        for subgroup_index, (_, names) in enumerate(subgroups):
            for index, name in enumerate(names):
                reverse[name] = (group_index, subgroup_index, index)
    return reverse


def inherit_recipe_order(ctx: GameDataContext):
    def copy_from(recipe: RecipePrototype, source: PrototypeBase | None):
        if source is not None:
            recipe.subgroup = source.subgroup
            recipe.order = source.order

    def product_prototype(result_name: str, is_item: bool) -> PrototypeBase | None:
        return ctx.items.get(result_name) if is_item else ctx.fluids.get(result_name)

    for recipe_name, recipe in ctx.recipes.items():
        if recipe.hidden or (recipe.order and recipe.subgroup):
            continue
        if len(recipe.results) == 1:
            result = recipe.results[0]
            copy_from(recipe, product_prototype(result.name, isinstance(result, ItemResult)))
        elif recipe.main_product is not None:
            copy_from(recipe, ctx.items.get(recipe.main_product))
        else:
            for result in recipe.results:
                if result.name == recipe_name:
                    is_item = isinstance(result, ItemResult)
                    copy_from(recipe, product_prototype(result.name, is_item))


def inherit_entity_order(ctx: GameDataContext):
    for item in ctx.items.values():
        entity = ctx.entities.get(item.place_result) if item.place_result else None
        if entity is not None:
            entity.subgroup = item.subgroup
            entity.order = item.order


def build_order_info(ctx: GameDataContext):
    inherit_recipe_order(ctx)
    inherit_entity_order(ctx)
    tables: dict[str, Mapping[str, PrototypeBase]] = {
        "item": ctx.items,
        "fluid": ctx.fluids,
        "recipe": ctx.recipes,
        "entity": ctx.entities,
    }
    for category in ORDERED_CATEGORIES:
        order_info = get_order_info(tables[category], ctx.groups, ctx.subgroups)
        ctx.ordered_entries[category] = order_info
        ctx.order_of_entries[category] = get_reverse_order_info(order_info)
