"""Identities of everything that can flow through a production mechanism.

Each variant is a frozen dataclass; equality and hashing cover both the
variant and its payload, so ``Item("coal", 0)`` and ``Entity("coal", 0)`` are
distinct keys of a flow.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, ClassVar, Iterable


@dataclass(frozen=True)
class ItemIdentity:
    tag: ClassVar[str] = ""

    def _payload(self) -> tuple:
        return tuple(getattr(self, field.name) for field in fields(self))

    def __eq__(self, other: object) -> bool:
        if type(self) is not type(other):
            return NotImplemented
        return self._payload() == other._payload()  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((self.tag, self._payload()))

    @property
    def key(self) -> str:
        return self.tag

    def __str__(self) -> str:
        return self.key


# variants inherit the tag-aware __eq__ and __hash__ above
identity_variant = dataclass(frozen=True, eq=False)


@identity_variant
class Item(ItemIdentity):
    tag: ClassVar[str] = "item"
    name: str
    quality: int = 0

    @property
    def key(self) -> str:
        return f"{self.tag}|{self.name}|{self.quality}"


@identity_variant
class Fluid(ItemIdentity):
    tag: ClassVar[str] = "fluid"
    name: str
    # floats don't hash reliably, temperatures are kept as whole degrees
    temperature: int | None = None

    @property
    def key(self) -> str:
        if self.temperature is None:
            return f"{self.tag}|{self.name}"
        return f"{self.tag}|{self.name}|{self.temperature}"


@identity_variant
class Entity(ItemIdentity):
    tag: ClassVar[str] = "entity"
    name: str
    quality: int = 0

    @property
    def key(self) -> str:
        return f"{self.tag}|{self.name}|{self.quality}"


@identity_variant
class Heat(ItemIdentity):
    tag: ClassVar[str] = "heat"


@identity_variant
class Electricity(ItemIdentity):
    tag: ClassVar[str] = "electricity"


@identity_variant
class FluidHeat(ItemIdentity):
    """Heat drawn from any fluid passing ``filter`` (None: any fluid)."""

    tag: ClassVar[str] = "fluid-heat"
    filter: str | None = None

    @property
    def key(self) -> str:
        return f"{self.tag}|{self.filter or '*'}"


@identity_variant
class FluidFuel(ItemIdentity):
    """Energy from burning any fluid passing ``filter`` (None: any fluid)."""

    tag: ClassVar[str] = "fluid-fuel"
    filter: str | None = None

    @property
    def key(self) -> str:
        return f"{self.tag}|{self.filter or '*'}"


@identity_variant
class ItemFuel(ItemIdentity):
    tag: ClassVar[str] = "item-fuel"
    category: str

    @property
    def key(self) -> str:
        return f"{self.tag}|{self.category}"


@identity_variant
class RocketPayloadWeight(ItemIdentity):
    tag: ClassVar[str] = "rocket-payload-weight"


@identity_variant
class RocketPayloadStack(ItemIdentity):
    tag: ClassVar[str] = "rocket-payload-stack"


@identity_variant
class Pollution(ItemIdentity):
    tag: ClassVar[str] = "pollution"
    name: str

    @property
    def key(self) -> str:
        return f"{self.tag}|{self.name}"


@identity_variant
class Custom(ItemIdentity):
    tag: ClassVar[str] = "custom"
    name: str

    @property
    def key(self) -> str:
        return f"{self.tag}|{self.name}"


def fluid_identity(name: str, temperature: float | None = None) -> Fluid:
    if temperature is None:
        return Fluid(name)
    return Fluid(name, int(round(temperature)))


def parse_identity(key: str) -> ItemIdentity:
    tag, _, rest = key.partition("|")
    tokens = rest.split("|") if rest else []
    if tag == Item.tag or tag == Entity.tag:
        assert tokens, f"missing name in {key!r}"
        quality = int(tokens[1]) if len(tokens) > 1 else 0
        return (Item if tag == Item.tag else Entity)(tokens[0], quality)
    if tag == Fluid.tag:
        assert tokens, f"missing name in {key!r}"
        temperature = int(tokens[1]) if len(tokens) > 1 else None
        return Fluid(tokens[0], temperature)
    if tag == FluidHeat.tag or tag == FluidFuel.tag:
        filter_ = rest if rest and rest != "*" else None
        return (FluidHeat if tag == FluidHeat.tag else FluidFuel)(filter_)
    if tag == ItemFuel.tag:
        return ItemFuel(rest)
    if tag == Pollution.tag:
        return Pollution(rest)
    if tag == Custom.tag:
        return Custom(rest)
    for singleton in (Heat, Electricity, RocketPayloadWeight, RocketPayloadStack):
        if tag == singleton.tag and not rest:
            return singleton()
    raise ValueError(f"unknown item identity: {key!r}")


### Flows ###


Flow = dict[ItemIdentity, float]


def update_flow(flow: dict[ItemIdentity, float], key: ItemIdentity, value: float):
    flow[key] = flow.get(key, 0.0) + value


def add_flows(a: Flow, b: Flow, scale: float = 1.0) -> Flow:
    result = dict(a)
    for key, value in b.items():
        update_flow(result, key, value * scale)
    return result


def flow_to_keys(flow: Flow) -> dict[str, float]:
    return {identity.key: rate for identity, rate in flow.items()}


def flow_from_keys(raw: dict[str, Any]) -> Flow:
    flow: Flow = {}
    for key, rate in raw.items():
        update_flow(flow, parse_identity(key), float(rate))
    return flow


### Display order ###


NO_ORDER = (0, 0, 0)

CATEGORY_ORDER: dict[type, int] = {
    Fluid: 0x100,
    Entity: 0x200,
    Heat: 0x300,
    Electricity: 0x400,
    FluidHeat: 0x500,
    FluidFuel: 0x600,
    ItemFuel: 0x700,
    RocketPayloadWeight: 0x800,
    RocketPayloadStack: 0x900,
    Pollution: 0xA00,
    Custom: 0xB00,
}


def identity_sort_key(identity: ItemIdentity, ctx: Any = None) -> tuple:
    order_of_entries = getattr(ctx, "order_of_entries", {})

    def order_of(category: str, name: str) -> tuple[int, int, int]:
        return order_of_entries.get(category, {}).get(name, NO_ORDER)

    if isinstance(identity, Item):
        return (identity.quality, order_of("item", identity.name), identity.name)
    if isinstance(identity, Fluid):
        return (
            CATEGORY_ORDER[Fluid],
            order_of("fluid", identity.name),
            identity.name,
            identity.temperature if identity.temperature is not None else -1,
        )
    if isinstance(identity, Entity):
        return (
            CATEGORY_ORDER[Entity] + identity.quality,
            order_of("entity", identity.name),
            identity.name,
        )
    name = ""
    if isinstance(identity, (FluidHeat, FluidFuel)):
        name = identity.filter or ""
    elif isinstance(identity, ItemFuel):
        name = identity.category
    elif isinstance(identity, (Pollution, Custom)):
        name = identity.name
    return (CATEGORY_ORDER[type(identity)], NO_ORDER, name)


def sort_identities(identities: Iterable[ItemIdentity], ctx: Any = None) -> list[ItemIdentity]:
    return sorted(identities, key=lambda identity: identity_sort_key(identity, ctx))
