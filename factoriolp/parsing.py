import math
import re
from typing import Any

from factoriolp.errors import MalformedEnergyString, MalformedNumericField


TICKS_PER_SECOND = 60.0

ENERGY_REGEX = re.compile(r"(\d+(?:\.\d*)?)([kMGTPEZYRQ])?([JW])?")
ENERGY_MAGNITUDES = {
    "k": 1e3,
    "M": 1e6,
    "G": 1e9,
    "T": 1e12,
    "P": 1e15,
    "E": 1e18,
    "Z": 1e21,
    "Y": 1e24,
    "R": 1e27,
    "Q": 1e30,
}
ENERGY_SUFFIX = " kMGTPEZYRQ"


def parse_energy(value: Any) -> float:
    # Joules, or joules per tick when the literal is a power ("W")
    if not isinstance(value, str):
        raise MalformedEnergyString(value)
    m = ENERGY_REGEX.fullmatch(value)
    if m is None:
        raise MalformedEnergyString(value)
    number, magnitude, unit = m.groups()
    amount = float(number)
    if magnitude is not None:
        amount *= ENERGY_MAGNITUDES[magnitude]
    if unit == "W":
        amount /= TICKS_PER_SECOND
    return amount


def parse_optional_energy(value: Any) -> float | None:
    if value is None:
        return None
    return parse_energy(value)


def format_energy(amount: float, unit: str = "J") -> str:
    power = 0
    divisor = 1.0
    while amount >= divisor * 1000.0 and power < len(ENERGY_SUFFIX) - 1:
        divisor *= 1000.0
        power += 1
    value = round(amount / divisor * 100.0) / 100.0
    return f"{value:g}{ENERGY_SUFFIX[power].strip()}{unit}"


def parse_number(value: Any, field: str) -> float:
    if isinstance(value, bool):
        raise MalformedNumericField(field, value)
    if isinstance(value, (int, float)):
        result = float(value)
    elif isinstance(value, str):
        try:
            result = float(value)
        except ValueError:
            raise MalformedNumericField(field, value) from None
    else:
        raise MalformedNumericField(field, value)
    if math.isnan(result):
        raise MalformedNumericField(field, value)
    return result


def parse_optional_number(value: Any, field: str) -> float | None:
    if value is None:
        return None
    return parse_number(value, field)


def as_list(value: Any) -> list[Any]:
    # The dumper writes empty arrays as empty objects
    if value is None:
        return []
    if isinstance(value, dict):
        assert not value, f"expected a list, got {value}"
        return []
    if isinstance(value, list):
        return value
    return [value]


def as_optional_list(value: Any) -> list[Any] | None:
    if value is None:
        return None
    return as_list(value)
