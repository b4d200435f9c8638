import pytest

from factoriolp.errors import MalformedEnergyString, MalformedNumericField
from factoriolp.parsing import as_list, format_energy, parse_energy, parse_number


@pytest.mark.parametrize(
    "literal, expected",
    [
        ("150", 150.0),
        ("4MJ", 4e6),
        ("2.5kJ", 2500.0),
        ("1.J", 1.0),
        ("60W", 1.0),
        ("75kW", 1250.0),
        ("1QJ", 1e30),
    ],
)
def test_parse_energy(literal, expected):
    assert parse_energy(literal) == pytest.approx(expected)


@pytest.mark.parametrize(
    "literal", ["", "kJ", ".5GJ", "1.5 kJ", "1mJ", "1e3J", "-5J", "1JW", "1kJx", 100]
)
def test_parse_energy_rejects_malformed(literal):
    with pytest.raises(MalformedEnergyString):
        parse_energy(literal)


def test_malformed_energy_is_a_value_error():
    with pytest.raises(ValueError):
        parse_energy("lots")


def test_format_energy():
    assert format_energy(150000.0) == "150kJ"
    assert format_energy(1500000.0, "W") == "1.5MW"
    assert format_energy(12.0) == "12J"
    assert format_energy(1234567.0) == "1.23MJ"


def test_parse_number():
    assert parse_number(3, "x") == 3.0
    assert parse_number("2.5", "x") == 2.5
    with pytest.raises(MalformedNumericField):
        parse_number(True, "x")
    with pytest.raises(MalformedNumericField):
        parse_number("fast", "x")
    with pytest.raises(MalformedNumericField) as excinfo:
        parse_number(None, "recipe.energy_required")
    assert excinfo.value.field == "recipe.energy_required"


def test_as_list_treats_empty_object_as_empty_list():
    assert as_list({}) == []
    assert as_list(None) == []
    assert as_list([1, 2]) == [1, 2]
    assert as_list("crafting") == ["crafting"]
