from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from factoriolp.identity import ItemIdentity


class FactorioLPError(Exception):
    pass


### Data integrity ###


class MissingReference(FactorioLPError, KeyError):
    """A configuration points at a prototype the loaded context does not have."""

    def __init__(self, category: str, name: str, detail: str | None = None):
        self.category = category
        self.name = name
        self.detail = detail
        message = f"unknown {category}: {name!r}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)

    def __str__(self) -> str:
        # KeyError would repr() the message
        return str(self.args[0])


### Load-time parse failures ###


class MalformedEnergyString(FactorioLPError, ValueError):
    def __init__(self, value: object):
        self.value = value
        super().__init__(f"not a valid energy string: {value!r}")


class MalformedNumericField(FactorioLPError, ValueError):
    def __init__(self, field: str, value: object):
        self.field = field
        self.value = value
        super().__init__(f"not a valid number for {field}: {value!r}")


### Solver outcomes ###


class SolverError(FactorioLPError):
    """Expected, user-facing solver failure.

    ``missing_producers`` lists the item identities that some mechanism
    consumes but no mechanism produces, which is usually the reason behind
    an infeasible plan.
    """

    kind = "other"

    def __init__(
        self, message: str, missing_producers: list[ItemIdentity] | None = None
    ):
        self.message = message
        self.missing_producers = list(missing_producers or [])
        super().__init__(message)


class SolverInfeasible(SolverError):
    kind = "infeasible"


class SolverUnbounded(SolverError):
    kind = "unbounded"


class SolverOther(SolverError):
    kind = "other"
