from dataclasses import dataclass, field
from typing import Mapping

import numpy as np
import scipy.optimize

from factoriolp.debug import debug_dump
from factoriolp.errors import SolverError, SolverInfeasible, SolverOther, SolverUnbounded
from factoriolp.identity import Flow, ItemIdentity, sort_identities


SOLVER_EPSILON = 1e-9
# activity a free mechanism may reach inside the recession check
RECESSION_BOUND = 1.0

EXTERNAL_COLUMN_PREFIX = "external|"

# scipy.optimize.milp status codes
MILP_OPTIMAL = 0
MILP_INFEASIBLE = 2
MILP_UNBOUNDED = 3


@dataclass
class SolverSolution:
    activities: dict[str, float]
    objective: float
    # items consumed by some mechanism but produced by none
    missing_producers: list[ItemIdentity] = field(default_factory=list)
    external_inputs: dict[ItemIdentity, float] = field(default_factory=dict)


@dataclass
class LPColumn:
    column_id: str
    flow: Flow
    cost: float
    external: ItemIdentity | None = None


def build_columns(
    mechanisms: Mapping[str, tuple[Flow, float]],
    external: Mapping[ItemIdentity, float] | None,
) -> list[LPColumn]:
    columns = [
        LPColumn(column_id=mechanism_id, flow=flow, cost=cost)
        for mechanism_id, (flow, cost) in mechanisms.items()
    ]
    for identity, cost in (external or {}).items():
        columns.append(
            LPColumn(
                column_id=EXTERNAL_COLUMN_PREFIX + identity.key,
                flow={identity: 1.0},
                cost=cost,
                external=identity,
            )
        )
    for column in columns:
        assert np.isfinite(column.cost), f"cost of {column.column_id} is not finite"
        for identity, rate in column.flow.items():
            assert np.isfinite(rate), f"non-finite rate of {identity} in {column.column_id}"
    return columns


def classify_rows(
    columns: list[LPColumn], target: Flow
) -> tuple[list[ItemIdentity], set[ItemIdentity], list[ItemIdentity]]:
    touched: set[ItemIdentity] = set()
    produced: set[ItemIdentity] = set()
    for column in columns:
        for identity, rate in column.flow.items():
            if rate == 0:
                continue
            touched.add(identity)
            if rate > 0:
                produced.add(identity)

    targets = {identity for identity, rate in target.items() if rate != 0}
    for identity in sort_identities(targets):
        if identity not in touched:
            raise SolverInfeasible(
                f"no mechanism produces or consumes target {identity}",
                missing_producers=[identity],
            )

    missing_producers = sort_identities(touched - produced)
    rows = [
        identity
        for identity in sort_identities(touched)
        if identity in produced or identity in targets
    ]
    return rows, targets, missing_producers


def solve(
    target: Flow,
    mechanisms: Mapping[str, tuple[Flow, float]],
    external: Mapping[ItemIdentity, float] | None = None,
) -> SolverSolution:
    """Cheapest nonnegative activity levels that meet ``target``.

    ``mechanisms`` maps an id to the flow and cost of one unit of activity.
    ``external`` prices extra unit sources for the given items. Every target
    item must balance exactly; every other produced item must not run a
    deficit. Items with consumers but no producer are left unconstrained and
    reported as ``missing_producers``.
    """
    columns = build_columns(mechanisms, external)
    rows, targets, missing_producers = classify_rows(columns, target)

    if not columns:
        return SolverSolution(activities={}, objective=0.0)

    row_indices = {identity: index for index, identity in enumerate(rows)}
    lp_c = np.array([column.cost for column in columns], dtype=np.double)
    lp_A = np.zeros((len(rows), len(columns)), dtype=np.double)
    lp_b_l = np.zeros(len(rows), dtype=np.double)
    lp_b_u = np.full(len(rows), np.inf, dtype=np.double)

    for column_index, column in enumerate(columns):
        for identity, rate in column.flow.items():
            if identity in row_indices:
                lp_A[row_indices[identity], column_index] += rate

    for identity in targets:
        lp_b_l[row_indices[identity]] = target[identity]
        lp_b_u[row_indices[identity]] = target[identity]

    debug_dump("LP columns", [(column.column_id, column.cost) for column in columns])
    debug_dump(
        "LP rows",
        [(identity.key, lp_b_l[index], lp_b_u[index]) for index, identity in enumerate(rows)],
    )
    debug_dump("LP missing producers", [identity.key for identity in missing_producers])

    lp_result = run_milp(lp_c, lp_A, lp_b_l, lp_b_u)
    debug_dump("LP result", lp_result)

    if lp_result.status != MILP_OPTIMAL:
        raise solver_failure(lp_result.status, lp_result.message, missing_producers)

    check_recession(columns, lp_A, lp_b_l, lp_b_u, missing_producers)

    x = np.maximum(lp_result.x, 0.0)
    activities: dict[str, float] = {}
    external_inputs: dict[ItemIdentity, float] = {}
    for column_index, column in enumerate(columns):
        if column.external is not None:
            external_inputs[column.external] = float(x[column_index])
        else:
            activities[column.column_id] = float(x[column_index])

    return SolverSolution(
        activities=activities,
        objective=float(lp_result.fun),
        missing_producers=missing_producers,
        external_inputs=external_inputs,
    )


def run_milp(
    lp_c: np.ndarray,
    lp_A: np.ndarray,
    lp_b_l: np.ndarray,
    lp_b_u: np.ndarray,
    upper_bound: float = np.inf,
) -> scipy.optimize.OptimizeResult:
    constraints = None
    if lp_A.shape[0] > 0:
        constraints = scipy.optimize.LinearConstraint(lp_A, lp_b_l, lp_b_u)  # type: ignore
    return scipy.optimize.milp(
        lp_c,
        integrality=np.zeros(len(lp_c), dtype=np.int64),
        bounds=scipy.optimize.Bounds(0.0, upper_bound),
        constraints=constraints,
    )


def solver_failure(
    status: int, message: str, missing_producers: list[ItemIdentity]
) -> SolverError:
    if status == MILP_INFEASIBLE:
        return SolverInfeasible(f"LP is infeasible: {message}", missing_producers)
    if status == MILP_UNBOUNDED:
        return SolverUnbounded(f"LP is unbounded: {message}", missing_producers)
    return SolverOther(f"LP did not terminate successfully: {message}", missing_producers)


def check_recession(
    columns: list[LPColumn],
    lp_A: np.ndarray,
    lp_b_l: np.ndarray,
    lp_b_u: np.ndarray,
    missing_producers: list[ItemIdentity],
):
    free = [index for index, column in enumerate(columns) if column.cost <= SOLVER_EPSILON]
    if not free:
        return

    # directions along which free mechanisms can run forever: the same rows
    # with zero right-hand sides, equalities stay equalities
    free_A = lp_A[:, free]
    free_b_l = np.where(np.isfinite(lp_b_l), 0.0, -np.inf)
    free_b_u = np.where(np.isfinite(lp_b_u), 0.0, np.inf)
    recession = run_milp(
        -np.ones(len(free), dtype=np.double),
        free_A,
        free_b_l,
        free_b_u,
        upper_bound=RECESSION_BOUND,
    )
    debug_dump("LP recession check", recession)

    if recession.status != MILP_OPTIMAL:
        return
    if -recession.fun > SOLVER_EPSILON:
        runaway = [
            columns[free[index]].column_id
            for index, value in enumerate(recession.x)
            if value > SOLVER_EPSILON
        ]
        raise SolverUnbounded(
            f"free mechanisms can run without limit: {', '.join(runaway)}",
            missing_producers,
        )
