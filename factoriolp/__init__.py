from factoriolp.context import GameDataContext, load_context, load_context_file
from factoriolp.effects import BeaconConfig, Effect, ModuleConfig
from factoriolp.errors import (
    FactorioLPError,
    MalformedEnergyString,
    MalformedNumericField,
    MissingReference,
    SolverError,
    SolverInfeasible,
    SolverOther,
    SolverUnbounded,
)
from factoriolp.mechanisms import (
    InfiniteSource,
    Mechanism,
    MiningConfig,
    RecipeConfig,
    collect_flows,
    mechanism_from_dict,
)
from factoriolp.solver import SolverSolution, solve
from factoriolp.worker import SolveOutcome, SolverWorker

__version__ = "0.1.0"
