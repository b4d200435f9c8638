import argparse
import json
from dataclasses import dataclass, field
from typing import Any

from factoriolp.context import GameDataContext, load_context_file
from factoriolp.debug import DEBUG_INFO_PATH, close_debug_file, debug_dump, open_debug_file
from factoriolp.errors import SolverError
from factoriolp.identity import (
    Electricity,
    Flow,
    Heat,
    ItemIdentity,
    flow_from_keys,
    flow_to_keys,
    parse_identity,
)
from factoriolp.mechanisms import (
    ELECTRICITY_SOURCE_COST,
    SOURCE_COST,
    InfiniteSource,
    Mechanism,
    collect_flows,
    mechanism_from_dict,
    suggest_recipes,
)
from factoriolp.report import (
    build_breakdowns,
    build_report_columns,
    print_summary,
    write_xlsx_report,
)
from factoriolp.solver import solve


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="factoriolp",
        description="Find the cheapest mix of mechanisms that meets a production target.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("data", type=str, help="path to the dumped game data json")
    parser.add_argument("plan", type=str, help="path to the plan json (targets, mechanisms)")
    parser.add_argument(
        "--source-cost",
        type=float,
        default=SOURCE_COST,
        help="cost per unit of infinite sources that set no cost of their own"
        " (must be positive, free sources make the LP unbounded)",
    )
    parser.add_argument(
        "--electricity-cost",
        type=float,
        default=ELECTRICITY_SOURCE_COST,
        help="cost per unit of infinite electricity and heat sources",
    )
    parser.add_argument(
        "--show-unused",
        action="store_true",
        help="show unused mechanisms (activity 0) in the optimization result",
    )
    parser.add_argument(
        "--dump-debug-info",
        action="store_true",
        help="dump debug info (prototype counts, flows, LP matrix, etc.)",
    )
    parser.add_argument(
        "--debug-info-path",
        type=str,
        default=DEBUG_INFO_PATH,
        help="path of the debug info dump",
    )
    parser.add_argument(
        "--xlsx-report",
        type=str,
        default="Report.xlsx",
        help="path to xlsx report output (empty string to disable)",
    )
    parser.add_argument(
        "--xlsx-sheet-suffix",
        type=str,
        default="",
        help="suffix to add to xlsx sheet names",
    )
    return parser


### Plan ###


@dataclass
class Plan:
    targets: Flow
    mechanisms: dict[str, Mechanism] = field(default_factory=dict)
    # identity -> cost per unit bought from outside the factory
    external: dict[ItemIdentity, float] = field(default_factory=dict)


def parse_plan(raw: dict[str, Any]) -> Plan:
    return Plan(
        targets=flow_from_keys(raw.get("targets") or {}),
        mechanisms={
            mechanism_id: mechanism_from_dict(entry)
            for mechanism_id, entry in (raw.get("mechanisms") or {}).items()
        },
        external={
            parse_identity(key): float(cost)
            for key, cost in (raw.get("external") or {}).items()
        },
    )


def load_plan_file(path: str) -> Plan:
    with open(path, encoding="utf-8") as f:
        return parse_plan(json.load(f))


def apply_source_costs(plan: Plan, source_cost: float, electricity_cost: float):
    for mechanism in plan.mechanisms.values():
        if isinstance(mechanism, InfiniteSource) and mechanism.source_cost is None:
            if isinstance(mechanism.item, (Electricity, Heat)):
                mechanism.source_cost = electricity_cost
            else:
                mechanism.source_cost = source_cost


def report_solver_error(error: SolverError, ctx: GameDataContext):
    print(f"ERROR: {error.kind}: {error.message}")
    if not error.missing_producers:
        return
    print("Items without producers:")
    for identity in error.missing_producers:
        print(f"  {identity.key}")
        for config in suggest_recipes(ctx, identity, -1.0):
            machine = config.machine or "hand"
            print(f"    could be made by recipe {config.recipe} in {machine}")


### Entry point ###


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.dump_debug_info:
        open_debug_file(args.debug_info_path)

    try:
        ctx = load_context_file(args.data)
        plan = load_plan_file(args.plan)
        apply_source_costs(plan, args.source_cost, args.electricity_cost)

        debug_dump("Targets", flow_to_keys(plan.targets))
        debug_dump("Mechanisms", {k: m.to_dict() for k, m in plan.mechanisms.items()})

        flows = collect_flows(plan.mechanisms, ctx)

        print("LP running")
        try:
            solution = solve(plan.targets, flows, plan.external)
        except SolverError as e:
            report_solver_error(e, ctx)
            return 1

        columns = build_report_columns(
            solution, flows, ctx, plan.mechanisms, args.show_unused, plan.external
        )
        print_summary(solution, columns)
        breakdowns = build_breakdowns(solution, flows, ctx, plan.targets, plan.mechanisms)

        if args.xlsx_report:
            print("Writing xlsx report")
            write_xlsx_report(
                args.xlsx_report,
                solution,
                columns,
                breakdowns,
                config=vars(args),
                sheet_suffix=args.xlsx_sheet_suffix,
            )
    finally:
        close_debug_file()

    return 0
