from dataclasses import dataclass, field
from typing import Any, Mapping

from factoriolp.context import GameDataContext
from factoriolp.debug import warn
from factoriolp.identity import (
    Electricity,
    Flow,
    Heat,
    Item,
    ItemIdentity,
    add_flows,
    identity_sort_key,
)
from factoriolp.mechanisms import InfiniteSource, Mechanism
from factoriolp.parsing import format_energy
from factoriolp.solver import EXTERNAL_COLUMN_PREFIX, SolverSolution


REPORT_EPSILON = 1e-7


@dataclass
class ReportColumn:
    column_id: str
    type_: str
    display_name: str
    machine_name: str | None
    activity: float
    cost: float
    flow: Flow

    @property
    def full_display_name(self) -> str:
        tokens = [self.machine_name or self.type_, self.display_name]
        return "|".join(tokens)


@dataclass
class BudgetEntry:
    desc: str
    count: float
    rate: float
    share: float


@dataclass
class ItemBreakdown:
    identity: ItemIdentity
    display_name: str
    sort_key: Any
    production: list[BudgetEntry] = field(default_factory=list)
    consumption: list[BudgetEntry] = field(default_factory=list)
    target: float | None = None
    surplus: float | None = None


def identity_display_name(identity: ItemIdentity) -> str:
    if isinstance(identity, Item) and identity.quality == 0:
        return identity.name
    return identity.key


def build_report_columns(
    solution: SolverSolution,
    flows: Mapping[str, tuple[Flow, float]],
    ctx: GameDataContext,
    mechanisms: Mapping[str, Mechanism] | None = None,
    show_unused: bool = False,
    external: Mapping[ItemIdentity, float] | None = None,
) -> list[ReportColumn]:
    columns: list[ReportColumn] = []
    for mechanism_id, activity in solution.activities.items():
        flow, cost = flows[mechanism_id]
        type_, display_name, machine_name = "mechanism", mechanism_id, None
        mechanism = (mechanisms or {}).get(mechanism_id)
        if mechanism is not None:
            metadata = mechanism.editor_metadata(ctx)
            type_ = metadata["type"].partition(":")[2] or metadata["type"]
            display_name = metadata["title"]
            machine_name = metadata["machine"]
        columns.append(
            ReportColumn(
                column_id=mechanism_id,
                type_=type_,
                display_name=display_name,
                machine_name=machine_name,
                activity=activity,
                cost=cost,
                flow=flow,
            )
        )
    for identity, activity in solution.external_inputs.items():
        columns.append(
            ReportColumn(
                column_id=EXTERNAL_COLUMN_PREFIX + identity.key,
                type_="external",
                display_name=identity_display_name(identity),
                machine_name=None,
                activity=activity,
                cost=(external or {}).get(identity, InfiniteSource(identity).cost(ctx)),
                flow={identity: 1.0},
            )
        )

    if not show_unused:
        columns = [column for column in columns if abs(column.activity) > REPORT_EPSILON]
    return columns


def finalize_budget_side(budget_side: list[BudgetEntry]):
    if not budget_side:
        return
    total_rate = 0.0
    total_count = 0.0
    for budget_entry in budget_side:
        total_rate += budget_entry.rate
        total_count += budget_entry.count
    for budget_entry in budget_side:
        budget_entry.share = budget_entry.rate / total_rate
    budget_side.sort(key=lambda entry: (-entry.share, entry.desc))
    total = BudgetEntry(desc="Total", count=total_count, rate=total_rate, share=1.0)
    budget_side.insert(0, total)


def build_breakdowns(
    solution: SolverSolution,
    flows: Mapping[str, tuple[Flow, float]],
    ctx: GameDataContext,
    target: Flow | None = None,
    mechanisms: Mapping[str, Mechanism] | None = None,
) -> list[ItemBreakdown]:
    """Per-item production and consumption budgets of a solved plan.

    Each side starts with a ``Total`` entry followed by the contributing
    mechanisms in decreasing share. Target items whose balance misses the
    target, and other items running a deficit, are reported with a warning.
    """
    target = target or {}
    columns = build_report_columns(solution, flows, ctx, mechanisms, show_unused=True)

    breakdowns: dict[ItemIdentity, ItemBreakdown] = {}
    balances: dict[ItemIdentity, float] = {}

    def breakdown_of(identity: ItemIdentity) -> ItemBreakdown:
        if identity not in breakdowns:
            breakdowns[identity] = ItemBreakdown(
                identity=identity,
                display_name=identity_display_name(identity),
                sort_key=identity_sort_key(identity, ctx),
            )
        return breakdowns[identity]

    for column in columns:
        balances = add_flows(balances, column.flow, column.activity)
        for identity, coeff in column.flow.items():
            breakdown = breakdown_of(identity)
            rate = column.activity * coeff
            if abs(rate) < REPORT_EPSILON:
                continue
            budget_entry = BudgetEntry(
                desc=column.full_display_name,
                count=column.activity,
                rate=abs(rate),
                share=0.0,
            )
            if rate > 0:
                breakdown.production.append(budget_entry)
            else:
                breakdown.consumption.append(budget_entry)

    missing_producers = set(solution.missing_producers)
    for identity, breakdown in breakdowns.items():
        balance = balances.get(identity, 0.0)
        if identity in target and target[identity] != 0:
            breakdown.target = target[identity]
            residual = balance - target[identity]
            if abs(residual) > REPORT_EPSILON:
                warn(f"equality constraint violation: {identity.key} {residual=}")
        elif identity not in missing_producers:
            if balance < -REPORT_EPSILON:
                warn(f"lower bound violation: {identity.key} {balance=}")
            breakdown.surplus = balance if abs(balance) > REPORT_EPSILON else 0.0
        finalize_budget_side(breakdown.production)
        finalize_budget_side(breakdown.consumption)

    return sorted(breakdowns.values(), key=lambda breakdown: breakdown.sort_key)


def power_totals(columns: list[ReportColumn]) -> dict[ItemIdentity, tuple[float, float]]:
    # identity -> (produced, consumed) in watts
    totals: dict[ItemIdentity, tuple[float, float]] = {}
    for column in columns:
        for identity, coeff in column.flow.items():
            if not isinstance(identity, (Electricity, Heat)):
                continue
            rate = column.activity * coeff
            if abs(rate) < REPORT_EPSILON:
                continue
            produced, consumed = totals.get(identity, (0.0, 0.0))
            if rate > 0:
                produced += rate
            else:
                consumed -= rate
            totals[identity] = (produced, consumed)
    return totals


def print_summary(solution: SolverSolution, columns: list[ReportColumn]):
    print("")
    print("Summary:")
    print(f"{solution.objective:>17.3f} objective")
    for column in columns:
        print(f"{column.activity:>17.3f} {column.full_display_name}")
    power = power_totals(columns)
    if power:
        print("")
        print("Power:")
        for identity, (produced, consumed) in power.items():
            print(f"{format_energy(produced, 'W'):>17} {identity.key} produced")
            print(f"{format_energy(consumed, 'W'):>17} {identity.key} consumed")
    if solution.missing_producers:
        print("")
        print("Items without producers:")
        for identity in solution.missing_producers:
            print(f"  {identity.key}")
    print("")


def write_xlsx_report(
    path: str,
    solution: SolverSolution,
    columns: list[ReportColumn],
    breakdowns: list[ItemBreakdown],
    config: Mapping[str, Any] | None = None,
    sheet_suffix: str = "",
):
    import xlsxwriter

    workbook = xlsxwriter.Workbook(path, {"nan_inf_to_errors": True})

    default_format = workbook.add_format({"align": "center"})
    top_format = workbook.add_format({"align": "center", "top": True})
    bold_format = workbook.add_format({"align": "center", "bold": True})
    bold_top_format = workbook.add_format({"align": "center", "bold": True, "top": True})
    bold_underline_top_format = workbook.add_format(
        {"align": "center", "bold": True, "underline": True, "top": True}
    )
    percent_format = workbook.add_format({"align": "center", "num_format": "0.0#####%"})

    sheet_breakdown = workbook.add_worksheet("Breakdown" + sheet_suffix)
    sheet_list = workbook.add_worksheet("List" + sheet_suffix)
    sheet_config = workbook.add_worksheet("Config" + sheet_suffix)

    def write_cell(sheet, *args, fmt=default_format):
        sheet.write(*args, fmt)

    ### List sheet ###

    list_headers = ["Type", "Name", "Machine", "Cost", "Quantity"]
    sheet_list.add_table(
        0,
        0,
        len(columns) + 1,
        len(list_headers) - 1,
        {
            "columns": [
                {"header": header, "header_format": bold_format} for header in list_headers
            ],
            "style": "Table Style Light 16",
        },
    )

    write_cell(sheet_list, 1, 0, "objective")
    write_cell(sheet_list, 1, 1, "objective")
    write_cell(sheet_list, 1, 4, solution.objective)

    for i, column in enumerate(columns):
        write_cell(sheet_list, 2 + i, 0, column.type_)
        write_cell(sheet_list, 2 + i, 1, column.display_name)
        write_cell(sheet_list, 2 + i, 2, column.machine_name)
        write_cell(sheet_list, 2 + i, 3, column.cost)
        write_cell(sheet_list, 2 + i, 4, column.activity)

    for c, width in enumerate([19, 39, 25, 13, 13]):
        sheet_list.set_column(c, c, width)

    ### Breakdown sheet ###

    current_row = 0
    max_budget_entries = 0
    budget_rows = [
        ("desc", "Producer", "Consumer"),
        ("count", "Producer Count", "Consumer Count"),
        ("rate", "Production Rate", "Consumption Rate"),
        ("share", "Production Share", "Consumption Share"),
    ]

    production_share_cf = {
        "type": "2_color_scale",
        "min_type": "num",
        "max_type": "num",
        "min_value": 0,
        "max_value": 1,
        "min_color": "#FFFFFF",
        "max_color": "#99FF99",
    }
    consumption_share_cf = production_share_cf.copy()
    consumption_share_cf["max_color"] = "#FFCC66"

    for breakdown in breakdowns:
        for budget_side_index, budget_side in enumerate(
            (breakdown.production, breakdown.consumption)
        ):
            if not budget_side:
                continue
            for budget_row in budget_rows:
                key = budget_row[0]
                name = budget_row[budget_side_index + 1]
                if key == "desc":
                    fmts = (bold_top_format, bold_underline_top_format)
                elif key == "share":
                    fmts = (bold_format, percent_format)
                else:
                    fmts = (bold_format, default_format)
                write_cell(
                    sheet_breakdown, current_row, 0, breakdown.display_name, fmt=fmts[0]
                )
                write_cell(sheet_breakdown, current_row, 1, name, fmt=fmts[0])
                for i, entry in enumerate(budget_side):
                    value = getattr(entry, key)
                    write_cell(sheet_breakdown, current_row, 2 + i, value, fmt=fmts[1])
                if key == "share":
                    cf = (
                        production_share_cf
                        if budget_side_index == 0
                        else consumption_share_cf
                    )
                    sheet_breakdown.conditional_format(
                        current_row, 3, current_row, len(budget_side) + 1, cf
                    )
                max_budget_entries = max(max_budget_entries, len(budget_side))
                current_row += 1

        for label, value in (("Target", breakdown.target), ("Surplus", breakdown.surplus)):
            if value is None:
                continue
            if label == "Target":
                fmts = (bold_top_format, top_format)
            else:
                fmts = (bold_format, default_format)
            write_cell(sheet_breakdown, current_row, 0, breakdown.display_name, fmt=fmts[0])
            write_cell(sheet_breakdown, current_row, 1, label, fmt=fmts[0])
            write_cell(sheet_breakdown, current_row, 2, value, fmt=fmts[1])
            current_row += 1

    for c, width in enumerate([41, 19, 13] + [59] * (max_budget_entries - 1)):
        sheet_breakdown.set_column(c, c, width)

    ### Config sheet ###

    for i, (name, value) in enumerate((config or {}).items()):
        write_cell(sheet_config, i, 0, name)
        write_cell(sheet_config, i, 1, value)

    for c, width in enumerate([36, 19]):
        sheet_config.set_column(c, c, width)

    workbook.close()
