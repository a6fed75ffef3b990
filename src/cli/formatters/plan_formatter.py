from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.table import Table

from src.cli.theme import theme
from src.domain.entities.plan import Plan, PlanStep
from src.domain.services.plan_formatter import STEP_STATUS_MARKERS, format_plan_as_markdown
from src.infrastructure.utils.formatting import short_id


def _status(plan: Plan) -> str:
    return f"[{theme.PLAN_STATUS[plan.status]}]{plan.status.value}[/]"


def format_plan_table(console: Console, plans: list[Plan], title: str = "Plans") -> None:
    table = Table(title=title)
    table.add_column("ID", style=theme.TABLE_ID)
    table.add_column("Title")
    table.add_column("Steps", justify="right")
    table.add_column("Status")
    table.add_column("Updated", style=theme.TABLE_SECONDARY)

    for plan in plans:
        table.add_row(
            short_id(plan.id),
            plan.title[:50],
            str(len(plan.steps)),
            _status(plan),
            plan.updated_at.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)


def _add_step_rows(table: Table, steps: list[PlanStep], depth: int = 0) -> None:
    for step in steps:
        marker = STEP_STATUS_MARKERS[step.status]
        style = theme.STEP_STATUS[step.status]
        table.add_row(
            step.id,
            f"{'  ' * depth}{escape(step.title)}",
            step.type.value,
            step.target or "-",
            f"[{style}]{escape(marker)} {step.status.value}[/]",
        )
        _add_step_rows(table, step.substeps, depth + 1)


def format_step_table(console: Console, plan: Plan) -> None:
    table = Table(title=f"{plan.title} ({short_id(plan.id)}) {_status(plan)}")
    table.add_column("Step", style=theme.TABLE_ID)
    table.add_column("Title")
    table.add_column("Type", style=theme.TABLE_SECONDARY)
    table.add_column("Target", style=theme.TABLE_SECONDARY)
    table.add_column("Status")

    _add_step_rows(table, plan.steps)
    console.print(table)


def format_plan_report(console: Console, plan: Plan, raw: bool = False) -> None:
    report = format_plan_as_markdown(plan)
    if raw:
        console.print(report, markup=False, highlight=False)
    else:
        console.print(Markdown(report))
