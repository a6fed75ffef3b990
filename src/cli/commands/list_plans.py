import asyncio
from pathlib import Path

import typer
from rich.console import Console

from src.cli.formatters.plan_formatter import format_plan_table
from src.cli.runner import open_manager
from src.cli.theme import theme
from src.domain.value_objects.plan_status import PlanStatus

console = Console()


def list_all_plans(
    status: PlanStatus | None = typer.Option(None, "--status", "-s", help="Only plans in this status"),
    state_dir: Path | None = typer.Option(None, "--state-dir", help="State directory"),
) -> None:
    """List plans, most recently updated first."""
    asyncio.run(_list_plans(status, state_dir))


async def _list_plans(status: PlanStatus | None, state_dir: Path | None) -> None:
    manager = await open_manager(state_dir)
    plans = manager.get_plans_by_status(status) if status else manager.get_plans()

    if not plans:
        console.print(f"[{theme.DIM}]No plans found[/]")
        return

    title = f"Plans ({status.value})" if status else "Plans"
    format_plan_table(console, plans, title=title)
