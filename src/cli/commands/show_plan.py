import asyncio
from pathlib import Path

import typer
from rich.console import Console

from src.cli.formatters.plan_formatter import format_plan_report
from src.cli.runner import open_manager
from src.cli.theme import theme
from src.cli.utils import resolve_plan_id

console = Console()


def show_plan(
    plan_id: str = typer.Argument(..., help="Plan ID (full or short prefix)"),
    raw: bool = typer.Option(False, "--raw", help="Print the markdown source"),
    state_dir: Path | None = typer.Option(None, "--state-dir", help="State directory"),
) -> None:
    """Show a plan as a markdown report."""
    asyncio.run(_show_plan(plan_id, raw, state_dir))


async def _show_plan(plan_id_str: str, raw: bool, state_dir: Path | None) -> None:
    manager = await open_manager(state_dir)

    plan_id = resolve_plan_id(plan_id_str, manager.get_plans(), console)
    if plan_id is None:
        raise typer.Exit(1)

    plan = manager.get_plan(plan_id)
    if plan is None:
        console.print(f"[{theme.ERROR_BOLD}]Plan not found:[/] {plan_id}")
        raise typer.Exit(1)

    format_plan_report(console, plan, raw=raw)
