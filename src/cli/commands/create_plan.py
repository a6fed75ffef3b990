import asyncio
import sys
from pathlib import Path

import typer
from rich.console import Console

from src.cli.formatters.plan_formatter import format_step_table
from src.cli.runner import open_manager
from src.cli.theme import theme
from src.cli.utils import sanitize_terminal_input
from src.infrastructure.utils.formatting import short_id

console = Console()


def create_plan(
    source: str = typer.Argument(..., help="File with the plan text, or '-' for stdin"),
    state_dir: Path | None = typer.Option(None, "--state-dir", help="State directory"),
) -> None:
    """Create a draft plan from JSON, markdown or a numbered list."""
    if source == "-":
        text = sys.stdin.read()
    else:
        source_path = Path(source)
        if not source_path.is_file():
            console.print(f"[{theme.ERROR_BOLD}]File not found:[/] {source}")
            raise typer.Exit(1)
        text = source_path.read_text(encoding="utf-8", errors="replace")

    asyncio.run(_create_from_text(sanitize_terminal_input(text), state_dir))


async def _create_from_text(text: str, state_dir: Path | None) -> None:
    manager = await open_manager(state_dir)
    plan = await manager.create_plan_from_text(text)

    if plan is None:
        console.print(f"[{theme.ERROR_BOLD}]No plan steps found in the given text[/]")
        raise typer.Exit(1)

    console.print(f"[{theme.SUCCESS_BOLD}]Created plan[/] {short_id(plan.id)}")
    format_step_table(console, plan)


def new_plan(
    title: str = typer.Argument(..., help="Plan title"),
    description: str = typer.Option("", "--description", "-d", help="Plan description"),
    goal: str = typer.Option("", "--goal", "-g", help="Plan goal"),
    state_dir: Path | None = typer.Option(None, "--state-dir", help="State directory"),
) -> None:
    """Create an empty draft plan."""
    asyncio.run(_new_plan(title, description, goal, state_dir))


async def _new_plan(title: str, description: str, goal: str, state_dir: Path | None) -> None:
    manager = await open_manager(state_dir)
    plan = await manager.create_plan(title, description=description, goal=goal)
    console.print(f"[{theme.SUCCESS_BOLD}]Created plan[/] {short_id(plan.id)}: {plan.title}")
