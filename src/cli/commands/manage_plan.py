import asyncio
from pathlib import Path

import typer
from rich.console import Console

from src.cli.runner import open_manager
from src.cli.theme import theme
from src.cli.utils import resolve_plan_id
from src.infrastructure.utils.formatting import short_id

console = Console()


def approve_plan(
    plan_id: str = typer.Argument(..., help="Plan ID (full or short prefix)"),
    state_dir: Path | None = typer.Option(None, "--state-dir", help="State directory"),
) -> None:
    """Approve a draft plan."""
    asyncio.run(_approve_plan(plan_id, state_dir))


async def _approve_plan(plan_id_str: str, state_dir: Path | None) -> None:
    manager = await open_manager(state_dir)
    plan_id = resolve_plan_id(plan_id_str, manager.get_plans(), console)
    if plan_id is None:
        raise typer.Exit(1)

    plan = await manager.approve_plan(plan_id)
    if plan is None:
        current = manager.get_plan(plan_id)
        status = current.status.value if current else "unknown"
        console.print(f"[{theme.ERROR}]Only draft plans can be approved (plan is {status})[/]")
        raise typer.Exit(1)

    console.print(f"[{theme.SUCCESS_BOLD}]Approved plan[/] {short_id(plan.id)}: {plan.title}")


def delete_plan(
    plan_id: str = typer.Argument(..., help="Plan ID (full or short prefix)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    state_dir: Path | None = typer.Option(None, "--state-dir", help="State directory"),
) -> None:
    """Delete a plan."""
    asyncio.run(_delete_plan(plan_id, yes, state_dir))


async def _delete_plan(plan_id_str: str, yes: bool, state_dir: Path | None) -> None:
    manager = await open_manager(state_dir)
    plan_id = resolve_plan_id(plan_id_str, manager.get_plans(), console)
    if plan_id is None:
        raise typer.Exit(1)

    plan = manager.get_plan(plan_id)
    if plan is not None and not yes and not typer.confirm(f"Delete plan '{plan.title}'?"):
        console.print(f"[{theme.DIM}]Aborted[/]")
        return

    if not await manager.delete_plan(plan_id):
        console.print(f"[{theme.ERROR}]Plan {short_id(plan_id)} could not be deleted[/]")
        raise typer.Exit(1)

    console.print(f"[{theme.SUCCESS}]Deleted plan[/] {short_id(plan_id)}")


def skip_step(
    plan_id: str = typer.Argument(..., help="Plan ID (full or short prefix)"),
    step_id: str = typer.Argument(..., help="Step ID, e.g. step-2 or step-2-1"),
    state_dir: Path | None = typer.Option(None, "--state-dir", help="State directory"),
) -> None:
    """Mark a pending step as skipped so the next run passes over it."""
    asyncio.run(_skip_step(plan_id, step_id, state_dir))


async def _skip_step(plan_id_str: str, step_id: str, state_dir: Path | None) -> None:
    manager = await open_manager(state_dir)
    plan_id = resolve_plan_id(plan_id_str, manager.get_plans(), console)
    if plan_id is None:
        raise typer.Exit(1)

    if not await manager.skip_step(step_id, plan_id=plan_id):
        console.print(f"[{theme.ERROR}]Step {step_id} is not a pending step of this plan[/]")
        raise typer.Exit(1)

    console.print(f"[{theme.SUCCESS}]Skipped[/] {step_id}")
