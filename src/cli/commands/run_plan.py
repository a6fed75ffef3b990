import asyncio
from pathlib import Path

import typer
from rich.console import Console

from src.application.dto.plan_mode_config import ExecutionOptions, PlanModeConfig
from src.cli.runner import open_manager, run_plan_async
from src.cli.theme import theme
from src.cli.utils import resolve_plan_id
from src.domain.value_objects.plan_status import PlanStatus

console = Console()


def run_plan(
    plan_id: str = typer.Argument(..., help="Plan ID (full or short prefix)"),
    path: Path | None = typer.Option(None, "--path", "-p", help="Workspace path"),
    auto_approve: bool = typer.Option(False, "--auto-approve", "-y", help="Run every step without asking"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Simulate steps without running them"),
    stop_on_error: bool = typer.Option(False, "--stop-on-error", help="Stop at the first failed step"),
    command_timeout: float = typer.Option(60.0, "--command-timeout", help="Timeout for command steps in seconds"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show step output"),
    state_dir: Path | None = typer.Option(None, "--state-dir", help="State directory"),
) -> None:
    """Execute a draft or approved plan step by step."""
    config = PlanModeConfig(
        continue_on_error=not stop_on_error,
        command_timeout_s=command_timeout,
    )
    options = ExecutionOptions(auto_approve=auto_approve, dry_run=dry_run)
    asyncio.run(_run_plan(plan_id, path, config, options, verbose, state_dir))


async def _run_plan(
    plan_id_str: str,
    path: Path | None,
    config: PlanModeConfig,
    options: ExecutionOptions,
    verbose: bool,
    state_dir: Path | None,
) -> None:
    manager = await open_manager(state_dir, path=path, config=config)
    plan_id = resolve_plan_id(plan_id_str, manager.get_plans(), console)
    if plan_id is None:
        raise typer.Exit(1)

    plan = manager.get_plan(plan_id)
    if plan is None:
        console.print(f"[{theme.ERROR_BOLD}]Plan not found:[/] {plan_id}")
        raise typer.Exit(1)

    result = await run_plan_async(manager, plan, options, verbose=verbose)
    if result is None:
        console.print(
            f"[{theme.ERROR}]Plan cannot be executed from status {plan.status.value}[/]"
        )
        raise typer.Exit(1)
    if plan.status != PlanStatus.COMPLETED:
        raise typer.Exit(1)
