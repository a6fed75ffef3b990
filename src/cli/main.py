import sys
from pathlib import Path

import typer
from loguru import logger

from src.cli.commands import (
    create_plan,
    list_plans,
    manage_plan,
    run_plan,
    show_plan,
)


def setup_logging(verbose: bool = False, log_file: Path | None = None) -> None:
    """Configure loguru logging."""
    logger.remove()

    file_path = log_file or Path("stepwise.log")
    logger.add(
        file_path,
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}",
        level="DEBUG",
        rotation="10 MB",
        encoding="utf-8",
    )

    if verbose:
        logger.add(
            sys.stderr,
            format="{time:HH:mm:ss} | {level: <8} | {message}",
            level="DEBUG",
        )


app = typer.Typer(
    name="stepwise",
    help="Stepwise - plan mode for coding agents: parse, approve and run plans step by step",
    no_args_is_help=True,
)

# Plan subcommand group
plan_app = typer.Typer(help="Plan management commands", no_args_is_help=True)
plan_app.command(name="create")(create_plan.create_plan)
plan_app.command(name="new")(create_plan.new_plan)
plan_app.command(name="list")(list_plans.list_all_plans)
plan_app.command(name="show")(show_plan.show_plan)
plan_app.command(name="approve")(manage_plan.approve_plan)
plan_app.command(name="delete")(manage_plan.delete_plan)
plan_app.command(name="skip")(manage_plan.skip_step)
plan_app.command(name="run")(run_plan.run_plan)
app.add_typer(plan_app, name="plan")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output", is_eager=True),
    log_file: Path | None = typer.Option(None, "--log-file", help="Log file path"),
) -> None:
    """Stepwise - plan mode for coding agents."""
    setup_logging(verbose=verbose, log_file=log_file)


if __name__ == "__main__":
    app()
