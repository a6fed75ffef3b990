from rich.console import Console
from rich.markup import escape

from src.cli.theme import theme
from src.domain.entities.execution import PlanExecutionResult, StepFailure
from src.domain.entities.plan import Plan, PlanStep
from src.domain.value_objects.plan_status import PlanStatus
from src.infrastructure.utils.formatting import format_duration


def format_step_start(console: Console, step: PlanStep) -> None:
    console.print(f"[{theme.INFO}]▶[/] [{theme.HEADER}]{escape(step.title)}[/] [{theme.DIM}]({step.type.value})[/]")


def format_step_complete(console: Console, step: PlanStep, verbose: bool = False) -> None:
    console.print(f"  [{theme.SUCCESS}]✓ {escape(step.title)}[/]")
    if verbose and step.output:
        for line in step.output.splitlines()[:10]:
            console.print(f"    [{theme.DIM}]{escape(line)}[/]", highlight=False)


def format_step_failed(console: Console, failure: StepFailure) -> None:
    console.print(f"  [{theme.ERROR}]✗ {escape(failure.step.title)}[/]")
    console.print(f"    [{theme.ERROR}]{escape(failure.error)}[/]", highlight=False)


def format_run_result(console: Console, plan: Plan, result: PlanExecutionResult) -> None:
    if plan.status == PlanStatus.COMPLETED:
        console.print(f"\n[{theme.SUCCESS_BOLD}]✅ Plan complete[/]")
    elif plan.status == PlanStatus.CANCELLED:
        console.print(f"\n[{theme.WARNING_BOLD}]⏸️  Plan cancelled[/]")
    else:
        console.print(f"\n[{theme.ERROR_BOLD}]❌ Plan finished with failures[/]")

    console.print(
        f"   {result.steps_executed} executed, {result.steps_failed} failed, "
        f"{result.steps_skipped} skipped in {format_duration(result.duration_ms)}"
    )
    for error in result.errors:
        console.print(f"   [{theme.ERROR}]• {escape(error)}[/]", highlight=False)
