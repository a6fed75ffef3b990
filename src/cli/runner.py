import asyncio
import signal
import threading
from pathlib import Path

from loguru import logger
from rich.console import Console

from src.application.dto.plan_mode_config import ExecutionOptions, PlanModeConfig
from src.application.plan_manager import PlanManager
from src.application.services.event_bus import PlanEventBus
from src.application.services.plan_executor import PlanExecutor
from src.cli.formatters.run_formatter import (
    format_run_result,
    format_step_complete,
    format_step_failed,
    format_step_start,
)
from src.cli.theme import theme
from src.domain.entities.execution import PlanExecutionResult, StepFailure
from src.domain.entities.plan import Plan, PlanStep
from src.domain.value_objects.plan_event import PlanEvent
from src.infrastructure.agent.claude_step_executor import ClaudeStepExecutor
from src.infrastructure.commands.shell_command_runner import ShellCommandRunner
from src.infrastructure.persistence.json_plan_repo import JsonPlanRepo
from src.infrastructure.workspace.workspace_root import get_default_state_dir, get_workspace_root

console = Console()

APPROVAL_CHOICES = {"y": "approve", "s": "skip", "c": "cancel"}


async def open_manager(
    state_dir: Path | None = None,
    path: Path | None = None,
    config: PlanModeConfig | None = None,
) -> PlanManager:
    """Wire the plan manager for a workspace and load its stored plans."""
    workspace_root = await get_workspace_root(path or Path("."))
    if state_dir is None:
        state_dir = await get_default_state_dir(workspace_root)

    events = PlanEventBus()
    executor = PlanExecutor(
        step_executor=ClaudeStepExecutor(),
        command_runner=ShellCommandRunner(),
        workspace_root=workspace_root,
        config=config,
        events=events,
    )
    manager = PlanManager(executor=executor, plan_repo=JsonPlanRepo(state_dir), events=events)
    await manager.load()
    logger.debug("Workspace {} with state in {}", workspace_root, state_dir)
    return manager


def ask_step_approval(step: PlanStep) -> str:
    """Ask whether to run, skip or cancel at step. Returns the action name."""
    console.print(
        f"\n[{theme.HEADER}]Next step:[/] {step.title} [{theme.DIM}]({step.type.value})[/]"
    )
    if step.target:
        console.print(f"  [{theme.DIM}]target:[/] {step.target}", highlight=False)
    while True:
        choice = (
            console.input(
                f"[{theme.OPTION_APPROVE}]y[/] run  "
                f"[{theme.OPTION_SKIP}]s[/] skip  "
                f"[{theme.OPTION_CANCEL}]c[/] cancel "
                f"[{theme.PROMPT}]>[/] "
            )
            .strip()
            .lower()
        )
        if choice == "":
            return "approve"
        if choice in APPROVAL_CHOICES:
            return APPROVAL_CHOICES[choice]
        console.print(f"[{theme.ERROR}]Invalid choice. Try again.[/]")


def _post(
    loop: asyncio.AbstractEventLoop,
    future: asyncio.Future[str],
    outcome: str | Exception,
) -> None:
    def deliver() -> None:
        if future.done():
            return
        if isinstance(outcome, Exception):
            future.set_exception(outcome)
        else:
            future.set_result(outcome)

    try:
        loop.call_soon_threadsafe(deliver)
    except RuntimeError:
        logger.debug("Run ended before the approval prompt returned")


def _prompt_in_daemon(step: PlanStep) -> asyncio.Future[str]:
    """Ask for approval on a daemon thread.

    A prompt still blocked on stdin when the run ends is abandoned, so it
    never holds up loop shutdown or interpreter exit.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[str] = loop.create_future()

    def ask() -> None:
        try:
            outcome: str | Exception = ask_step_approval(step)
        except Exception as exc:
            outcome = exc
        _post(loop, future, outcome)

    threading.Thread(target=ask, name=f"approval-{step.id}", daemon=True).start()
    return future


class InteractiveRun:
    """Console side of a plan run: prints step events and answers approval
    requests from the terminal."""

    def __init__(self, manager: PlanManager, verbose: bool = False) -> None:
        self.manager = manager
        self.verbose = verbose
        self._prompts: set[asyncio.Task[None]] = set()
        self._unsubscribe = [
            manager.events.subscribe(PlanEvent.STEP_START, self.on_step_start),
            manager.events.subscribe(PlanEvent.STEP_COMPLETE, self.on_step_complete),
            manager.events.subscribe(PlanEvent.STEP_FAILED, self.on_step_failed),
            manager.events.subscribe(PlanEvent.APPROVAL_REQUIRED, self.on_approval_required),
        ]

    def on_step_start(self, step: PlanStep) -> None:
        format_step_start(console, step)

    def on_step_complete(self, step: PlanStep) -> None:
        format_step_complete(console, step, verbose=self.verbose)

    def on_step_failed(self, failure: StepFailure) -> None:
        format_step_failed(console, failure)

    def on_approval_required(self, step: PlanStep) -> None:
        task = asyncio.get_running_loop().create_task(self._answer(step))
        self._prompts.add(task)
        task.add_done_callback(self._prompts.discard)

    async def _answer(self, step: PlanStep) -> None:
        try:
            action = await _prompt_in_daemon(step)
        except EOFError:
            action = "cancel"
        if action == "approve":
            self.manager.approve_step(step.id)
        elif action == "skip":
            await self.manager.skip_step(step.id)
        else:
            self.manager.cancel_execution()

    def close(self) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        for task in list(self._prompts):
            task.cancel()


async def run_plan_async(
    manager: PlanManager,
    plan: Plan,
    options: ExecutionOptions,
    verbose: bool = False,
) -> PlanExecutionResult | None:
    """Execute plan with live console output. Ctrl+C cancels the run."""
    loop = asyncio.get_running_loop()
    run = InteractiveRun(manager, verbose=verbose)
    try:
        loop.add_signal_handler(signal.SIGINT, manager.cancel_execution)
    except (NotImplementedError, RuntimeError):
        logger.debug("SIGINT handler not supported on this platform")

    mode = " (dry run)" if options.dry_run else ""
    console.print(f"[{theme.INFO_BOLD}]Running plan:[/] {plan.title}{mode}")
    try:
        result = await manager.execute_plan(plan.id, options)
    finally:
        run.close()
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass

    if result is not None:
        format_run_result(console, plan, result)
    return result
