"""Step-by-step plan execution.

One plan runs at a time. Steps run strictly in order; each step (and all of
its substeps) reaches a terminal state before the next one starts.
Pause, approval and cancellation are observed at step and substep
boundaries; cancel() additionally interrupts the delegation in flight.
"""

import asyncio
import time
from collections.abc import Awaitable
from pathlib import Path
from typing import TypeVar

from loguru import logger

from src.application.dto.plan_mode_config import ExecutionOptions, PlanModeConfig
from src.application.prompts import file_step_instruction, research_instruction
from src.application.services.approval_gate import StepApprovalGate
from src.application.services.event_bus import PlanEventBus
from src.application.services.tool_gating import get_allowed_tools
from src.domain.entities.execution import (
    PlanExecutionContext,
    PlanExecutionResult,
    PlanProgress,
    StepFailure,
)
from src.domain.entities.plan import Plan, PlanStep, utc_now
from src.domain.ports.command_runner_port import CommandRunnerPort
from src.domain.ports.step_executor_port import StepExecutionError, StepExecutorPort
from src.domain.services.output_sanitizer import OutputSanitizer
from src.domain.value_objects.approval_decision import ApprovalDecision
from src.domain.value_objects.plan_event import PlanEvent
from src.domain.value_objects.plan_status import PlanStatus, StepStatus
from src.domain.value_objects.step_type import StepType

T = TypeVar("T")

NO_WORKSPACE_ERROR = "No workspace folder open"
ALREADY_EXECUTING_ERROR = "Another plan is already executing"


class StepInterruptedError(Exception):
    """Raised when cancel() interrupts a step's delegation."""


class PlanExecutor:
    def __init__(
        self,
        step_executor: StepExecutorPort,
        command_runner: CommandRunnerPort,
        workspace_root: str | Path | None = None,
        config: PlanModeConfig | None = None,
        events: PlanEventBus | None = None,
    ) -> None:
        self.step_executor = step_executor
        self.command_runner = command_runner
        self.workspace_root = str(workspace_root) if workspace_root else None
        self.config = config or PlanModeConfig()
        self.events = events or PlanEventBus()
        self._sanitize = OutputSanitizer(limit=self.config.output_limit)
        self._gate = StepApprovalGate()

        self._current_plan: Plan | None = None
        self._context: PlanExecutionContext | None = None
        self._cancelled = False
        self._resumed = asyncio.Event()
        self._resumed.set()
        self._inflight: asyncio.Future[object] | None = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_current_plan(self) -> Plan | None:
        return self._current_plan

    def is_executing(self) -> bool:
        return self._current_plan is not None and self._current_plan.status == PlanStatus.EXECUTING

    def is_paused(self) -> bool:
        return not self._resumed.is_set()

    def get_progress(self) -> PlanProgress | None:
        """Top-level steps that are completed or skipped, as a percentage."""
        if self._current_plan is None:
            return None
        steps = self._current_plan.steps
        total = len(steps)
        done = sum(1 for s in steps if s.status in (StepStatus.COMPLETED, StepStatus.SKIPPED))
        percentage = round(done / total * 100) if total else 0
        return PlanProgress(completed=done, total=total, percentage=percentage)

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    async def execute(
        self,
        plan: Plan,
        options: ExecutionOptions | None = None,
    ) -> PlanExecutionResult:
        options = options or ExecutionOptions()
        start = time.monotonic()

        if not self.workspace_root:
            logger.error("Cannot execute plan {}: {}", plan.id, NO_WORKSPACE_ERROR)
            return self._early_result(plan, start, NO_WORKSPACE_ERROR)
        if self.is_executing():
            logger.warning("Cannot execute plan {}: {}", plan.id, ALREADY_EXECUTING_ERROR)
            return self._early_result(plan, start, ALREADY_EXECUTING_ERROR)

        self._current_plan = plan
        self._context = PlanExecutionContext(
            workspace_root=self.workspace_root,
            auto_approve=options.auto_approve,
            dry_run=options.dry_run,
        )
        self._cancelled = False
        self._resumed.set()
        self._gate.reset()

        plan.status = PlanStatus.EXECUTING
        plan.metadata.reset_counters()
        plan.touch()
        logger.info(
            "Executing plan '{}' ({} steps, auto_approve={}, dry_run={})",
            plan.title,
            len(plan.steps),
            options.auto_approve,
            options.dry_run,
        )

        try:
            result = await self._run(plan, self._context, start)
        finally:
            self._current_plan = None
            self._context = None
            self._inflight = None
            self._gate.reset()

        self.events.emit(PlanEvent.PLAN_COMPLETE, result)
        return result

    async def _run(
        self,
        plan: Plan,
        context: PlanExecutionContext,
        start: float,
    ) -> PlanExecutionResult:
        steps_executed = 0
        steps_failed = 0
        steps_skipped = 0
        errors: list[str] = []

        for index, step in enumerate(plan.steps):
            if self._cancelled:
                break
            await self._resumed.wait()
            if self._cancelled:
                break

            context.current_step_index = index

            if step.status == StepStatus.SKIPPED:
                steps_skipped += 1
                continue
            if step.is_terminal:
                logger.debug("Step {} already {}, not re-running", step.id, step.status.value)
                continue

            if not context.auto_approve:
                decision = await self._await_approval(step)
                if decision == ApprovalDecision.CANCELLED or self._cancelled:
                    break
                if decision in (ApprovalDecision.SKIPPED, ApprovalDecision.TIMED_OUT):
                    if step.status == StepStatus.PENDING:
                        step.skip()
                    logger.info("Step '{}' skipped ({})", step.title, decision.value)
                    steps_skipped += 1
                    continue

            self.events.emit(PlanEvent.STEP_START, step)
            step.start()

            try:
                await self._execute_step(step, context)
            except Exception as e:
                message = str(e) or e.__class__.__name__
                step.fail(message)
                steps_failed += 1
                plan.metadata.failed_steps += 1
                errors.append(f'Step "{step.title}": {message}')
                logger.warning("Step '{}' failed: {}", step.title, message)
                self.events.emit(PlanEvent.STEP_FAILED, StepFailure(step=step, error=message))

                if not self.config.continue_on_error:
                    logger.info("Stopping plan '{}' after failed step", plan.title)
                    plan.touch()
                    break
            else:
                step.complete()
                steps_executed += 1
                plan.metadata.completed_steps += 1
                logger.info("Step '{}' completed", step.title)
                self.events.emit(PlanEvent.STEP_COMPLETE, step)

            plan.touch()

        if self._cancelled:
            plan.status = PlanStatus.CANCELLED
        elif steps_failed:
            plan.status = PlanStatus.FAILED
        else:
            plan.status = PlanStatus.COMPLETED
        plan.completed_at = utc_now()
        plan.metadata.skipped_steps = steps_skipped
        plan.touch()

        result = PlanExecutionResult(
            plan_id=plan.id,
            success=steps_failed == 0 and not self._cancelled,
            steps_executed=steps_executed,
            steps_failed=steps_failed,
            steps_skipped=steps_skipped,
            duration_ms=int((time.monotonic() - start) * 1000),
            errors=errors,
        )
        logger.info(
            "Plan '{}' finished as {}: {} executed, {} failed, {} skipped",
            plan.title,
            plan.status.value,
            steps_executed,
            steps_failed,
            steps_skipped,
        )
        return result

    async def _await_approval(self, step: PlanStep) -> ApprovalDecision:
        self._gate.open(step.id)
        self.events.emit(PlanEvent.APPROVAL_REQUIRED, step)
        if step.status == StepStatus.SKIPPED:
            # skipped by an approval_required handler
            self._gate.resolve(step.id, ApprovalDecision.SKIPPED)
        return await self._gate.wait(step.id, timeout_s=self.config.approval_timeout_s)

    # ------------------------------------------------------------------
    # Single step
    # ------------------------------------------------------------------

    async def _execute_step(self, step: PlanStep, context: PlanExecutionContext) -> None:
        """Run a step's own action, then its pending substeps in order.

        A cancel that lands between substeps fails the step with its
        remaining substeps left pending, as the step is only partly done.
        """
        output = await self._run_action(step, context)
        step.output = self._sanitize(output)

        for substep in step.substeps:
            if self._cancelled:
                raise StepInterruptedError("Cancelled before all substeps ran")
            if substep.status != StepStatus.PENDING:
                continue
            substep.start()
            try:
                await self._execute_step(substep, context)
            except Exception as e:
                substep.fail(str(e) or e.__class__.__name__)
                raise
            substep.complete()

    async def _run_action(self, step: PlanStep, context: PlanExecutionContext) -> str:
        if context.dry_run:
            await asyncio.sleep(self.config.dry_run_delay_s)
            return f"[DRY RUN] Would execute: {step.title}"

        match step.type:
            case StepType.FILE_EDIT | StepType.FILE_CREATE | StepType.FILE_DELETE:
                return await self._delegate(
                    self.step_executor.execute(
                        file_step_instruction(step),
                        context.workspace_root,
                        allowed_tools=get_allowed_tools(step.type),
                    )
                )
            case StepType.COMMAND:
                if not step.target:
                    raise StepExecutionError("No command specified")
                return await self._delegate(
                    self.command_runner.run(
                        step.target,
                        context.workspace_root,
                        timeout_s=self.config.command_timeout_s,
                    )
                )
            case StepType.RESEARCH:
                return await self._delegate(
                    self.step_executor.execute(
                        research_instruction(step),
                        context.workspace_root,
                        allowed_tools=get_allowed_tools(step.type),
                    )
                )
            case StepType.REVIEW:
                await asyncio.sleep(self.config.checkpoint_delay_s)
                return f"Review checkpoint: {step.title}"
            case _:
                await asyncio.sleep(self.config.checkpoint_delay_s)
                return f"Completed: {step.title}"

    async def _delegate(self, work: Awaitable[T]) -> T:
        """Await a collaborator call so that cancel() can interrupt it."""
        task = asyncio.ensure_future(work)
        self._inflight = task
        try:
            return await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if self._cancelled and current is not None and not current.cancelling():
                raise StepInterruptedError("Cancelled while the step was running") from None
            raise
        finally:
            self._inflight = None

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def pause(self) -> None:
        if self._current_plan is not None:
            logger.info("Pausing plan '{}'", self._current_plan.title)
        self._resumed.clear()

    def resume(self) -> None:
        self._resumed.set()

    def cancel(self) -> None:
        self._cancelled = True
        self._resumed.set()
        self._gate.cancel_all()
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()

    def skip_step(self, step_id: str) -> bool:
        """Skip a pending step of the running plan, nested substeps
        included."""
        if self._current_plan is None:
            return False
        step = self._current_plan.find_step(step_id)
        if step is None or step.status != StepStatus.PENDING:
            return False
        step.skip()
        self._gate.resolve(step_id, ApprovalDecision.SKIPPED)
        return True

    def approve_step(self, step_id: str) -> bool:
        """Release the approval gate of a step of the running plan."""
        if self._current_plan is None:
            return False
        if self._current_plan.find_step(step_id) is None:
            return False
        self._gate.grant(step_id)
        return True

    def _early_result(self, plan: Plan, start: float, error: str) -> PlanExecutionResult:
        return PlanExecutionResult(
            plan_id=plan.id,
            success=False,
            duration_ms=int((time.monotonic() - start) * 1000),
            errors=[error],
        )
