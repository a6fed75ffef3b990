import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.application.dto.plan_mode_config import ExecutionOptions, PlanModeConfig
from src.application.services.plan_executor import (
    ALREADY_EXECUTING_ERROR,
    NO_WORKSPACE_ERROR,
    PlanExecutor,
)
from src.domain.entities.execution import PlanExecutionResult, StepFailure
from src.domain.entities.plan import Plan, PlanStep
from src.domain.ports.command_runner_port import CommandFailedError
from src.domain.ports.step_executor_port import StepExecutionError
from src.domain.value_objects.plan_event import PlanEvent
from src.domain.value_objects.plan_status import PlanStatus, StepStatus
from src.domain.value_objects.step_type import StepType

AUTO = ExecutionOptions(auto_approve=True)


def make_plan(*steps: PlanStep) -> Plan:
    return Plan(title="Test plan", steps=list(steps))


@pytest.fixture
def executor(
    step_executor: AsyncMock,
    command_runner: AsyncMock,
    fast_config: PlanModeConfig,
    tmp_path: Path,
) -> PlanExecutor:
    return PlanExecutor(
        step_executor=step_executor,
        command_runner=command_runner,
        workspace_root=tmp_path,
        config=fast_config,
    )


async def _wait_until(predicate, timeout_s: float = 2.0) -> None:  # type: ignore[no-untyped-def]
    deadline = asyncio.get_running_loop().time() + timeout_s
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


class TestExecuteHappyPath:
    async def test_all_steps_complete(
        self,
        executor: PlanExecutor,
        sample_plan: Plan,
    ) -> None:
        result = await executor.execute(sample_plan, AUTO)

        assert result.success
        assert result.steps_executed == 3
        assert result.steps_failed == 0
        assert result.steps_skipped == 0
        assert result.errors == []
        assert result.plan_id == sample_plan.id
        assert sample_plan.status == PlanStatus.COMPLETED
        assert sample_plan.completed_at is not None
        assert all(s.status == StepStatus.COMPLETED for s in sample_plan.steps)
        assert sample_plan.metadata.completed_steps == 3

    async def test_file_step_is_delegated(
        self,
        executor: PlanExecutor,
        sample_plan: Plan,
        step_executor: AsyncMock,
        tmp_path: Path,
    ) -> None:
        await executor.execute(sample_plan, AUTO)

        step_executor.execute.assert_awaited_once()
        args, kwargs = step_executor.execute.call_args
        assert args[0].startswith('Edit the file at "app.toml"')
        assert args[1] == str(tmp_path)
        assert "Edit" in kwargs["allowed_tools"]
        assert sample_plan.steps[0].output == "done"

    async def test_command_step_runs_target(
        self,
        executor: PlanExecutor,
        sample_plan: Plan,
        command_runner: AsyncMock,
        tmp_path: Path,
    ) -> None:
        await executor.execute(sample_plan, AUTO)

        command_runner.run.assert_awaited_once_with("pytest -q", str(tmp_path), timeout_s=60.0)
        assert sample_plan.steps[1].output == "ok\n"

    async def test_review_and_other_steps_are_checkpoints(
        self,
        executor: PlanExecutor,
        step_executor: AsyncMock,
    ) -> None:
        plan = make_plan(
            PlanStep(id="step-1", title="Review the diff", type=StepType.REVIEW),
            PlanStep(id="step-2", title="Tell the team", type=StepType.OTHER),
        )

        await executor.execute(plan, AUTO)

        assert plan.steps[0].output == "Review checkpoint: Review the diff"
        assert plan.steps[1].output == "Completed: Tell the team"
        step_executor.execute.assert_not_awaited()

    async def test_research_step_is_read_only(
        self,
        executor: PlanExecutor,
        step_executor: AsyncMock,
    ) -> None:
        plan = make_plan(PlanStep(id="step-1", title="Explore caching", type=StepType.RESEARCH))

        await executor.execute(plan, AUTO)

        args, kwargs = step_executor.execute.call_args
        assert args[0].startswith("Research task: Explore caching")
        assert "Write" not in kwargs["allowed_tools"]

    async def test_events(self, executor: PlanExecutor, sample_plan: Plan) -> None:
        seen: list[tuple[PlanEvent, object]] = []
        for event in (PlanEvent.STEP_START, PlanEvent.STEP_COMPLETE, PlanEvent.PLAN_COMPLETE):
            executor.events.subscribe(event, lambda p, e=event: seen.append((e, p)))

        result = await executor.execute(sample_plan, AUTO)

        names = [e for e, _ in seen]
        assert names == [
            PlanEvent.STEP_START,
            PlanEvent.STEP_COMPLETE,
            PlanEvent.STEP_START,
            PlanEvent.STEP_COMPLETE,
            PlanEvent.STEP_START,
            PlanEvent.STEP_COMPLETE,
            PlanEvent.PLAN_COMPLETE,
        ]
        assert seen[0][1] is sample_plan.steps[0]
        assert seen[-1][1] is result

    async def test_output_is_truncated(
        self,
        step_executor: AsyncMock,
        command_runner: AsyncMock,
        tmp_path: Path,
    ) -> None:
        command_runner.run.return_value = "z" * 50
        executor = PlanExecutor(
            step_executor,
            command_runner,
            workspace_root=tmp_path,
            config=PlanModeConfig(output_limit=20, checkpoint_delay_s=0),
        )
        plan = make_plan(PlanStep(id="step-1", title="Run", type=StepType.COMMAND, target="yes"))

        await executor.execute(plan, AUTO)

        assert plan.steps[0].output == "z" * 20

    async def test_substeps_run_in_order(
        self,
        executor: PlanExecutor,
        command_runner: AsyncMock,
    ) -> None:
        plan = make_plan(
            PlanStep(
                id="step-1",
                title="Build",
                type=StepType.COMMAND,
                target="make",
                substeps=[
                    PlanStep(id="step-1-1", title="Lint", type=StepType.COMMAND, target="make lint"),
                    PlanStep(id="step-1-2", title="Skip me", status=StepStatus.SKIPPED),
                    PlanStep(id="step-1-3", title="Docs", type=StepType.COMMAND, target="make docs"),
                ],
            )
        )

        result = await executor.execute(plan, AUTO)

        assert [c.args[0] for c in command_runner.run.call_args_list] == [
            "make",
            "make lint",
            "make docs",
        ]
        substeps = plan.steps[0].substeps
        assert [s.status for s in substeps] == [
            StepStatus.COMPLETED,
            StepStatus.SKIPPED,
            StepStatus.COMPLETED,
        ]
        assert result.steps_executed == 1

    async def test_counters_reset_each_run(self, executor: PlanExecutor, sample_plan: Plan) -> None:
        sample_plan.metadata.completed_steps = 7
        sample_plan.metadata.failed_steps = 2

        await executor.execute(sample_plan, AUTO)

        assert sample_plan.metadata.completed_steps == 3
        assert sample_plan.metadata.failed_steps == 0

    async def test_state_is_cleared_after_run(self, executor: PlanExecutor, sample_plan: Plan) -> None:
        await executor.execute(sample_plan, AUTO)

        assert executor.get_current_plan() is None
        assert not executor.is_executing()
        assert executor.get_progress() is None


class TestExecuteFailures:
    async def test_failure_continues_by_default(
        self,
        executor: PlanExecutor,
        sample_plan: Plan,
        step_executor: AsyncMock,
        command_runner: AsyncMock,
    ) -> None:
        step_executor.execute.side_effect = StepExecutionError("agent crashed")
        failures: list[StepFailure] = []
        executor.events.subscribe(PlanEvent.STEP_FAILED, failures.append)

        result = await executor.execute(sample_plan, AUTO)

        assert not result.success
        assert result.steps_failed == 1
        assert result.steps_executed == 2
        assert result.errors == ['Step "Update config": agent crashed']
        assert sample_plan.steps[0].status == StepStatus.FAILED
        assert sample_plan.steps[0].error == "agent crashed"
        assert sample_plan.status == PlanStatus.FAILED
        assert sample_plan.metadata.failed_steps == 1
        command_runner.run.assert_awaited_once()
        assert failures[0].step is sample_plan.steps[0]
        assert failures[0].error == "agent crashed"

    async def test_stop_on_error(
        self,
        step_executor: AsyncMock,
        command_runner: AsyncMock,
        sample_plan: Plan,
        tmp_path: Path,
    ) -> None:
        step_executor.execute.side_effect = StepExecutionError("agent crashed")
        executor = PlanExecutor(
            step_executor,
            command_runner,
            workspace_root=tmp_path,
            config=PlanModeConfig(continue_on_error=False, checkpoint_delay_s=0),
        )

        result = await executor.execute(sample_plan, AUTO)

        assert result.steps_failed == 1
        assert result.steps_executed == 0
        assert sample_plan.steps[1].status == StepStatus.PENDING
        assert sample_plan.steps[2].status == StepStatus.PENDING
        assert sample_plan.status == PlanStatus.FAILED
        command_runner.run.assert_not_awaited()

    async def test_command_failure_message(
        self,
        executor: PlanExecutor,
        command_runner: AsyncMock,
    ) -> None:
        command_runner.run.side_effect = CommandFailedError(
            "make", "Command failed with exit code 2: no rule", exit_code=2
        )
        plan = make_plan(PlanStep(id="step-1", title="Build", type=StepType.COMMAND, target="make"))

        result = await executor.execute(plan, AUTO)

        assert plan.steps[0].error == "Command failed with exit code 2: no rule"
        assert result.errors == ['Step "Build": Command failed with exit code 2: no rule']

    async def test_command_without_target_fails(
        self,
        executor: PlanExecutor,
        command_runner: AsyncMock,
    ) -> None:
        plan = make_plan(PlanStep(id="step-1", title="Run something", type=StepType.COMMAND))

        await executor.execute(plan, AUTO)

        assert plan.steps[0].status == StepStatus.FAILED
        assert plan.steps[0].error == "No command specified"
        command_runner.run.assert_not_awaited()

    async def test_failing_substep_fails_parent(
        self,
        executor: PlanExecutor,
        command_runner: AsyncMock,
    ) -> None:
        command_runner.run.side_effect = ["built", CommandFailedError("make test", "tests failed")]
        plan = make_plan(
            PlanStep(
                id="step-1",
                title="Build",
                type=StepType.COMMAND,
                target="make",
                substeps=[
                    PlanStep(id="step-1-1", title="Test", type=StepType.COMMAND, target="make test"),
                    PlanStep(id="step-1-2", title="Package"),
                ],
            )
        )

        result = await executor.execute(plan, AUTO)

        parent = plan.steps[0]
        assert parent.status == StepStatus.FAILED
        assert parent.error == "tests failed"
        assert parent.substeps[0].status == StepStatus.FAILED
        assert parent.substeps[1].status == StepStatus.PENDING
        assert result.steps_failed == 1

    async def test_cancel_between_substeps_fails_parent(
        self,
        executor: PlanExecutor,
        command_runner: AsyncMock,
    ) -> None:
        async def run(command: str, *args: object, **kwargs: object) -> str:
            if command == "make lint":
                asyncio.get_running_loop().call_soon(executor.cancel)
            return "ok"

        command_runner.run.side_effect = run
        plan = make_plan(
            PlanStep(
                id="step-1",
                title="Build",
                type=StepType.COMMAND,
                target="make",
                substeps=[
                    PlanStep(id="step-1-1", title="Lint", type=StepType.COMMAND, target="make lint"),
                    PlanStep(id="step-1-2", title="Docs", type=StepType.COMMAND, target="make docs"),
                ],
            ),
            PlanStep(id="step-2", title="Release"),
        )

        result = await executor.execute(plan, AUTO)

        parent = plan.steps[0]
        assert plan.status == PlanStatus.CANCELLED
        assert parent.status == StepStatus.FAILED
        assert parent.error == "Cancelled before all substeps ran"
        assert parent.substeps[0].status == StepStatus.COMPLETED
        assert parent.substeps[1].status == StepStatus.PENDING
        assert plan.steps[1].status == StepStatus.PENDING
        assert [c.args[0] for c in command_runner.run.call_args_list] == ["make", "make lint"]
        assert not result.success

    async def test_no_workspace(
        self,
        step_executor: AsyncMock,
        command_runner: AsyncMock,
        sample_plan: Plan,
    ) -> None:
        executor = PlanExecutor(step_executor, command_runner, workspace_root=None)

        result = await executor.execute(sample_plan, AUTO)

        assert not result.success
        assert result.errors == [NO_WORKSPACE_ERROR]
        assert sample_plan.status == PlanStatus.DRAFT
        assert all(s.status == StepStatus.PENDING for s in sample_plan.steps)
        step_executor.execute.assert_not_awaited()


class TestDryRun:
    async def test_never_calls_collaborators(
        self,
        executor: PlanExecutor,
        step_executor: AsyncMock,
        command_runner: AsyncMock,
    ) -> None:
        plan = make_plan(
            PlanStep(id="step-1", title="Edit a", type=StepType.FILE_EDIT, target="a.py"),
            PlanStep(id="step-2", title="Create b", type=StepType.FILE_CREATE, target="b.py"),
            PlanStep(id="step-3", title="Drop c", type=StepType.FILE_DELETE, target="c.py"),
            PlanStep(id="step-4", title="Build", type=StepType.COMMAND, target="make"),
            PlanStep(
                id="step-5",
                title="Explore",
                type=StepType.RESEARCH,
                substeps=[PlanStep(id="step-5-1", title="Nested build", type=StepType.COMMAND)],
            ),
        )

        result = await executor.execute(plan, ExecutionOptions(auto_approve=True, dry_run=True))

        step_executor.execute.assert_not_awaited()
        command_runner.run.assert_not_awaited()
        assert result.success
        assert result.steps_executed == 5
        assert plan.steps[3].output == "[DRY RUN] Would execute: Build"
        assert plan.steps[4].substeps[0].status == StepStatus.COMPLETED
        assert plan.steps[4].substeps[0].output == "[DRY RUN] Would execute: Nested build"


class TestSkipping:
    async def test_skip_then_execute(
        self,
        executor: PlanExecutor,
        sample_plan: Plan,
        command_runner: AsyncMock,
        step_executor: AsyncMock,
    ) -> None:
        sample_plan.steps[1].skip()

        result = await executor.execute(sample_plan, AUTO)

        command_runner.run.assert_not_awaited()
        step_executor.execute.assert_awaited_once()
        assert result.steps_skipped == 1
        assert result.steps_executed == 2
        assert sample_plan.metadata.skipped_steps == 1
        assert sample_plan.steps[1].status == StepStatus.SKIPPED
        assert sample_plan.status == PlanStatus.COMPLETED

    async def test_terminal_steps_are_not_rerun(
        self,
        executor: PlanExecutor,
        step_executor: AsyncMock,
    ) -> None:
        plan = make_plan(
            PlanStep(id="step-1", title="Edit a", type=StepType.FILE_EDIT, status=StepStatus.COMPLETED),
            PlanStep(id="step-2", title="Later"),
        )

        result = await executor.execute(plan, AUTO)

        step_executor.execute.assert_not_awaited()
        assert result.steps_executed == 1

    async def test_skip_step_during_run(self, executor: PlanExecutor, sample_plan: Plan) -> None:
        executor.events.subscribe(
            PlanEvent.STEP_START,
            lambda step: executor.skip_step("step-3") if step.id == "step-1" else None,
        )

        result = await executor.execute(sample_plan, AUTO)

        assert sample_plan.steps[2].status == StepStatus.SKIPPED
        assert result.steps_skipped == 1

    def test_skip_step_outside_run(self, executor: PlanExecutor) -> None:
        assert not executor.skip_step("step-1")

    async def test_skip_step_rejects_non_pending(self, executor: PlanExecutor, sample_plan: Plan) -> None:
        results: list[bool] = []
        executor.events.subscribe(
            PlanEvent.STEP_COMPLETE,
            lambda step: results.append(executor.skip_step(step.id)),
        )

        await executor.execute(sample_plan, AUTO)

        assert results == [False, False, False]
        assert not executor.skip_step("missing")


class TestApprovalGate:
    async def test_approve_and_skip_decisions(
        self,
        executor: PlanExecutor,
        sample_plan: Plan,
        command_runner: AsyncMock,
    ) -> None:
        requested: list[str] = []

        def decide(step: PlanStep) -> None:
            requested.append(step.id)
            if step.id == "step-2":
                executor.skip_step(step.id)
            else:
                executor.approve_step(step.id)

        executor.events.subscribe(PlanEvent.APPROVAL_REQUIRED, decide)

        result = await executor.execute(sample_plan)

        assert requested == ["step-1", "step-2", "step-3"]
        assert result.steps_executed == 2
        assert result.steps_skipped == 1
        assert sample_plan.steps[1].status == StepStatus.SKIPPED
        command_runner.run.assert_not_awaited()

    async def test_run_blocks_until_approved(
        self,
        executor: PlanExecutor,
        sample_plan: Plan,
        step_executor: AsyncMock,
    ) -> None:
        run = asyncio.create_task(executor.execute(sample_plan))
        await _wait_until(lambda: executor._gate.is_waiting("step-1"))

        await asyncio.sleep(0.02)
        step_executor.execute.assert_not_awaited()
        assert sample_plan.steps[0].status == StepStatus.PENDING

        for step_id in ("step-1", "step-2", "step-3"):
            await _wait_until(lambda sid=step_id: executor._gate.is_waiting(sid))
            assert executor.approve_step(step_id)

        result = await run
        assert result.steps_executed == 3

    async def test_pre_approval_is_remembered(self, executor: PlanExecutor, sample_plan: Plan) -> None:
        executor.events.subscribe(
            PlanEvent.STEP_START,
            lambda step: executor.approve_step("step-3") if step.id == "step-1" else None,
        )
        executor.events.subscribe(
            PlanEvent.APPROVAL_REQUIRED,
            lambda step: executor.approve_step(step.id) if step.id != "step-3" else None,
        )

        result = await asyncio.wait_for(executor.execute(sample_plan), timeout=2)

        assert result.steps_executed == 3

    async def test_cancel_while_waiting(self, executor: PlanExecutor, sample_plan: Plan) -> None:
        executor.events.subscribe(PlanEvent.APPROVAL_REQUIRED, lambda step: executor.cancel())

        result = await executor.execute(sample_plan)

        assert sample_plan.status == PlanStatus.CANCELLED
        assert not result.success
        assert all(s.status == StepStatus.PENDING for s in sample_plan.steps)

    async def test_approval_timeout_skips_step(
        self,
        step_executor: AsyncMock,
        command_runner: AsyncMock,
        sample_plan: Plan,
        tmp_path: Path,
    ) -> None:
        executor = PlanExecutor(
            step_executor,
            command_runner,
            workspace_root=tmp_path,
            config=PlanModeConfig(approval_timeout_s=0.01, checkpoint_delay_s=0),
        )

        result = await executor.execute(sample_plan)

        assert result.steps_skipped == 3
        assert all(s.status == StepStatus.SKIPPED for s in sample_plan.steps)
        step_executor.execute.assert_not_awaited()

    async def test_approve_step_unknown(self, executor: PlanExecutor) -> None:
        assert not executor.approve_step("step-1")


class TestControl:
    async def test_cancel_between_steps(self, executor: PlanExecutor, sample_plan: Plan) -> None:
        executor.events.subscribe(
            PlanEvent.STEP_COMPLETE,
            lambda step: executor.cancel() if step.id == "step-1" else None,
        )

        result = await executor.execute(sample_plan, AUTO)

        assert sample_plan.status == PlanStatus.CANCELLED
        assert not result.success
        assert result.steps_executed == 1
        assert sample_plan.steps[1].status == StepStatus.PENDING
        assert sample_plan.steps[2].status == StepStatus.PENDING

    async def test_cancel_interrupts_running_step(
        self,
        executor: PlanExecutor,
        sample_plan: Plan,
        step_executor: AsyncMock,
    ) -> None:
        started = asyncio.Event()

        async def hang(*args: object, **kwargs: object) -> str:
            started.set()
            await asyncio.sleep(30)
            return "never"

        step_executor.execute.side_effect = hang
        run = asyncio.create_task(executor.execute(sample_plan, AUTO))
        await asyncio.wait_for(started.wait(), timeout=2)

        executor.cancel()
        result = await asyncio.wait_for(run, timeout=2)

        assert sample_plan.status == PlanStatus.CANCELLED
        assert sample_plan.steps[0].status == StepStatus.FAILED
        assert sample_plan.steps[0].error == "Cancelled while the step was running"
        assert sample_plan.steps[1].status == StepStatus.PENDING
        assert not result.success

    async def test_pause_and_resume(self, executor: PlanExecutor, sample_plan: Plan) -> None:
        executor.events.subscribe(
            PlanEvent.STEP_COMPLETE,
            lambda step: executor.pause() if step.id == "step-1" else None,
        )

        run = asyncio.create_task(executor.execute(sample_plan, AUTO))
        await _wait_until(lambda: sample_plan.steps[0].status == StepStatus.COMPLETED)
        await asyncio.sleep(0.02)

        assert executor.is_paused()
        assert executor.is_executing()
        assert sample_plan.steps[1].status == StepStatus.PENDING

        executor.resume()
        result = await asyncio.wait_for(run, timeout=2)

        assert not executor.is_paused()
        assert result.steps_executed == 3

    async def test_cancel_releases_pause(self, executor: PlanExecutor, sample_plan: Plan) -> None:
        executor.events.subscribe(
            PlanEvent.STEP_COMPLETE,
            lambda step: executor.pause() if step.id == "step-1" else None,
        )

        run = asyncio.create_task(executor.execute(sample_plan, AUTO))
        await _wait_until(executor.is_paused)
        executor.cancel()
        await asyncio.wait_for(run, timeout=2)

        assert sample_plan.status == PlanStatus.CANCELLED
        assert sample_plan.steps[1].status == StepStatus.PENDING

    async def test_progress(self, executor: PlanExecutor, sample_plan: Plan) -> None:
        sample_plan.steps[2].skip()
        snapshots = []
        executor.events.subscribe(
            PlanEvent.STEP_COMPLETE, lambda step: snapshots.append(executor.get_progress())
        )

        await executor.execute(sample_plan, AUTO)

        assert [(p.completed, p.total, p.percentage) for p in snapshots] == [
            (2, 3, 67),
            (3, 3, 100),
        ]

    async def test_second_execute_is_rejected(
        self,
        executor: PlanExecutor,
        sample_plan: Plan,
        step_executor: AsyncMock,
    ) -> None:
        started = asyncio.Event()
        release = asyncio.Event()

        async def block(*args: object, **kwargs: object) -> str:
            started.set()
            await release.wait()
            return "done"

        step_executor.execute.side_effect = block
        run = asyncio.create_task(executor.execute(sample_plan, AUTO))
        await asyncio.wait_for(started.wait(), timeout=2)

        other = make_plan(PlanStep(id="step-1", title="Other"))
        rejected = await executor.execute(other, AUTO)

        assert not rejected.success
        assert rejected.errors == [ALREADY_EXECUTING_ERROR]
        assert other.status == PlanStatus.DRAFT

        release.set()
        result = await asyncio.wait_for(run, timeout=2)
        assert result.success

    async def test_plan_complete_handler_failure_is_contained(
        self,
        executor: PlanExecutor,
        sample_plan: Plan,
    ) -> None:
        executor.events.subscribe(PlanEvent.PLAN_COMPLETE, MagicMock(side_effect=RuntimeError("ui")))

        result = await executor.execute(sample_plan, AUTO)

        assert isinstance(result, PlanExecutionResult)
        assert result.success
