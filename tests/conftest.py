from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from src.application.dto.plan_mode_config import PlanModeConfig
from src.domain.entities.plan import Plan, PlanMetadata, PlanStep
from src.domain.ports.command_runner_port import CommandRunnerPort
from src.domain.ports.step_executor_port import StepExecutorPort
from src.domain.value_objects.step_type import StepType


@pytest.fixture
def temp_state_dir(tmp_path: Path) -> Path:
    state_dir = tmp_path / ".stepwise"
    state_dir.mkdir()
    return state_dir


@pytest.fixture
def fast_config() -> PlanModeConfig:
    return PlanModeConfig(dry_run_delay_s=0, checkpoint_delay_s=0)


@pytest.fixture
def step_executor() -> AsyncMock:
    executor = AsyncMock(spec=StepExecutorPort)
    executor.execute.return_value = "done"
    return executor


@pytest.fixture
def command_runner() -> AsyncMock:
    runner = AsyncMock(spec=CommandRunnerPort)
    runner.run.return_value = "ok\n"
    return runner


@pytest.fixture
def sample_plan() -> Plan:
    return Plan(
        title="Test plan",
        steps=[
            PlanStep(id="step-1", title="Update config", type=StepType.FILE_EDIT, target="app.toml"),
            PlanStep(id="step-2", title="Run tests", type=StepType.COMMAND, target="pytest -q"),
            PlanStep(id="step-3", title="Review the diff", type=StepType.REVIEW),
        ],
        metadata=PlanMetadata(estimated_steps=3),
    )
