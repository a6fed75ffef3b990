from uuid import UUID

from pydantic import BaseModel

from src.domain.entities.plan import PlanStep


class PlanExecutionContext(BaseModel):
    """Per-run state. Never persisted."""

    workspace_root: str
    current_step_index: int = 0
    auto_approve: bool = False
    dry_run: bool = False


class PlanExecutionResult(BaseModel):
    plan_id: UUID
    success: bool
    steps_executed: int = 0
    steps_failed: int = 0
    steps_skipped: int = 0
    duration_ms: int = 0
    errors: list[str] = []


class PlanProgress(BaseModel, frozen=True):
    completed: int
    total: int
    percentage: int


class StepFailure(BaseModel):
    """Payload of the step_failed event."""

    step: PlanStep
    error: str
