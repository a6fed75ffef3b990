from collections.abc import Iterator
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, SerializerFunctionWrapHandler, model_serializer

from src.domain.value_objects.plan_status import (
    TERMINAL_STEP_STATUSES,
    PlanStatus,
    StepStatus,
)
from src.domain.value_objects.step_type import StepComplexity, StepType


def utc_now() -> datetime:
    return datetime.now(UTC)


class InvalidStepTransitionError(Exception):
    """Raised when a step is moved out of a terminal state or skipped
    after it started."""

    def __init__(self, step_id: str, current: StepStatus, requested: StepStatus) -> None:
        self.step_id = step_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Step {step_id} cannot move from {current.value} to {requested.value}"
        )


class PlanStep(BaseModel):
    id: str
    title: str
    description: str = ""
    type: StepType = StepType.OTHER
    target: str | None = None
    status: StepStatus = StepStatus.PENDING
    estimated_complexity: StepComplexity = StepComplexity.MEDIUM
    substeps: list["PlanStep"] = []
    output: str | None = None
    error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STEP_STATUSES

    def start(self) -> None:
        """pending -> in-progress."""
        if self.status != StepStatus.PENDING:
            raise InvalidStepTransitionError(self.id, self.status, StepStatus.IN_PROGRESS)
        self.status = StepStatus.IN_PROGRESS
        self.started_at = utc_now()

    def complete(self, output: str | None = None) -> None:
        """in-progress -> completed."""
        if self.status != StepStatus.IN_PROGRESS:
            raise InvalidStepTransitionError(self.id, self.status, StepStatus.COMPLETED)
        if output is not None:
            self.output = output
        self.status = StepStatus.COMPLETED
        self.completed_at = utc_now()

    def fail(self, error: str) -> None:
        """in-progress -> failed."""
        if self.status != StepStatus.IN_PROGRESS:
            raise InvalidStepTransitionError(self.id, self.status, StepStatus.FAILED)
        self.status = StepStatus.FAILED
        self.error = error
        self.completed_at = utc_now()

    def skip(self) -> None:
        """pending -> skipped. Skipping never passes through in-progress."""
        if self.status != StepStatus.PENDING:
            raise InvalidStepTransitionError(self.id, self.status, StepStatus.SKIPPED)
        self.status = StepStatus.SKIPPED

    def iter_tree(self) -> Iterator["PlanStep"]:
        """Yield this step and all nested substeps depth-first."""
        yield self
        for substep in self.substeps:
            yield from substep.iter_tree()


class PlanMetadata(BaseModel):
    """Reporting counters; the step statuses are the authoritative state."""

    estimated_steps: int = 0
    completed_steps: int = 0
    failed_steps: int = 0
    skipped_steps: int = 0

    def reset_counters(self) -> None:
        self.completed_steps = 0
        self.failed_steps = 0
        self.skipped_steps = 0


class Plan(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    title: str
    description: str = ""
    goal: str = ""
    status: PlanStatus = PlanStatus.DRAFT
    steps: list[PlanStep] = []
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    approved_at: datetime | None = None
    completed_at: datetime | None = None
    metadata: PlanMetadata = Field(default_factory=PlanMetadata)

    @property
    def files_affected(self) -> list[str]:
        """Targets of every file step in the tree, first-seen order."""
        seen: dict[str, None] = {}
        for step in self.iter_steps():
            if step.target and step.type.is_file_operation:
                seen.setdefault(step.target, None)
        return list(seen)

    @model_serializer(mode="wrap")
    def serialize_plan(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        data = handler(self)
        # derived from the steps; ignored again on load
        if isinstance(data.get("metadata"), dict):
            data["metadata"]["files_affected"] = self.files_affected
        return data

    def iter_steps(self) -> Iterator[PlanStep]:
        for step in self.steps:
            yield from step.iter_tree()

    def find_step(self, step_id: str) -> PlanStep | None:
        return next((s for s in self.iter_steps() if s.id == step_id), None)

    def touch(self) -> None:
        self.updated_at = utc_now()

    def approve(self) -> None:
        """Mark plan as approved."""
        self.status = PlanStatus.APPROVED
        self.approved_at = utc_now()
        self.touch()
