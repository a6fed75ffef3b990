from src.domain.entities.execution import (
    PlanExecutionContext,
    PlanExecutionResult,
    PlanProgress,
    StepFailure,
)
from src.domain.entities.plan import (
    InvalidStepTransitionError,
    Plan,
    PlanMetadata,
    PlanStep,
)

__all__ = [
    "InvalidStepTransitionError",
    "Plan",
    "PlanExecutionContext",
    "PlanExecutionResult",
    "PlanMetadata",
    "PlanProgress",
    "PlanStep",
    "StepFailure",
]
