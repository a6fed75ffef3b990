from src.domain.value_objects.approval_decision import ApprovalDecision
from src.domain.value_objects.plan_event import PlanEvent
from src.domain.value_objects.plan_status import (
    EXECUTABLE_PLAN_STATUSES,
    TERMINAL_STEP_STATUSES,
    PlanStatus,
    StepStatus,
)
from src.domain.value_objects.step_type import FILE_STEP_TYPES, StepComplexity, StepType

__all__ = [
    "ApprovalDecision",
    "EXECUTABLE_PLAN_STATUSES",
    "FILE_STEP_TYPES",
    "PlanEvent",
    "PlanStatus",
    "StepComplexity",
    "StepStatus",
    "StepType",
    "TERMINAL_STEP_STATUSES",
]
