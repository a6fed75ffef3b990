from src.application.services.approval_gate import StepApprovalGate
from src.application.services.event_bus import PlanEventBus, PlanEventHandler
from src.application.services.plan_executor import PlanExecutor, StepInterruptedError
from src.application.services.tool_gating import (
    DELEGATED_STEP_TYPES,
    ToolGatingError,
    get_allowed_tools,
)

__all__ = [
    "DELEGATED_STEP_TYPES",
    "PlanEventBus",
    "PlanEventHandler",
    "PlanExecutor",
    "StepApprovalGate",
    "StepInterruptedError",
    "ToolGatingError",
    "get_allowed_tools",
]
