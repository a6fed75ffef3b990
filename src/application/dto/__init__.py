from src.application.dto.plan_mode_config import ExecutionOptions, PlanModeConfig
from src.application.dto.plan_update import PlanUpdate

__all__ = [
    "ExecutionOptions",
    "PlanModeConfig",
    "PlanUpdate",
]
