from src.application.plan_manager import PlanManager
from src.application.services.plan_executor import PlanExecutor

__all__ = [
    "PlanExecutor",
    "PlanManager",
]
