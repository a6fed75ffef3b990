from src.infrastructure.persistence.json_plan_repo import JsonPlanRepo

__all__ = ["JsonPlanRepo"]
