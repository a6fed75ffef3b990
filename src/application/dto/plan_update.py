from typing import Any

from pydantic import BaseModel

from src.domain.entities.plan import PlanStep


class PlanUpdate(BaseModel):
    """Fields a caller may change on a plan.

    Status and timestamps are owned by the lifecycle operations and cannot
    be set here.
    """

    title: str | None = None
    description: str | None = None
    goal: str | None = None
    steps: list[PlanStep] | None = None

    def changes(self) -> dict[str, Any]:
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if getattr(self, name) is not None
        }
