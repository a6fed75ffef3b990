from abc import ABC, abstractmethod
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from src.domain.entities.plan import Plan


class PlanRepoPort(ABC):
    """Port for plan persistence: one record per plan, keyed by plan id."""

    @abstractmethod
    async def list(self) -> list["Plan"]:
        """Load every stored plan."""

    @abstractmethod
    async def put(self, plan: "Plan") -> None:
        """Create or replace the record of a plan."""

    @abstractmethod
    async def delete(self, plan_id: UUID) -> None:
        """Remove the record of a plan. Missing records are ignored."""
