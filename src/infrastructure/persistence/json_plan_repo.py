from pathlib import Path
from uuid import UUID

from loguru import logger
from pydantic import ValidationError

from src.domain.entities.plan import Plan
from src.domain.ports.plan_repo_port import PlanRepoPort
from src.infrastructure.persistence._paths import PlanPathBuilder
from src.infrastructure.persistence.async_file_lock import async_file_lock
from src.infrastructure.persistence.atomic_io import atomic_write, read_json


class JsonPlanRepo(PlanRepoPort):
    """File-based JSON storage implementation of PlanRepoPort.

    Layout: <state_dir>/plans/<plan id hex>.json
    """

    def __init__(self, state_dir: Path) -> None:
        self.state_dir = state_dir
        self._paths = PlanPathBuilder(state_dir)

    async def list(self) -> list[Plan]:
        """Load every readable plan record. Corrupt records are logged and
        left out."""
        plans_dir = self._paths.plans_dir
        if not plans_dir.exists():
            return []

        plans: list[Plan] = []
        async with async_file_lock(self._paths.lock_path):
            for path in sorted(plans_dir.glob("*.json")):
                try:
                    data = await read_json(path)
                    if data is None:
                        continue
                    plans.append(Plan.model_validate(data))
                except (ValueError, ValidationError) as e:
                    logger.warning("Skipping unreadable plan record {}: {}", path.name, e)
        logger.debug("Loaded {} plan records from {}", len(plans), plans_dir)
        return plans

    async def put(self, plan: Plan) -> None:
        async with async_file_lock(self._paths.lock_path):
            await atomic_write(self._paths.plan_path(plan.id), plan.model_dump_json(indent=2))
        logger.debug("Saved plan record: {}", plan.id)

    async def delete(self, plan_id: UUID) -> None:
        path = self._paths.plan_path(plan_id)
        async with async_file_lock(self._paths.lock_path):
            path.unlink(missing_ok=True)
        logger.debug("Deleted plan record: {}", plan_id)
