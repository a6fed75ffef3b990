from pathlib import Path
from uuid import UUID


class PlanPathBuilder:
    """Layout of the state directory: one JSON record per plan."""

    def __init__(self, state_dir: Path) -> None:
        self.state_dir = state_dir

    @property
    def plans_dir(self) -> Path:
        return self.state_dir / "plans"

    def plan_path(self, plan_id: UUID) -> Path:
        return self.plans_dir / f"{plan_id.hex}.json"

    @property
    def lock_path(self) -> Path:
        return self.plans_dir / ".lock"
