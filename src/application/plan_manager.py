"""Plan lifecycle: create, approve, execute, delete.

The in-memory plan set is authoritative for the session. Every mutation is
written through to the repository on a best-effort basis.
"""

from uuid import UUID

from loguru import logger

from src.application.dto.plan_mode_config import ExecutionOptions
from src.application.dto.plan_update import PlanUpdate
from src.application.services.event_bus import PlanEventBus
from src.application.services.plan_executor import PlanExecutor
from src.domain.entities.execution import PlanExecutionResult, PlanProgress
from src.domain.entities.plan import Plan, PlanMetadata
from src.domain.ports.plan_repo_port import PlanRepoPort
from src.domain.services.plan_formatter import format_plan_as_markdown
from src.domain.services.plan_parser import PlanParser
from src.domain.value_objects.plan_event import PlanEvent
from src.domain.value_objects.plan_status import (
    EXECUTABLE_PLAN_STATUSES,
    PlanStatus,
    StepStatus,
)


class PlanManager:
    def __init__(
        self,
        executor: PlanExecutor,
        plan_repo: PlanRepoPort,
        parser: PlanParser | None = None,
        events: PlanEventBus | None = None,
    ) -> None:
        self.executor = executor
        self.plan_repo = plan_repo
        self.parser = parser or PlanParser()
        # executor events reach subscribers through the same bus
        self.events = events or executor.events
        if self.events is not executor.events:
            executor.events = self.events

        self._plans: dict[UUID, Plan] = {}
        self._active_plan_id: UUID | None = None
        self._executing_plan_id: UUID | None = None

    async def load(self) -> int:
        """Repopulate the plan set from the repository."""
        try:
            plans = await self.plan_repo.list()
        except Exception:
            logger.exception("Failed to load plans")
            return 0

        for plan in plans:
            if plan.status == PlanStatus.EXECUTING:
                # the process that ran it is gone
                logger.warning("Plan {} was interrupted while executing", plan.id)
                plan.status = PlanStatus.CANCELLED
                plan.touch()
            self._plans[plan.id] = plan
        logger.debug("Loaded {} plans", len(plans))
        return len(plans)

    # ------------------------------------------------------------------
    # Creation and queries
    # ------------------------------------------------------------------

    async def create_plan_from_text(self, text: str) -> Plan | None:
        plan = self.parser.parse(text)
        if plan is None:
            logger.info("No plan could be parsed from the given text")
            return None
        await self._store(plan)
        return plan

    async def create_plan(self, title: str, description: str = "", goal: str = "") -> Plan:
        plan = Plan(
            title=title,
            description=description,
            goal=goal,
            metadata=PlanMetadata(estimated_steps=0),
        )
        await self._store(plan)
        return plan

    def get_plan(self, plan_id: UUID) -> Plan | None:
        return self._plans.get(plan_id)

    def get_plans(self) -> list[Plan]:
        """All known plans, most recently updated first."""
        return sorted(self._plans.values(), key=lambda p: p.updated_at, reverse=True)

    def get_plans_by_status(self, status: PlanStatus) -> list[Plan]:
        return [p for p in self.get_plans() if p.status == status]

    def get_active_plan(self) -> Plan | None:
        if self._active_plan_id is None:
            return None
        return self._plans.get(self._active_plan_id)

    def set_active_plan(self, plan_id: UUID | None) -> bool:
        if plan_id is not None and plan_id not in self._plans:
            logger.warning("Cannot activate unknown plan {}", plan_id)
            return False
        if self._executing_plan_id is not None and plan_id != self._executing_plan_id:
            logger.warning("Cannot change the active plan while {} executes", self._executing_plan_id)
            return False
        self._set_active(plan_id)
        return True

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def update_plan(self, plan_id: UUID, update: PlanUpdate) -> Plan | None:
        plan = self._plans.get(plan_id)
        if plan is None:
            return None
        if plan.status == PlanStatus.EXECUTING:
            logger.warning("Cannot update plan {} while it executes", plan_id)
            return None

        changes = update.changes()
        for name, value in changes.items():
            setattr(plan, name, value)
        if "steps" in changes:
            plan.metadata.estimated_steps = len(plan.steps)
        plan.touch()

        await self._save(plan)
        self.events.emit(PlanEvent.PLAN_UPDATED, plan)
        return plan

    async def delete_plan(self, plan_id: UUID) -> bool:
        plan = self._plans.get(plan_id)
        if plan is None:
            return False
        if plan.status == PlanStatus.EXECUTING:
            logger.warning("Cannot delete plan {} while it executes", plan_id)
            return False

        del self._plans[plan_id]
        await self._remove(plan_id)
        if self._active_plan_id == plan_id:
            self._set_active(None)
        self.events.emit(PlanEvent.PLAN_DELETED, plan_id)
        logger.info("Deleted plan '{}'", plan.title)
        return True

    async def approve_plan(self, plan_id: UUID) -> Plan | None:
        plan = self._plans.get(plan_id)
        if plan is None:
            return None
        if plan.status != PlanStatus.DRAFT:
            logger.warning("Cannot approve plan {} in status {}", plan_id, plan.status.value)
            return None

        plan.approve()
        logger.info("Approved plan '{}'", plan.title)
        await self._save(plan)
        self.events.emit(PlanEvent.PLAN_UPDATED, plan)
        return plan

    async def execute_plan(
        self,
        plan_id: UUID,
        options: ExecutionOptions | None = None,
    ) -> PlanExecutionResult | None:
        plan = self._plans.get(plan_id)
        if plan is None:
            return None
        if plan.status not in EXECUTABLE_PLAN_STATUSES:
            logger.warning("Cannot execute plan {} in status {}", plan_id, plan.status.value)
            return None
        if self._executing_plan_id is not None or self.executor.is_executing():
            logger.warning("Cannot execute plan {}: another plan is executing", plan_id)
            return None

        previous_status = plan.status
        plan.status = PlanStatus.EXECUTING
        self._executing_plan_id = plan_id
        self._set_active(plan_id)
        try:
            result = await self.executor.execute(plan, options)
        except BaseException:
            if plan.status == PlanStatus.EXECUTING:
                plan.status = PlanStatus.CANCELLED
                plan.touch()
            raise
        else:
            if plan.status == PlanStatus.EXECUTING:
                # rejected by the executor before any step ran
                plan.status = previous_status
        finally:
            self._executing_plan_id = None
            self._set_active(None)
            await self._save(plan)
        return result

    # ------------------------------------------------------------------
    # Execution control
    # ------------------------------------------------------------------

    def pause_execution(self) -> None:
        self.executor.pause()

    def resume_execution(self) -> None:
        self.executor.resume()

    def cancel_execution(self) -> None:
        self.executor.cancel()

    async def skip_step(self, step_id: str, plan_id: UUID | None = None) -> bool:
        """Skip a pending step.

        During a run the step is looked up in the executing plan. Otherwise
        plan_id names the plan and the change is persisted, so a later run
        passes over the step.
        """
        if self.executor.is_executing() and plan_id in (None, self._executing_plan_id):
            return self.executor.skip_step(step_id)
        if plan_id is None:
            return False

        plan = self._plans.get(plan_id)
        if plan is None or plan.status == PlanStatus.EXECUTING:
            return False
        step = plan.find_step(step_id)
        if step is None or step.status != StepStatus.PENDING:
            return False

        step.skip()
        plan.touch()
        await self._save(plan)
        self.events.emit(PlanEvent.PLAN_UPDATED, plan)
        return True

    def approve_step(self, step_id: str) -> bool:
        return self.executor.approve_step(step_id)

    def get_progress(self) -> PlanProgress | None:
        return self.executor.get_progress()

    def is_executing(self) -> bool:
        return self.executor.is_executing()

    def is_paused(self) -> bool:
        return self.executor.is_paused()

    def format_plan_as_markdown(self, plan: Plan) -> str:
        return format_plan_as_markdown(plan)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _store(self, plan: Plan) -> None:
        self._plans[plan.id] = plan
        logger.info("Created plan '{}' with {} steps", plan.title, len(plan.steps))
        await self._save(plan)
        self.events.emit(PlanEvent.PLAN_CREATED, plan)

    def _set_active(self, plan_id: UUID | None) -> None:
        if plan_id == self._active_plan_id:
            return
        self._active_plan_id = plan_id
        self.events.emit(PlanEvent.ACTIVE_PLAN_CHANGED, self.get_active_plan())

    async def _save(self, plan: Plan) -> None:
        try:
            await self.plan_repo.put(plan)
        except Exception as e:
            logger.error("Failed to persist plan {}: {}", plan.id, e)

    async def _remove(self, plan_id: UUID) -> None:
        try:
            await self.plan_repo.delete(plan_id)
        except Exception as e:
            logger.error("Failed to remove persisted plan {}: {}", plan_id, e)
