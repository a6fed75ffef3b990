from enum import Enum


class PlanEvent(str, Enum):
    """Notifications published to UI collaborators.

    Payloads:
        PLAN_CREATED, PLAN_UPDATED: Plan
        PLAN_DELETED: plan id (UUID)
        ACTIVE_PLAN_CHANGED: Plan | None
        STEP_START, STEP_COMPLETE, APPROVAL_REQUIRED: PlanStep
        STEP_FAILED: StepFailure
        PLAN_COMPLETE: PlanExecutionResult
    """

    # Manager lifecycle events
    PLAN_CREATED = "plan_created"
    PLAN_UPDATED = "plan_updated"
    PLAN_DELETED = "plan_deleted"
    ACTIVE_PLAN_CHANGED = "active_plan_changed"

    # Executor events
    STEP_START = "step_start"
    STEP_COMPLETE = "step_complete"
    STEP_FAILED = "step_failed"
    PLAN_COMPLETE = "plan_complete"
    APPROVAL_REQUIRED = "approval_required"
