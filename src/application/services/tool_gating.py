"""Tool gating per step type.

Research steps get read-only tools; only file steps may write.
"""

from src.domain.value_objects.step_type import StepType

FILE_STEP_ALLOWED_TOOLS = ["Read", "Write", "Edit", "Glob", "Grep"]

RESEARCH_ALLOWED_TOOLS = ["Read", "Glob", "Grep", "WebSearch", "WebFetch"]

DELEGATED_STEP_TYPES = frozenset(
    {
        StepType.FILE_EDIT,
        StepType.FILE_CREATE,
        StepType.FILE_DELETE,
        StepType.RESEARCH,
    }
)


class ToolGatingError(Exception):
    """Raised when tools are requested for a step type that is never
    delegated to the step executor."""


def get_allowed_tools(step_type: StepType) -> list[str]:
    """Return the agent tools a delegated step of this type may use."""
    if step_type == StepType.RESEARCH:
        return list(RESEARCH_ALLOWED_TOOLS)
    if step_type.is_file_operation:
        return list(FILE_STEP_ALLOWED_TOOLS)
    raise ToolGatingError(f"Step type '{step_type.value}' is not delegated to the step executor")
