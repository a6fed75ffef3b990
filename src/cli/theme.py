"""CLI theme configuration - all colors in one place.

Colors use Rich markup syntax (e.g., "green", "bold red", "dim italic").
"""

from src.domain.value_objects.plan_status import PlanStatus, StepStatus


class Theme:
    """Terminal color theme for the stepwise CLI."""

    # -------------------------------------------------------------------------
    # Status colors (for success/error/warning indicators)
    # -------------------------------------------------------------------------
    SUCCESS = "green"
    SUCCESS_BOLD = "bold green"
    ERROR = "red"
    ERROR_BOLD = "bold red"
    WARNING = "yellow"
    WARNING_BOLD = "bold yellow"
    INFO = "cyan"
    INFO_BOLD = "bold cyan"

    # -------------------------------------------------------------------------
    # Text styles
    # -------------------------------------------------------------------------
    HEADER = "bold"
    DIM = "grey62"
    DIM_ITALIC = "grey62 italic"

    # -------------------------------------------------------------------------
    # Interactive elements (prompts, options)
    # -------------------------------------------------------------------------
    PROMPT = "cyan"
    OPTION_APPROVE = "green"
    OPTION_SKIP = "yellow"
    OPTION_CANCEL = "red"

    # -------------------------------------------------------------------------
    # Table columns
    # -------------------------------------------------------------------------
    TABLE_ID = "cyan"
    TABLE_SECONDARY = "grey62"

    # -------------------------------------------------------------------------
    # Plan and step status
    # -------------------------------------------------------------------------
    PLAN_STATUS = {
        PlanStatus.DRAFT: "grey62",
        PlanStatus.APPROVED: "cyan",
        PlanStatus.EXECUTING: "bold yellow",
        PlanStatus.COMPLETED: "bold green",
        PlanStatus.FAILED: "bold red",
        PlanStatus.CANCELLED: "yellow",
    }
    STEP_STATUS = {
        StepStatus.PENDING: "grey62",
        StepStatus.IN_PROGRESS: "yellow",
        StepStatus.COMPLETED: "green",
        StepStatus.SKIPPED: "grey62 italic",
        StepStatus.FAILED: "red",
    }

    # -------------------------------------------------------------------------
    # Panel borders
    # -------------------------------------------------------------------------
    BORDER_INFO = "blue"
    BORDER_ERROR = "red"


# Default theme instance - import this in other modules
theme = Theme()
