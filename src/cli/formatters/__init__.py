from src.cli.formatters.plan_formatter import (
    format_plan_report,
    format_plan_table,
    format_step_table,
)
from src.cli.formatters.run_formatter import (
    format_run_result,
    format_step_complete,
    format_step_failed,
    format_step_start,
)

__all__ = [
    "format_plan_report",
    "format_plan_table",
    "format_step_table",
    "format_run_result",
    "format_step_complete",
    "format_step_failed",
    "format_step_start",
]
