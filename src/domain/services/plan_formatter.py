"""Deterministic markdown report of a plan.

The step list is written so the markdown parser recovers the same step
titles in the same order.
"""

from datetime import datetime

from src.domain.entities.plan import Plan, PlanStep
from src.domain.services.plan_parser import clean_title, escape_text_line
from src.domain.value_objects.plan_status import StepStatus

STEP_STATUS_MARKERS: dict[StepStatus, str] = {
    StepStatus.PENDING: "[ ]",
    StepStatus.IN_PROGRESS: "[~]",
    StepStatus.COMPLETED: "[x]",
    StepStatus.SKIPPED: "[-]",
    StepStatus.FAILED: "[!]",
}


def _timestamp(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S UTC")


def _reads_back(written: str, title: str) -> bool:
    return clean_title(written) == (title, "")


def _step_title(title: str) -> str:
    bold = f"**{title}**"
    if _reads_back(bold, title) or not _reads_back(title, title):
        return bold
    return title


def _substep_title(title: str) -> str:
    if _reads_back(title, title):
        return title
    bold = f"**{title}**"
    return bold if _reads_back(bold, title) else title


def _text_lines(text: str, indent: str = "") -> list[str]:
    return [f"{indent}{escape_text_line(part)}" for part in text.splitlines() if part.strip()]


def _format_substeps(substeps: list[PlanStep], depth: int) -> list[str]:
    lines: list[str] = []
    indent = "   " * depth
    for substep in substeps:
        lines.append(f"{indent}- {STEP_STATUS_MARKERS[substep.status]} {_substep_title(substep.title)}")
        lines.extend(_format_substeps(substep.substeps, depth + 1))
    return lines


def format_plan_as_markdown(plan: Plan) -> str:
    lines: list[str] = [f"# {plan.title}", ""]
    lines.append(f"**Status:** {plan.status.value}")
    lines.append(f"**Created:** {_timestamp(plan.created_at)}")
    if plan.approved_at:
        lines.append(f"**Approved:** {_timestamp(plan.approved_at)}")
    if plan.completed_at:
        lines.append(f"**Completed:** {_timestamp(plan.completed_at)}")
    lines.append("")

    if plan.goal:
        lines.extend(["## Goal", *_text_lines(plan.goal), ""])

    if plan.description:
        lines.extend(["## Description", *_text_lines(plan.description), ""])

    lines.extend(["## Steps", ""])
    for index, step in enumerate(plan.steps, start=1):
        lines.append(f"{index}. {STEP_STATUS_MARKERS[step.status]} {_step_title(step.title)}")
        lines.extend(_text_lines(step.description, "   "))
        if step.target:
            lines.append(f"   Target: `{step.target}`")
        if step.error:
            lines.append(f"   Error: {step.error}")
        lines.extend(_format_substeps(step.substeps, depth=1))
        lines.append("")

    metadata = plan.metadata
    lines.append("## Progress")
    lines.append(f"- Total steps: {metadata.estimated_steps}")
    lines.append(f"- Completed: {metadata.completed_steps}")
    lines.append(f"- Failed: {metadata.failed_steps}")
    lines.append(f"- Skipped: {metadata.skipped_steps}")

    if plan.files_affected:
        lines.extend(["", "## Files Affected"])
        lines.extend(f"- {path}" for path in plan.files_affected)

    return "\n".join(lines)
