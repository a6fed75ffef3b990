"""Domain services."""

from src.domain.services.output_sanitizer import OutputSanitizer, SanitizedOutput
from src.domain.services.plan_formatter import STEP_STATUS_MARKERS, format_plan_as_markdown
from src.domain.services.plan_parser import (
    ParsedPlan,
    ParsedStep,
    PlanParser,
    build_plan,
    parse_markdown,
    parse_numbered_list,
    parse_structured,
)
from src.domain.services.step_type_inference import infer_step_type

__all__ = [
    "OutputSanitizer",
    "ParsedPlan",
    "ParsedStep",
    "PlanParser",
    "STEP_STATUS_MARKERS",
    "SanitizedOutput",
    "build_plan",
    "format_plan_as_markdown",
    "infer_step_type",
    "parse_markdown",
    "parse_numbered_list",
    "parse_structured",
]
