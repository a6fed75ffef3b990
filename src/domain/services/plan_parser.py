"""Recover a structured plan from free-form agent output.

Three independent strategies are tried in priority order and the first one
that yields at least one step wins:

1. structured: a JSON object in a fenced block, or the whole input as JSON
2. markdown: headings, sections and (nested) list items
3. numbered list: every numbered line anywhere in the text
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from src.domain.entities.plan import Plan, PlanMetadata, PlanStep
from src.domain.services.step_type_inference import infer_step_type
from src.domain.value_objects.plan_status import PlanStatus
from src.domain.value_objects.step_type import StepComplexity, StepType

DEFAULT_PLAN_TITLE = "Implementation Plan"

_FENCED_BLOCK = re.compile(r"```[\w-]*[ \t]*\n?(.*?)```", re.DOTALL)
_HEADING = re.compile(r"^(#{1,6})\s+(.+?)\s*#*$")
_LIST_ITEM = re.compile(r"^(?:[-*+]|\d+[.)])\s+(.+)$")
_NUMBERED_ITEM = re.compile(r"^\s*\d+[.)]\s+(.+)$")
_DESCRIPTION_HEADING = re.compile(r"^(description|summary|overview)\b", re.IGNORECASE)
_GOAL_HEADING = re.compile(r"^(goals?|objectives?|purpose)\b", re.IGNORECASE)
_STEPS_HEADING = re.compile(r"^(steps|tasks|implementation|plan)\b", re.IGNORECASE)
_STEP_HEADING_PREFIX = re.compile(r"^(?:step\s*\d+\s*[:.)\-]?|\d+[.)])\s*", re.IGNORECASE)
_TARGET_LINE = re.compile(r"^[*_]*target[*_]*:[*_]*\s*`?([^`]+?)`?\s*$", re.IGNORECASE)
# Report header lines such as "**Status:** draft" carry no plan content
_REPORT_FIELD_LINE = re.compile(
    r"^\*\*(status|created|updated|approved|completed):\*\*", re.IGNORECASE
)
_STATUS_MARKER = re.compile(r"^\[[ xX~!\-]\]\s*")
# "**Title**: trailing text" and "**Title**"; a bold title may itself contain markers
_BOLD_LEAD = re.compile(r"^(\*\*|__)((?:(?!\1).)+)\1\s*[:\-–—]\s*(.*)$")
_BOLD_WHOLE = re.compile(r"^(\*\*|__)(.+)\1$")
# Formatter escape for description lines that would read as structure
_ESCAPE = "\\"

# Indentation (in columns) at which a list item becomes a substep
_SUBSTEP_INDENT = 2


@dataclass
class ParsedStep:
    """A step before ids and statuses are assigned."""

    title: str
    description: str = ""
    type: StepType | None = None
    target: str | None = None
    complexity: StepComplexity = StepComplexity.MEDIUM
    substeps: list["ParsedStep"] = field(default_factory=list)

    def append_description(self, text: str) -> None:
        self.description = f"{self.description} {text}" if self.description else text


@dataclass
class ParsedPlan:
    title: str = DEFAULT_PLAN_TITLE
    description: str = ""
    goal: str = ""
    steps: list[ParsedStep] = field(default_factory=list)


def _join(existing: str, text: str) -> str:
    return f"{existing} {text}" if existing else text


def _first(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, "", []):
            return value
    return None


def clean_title(raw: str) -> tuple[str, str]:
    """Strip status and bold markers from a title.

    Returns (title, trailing_text); text after a bold title such as
    "**Add model**: with fields" is returned as trailing_text.
    """
    text = _STATUS_MARKER.sub("", raw.strip())
    lead = _BOLD_LEAD.match(text)
    if lead:
        return lead.group(2).strip(), lead.group(3).strip()
    whole = _BOLD_WHOLE.match(text)
    if whole:
        return whole.group(2).strip(), ""
    # markers inside the title (emphasis, __init__.py) are part of it
    return text.strip(), ""


def escape_text_line(line: str) -> str:
    """Escape a free-text line that parse_markdown would otherwise read as a
    heading, step, target or report field."""
    text = line.strip()
    if (
        text.startswith(_ESCAPE)
        or _HEADING.match(text)
        or _LIST_ITEM.match(text)
        or _TARGET_LINE.match(text)
        or _REPORT_FIELD_LINE.match(text)
        or text.startswith("```")
    ):
        return _ESCAPE + text
    return text


def _indent_of(line: str) -> int:
    expanded = line.expandtabs(4)
    return len(expanded) - len(expanded.lstrip(" "))


# ---------------------------------------------------------------------------
# Strategy 1: structured (JSON)
# ---------------------------------------------------------------------------


def _normalize_step(raw: Any) -> ParsedStep | None:
    if isinstance(raw, str):
        title, extra = clean_title(raw)
        return ParsedStep(title=title, description=extra) if title else None
    if not isinstance(raw, dict):
        return None

    title = str(_first(raw, "title", "name", "task") or "").strip()
    description = str(_first(raw, "description", "details") or "").strip()
    if not title:
        if not description:
            return None
        title, description = description, ""

    step_type: StepType | None = None
    explicit_type = raw.get("type")
    if explicit_type:
        try:
            step_type = StepType(str(explicit_type).strip().lower())
        except ValueError:
            logger.debug("Ignoring unknown step type '{}' for '{}'", explicit_type, title)

    complexity = StepComplexity.MEDIUM
    raw_complexity = _first(
        raw, "complexity", "difficulty", "estimatedComplexity", "estimated_complexity"
    )
    if raw_complexity:
        try:
            complexity = StepComplexity(str(raw_complexity).strip().lower())
        except ValueError:
            pass

    target = _first(raw, "target", "file", "path", "command")
    raw_substeps = _first(raw, "substeps", "subtasks")
    substeps = []
    if isinstance(raw_substeps, list):
        substeps = [s for s in (_normalize_step(item) for item in raw_substeps) if s]

    return ParsedStep(
        title=title,
        description=description,
        type=step_type,
        target=str(target) if target is not None else None,
        complexity=complexity,
        substeps=substeps,
    )


def _normalize_structured(data: dict[str, Any]) -> ParsedPlan:
    raw_steps = _first(data, "steps", "tasks")
    steps: list[ParsedStep] = []
    if isinstance(raw_steps, list):
        steps = [s for s in (_normalize_step(item) for item in raw_steps) if s]
    return ParsedPlan(
        title=str(_first(data, "title", "name") or DEFAULT_PLAN_TITLE),
        description=str(_first(data, "description", "summary") or ""),
        goal=str(_first(data, "goal", "objective") or ""),
        steps=steps,
    )


def parse_structured(text: str) -> ParsedPlan | None:
    """Parse a JSON plan from a fenced block or from the whole input."""
    candidates = [match.group(1).strip() for match in _FENCED_BLOCK.finditer(text)]
    candidates.append(text.strip())

    for candidate in candidates:
        if not candidate.startswith("{"):
            continue
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if not isinstance(data, dict):
            continue
        parsed = _normalize_structured(data)
        if parsed.steps:
            return parsed
    return None


# ---------------------------------------------------------------------------
# Strategy 2: markdown
# ---------------------------------------------------------------------------


class _MarkdownState:
    """Line scanner state for parse_markdown."""

    PREAMBLE = "preamble"
    DESCRIPTION = "description"
    GOAL = "goal"
    STEPS = "steps"
    OTHER = "other"

    def __init__(self) -> None:
        self.plan = ParsedPlan()
        self.section = self.PREAMBLE
        # (indent, step) chain from the current top-level step to the deepest open substep
        self.stack: list[tuple[int, ParsedStep]] = []

    def start_step(self, raw_title: str) -> None:
        title, extra = clean_title(raw_title)
        if not title:
            return
        step = ParsedStep(title=title, description=extra)
        self.plan.steps.append(step)
        self.stack = [(-1, step)]

    def add_substep(self, indent: int, raw_title: str) -> None:
        title, extra = clean_title(raw_title)
        if not title:
            return
        while len(self.stack) > 1 and self.stack[-1][0] >= indent:
            self.stack.pop()
        substep = ParsedStep(title=title, description=extra)
        self.stack[-1][1].substeps.append(substep)
        self.stack.append((indent, substep))

    def append_text(self, text: str) -> None:
        if self.section == self.GOAL:
            self.plan.goal = _join(self.plan.goal, text)
        elif self.section == self.DESCRIPTION or not self.stack:
            self.plan.description = _join(self.plan.description, text)
        else:
            self.stack[-1][1].append_description(text)

    def handle_heading(self, level: int, heading: str) -> None:
        if level == 1:
            self.plan.title = clean_title(heading)[0] or DEFAULT_PLAN_TITLE
            return

        if level == 2:
            self.stack = []
            if _DESCRIPTION_HEADING.match(heading):
                self.section = self.DESCRIPTION
            elif _GOAL_HEADING.match(heading):
                self.section = self.GOAL
            elif _STEPS_HEADING.match(heading):
                self.section = self.STEPS
            elif _STEP_HEADING_PREFIX.match(heading):
                self.section = self.STEPS
                self.start_step(_STEP_HEADING_PREFIX.sub("", heading))
            else:
                self.section = self.OTHER
            return

        if self.section == self.STEPS:
            self.start_step(_STEP_HEADING_PREFIX.sub("", heading))

    def in_step_body(self, line: str) -> bool:
        """Indented lines under a step are its content, never headings."""
        return self.section == self.STEPS and bool(self.stack) and _indent_of(line) >= _SUBSTEP_INDENT

    def handle_line(self, line: str) -> None:
        stripped = line.strip()
        indent = _indent_of(line)
        item = _LIST_ITEM.match(stripped)

        if stripped.startswith(_ESCAPE) and self.section != self.OTHER:
            self.append_text(stripped[len(_ESCAPE) :])
            return

        if self.section == self.PREAMBLE and _NUMBERED_ITEM.match(line) and indent < _SUBSTEP_INDENT:
            self.section = self.STEPS

        if self.section == self.STEPS:
            if item and (indent < _SUBSTEP_INDENT or not self.stack):
                self.start_step(item.group(1))
                return
            if item:
                self.add_substep(indent, item.group(1))
                return
            target = _TARGET_LINE.match(stripped)
            if target and self.stack:
                self.stack[-1][1].target = target.group(1).strip()
                return

        if self.section != self.OTHER:
            self.append_text(stripped)


def parse_markdown(text: str) -> ParsedPlan | None:
    """Parse a markdown plan made of headings, sections and list items."""
    state = _MarkdownState()
    in_fence = False

    for line in text.splitlines():
        stripped = line.strip()
        if stripped.startswith("```"):
            in_fence = not in_fence
            continue
        if in_fence or not stripped or _REPORT_FIELD_LINE.match(stripped):
            continue

        heading = _HEADING.match(stripped)
        if heading and not state.in_step_body(line):
            state.handle_heading(len(heading.group(1)), heading.group(2))
            continue

        state.handle_line(line)

    if not state.plan.steps:
        return None
    return state.plan


# ---------------------------------------------------------------------------
# Strategy 3: numbered list
# ---------------------------------------------------------------------------


def parse_numbered_list(text: str) -> ParsedPlan | None:
    """Treat every numbered line in the text as a step."""
    steps: list[ParsedStep] = []
    for line in text.splitlines():
        match = _NUMBERED_ITEM.match(line)
        if not match:
            continue
        title, _ = clean_title(match.group(1))
        if title:
            steps.append(ParsedStep(title=title))

    if not steps:
        return None
    return ParsedPlan(steps=steps)


# ---------------------------------------------------------------------------
# Plan assembly
# ---------------------------------------------------------------------------


def _build_step(parsed: ParsedStep, step_id: str) -> PlanStep:
    return PlanStep(
        id=step_id,
        title=parsed.title,
        description=parsed.description,
        type=parsed.type or infer_step_type(parsed.title, parsed.description),
        target=parsed.target,
        estimated_complexity=parsed.complexity,
        substeps=[
            _build_step(sub, f"{step_id}-{index}")
            for index, sub in enumerate(parsed.substeps, start=1)
        ],
    )


def build_plan(parsed: ParsedPlan) -> Plan:
    """Assign ids and initial state to a parsed plan."""
    steps = [_build_step(step, f"step-{index}") for index, step in enumerate(parsed.steps, start=1)]
    return Plan(
        title=parsed.title,
        description=parsed.description,
        goal=parsed.goal,
        status=PlanStatus.DRAFT,
        steps=steps,
        metadata=PlanMetadata(estimated_steps=len(steps)),
    )


class PlanParser:
    """Parses agent plan output into a draft Plan."""

    STRATEGIES = (
        ("structured", parse_structured),
        ("markdown", parse_markdown),
        ("numbered_list", parse_numbered_list),
    )

    def parse(self, content: str) -> Plan | None:
        """Parse content into a draft plan, or None when no strategy finds
        a step.

        Never raises.
        """
        if not content or not content.strip():
            return None

        for name, strategy in self.STRATEGIES:
            try:
                parsed = strategy(content)
            except Exception as e:
                logger.warning("Plan parse strategy '{}' failed: {}", name, e)
                continue
            if parsed and parsed.steps:
                plan = build_plan(parsed)
                logger.info(
                    "Parsed plan '{}' with {} steps using {} strategy",
                    plan.title,
                    len(plan.steps),
                    name,
                )
                return plan

        logger.debug("No plan structure found in {} characters of text", len(content))
        return None

    def extract_file_paths(self, plan: Plan) -> list[str]:
        return plan.files_affected
