"""Keyword-based step type inference.

Rules are evaluated in order and the first match wins, so "update the
deploy command" is a file edit while "run the deploy command" is a command.
"""

import re
from collections.abc import Callable

from src.domain.value_objects.step_type import StepType

_SOURCE_EXTENSION = re.compile(
    r"\.(py|pyi|ts|tsx|js|jsx|mjs|cjs|json|ya?ml|toml|ini|cfg|md|rst|txt|html|css|scss"
    r"|go|rs|java|kt|rb|php|cs|c|cc|cpp|h|hpp|swift|sh|sql)\b"
)
_PACKAGE_MANAGER = re.compile(r"\b(npm|npx|yarn|pnpm|pip|pipx|poetry|cargo)\b")


def _mentions(*keywords: str) -> Callable[[str], bool]:
    return lambda text: any(keyword in text for keyword in keywords)


def _creates_file(text: str) -> bool:
    return "create" in text and ("file" in text or _SOURCE_EXTENSION.search(text) is not None)


def _runs_command(text: str) -> bool:
    return _mentions("run", "execute", "command")(text) or _PACKAGE_MANAGER.search(text) is not None


STEP_TYPE_RULES: tuple[tuple[StepType, Callable[[str], bool]], ...] = (
    (StepType.FILE_CREATE, _creates_file),
    (StepType.FILE_EDIT, _mentions("edit", "modify", "update", "change")),
    (StepType.FILE_DELETE, _mentions("delete", "remove")),
    (StepType.COMMAND, _runs_command),
    (StepType.RESEARCH, _mentions("research", "investigate", "analyze", "explore")),
    (StepType.REVIEW, _mentions("review", "test", "verify")),
)


def infer_step_type(title: str, description: str = "") -> StepType:
    text = f"{title} {description}".lower()
    for step_type, matches in STEP_TYPE_RULES:
        if matches(text):
            return step_type
    return StepType.OTHER
