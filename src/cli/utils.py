"""CLI utility functions."""

from uuid import UUID

from rich.console import Console

from src.cli.theme import theme
from src.domain.entities.plan import Plan

MIN_ID_PREFIX = 4


def sanitize_terminal_input(text: str) -> str:
    """Remove surrogate characters that can't be encoded as UTF-8.

    Terminal input and piped files can contain surrogates (U+D800 to
    U+DFFF) which break JSON encoding of the stored plan.
    """
    return text.encode("utf-8", "ignore").decode("utf-8")


def resolve_plan_id(plan_id_str: str, plans: list[Plan], console: Console) -> UUID | None:
    """Resolve a plan ID string to a full UUID.

    Supports both full UUIDs and short hex prefixes (minimum 4 characters).
    Returns None if not found or ambiguous.
    """
    try:
        return UUID(plan_id_str)
    except ValueError:
        pass

    prefix = plan_id_str.lower().replace("-", "")
    if len(prefix) < MIN_ID_PREFIX:
        console.print(f"[{theme.ERROR}]Plan ID prefix must be at least {MIN_ID_PREFIX} characters[/]")
        return None

    matches = [p.id for p in plans if p.id.hex.startswith(prefix)]

    if len(matches) == 0:
        console.print(f"[{theme.ERROR}]No plan found with prefix: {prefix}[/]")
        return None
    elif len(matches) > 1:
        console.print(f"[{theme.ERROR}]Ambiguous prefix '{prefix}' matches {len(matches)} plans:[/]")
        for m in matches[:5]:
            console.print(f"  [{theme.DIM}]{m}[/]")
        if len(matches) > 5:
            console.print(f"  [{theme.DIM}]...and {len(matches) - 5} more[/]")
        return None

    return matches[0]
