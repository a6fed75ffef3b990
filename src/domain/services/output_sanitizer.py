import re
from dataclasses import dataclass

SECRET_PATTERNS = [
    # Prefixed API keys
    r"sk-ant-[a-zA-Z0-9\-]{20,}",  # Anthropic
    r"sk-[a-zA-Z0-9]{20,}",  # OpenAI
    r"gh[po]_[a-zA-Z0-9]{36}",  # GitHub PAT / OAuth
    r"AKIA[0-9A-Z]{16}",  # AWS Access Key ID
    r"(?i)bearer\s+[a-zA-Z0-9\-_\.]{20,}",
    # Generic key=value secrets
    r"(?i)(api_key|apikey|secret_key|access_token|auth_token|private_key)\s*[=:]\s*['\"]?[a-zA-Z0-9\-_\.]{16,}['\"]?",
    r"(?i)(password|passwd|pwd)\s*[=:]\s*['\"][^'\"]{8,}['\"]",
    # Connection strings
    r"(?i)(mysql|postgres(?:ql)?|mongodb|redis)://[^\s]+",
]

REDACTED = "[REDACTED]"


@dataclass
class SanitizedOutput:
    text: str
    redacted: bool
    truncated: bool


class OutputSanitizer:
    """Prepares captured step output for storage: secrets are masked and the
    text is cut to a bounded length."""

    def __init__(self, limit: int = 1000, patterns: list[str] | None = None) -> None:
        self.limit = limit
        self._patterns = [re.compile(p) for p in (patterns or SECRET_PATTERNS)]

    def sanitize(self, text: str) -> SanitizedOutput:
        redacted = False
        for pattern in self._patterns:
            text, count = pattern.subn(REDACTED, text)
            redacted = redacted or count > 0

        truncated = len(text) > self.limit
        if truncated:
            text = text[: self.limit]

        return SanitizedOutput(text=text, redacted=redacted, truncated=truncated)

    def __call__(self, text: str) -> str:
        return self.sanitize(text).text
