from enum import Enum


class ApprovalDecision(str, Enum):
    """How a pending step approval was resolved."""

    APPROVED = "approved"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"
