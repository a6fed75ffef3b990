from enum import Enum


class StepType(str, Enum):
    FILE_EDIT = "file-edit"
    FILE_CREATE = "file-create"
    FILE_DELETE = "file-delete"
    COMMAND = "command"
    RESEARCH = "research"
    REVIEW = "review"
    OTHER = "other"

    @property
    def is_file_operation(self) -> bool:
        return self in FILE_STEP_TYPES


FILE_STEP_TYPES = frozenset({StepType.FILE_EDIT, StepType.FILE_CREATE, StepType.FILE_DELETE})


class StepComplexity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
