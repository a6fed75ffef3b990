"""Instruction templates sent to the step executor."""

from src.domain.entities.plan import PlanStep
from src.domain.value_objects.step_type import StepType

FILE_STEP_INSTRUCTIONS: dict[StepType, str] = {
    StepType.FILE_EDIT: 'Edit the file at "{target}" to accomplish the following:',
    StepType.FILE_CREATE: 'Create a new file at "{target}" with the following content:',
    StepType.FILE_DELETE: 'Delete the file at "{target}".',
}

GENERIC_INSTRUCTION = "Execute the following task:"


def file_step_instruction(step: PlanStep) -> str:
    """Build the instruction for a file-edit/create/delete step."""
    template = FILE_STEP_INSTRUCTIONS.get(step.type, GENERIC_INSTRUCTION)
    instruction = template.format(target=step.target or "")
    return f"""{instruction}

**Task:** {step.title}

**Details:** {step.description}

Execute this step now. If this involves editing or creating files, make the changes directly."""


def research_instruction(step: PlanStep) -> str:
    return f"Research task: {step.title}\n\n{step.description}\n\nProvide a brief summary of findings."
