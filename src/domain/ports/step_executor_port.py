from abc import ABC, abstractmethod


class StepExecutionError(Exception):
    """Raised by a step executor when it could not carry out an
    instruction."""


class StepExecutorPort(ABC):
    """Port for the collaborator that performs file and research work."""

    @abstractmethod
    async def execute(
        self,
        instruction: str,
        cwd: str,
        allowed_tools: list[str] | None = None,
    ) -> str:
        """Carry out a natural-language instruction and return its text
        output.

        Args:
            instruction: What the collaborator should do.
            cwd: Workspace root the work applies to.
            allowed_tools: Tools the collaborator may use; None leaves the
                choice to the collaborator.
        """
