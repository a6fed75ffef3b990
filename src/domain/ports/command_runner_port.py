from abc import ABC, abstractmethod


class CommandFailedError(Exception):
    """Raised when a shell command cannot be spawned, exits non-zero or
    times out."""

    def __init__(self, command: str, message: str, exit_code: int | None = None) -> None:
        self.command = command
        self.exit_code = exit_code
        super().__init__(message)


class CommandRunnerPort(ABC):
    """Port for running command-type steps."""

    @abstractmethod
    async def run(self, command: str, cwd: str, timeout_s: float) -> str:
        """Run command in cwd and return its stdout.

        Raises:
            CommandFailedError: On spawn failure, non-zero exit or timeout.
        """
