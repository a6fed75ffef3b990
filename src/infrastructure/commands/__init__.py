from src.infrastructure.commands.shell_command_runner import ShellCommandRunner

__all__ = ["ShellCommandRunner"]
