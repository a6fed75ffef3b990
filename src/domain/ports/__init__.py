from src.domain.ports.command_runner_port import CommandFailedError, CommandRunnerPort
from src.domain.ports.plan_repo_port import PlanRepoPort
from src.domain.ports.step_executor_port import StepExecutionError, StepExecutorPort

__all__ = [
    # Command runner port
    "CommandFailedError",
    "CommandRunnerPort",
    # Plan repo port
    "PlanRepoPort",
    # Step executor port
    "StepExecutionError",
    "StepExecutorPort",
]
