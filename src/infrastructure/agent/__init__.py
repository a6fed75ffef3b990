from src.infrastructure.agent.claude_step_executor import ClaudeStepExecutor

__all__ = ["ClaudeStepExecutor"]
