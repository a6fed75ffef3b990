from typing import Any

from claude_code_sdk import (
    AssistantMessage,
    ClaudeCodeOptions,
    ResultMessage,
    TextBlock,
    ToolUseBlock,
    query,
)
from loguru import logger
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from src.domain.ports.step_executor_port import StepExecutionError, StepExecutorPort


def _is_retryable_error(e: BaseException) -> bool:
    """Rate limits and transient CLI failures are worth another attempt."""
    if isinstance(e, StepExecutionError):
        return False
    msg = str(e).lower()
    return (
        "rate limit" in msg
        or "429" in msg
        or "usage limit" in msg
        or "temporarily unavailable" in msg
    )


def _log_retry(retry_state: Any) -> None:
    exc = retry_state.outcome.exception()
    logger.warning("[CLAUDE] Retry {}: {}", retry_state.attempt_number, str(exc)[:100])


class ClaudeStepExecutor(StepExecutorPort):
    """StepExecutorPort backed by the Claude Code SDK.

    The instruction is sent as a single query; the text of the final result
    (or, failing that, the last assistant text) is the step output.
    """

    def __init__(self, permission_mode: str = "acceptEdits", max_turns: int | None = None) -> None:
        self.permission_mode = permission_mode
        self.max_turns = max_turns

    def _build_options(self, cwd: str, allowed_tools: list[str] | None) -> ClaudeCodeOptions:
        return ClaudeCodeOptions(
            allowed_tools=allowed_tools or [],
            cwd=cwd,
            permission_mode=self.permission_mode,  # type: ignore[arg-type]
            max_turns=self.max_turns,
        )

    async def execute(
        self,
        instruction: str,
        cwd: str,
        allowed_tools: list[str] | None = None,
    ) -> str:
        options = self._build_options(cwd, allowed_tools)
        logger.debug("Delegating step instruction:\n{}", instruction)
        return await self._run_query(instruction, options)

    @retry(
        retry=retry_if_exception(_is_retryable_error),
        stop=stop_after_attempt(5),
        wait=wait_exponential(multiplier=2, max=60),
        before_sleep=_log_retry,
        reraise=True,
    )
    async def _run_query(self, prompt: str, options: ClaudeCodeOptions) -> str:
        last_text = ""
        result_text: str | None = None

        async for message in query(prompt=prompt, options=options):
            match message:
                case AssistantMessage(content=blocks):
                    for block in blocks:
                        match block:
                            case TextBlock(text=text) if text:
                                last_text = text
                            case ToolUseBlock(name=name):
                                logger.info("[TOOL] {}", name)
                case ResultMessage(is_error=True, result=result):
                    raise StepExecutionError(result or "Step executor reported an error")
                case ResultMessage(result=result, num_turns=turns, duration_ms=duration_ms):
                    logger.info("[AGENT] Completed: turns={}, duration={}ms", turns, duration_ms)
                    result_text = result

        return result_text if result_text else last_text
