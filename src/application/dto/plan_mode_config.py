from pydantic import BaseModel, Field


class PlanModeConfig(BaseModel):
    """Execution policy for plan runs."""

    continue_on_error: bool = Field(
        default=True, description="Keep running later steps after a step fails"
    )
    command_timeout_s: float = Field(default=60.0, gt=0, description="Timeout for command steps")
    output_limit: int = Field(default=1000, gt=0, description="Max characters of captured output")
    dry_run_delay_s: float = Field(default=0.5, ge=0, description="Simulated step duration")
    checkpoint_delay_s: float = Field(default=0.1, ge=0, description="Delay for review/other steps")
    approval_timeout_s: float | None = Field(
        default=None,
        gt=0,
        description="Skip a step whose approval does not arrive in time (None waits forever)",
    )


class ExecutionOptions(BaseModel):
    """Per-run options passed to execute_plan."""

    auto_approve: bool = False
    dry_run: bool = False
