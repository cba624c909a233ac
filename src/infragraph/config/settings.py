"""Pydantic models for engine settings."""

from pydantic import BaseModel, Field, model_validator


class RetrySettings(BaseModel):
    """Backoff for transient provider errors."""
    max_attempts: int = Field(default=4, ge=1, description="Attempts per provider call, first one included")
    base_delay: float = Field(default=0.5, ge=0, description="Delay before the first retry, in seconds")
    max_delay: float = Field(default=30.0, ge=0, description="Upper bound for a single backoff delay")
    multiplier: float = Field(default=2.0, ge=1, description="Growth factor between consecutive delays")

    @model_validator(mode="after")
    def _check_bounds(self) -> "RetrySettings":
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must not be smaller than base_delay")
        return self


class ExecutorSettings(BaseModel):
    concurrency: int = Field(default=10, ge=1, description="Maximum steps running at once")
    retry: RetrySettings = Field(default_factory=RetrySettings)


class StateSettings(BaseModel):
    path: str = Field(default="infragraph.state.json", description="Local state file")


class ProviderSettings(BaseModel):
    path: str = Field(default=".infragraph/cloud.json", description="File backing the local provider")
    latency: float = Field(default=0.0, ge=0, description="Simulated seconds per provider call")


class PlanSettings(BaseModel):
    refresh: bool = Field(default=True, description="Read tracked resources back before diffing")


class EngineSettings(BaseModel):
    """Validated configuration for one engine run."""
    executor: ExecutorSettings = Field(default_factory=ExecutorSettings)
    state: StateSettings = Field(default_factory=StateSettings)
    provider: ProviderSettings = Field(default_factory=ProviderSettings)
    plan: PlanSettings = Field(default_factory=PlanSettings)

    class Config:
        """Pydantic config."""
        extra = "forbid"
        json_schema_extra = {
            "example": {
                "executor": {"concurrency": 4, "retry": {"max_attempts": 3}},
                "state": {"path": "infragraph.state.json"},
                "plan": {"refresh": False},
            }
        }
