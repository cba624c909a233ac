"""Pydantic models for execution results."""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field
from ..plan.models import ActionKind
from ..resolve.order import StepKind


class StepStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"


class ResourceStatus(str, Enum):
    """Terminal status of one resource after a run."""
    APPLIED = "applied"
    NO_OP = "no-op"
    BLOCKED = "blocked"
    FAILED = "failed"
    CANCELLED = "cancelled"


class StepResult(BaseModel):
    step_id: str
    address: str
    kind: StepKind
    status: StepStatus = StepStatus.PENDING
    attempts: int = Field(default=0, ge=0)
    error: Optional[str] = None
    blocked_by: Optional[str] = Field(None, description="Failed step that blocked this one")
    started_seq: Optional[int] = Field(None, description="Event sequence number at dispatch")
    finished_seq: Optional[int] = Field(None, description="Event sequence number at completion")


class ResourceResult(BaseModel):
    address: str
    action: ActionKind
    status: ResourceStatus
    error: Optional[str] = None
    blocked_by: Optional[str] = None


class ApplyReport(BaseModel):
    """Outcome of a run: every resource's terminal status and every step."""
    resources: List[ResourceResult] = Field(default_factory=list)
    steps: List[StepResult] = Field(default_factory=list)
    cancelled: bool = False

    def with_status(self, status: ResourceStatus) -> List[str]:
        return [r.address for r in self.resources if r.status == status]

    @property
    def applied(self) -> List[str]:
        return self.with_status(ResourceStatus.APPLIED)

    @property
    def failed(self) -> List[str]:
        return self.with_status(ResourceStatus.FAILED)

    @property
    def blocked(self) -> List[str]:
        return self.with_status(ResourceStatus.BLOCKED)

    @property
    def succeeded(self) -> bool:
        return not self.cancelled and all(
            r.status in (ResourceStatus.APPLIED, ResourceStatus.NO_OP) for r in self.resources
        )

    def get(self, address: str) -> Optional[ResourceResult]:
        for result in self.resources:
            if result.address == address:
                return result
        return None

    def step(self, step_id: str) -> Optional[StepResult]:
        for result in self.steps:
            if result.step_id == step_id:
                return result
        return None

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1
