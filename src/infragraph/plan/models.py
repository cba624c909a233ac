"""Pydantic models for plans."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from ..model.resources import Lifecycle


class ActionKind(str, Enum):
    """What a plan does to one resource."""
    CREATE = "create"
    UPDATE = "update"
    REPLACE = "replace"
    DESTROY = "destroy"
    NO_OP = "no-op"


class AttributeChange(BaseModel):
    """One changed attribute within an update or replace."""
    name: str = Field(..., description="Attribute name")
    before: Any = Field(None, description="Last-applied value (None when absent)")
    after: Any = Field(None, description="Desired value; the reference text when unknown")
    after_unknown: bool = Field(default=False, description="Desired value only known after a dependency is applied")
    requires_replace: bool = Field(default=False, description="Change cannot be applied in place")


class PlannedAction(BaseModel):
    """Action for a single resource."""
    address: str = Field(..., description="Resource address type.name")
    type: str = Field(..., description="Resource type")
    kind: ActionKind = Field(..., description="Action kind")
    changes: List[AttributeChange] = Field(default_factory=list, description="Attribute-level diff")
    lifecycle: Lifecycle = Field(default_factory=Lifecycle)
    provider_id: Optional[str] = Field(None, description="Current provider id, if tracked")
    deposed: List[str] = Field(default_factory=list, description="Old instances still to be destroyed")
    reason: Optional[str] = Field(None, description="Why this action was chosen, when not obvious")

    @property
    def is_actionable(self) -> bool:
        return self.kind != ActionKind.NO_OP or bool(self.deposed)

    def replace_attributes(self) -> List[str]:
        return [change.name for change in self.changes if change.requires_replace]


class DriftEntry(BaseModel):
    """Divergence between the provider and recorded state found during refresh."""
    address: str
    deleted: bool = Field(default=False, description="Object no longer exists remotely")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Attribute -> {recorded, actual}")


class Plan(BaseModel):
    """Actions in dependency order (dependencies first)."""
    actions: List[PlannedAction] = Field(default_factory=list)
    destroy_mode: bool = Field(default=False, description="Plan removes every tracked resource")
    drift: List[DriftEntry] = Field(default_factory=list)
    generated_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def get(self, address: str) -> Optional[PlannedAction]:
        for action in self.actions:
            if action.address == address:
                return action
        return None

    def actionable(self) -> List[PlannedAction]:
        return [action for action in self.actions if action.is_actionable]

    @property
    def has_changes(self) -> bool:
        return bool(self.actionable())

    def summary(self) -> Dict[str, int]:
        counts = {kind.value: 0 for kind in ActionKind}
        for action in self.actions:
            counts[action.kind.value] += 1
        return counts
