"""Pydantic models for persisted state."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from ..model.resources import Lifecycle, format_address

STATE_FORMAT_VERSION = 1


class StateRecord(BaseModel):
    """Last-known provisioned state of one resource."""
    type: str = Field(..., description="Resource type")
    name: str = Field(..., description="Resource name")
    provider_id: str = Field(..., description="Provider-assigned identifier")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Last-applied resolved attributes")
    exports: Dict[str, Any] = Field(default_factory=dict, description="Attributes exported by the provider")
    dependencies: List[str] = Field(default_factory=list, description="Addresses this resource depended on when applied")
    lifecycle: Lifecycle = Field(default_factory=Lifecycle)
    deposed: List[str] = Field(default_factory=list, description="Old instances awaiting destruction after a create-before-destroy replace")
    updated_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def address(self) -> str:
        return format_address(self.type, self.name)


class StateDocument(BaseModel):
    """Whole state file."""
    version: int = Field(default=STATE_FORMAT_VERSION)
    serial: int = Field(default=0, ge=0, description="Incremented on every save")
    lineage: Optional[str] = Field(None, description="Stable identifier of this state's history")
    resources: Dict[str, StateRecord] = Field(default_factory=dict)
