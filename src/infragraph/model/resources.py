"""Pydantic models for declared resources."""

from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Set, Tuple
from pydantic import BaseModel, Field, field_validator
from .values import Reference, Value, iter_references, parse_attributes, to_plain


def format_address(resource_type: str, name: str) -> str:
    """Render a resource identity as its ``type.name`` address."""
    return f"{resource_type}.{name}"


def parse_address(address: str) -> Tuple[str, str]:
    """Split a ``type.name`` address into (type, name)."""
    parts = address.strip().split('.')
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"Invalid resource address: {address!r} (expected 'type.name')")
    return parts[0], parts[1]


class Lifecycle(BaseModel):
    """Per-resource lifecycle policy."""
    create_before_destroy: bool = Field(default=False, description="Provision the replacement before tearing down the old instance")
    prevent_destroy: bool = Field(default=False, description="Refuse any plan that would destroy this resource")
    ignore_changes: Tuple[str, ...] = Field(default=(), description="Attributes excluded from diffing")

    class Config:
        frozen = True


class Resource(BaseModel):
    """A declared resource: identity, attribute value trees, explicit dependencies."""
    type: str = Field(..., description="Resource type, e.g. aws_vpc")
    name: str = Field(..., description="Name unique within the type")
    attributes: Mapping[str, Any] = Field(default_factory=dict, validate_default=True, description="Attribute name -> value tree (read-only)")
    depends_on: Tuple[str, ...] = Field(default=(), description="Explicit dependency addresses")
    lifecycle: Lifecycle = Field(default_factory=Lifecycle)

    class Config:
        frozen = True

    @field_validator("attributes", mode="before")
    @classmethod
    def _parse_attributes(cls, value: Any) -> Dict[str, Value]:
        if not isinstance(value, dict):
            raise ValueError("attributes must be a mapping")
        return parse_attributes(value)

    @field_validator("attributes")
    @classmethod
    def _freeze_attributes(cls, value: Mapping[str, Value]) -> Mapping[str, Value]:
        return MappingProxyType(dict(value))

    @field_validator("depends_on", mode="before")
    @classmethod
    def _check_depends_on(cls, value: Any) -> Tuple[str, ...]:
        if value is None:
            return ()
        addresses = tuple(value)
        for address in addresses:
            parse_address(address)
        return addresses

    @property
    def address(self) -> str:
        return format_address(self.type, self.name)

    def references(self) -> List[Reference]:
        """All references embedded in this resource's attributes."""
        refs = []
        for name in sorted(self.attributes):
            refs.extend(iter_references(self.attributes[name]))
        return refs

    def implicit_dependencies(self) -> Set[str]:
        return {ref.address for ref in self.references()}

    def plain_attributes(self) -> Dict[str, Any]:
        """Attributes as plain data, references rendered as ``${...}``."""
        return {name: to_plain(value) for name, value in self.attributes.items()}
