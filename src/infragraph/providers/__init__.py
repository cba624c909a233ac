"""Provider boundary, resource type registry and the bundled local provider."""

from .base import Provider
from .registry import ResourceTypeDescriptor, ResourceTypeRegistry, default_registry
from .local import LocalProvider

__all__ = [
    "Provider",
    "ResourceTypeDescriptor",
    "ResourceTypeRegistry",
    "default_registry",
    "LocalProvider",
]
