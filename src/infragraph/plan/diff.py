"""Attribute-level diff between desired and last-applied attributes."""

from typing import Any, Dict, Iterable, List
from ..model.values import Value, contains_unknown, to_plain
from ..providers.registry import ResourceTypeDescriptor
from .models import AttributeChange


def diff_attributes(
    desired: Dict[str, Any],
    configured: Dict[str, Value],
    previous: Dict[str, Any],
    descriptor: ResourceTypeDescriptor,
    ignore_changes: Iterable[str] = (),
) -> List[AttributeChange]:
    """
    Compare resolved desired attributes with the last-applied snapshot.

    Args:
        desired: Resolved desired attributes (may contain UNKNOWN)
        configured: The declared value trees, used to render unknown values
        previous: Last-applied attributes from state
        descriptor: Capability descriptor of the resource type
        ignore_changes: Attribute names never reported as changed

    Returns:
        Changes sorted by attribute name
    """
    ignored = set(ignore_changes)
    changes = []
    for name in sorted(set(desired) | set(previous)):
        if name in ignored:
            continue
        before = previous.get(name)
        after = desired.get(name)
        if contains_unknown(after):
            changes.append(AttributeChange(
                name=name,
                before=before,
                after=to_plain(configured[name]),
                after_unknown=True,
                requires_replace=not descriptor.is_updatable(name),
            ))
        elif after != before:
            changes.append(AttributeChange(
                name=name,
                before=before,
                after=after,
                requires_replace=not descriptor.is_updatable(name),
            ))
    return changes


def creation_changes(desired: Dict[str, Any], configured: Dict[str, Value]) -> List[AttributeChange]:
    """Every attribute of a resource that does not exist yet."""
    changes = []
    for name in sorted(desired):
        if contains_unknown(desired[name]):
            changes.append(AttributeChange(name=name, after=to_plain(configured[name]), after_unknown=True))
        else:
            changes.append(AttributeChange(name=name, after=desired[name]))
    return changes
