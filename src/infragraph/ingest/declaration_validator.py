"""Validate declaration file structure."""

from typing import Dict, Any, List
from ..model.resources import Resource
from ..utils.errors import DeclarationLoadError
from ..utils.logging import get_logger

logger = get_logger("ingest.declaration_validator")

ALLOWED_RESOURCE_KEYS = {"type", "name", "attributes", "depends_on", "lifecycle"}
ALLOWED_LIFECYCLE_KEYS = {"create_before_destroy", "prevent_destroy", "ignore_changes"}


def validate_declaration_structure(data: Dict[str, Any]) -> None:
    """
    Validate the top-level layout of a declaration document.

    Args:
        data: Parsed YAML/JSON document

    Raises:
        DeclarationLoadError: If the structure is invalid
    """
    if not isinstance(data, dict):
        raise DeclarationLoadError(
            "Declaration file must contain a mapping with a 'resources' list."
        )

    if "resources" not in data:
        raise DeclarationLoadError("Declaration file missing required 'resources' key.")

    resources = data["resources"]
    if resources is None:
        data["resources"] = []
        return
    if not isinstance(resources, list):
        raise DeclarationLoadError("'resources' must be a list of resource blocks.")

    for idx, block in enumerate(resources):
        problems = validate_resource_block(block)
        if problems:
            raise DeclarationLoadError(f"Invalid resource at index {idx}: {'; '.join(problems)}")

    logger.debug("Declaration structure validation passed")


def validate_resource_block(block: Any) -> List[str]:
    """
    Validate a single resource block.

    Returns:
        List of problems (empty if valid)
    """
    problems = []

    if not isinstance(block, dict):
        return ["resource block must be a mapping"]

    for key in ("type", "name"):
        if not isinstance(block.get(key), str) or not block.get(key):
            problems.append(f"'{key}' must be a non-empty string")
        elif "." in block[key]:
            problems.append(f"'{key}' must not contain '.'")

    unknown = set(block) - ALLOWED_RESOURCE_KEYS
    if unknown:
        problems.append(f"unknown keys: {', '.join(sorted(unknown))}")

    if "attributes" in block and block["attributes"] is not None and not isinstance(block["attributes"], dict):
        problems.append("'attributes' must be a mapping")

    if "depends_on" in block and block["depends_on"] is not None and not isinstance(block["depends_on"], list):
        problems.append("'depends_on' must be a list of addresses")

    lifecycle = block.get("lifecycle")
    if lifecycle is not None:
        if not isinstance(lifecycle, dict):
            problems.append("'lifecycle' must be a mapping")
        else:
            unknown_lifecycle = set(lifecycle) - ALLOWED_LIFECYCLE_KEYS
            if unknown_lifecycle:
                problems.append(f"unknown lifecycle keys: {', '.join(sorted(unknown_lifecycle))}")

    return problems


def check_unique_addresses(resources: List[Resource]) -> None:
    """Names must be unique within a type."""
    seen = set()
    for resource in resources:
        if resource.address in seen:
            raise DeclarationLoadError(f"Duplicate resource declaration: {resource.address}")
        seen.add(resource.address)


def get_declaration_summary(resources: List[Resource]) -> Dict[str, Any]:
    """Count declared resources per type."""
    type_counts: Dict[str, int] = {}
    for resource in resources:
        type_counts[resource.type] = type_counts.get(resource.type, 0) + 1
    return {
        "resource_count": len(resources),
        "type_counts": type_counts,
        "explicit_dependencies": sum(len(r.depends_on) for r in resources),
    }
