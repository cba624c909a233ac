"""Load and validate resource declaration files (YAML or JSON)."""

from pathlib import Path
from typing import Any, Dict, List
import yaml
from pydantic import ValidationError as SchemaError
from ..model.resources import Resource
from ..utils.errors import DeclarationLoadError
from ..utils.logging import get_logger
from .declaration_validator import (
    validate_declaration_structure,
    check_unique_addresses,
    get_declaration_summary,
)

logger = get_logger("ingest.declaration_loader")


def load_declarations(path: str) -> List[Resource]:
    """
    Load resource declarations from a YAML or JSON file.

    Args:
        path: Path to the declaration file

    Returns:
        Declared resources, in file order

    Raises:
        DeclarationLoadError: If the file cannot be read or is invalid
    """
    declaration_path = Path(path)

    if not declaration_path.exists():
        raise DeclarationLoadError(
            f"Declaration file not found: {path}. "
            "Please check the file path and ensure the file exists."
        )

    if not declaration_path.is_file():
        raise DeclarationLoadError(f"Path is not a file: {path}.")

    try:
        with open(declaration_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise DeclarationLoadError(f"Invalid YAML/JSON in declaration file: {e}")
    except OSError as e:
        raise DeclarationLoadError(
            f"Error reading declaration file: {e}. "
            "Please check file permissions and try again."
        )

    resources = parse_declarations(data)

    summary = get_declaration_summary(resources)
    logger.info(
        f"Loaded {summary['resource_count']} resource declarations from {path} "
        f"({len(summary['type_counts'])} types)"
    )
    return resources


def parse_declarations(data: Dict[str, Any]) -> List[Resource]:
    """Build Resource objects from an already-decoded declaration document."""
    validate_declaration_structure(data)

    resources = []
    for idx, block in enumerate(data["resources"]):
        try:
            resources.append(Resource(
                type=block["type"],
                name=block["name"],
                attributes=block.get("attributes") or {},
                depends_on=block.get("depends_on") or (),
                lifecycle=block.get("lifecycle") or {},
            ))
        except SchemaError as e:
            raise DeclarationLoadError(
                f"Invalid resource {block.get('type')}.{block.get('name')} at index {idx}: {e}"
            )
        except TypeError as e:
            raise DeclarationLoadError(f"Invalid attribute value at index {idx}: {e}")

    check_unique_addresses(resources)
    return resources
