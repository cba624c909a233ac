"""Audit artifacts for a computed plan."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from ..execute.results import ApplyReport
from ..plan.models import Plan
from ..resolve.order import ExecutionOrder
from ..utils.errors import InfragraphError
from ..utils.logging import get_logger
from .. import __version__

logger = get_logger("report.artifact")

ARTIFACT_FORMAT_VERSION = "1"


def _write_json(path: Path, payload) -> None:
    try:
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=2, default=str)
        logger.debug(f"Written {path.name}: {path}")
    except (OSError, TypeError) as e:
        raise InfragraphError(f"Failed to write {path.name}: {e}")


def generate_artifacts(
    plan: Plan,
    order: ExecutionOrder,
    output_dir: Path,
    report: Optional[ApplyReport] = None,
) -> None:
    """
    Write audit artifacts for a plan.

    Creates the following files in output_dir:
    - plan.json: Actions with attribute diffs, drift and the step order
    - summary.json: Action counts
    - metadata.json: Artifact metadata
    - report.json: Per-resource outcome (only when a run report is given)

    The artifacts are a record of what was planned; they are never read
    back as input.

    Args:
        plan: Plan to record
        order: Resolved execution order
        output_dir: Directory to write artifacts to
        report: Optional outcome of executing the plan

    Raises:
        InfragraphError: If a file cannot be written
    """
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise InfragraphError(f"Failed to create output directory: {e}")

    _write_json(output_dir / "plan.json", {
        "plan": plan.model_dump(mode="json"),
        "steps": order.model_dump(mode="json")["steps"],
    })

    summary = {
        "has_changes": plan.has_changes,
        "destroy_mode": plan.destroy_mode,
        "actions": plan.summary(),
        "drifted": [entry.address for entry in plan.drift],
        "steps": len(order.steps),
    }
    _write_json(output_dir / "summary.json", summary)

    _write_json(output_dir / "metadata.json", {
        "infragraph_version": __version__,
        "artifact_format_version": ARTIFACT_FORMAT_VERSION,
        "plan_generated_at": plan.generated_at,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "generator": "infragraph plan artifact",
    })

    if report is not None:
        _write_json(output_dir / "report.json", report.model_dump(mode="json"))

    logger.info(f"Generated artifacts in: {output_dir}")
