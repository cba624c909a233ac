"""Human-friendly output formatter - converts plans and run reports to readable text."""

import json
import os
from typing import Any, Dict, List, Optional
from ..execute.results import ApplyReport, ResourceStatus
from ..graph.dependency_graph import DependencyGraph
from ..plan.models import ActionKind, AttributeChange, Plan, PlannedAction
from ..resolve.order import ExecutionOrder, StepKind, step_id
from ..state.models import StateRecord

UNKNOWN_TEXT = "(known after apply)"


def _use_ascii(ascii_mode: Optional[bool] = None) -> bool:
    """Resolve whether to use ASCII output (checked at format time)."""
    if ascii_mode is not None:
        return bool(ascii_mode)
    return os.environ.get("INFRAGRAPH_ASCII", "").lower() in ("1", "true", "yes")


def _box(title: str, width: int = 65, ascii_mode: bool = False) -> List[str]:
    """Return box-drawing header lines."""
    b = {"tl": "+", "tr": "+", "h": "-", "v": "|"} if ascii_mode else {"tl": "┌", "tr": "┐", "h": "─", "v": "│"}
    h = b["h"] * (width - 2)
    return [
        b["tl"] + h + b["tr"],
        f"{b['v']} {title:<{width - 4}} {b['v']}",
        ("+" if ascii_mode else "└") + h + ("+" if ascii_mode else "┘"),
        "",
    ]


def _section(title: str, width: int = 65) -> List[str]:
    """Return section divider."""
    h = "-" * width
    return [h, title.center(width), h]


def _render(value: Any) -> str:
    if isinstance(value, str):
        return json.dumps(value)
    return json.dumps(value, sort_keys=True, default=str)


def action_marker(action: PlannedAction, create_before_destroy: Optional[bool] = None) -> str:
    """Terraform-style marker for an action."""
    if action.kind == ActionKind.CREATE:
        return "+"
    if action.kind == ActionKind.UPDATE:
        return "~"
    if action.kind == ActionKind.DESTROY:
        return "-"
    if action.kind == ActionKind.REPLACE:
        cbd = action.lifecycle.create_before_destroy if create_before_destroy is None else create_before_destroy
        return "+/-" if cbd else "-/+"
    return " "


def _change_line(change: AttributeChange, kind: ActionKind) -> str:
    after = UNKNOWN_TEXT if change.after_unknown else _render(change.after)
    if kind == ActionKind.CREATE:
        line = f"      {change.name} = {after}"
    elif change.before is None:
        line = f"      + {change.name} = {after}"
    elif change.after is None and not change.after_unknown:
        line = f"      - {change.name} = {_render(change.before)}"
    else:
        line = f"      ~ {change.name}: {_render(change.before)} -> {after}"
    if change.requires_replace and kind == ActionKind.REPLACE:
        line += "  # forces replacement"
    return line


def format_plan(plan: Plan, order: Optional[ExecutionOrder] = None, ascii_mode: Optional[bool] = None) -> str:
    """
    Format a plan for the terminal.

    Args:
        plan: Plan to render
        order: Resolved step order; when given, replace markers reflect the
            effective create-before-destroy mode and steps are listed
        ascii_mode: Force ASCII output (defaults to INFRAGRAPH_ASCII)

    Returns:
        Multi-line report
    """
    ascii_mode = _use_ascii(ascii_mode)
    title = "Destroy plan" if plan.destroy_mode else "Execution plan"
    lines = _box(title, ascii_mode=ascii_mode)

    if plan.drift:
        lines.extend(_section("DRIFT"))
        for entry in plan.drift:
            if entry.deleted:
                lines.append(f"  {entry.address}: deleted outside infragraph")
            else:
                for name, values in sorted(entry.attributes.items()):
                    lines.append(
                        f"  {entry.address}.{name}: {_render(values['recorded'])} -> {_render(values['actual'])}"
                    )
        lines.append("")

    actionable = plan.actionable()
    if not actionable:
        lines.append("No changes. Infrastructure matches the declarations.")
        return "\n".join(lines)

    lines.extend(_section("RESOURCES"))
    for action in actionable:
        cbd = None
        if order is not None and action.kind == ActionKind.REPLACE:
            cbd = order.get(step_id(StepKind.DESTROY_DEPOSED, action.address)) is not None
        marker = action_marker(action, cbd)
        header = f"  {marker} {action.address}"
        if action.kind == ActionKind.NO_OP:
            header = f"  - {action.address} (deposed instance)"
        if action.reason:
            header += f"  ({action.reason})"
        lines.append(header)
        for change in action.changes:
            lines.append(_change_line(change, action.kind))
        for deposed in action.deposed:
            lines.append(f"      deposed {deposed} will be destroyed")

    counts = plan.summary()
    lines.append("")
    lines.append(
        f"Plan: {counts['create']} to add, {counts['update']} to change, "
        f"{counts['replace']} to replace, {counts['destroy']} to destroy."
    )

    if order is not None and order.steps:
        lines.append("")
        lines.extend(_section("STEPS"))
        for step in order.steps:
            lines.append(f"  {step.position + 1:>3}. [wave {step.wave}] {step.id}")
    return "\n".join(lines)


_STATUS_MARKERS = {
    ResourceStatus.APPLIED: ("[OK]", "✅"),
    ResourceStatus.NO_OP: ("[--]", "➖"),
    ResourceStatus.BLOCKED: ("[BLOCKED]", "⛔"),
    ResourceStatus.FAILED: ("[FAILED]", "❌"),
    ResourceStatus.CANCELLED: ("[CANCELLED]", "⏹️"),
}


def format_apply_report(report: ApplyReport, ascii_mode: Optional[bool] = None) -> str:
    """Format the outcome of an apply or destroy run."""
    ascii_mode = _use_ascii(ascii_mode)
    title = "Apply cancelled" if report.cancelled else ("Apply complete" if report.succeeded else "Apply incomplete")
    lines = _box(title, ascii_mode=ascii_mode)

    for result in report.resources:
        if result.status == ResourceStatus.NO_OP:
            continue
        ascii_marker, unicode_marker = _STATUS_MARKERS[result.status]
        marker = ascii_marker if ascii_mode else unicode_marker
        line = f"  {marker} {result.address} ({result.action.value})"
        if result.error:
            line += f": {result.error}"
        if result.blocked_by:
            line += f": blocked by {result.blocked_by}"
        lines.append(line)

    counts: Dict[ResourceStatus, int] = {status: 0 for status in ResourceStatus}
    for result in report.resources:
        counts[result.status] += 1
    lines.append("")
    lines.append(
        f"Resources: {counts[ResourceStatus.APPLIED]} applied, {counts[ResourceStatus.NO_OP]} unchanged, "
        f"{counts[ResourceStatus.FAILED]} failed, {counts[ResourceStatus.BLOCKED]} blocked, "
        f"{counts[ResourceStatus.CANCELLED]} cancelled."
    )
    return "\n".join(lines)


def format_graph(graph: DependencyGraph) -> str:
    """One line per edge: dependent -> dependency [kinds]."""
    lines = []
    for dependent, dependency, kinds in graph.edges():
        lines.append(f"{dependent} -> {dependency} [{', '.join(kinds)}]")
    return "\n".join(lines)


def format_state_record(record: StateRecord) -> str:
    """Attributes and exports of one tracked resource."""
    lines = [f"# {record.address}", f"id = {record.provider_id}"]
    for name in sorted(record.attributes):
        lines.append(f"{name} = {_render(record.attributes[name])}")
    computed = sorted(set(record.exports) - set(record.attributes) - {"id"})
    if computed:
        lines.append("")
        lines.append("# exported")
        for name in computed:
            lines.append(f"{name} = {_render(record.exports[name])}")
    if record.dependencies:
        lines.append("")
        lines.append(f"# depends on: {', '.join(record.dependencies)}")
    for deposed in record.deposed:
        lines.append(f"# deposed: {deposed}")
    return "\n".join(lines)
