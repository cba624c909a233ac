"""Presentation layer - human-friendly formatting."""

from .human_formatter import (
    format_plan,
    format_apply_report,
    format_graph,
    format_state_record,
)

__all__ = ["format_plan", "format_apply_report", "format_graph", "format_state_record"]
