"""Plan Generator: typed actions reconciling desired resources with state."""

from .models import ActionKind, AttributeChange, PlannedAction, DriftEntry, Plan
from .planner import PlanGenerator, generate_plan
from .refresh import refresh_state

__all__ = [
    "ActionKind",
    "AttributeChange",
    "PlannedAction",
    "DriftEntry",
    "Plan",
    "PlanGenerator",
    "generate_plan",
    "refresh_state",
]
