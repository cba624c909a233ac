"""Plan Generator: diff desired resources against state into typed actions."""

from typing import Any, Dict, List, Optional
from ..graph.dependency_graph import DependencyGraph
from ..model.resources import Lifecycle, Resource
from ..model.values import UNKNOWN, Reference, resolve
from ..providers.registry import ResourceTypeRegistry
from ..state.models import StateRecord
from ..utils.errors import PreventDestroyViolation
from ..utils.logging import get_logger
from .diff import creation_changes, diff_attributes
from .models import ActionKind, DriftEntry, Plan, PlannedAction

logger = get_logger("plan.planner")


class PlanGenerator:
    """
    Produces a Plan from a dependency graph and state records.

    Resources are visited dependencies-first so that, when a reference is
    resolved, the action already chosen for the referenced resource decides
    whether its value is known.
    """

    def __init__(self, registry: ResourceTypeRegistry):
        self.registry = registry

    def generate(
        self,
        graph: DependencyGraph,
        state: Dict[str, StateRecord],
        destroy: bool = False,
        drift: Optional[List[DriftEntry]] = None,
        declared: Optional[Dict[str, Resource]] = None,
    ) -> Plan:
        """
        Generate a plan.

        Args:
            graph: Dependency graph over declared and tracked resources
            state: Working state records keyed by address (after refresh)
            destroy: Plan the removal of every tracked resource
            drift: Drift found during refresh, carried into the plan
            declared: Current declarations of resources absent from the graph;
                their lifecycle overrides the recorded one when destroying

        Raises:
            PreventDestroyViolation: If a protected resource would be destroyed or replaced
        """
        actions: Dict[str, PlannedAction] = {}
        declared = declared or {}

        for address in graph.topological_order():
            resource = graph.get_resource(address)
            record = state.get(address)

            if destroy or resource is None:
                if record is None:
                    continue
                current = resource or declared.get(address)
                lifecycle = current.lifecycle if current is not None else record.lifecycle
                action = self._destroy_action(record, lifecycle)
            elif record is None:
                action = self._create_action(resource, actions, state)
            else:
                action = self._diff_action(resource, record, actions, state)

            actions[address] = action

        plan = Plan(actions=list(actions.values()), destroy_mode=destroy, drift=drift or [])
        self._check_prevent_destroy(plan)

        if plan.has_changes:
            counts = ", ".join(
                f"{count} to {kind}" for kind, count in plan.summary().items()
                if count and kind != ActionKind.NO_OP.value
            )
            logger.info(f"Plan: {counts}")
        else:
            logger.info("Plan: no changes")
        return plan

    def _destroy_action(self, record: StateRecord, lifecycle: Lifecycle) -> PlannedAction:
        return PlannedAction(
            address=record.address,
            type=record.type,
            kind=ActionKind.DESTROY,
            lifecycle=lifecycle,
            provider_id=record.provider_id,
            deposed=list(record.deposed),
        )

    def _create_action(
        self,
        resource: Resource,
        actions: Dict[str, PlannedAction],
        state: Dict[str, StateRecord],
    ) -> PlannedAction:
        desired = self._resolve_desired(resource, actions, state)
        return PlannedAction(
            address=resource.address,
            type=resource.type,
            kind=ActionKind.CREATE,
            changes=creation_changes(desired, resource.attributes),
            lifecycle=resource.lifecycle,
        )

    def _diff_action(
        self,
        resource: Resource,
        record: StateRecord,
        actions: Dict[str, PlannedAction],
        state: Dict[str, StateRecord],
    ) -> PlannedAction:
        descriptor = self.registry.get(resource.type)
        desired = self._resolve_desired(resource, actions, state)
        changes = diff_attributes(
            desired,
            resource.attributes,
            record.attributes,
            descriptor,
            resource.lifecycle.ignore_changes,
        )

        if any(change.requires_replace for change in changes):
            kind = ActionKind.REPLACE
        elif changes:
            kind = ActionKind.UPDATE
        else:
            kind = ActionKind.NO_OP

        reason = None
        if kind == ActionKind.REPLACE:
            forced = [change.name for change in changes if change.requires_replace]
            reason = f"{', '.join(forced)} cannot be updated in place"

        return PlannedAction(
            address=resource.address,
            type=resource.type,
            kind=kind,
            changes=changes,
            lifecycle=resource.lifecycle,
            provider_id=record.provider_id,
            deposed=list(record.deposed),
            reason=reason,
        )

    def _resolve_desired(
        self,
        resource: Resource,
        actions: Dict[str, PlannedAction],
        state: Dict[str, StateRecord],
    ) -> Dict[str, Any]:
        def lookup(ref: Reference) -> Any:
            return self._planned_value(ref, actions, state)

        return {name: resolve(value, lookup) for name, value in resource.attributes.items()}

    def _planned_value(
        self,
        ref: Reference,
        actions: Dict[str, PlannedAction],
        state: Dict[str, StateRecord],
    ) -> Any:
        """Value a reference will have once its target has been applied, or UNKNOWN."""
        target_action = actions.get(ref.address)
        record = state.get(ref.address)
        if record is None or target_action is None:
            return UNKNOWN
        if target_action.kind in (ActionKind.CREATE, ActionKind.REPLACE, ActionKind.DESTROY):
            return UNKNOWN

        if target_action.kind == ActionKind.UPDATE and ref.attribute != "id":
            for change in target_action.changes:
                if change.name == ref.attribute:
                    return UNKNOWN if change.after_unknown else change.after

        if ref.attribute in record.exports:
            return record.exports[ref.attribute]
        if ref.attribute in record.attributes:
            return record.attributes[ref.attribute]
        return UNKNOWN

    def _check_prevent_destroy(self, plan: Plan) -> None:
        for action in plan.actions:
            if not action.lifecycle.prevent_destroy:
                continue
            if action.kind in (ActionKind.DESTROY, ActionKind.REPLACE):
                raise PreventDestroyViolation(action.address, action.kind.value)


def generate_plan(
    graph: DependencyGraph,
    state: Dict[str, StateRecord],
    registry: ResourceTypeRegistry,
    destroy: bool = False,
    drift: Optional[List[DriftEntry]] = None,
    declared: Optional[Dict[str, Resource]] = None,
) -> Plan:
    """Convenience wrapper around PlanGenerator."""
    return PlanGenerator(registry).generate(graph, state, destroy=destroy, drift=drift, declared=declared)
