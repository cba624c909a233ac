"""Dependency Resolver: expand plan actions into ordered execution steps."""

import heapq
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple
import networkx as nx
from pydantic import BaseModel, Field
from ..graph.dependency_graph import DependencyGraph
from ..plan.models import ActionKind, Plan, PlannedAction
from ..utils.errors import UnresolvableOrder
from ..utils.logging import get_logger

logger = get_logger("resolve.order")


class StepKind(str, Enum):
    """A single provider-facing operation."""
    CREATE = "create"
    UPDATE = "update"
    DESTROY = "destroy"
    DESTROY_DEPOSED = "destroy-deposed"


# Among ready steps creates go first and destroys last.
STEP_PRIORITY = {
    StepKind.CREATE: 0,
    StepKind.UPDATE: 1,
    StepKind.DESTROY: 2,
    StepKind.DESTROY_DEPOSED: 2,
}


def step_id(kind: StepKind, address: str) -> str:
    return f"{kind.value}:{address}"


class ExecutionStep(BaseModel):
    """One step of the execution order."""
    id: str = Field(..., description="Unique step id, kind:address")
    address: str = Field(..., description="Resource address")
    kind: StepKind = Field(..., description="Operation to perform")
    action: ActionKind = Field(..., description="Plan action this step belongs to")
    position: int = Field(..., ge=0, description="Index in the total order")
    wave: int = Field(..., ge=0, description="Steps sharing a wave may run in parallel")
    predecessors: List[str] = Field(default_factory=list, description="Step ids that must complete first")


class ExecutionOrder(BaseModel):
    """Totally ordered steps with parallelism hints."""
    steps: List[ExecutionStep] = Field(default_factory=list)

    def get(self, step_id_: str) -> Optional[ExecutionStep]:
        for step in self.steps:
            if step.id == step_id_:
                return step
        return None

    def ids(self) -> List[str]:
        return [step.id for step in self.steps]

    def to_graph(self) -> nx.DiGraph:
        """Step graph with edges predecessor -> successor."""
        graph = nx.DiGraph()
        for step in self.steps:
            graph.add_node(step.id, step=step)
        for step in self.steps:
            for predecessor in step.predecessors:
                graph.add_edge(predecessor, step.id)
        return graph

    def waves(self) -> List[List[str]]:
        grouped: Dict[int, List[str]] = {}
        for step in self.steps:
            grouped.setdefault(step.wave, []).append(step.id)
        return [grouped[wave] for wave in sorted(grouped)]


class DependencyResolver:
    """
    Orders plan actions over the dependency graph.

    Each actionable resource contributes a forward step (create or update)
    and/or a destroy step. Ordering rules for "A depends on B":

    - forward(B) before forward(A)
    - destroy(A) before destroy(B)
    - forward(A) before destroy(B), unless B is replaced destroy-first, so
      A is re-pointed before B's old instance disappears

    and per resource: replace destroy-first runs destroy before create,
    replace create-before-destroy runs create before destroy-deposed.
    """

    def __init__(self, graph: DependencyGraph, plan: Plan):
        self.graph = graph
        self.plan = plan
        self.actions: Dict[str, PlannedAction] = {
            action.address: action for action in plan.actions if action.is_actionable
        }
        self.steps = nx.DiGraph()

    def resolve(self) -> ExecutionOrder:
        """
        Build the ordered step list.

        Raises:
            UnresolvableOrder: If the expanded steps contain a cycle
        """
        cbd = self._effective_create_before_destroy()

        forward: Dict[str, str] = {}
        backward: Dict[str, str] = {}
        destroy_first: Set[str] = set()

        for address, action in self.actions.items():
            if action.kind == ActionKind.CREATE:
                forward[address] = self._add_step(StepKind.CREATE, action)
            elif action.kind == ActionKind.UPDATE:
                forward[address] = self._add_step(StepKind.UPDATE, action)
            elif action.kind == ActionKind.DESTROY:
                backward[address] = self._add_step(StepKind.DESTROY, action)
            elif action.kind == ActionKind.REPLACE:
                forward[address] = self._add_step(StepKind.CREATE, action)
                if address in cbd:
                    backward[address] = self._add_step(StepKind.DESTROY_DEPOSED, action)
                    self.steps.add_edge(forward[address], backward[address])
                else:
                    backward[address] = self._add_step(StepKind.DESTROY, action)
                    self.steps.add_edge(backward[address], forward[address])
                    destroy_first.add(address)

            if action.deposed and action.kind in (ActionKind.NO_OP, ActionKind.UPDATE):
                # leftover old instance from an interrupted replacement
                backward[address] = self._add_step(StepKind.DESTROY_DEPOSED, action)
                if address in forward:
                    self.steps.add_edge(forward[address], backward[address])

        for dependent in self.actions:
            for dependency in self._actionable_dependencies(dependent):
                if dependency in forward and dependent in forward:
                    self.steps.add_edge(forward[dependency], forward[dependent])
                if dependent in backward and dependency in backward:
                    self.steps.add_edge(backward[dependent], backward[dependency])
                if dependent in forward and dependency in backward and dependency not in destroy_first:
                    self.steps.add_edge(forward[dependent], backward[dependency])

        return self._order()

    def _add_step(self, kind: StepKind, action: PlannedAction) -> str:
        node = step_id(kind, action.address)
        self.steps.add_node(node, kind=kind, address=action.address, action=action.kind)
        return node

    def _actionable_dependencies(self, address: str) -> Set[str]:
        """Nearest actionable dependencies, looking through no-op resources."""
        found: Set[str] = set()
        seen: Set[str] = set()
        stack = list(self.graph.get_dependencies(address))
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            if current in self.actions:
                found.add(current)
            else:
                stack.extend(self.graph.get_dependencies(current))
        return found

    def _effective_create_before_destroy(self) -> Set[str]:
        """
        Replaced resources that must be created before being destroyed.

        A create-before-destroy replacement forces the same mode on the
        replaced resources it depends on; otherwise its old instance would
        have to outlive a dependency that is destroyed first.
        """
        replaced = {a for a, action in self.actions.items() if action.kind == ActionKind.REPLACE}
        cbd = {a for a in replaced if self.actions[a].lifecycle.create_before_destroy}
        for address in nx.topological_sort(self.graph.graph):
            if address not in cbd:
                continue
            for dependency in self._actionable_dependencies(address):
                if dependency in replaced and dependency not in cbd:
                    logger.info(f"{dependency} replaced create-before-destroy because {address} is")
                    cbd.add(dependency)
        return cbd

    def _order(self) -> ExecutionOrder:
        """Kahn's algorithm with a priority queue for the tie-break."""
        in_degree = {node: self.steps.in_degree(node) for node in self.steps.nodes}
        ready: List[Tuple[int, str, str]] = []
        for node, degree in in_degree.items():
            if degree == 0:
                heapq.heappush(ready, self._priority(node))

        ordered: List[str] = []
        wave: Dict[str, int] = {}
        while ready:
            _, _, node = heapq.heappop(ready)
            ordered.append(node)
            predecessors = list(self.steps.predecessors(node))
            wave[node] = 1 + max((wave[p] for p in predecessors), default=-1)
            for successor in self.steps.successors(node):
                in_degree[successor] -= 1
                if in_degree[successor] == 0:
                    heapq.heappush(ready, self._priority(successor))

        if len(ordered) != self.steps.number_of_nodes():
            remaining = self.steps.subgraph(n for n in self.steps.nodes if n not in wave)
            try:
                cycle = [edge[0] for edge in nx.find_cycle(remaining)]
            except nx.NetworkXNoCycle:
                cycle = sorted(remaining.nodes)
            raise UnresolvableOrder(cycle)

        steps = []
        for position, node in enumerate(ordered):
            data = self.steps.nodes[node]
            steps.append(ExecutionStep(
                id=node,
                address=data["address"],
                kind=data["kind"],
                action=data["action"],
                position=position,
                wave=wave[node],
                predecessors=sorted(self.steps.predecessors(node)),
            ))

        logger.info(f"Resolved {len(steps)} execution steps in {len(set(wave.values()))} waves")
        return ExecutionOrder(steps=steps)

    def _priority(self, node: str) -> Tuple[int, str, str]:
        data = self.steps.nodes[node]
        return (STEP_PRIORITY[data["kind"]], data["address"], node)


def resolve_order(graph: DependencyGraph, plan: Plan) -> ExecutionOrder:
    """Convenience wrapper around DependencyResolver."""
    return DependencyResolver(graph, plan).resolve()
