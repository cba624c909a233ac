"""Build directed dependency graph from declared resources and tracked state."""

import networkx as nx
from typing import Dict, Iterable, List, Optional, Set, Tuple
from ..model.resources import Resource
from ..model.values import iter_references
from ..state.models import StateRecord
from ..utils.errors import CyclicDependency, DanglingReference
from ..utils.logging import get_logger

logger = get_logger("graph.dependency_graph")

IMPLICIT = "implicit"
EXPLICIT = "explicit"
RECORDED = "recorded"


class DependencyGraph:
    """Directed dependency graph: nodes=resources, edges=dependent -> dependency."""

    def __init__(self):
        self.graph = nx.DiGraph()
        self._resource_map: Dict[str, Resource] = {}
        self._state_only: Dict[str, StateRecord] = {}

    def add_resource(self, resource: Resource) -> None:
        """Add a declared resource node (edges are added by build_from_resources)."""
        node_id = resource.address
        self.graph.add_node(node_id, resource=resource, declared=True)
        self._resource_map[node_id] = resource

    def add_state_record(self, record: StateRecord) -> None:
        """Add a resource that is tracked in state but no longer declared."""
        node_id = record.address
        self.graph.add_node(node_id, record=record, declared=False)
        self._state_only[node_id] = record

    def _add_edge(self, dependent: str, dependency: str, kind: str, attribute: Optional[str] = None) -> None:
        if self.graph.has_edge(dependent, dependency):
            data = self.graph.edges[dependent, dependency]
            data["kinds"].add(kind)
        else:
            self.graph.add_edge(dependent, dependency, kinds={kind}, attributes=set())
        if attribute:
            self.graph.edges[dependent, dependency]["attributes"].add(attribute)
        logger.debug(f"Added {kind} dependency edge: {dependent} -> {dependency}")

    def build_from_resources(
        self,
        resources: Iterable[Resource],
        state_records: Optional[Iterable[StateRecord]] = None,
    ) -> None:
        """
        Build the complete dependency graph.

        Declared resources contribute implicit edges (attribute references)
        and explicit edges (depends_on). Tracked resources that are no longer
        declared contribute the dependencies recorded when they were applied,
        so their destruction can be ordered.

        Raises:
            DanglingReference: If a declared resource names an undeclared one
            CyclicDependency: If the resulting graph has a cycle
        """
        resources = list(resources)
        for resource in resources:
            self.add_resource(resource)

        records = {record.address: record for record in state_records or []}
        for address, record in records.items():
            if address not in self._resource_map:
                self.add_state_record(record)

        for resource in resources:
            node_id = resource.address
            for attribute in sorted(resource.attributes):
                for ref in iter_references(resource.attributes[attribute]):
                    if ref.address not in self._resource_map:
                        raise DanglingReference(node_id, str(ref))
                    self._add_edge(node_id, ref.address, IMPLICIT, attribute)

            for dep_address in resource.depends_on:
                if dep_address not in self._resource_map:
                    raise DanglingReference(node_id, dep_address)
                self._add_edge(node_id, dep_address, EXPLICIT)

            # A resource that used to need something now being removed keeps
            # that edge, so it is re-pointed before the old dependency goes.
            previous = records.get(node_id)
            if previous is not None:
                for dep_address in previous.dependencies:
                    if dep_address in self._state_only:
                        self._add_edge(node_id, dep_address, RECORDED)

        for node_id, record in self._state_only.items():
            for dep_address in record.dependencies:
                if dep_address in self.graph:
                    self._add_edge(node_id, dep_address, RECORDED)
                else:
                    logger.debug(f"Recorded dependency of {node_id} no longer tracked: {dep_address}")

        self.validate_acyclic()

        logger.info(
            f"Built dependency graph with {self.graph.number_of_nodes()} nodes "
            f"and {self.graph.number_of_edges()} edges"
        )

    def validate_acyclic(self) -> None:
        """Raise CyclicDependency naming the chain if any cycle exists."""
        try:
            cycle_edges = nx.find_cycle(self.graph)
        except nx.NetworkXNoCycle:
            return
        chain = [edge[0] for edge in cycle_edges]
        chain.append(cycle_edges[-1][1])
        raise CyclicDependency(chain)

    def __contains__(self, address: str) -> bool:
        return address in self.graph

    def get_dependencies(self, resource_id: str) -> List[str]:
        """Direct dependencies of a resource."""
        if resource_id not in self.graph:
            return []
        return sorted(self.graph.successors(resource_id))

    def get_dependents(self, resource_id: str) -> List[str]:
        """Resources that directly depend on the given resource."""
        if resource_id not in self.graph:
            return []
        return sorted(self.graph.predecessors(resource_id))

    def get_downstream_resources(self, resource_id: str) -> Set[str]:
        """Get all resources that depend on the given resource, transitively."""
        if resource_id not in self.graph:
            return set()
        return set(nx.ancestors(self.graph, resource_id))

    def get_upstream_resources(self, resource_id: str) -> Set[str]:
        """Get all resources that the given resource depends on, transitively."""
        if resource_id not in self.graph:
            return set()
        return set(nx.descendants(self.graph, resource_id))

    def edge_kinds(self, dependent: str, dependency: str) -> Set[str]:
        if not self.graph.has_edge(dependent, dependency):
            return set()
        return set(self.graph.edges[dependent, dependency]["kinds"])

    def edges(self) -> List[Tuple[str, str, List[str]]]:
        """All edges as (dependent, dependency, sorted kinds)."""
        return sorted(
            (u, v, sorted(data["kinds"])) for u, v, data in self.graph.edges(data=True)
        )

    def topological_order(self) -> List[str]:
        """Addresses ordered dependencies-first, ties broken alphabetically."""
        return list(nx.lexicographical_topological_sort(self.graph.reverse(copy=False)))

    def get_resource(self, node_id: str) -> Optional[Resource]:
        """Get declared resource by address."""
        return self._resource_map.get(node_id)

    def get_state_record(self, node_id: str) -> Optional[StateRecord]:
        """Get the state record of a tracked-but-undeclared resource."""
        return self._state_only.get(node_id)

    def is_declared(self, node_id: str) -> bool:
        return node_id in self._resource_map

    def get_all_resources(self) -> List[Resource]:
        """Get all declared resources in the graph."""
        return list(self._resource_map.values())

    def get_state_only_addresses(self) -> List[str]:
        return sorted(self._state_only)
