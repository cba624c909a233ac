"""Tests for dependency graph."""

import pytest
from infragraph.graph.dependency_graph import DependencyGraph
from infragraph.model import Resource
from infragraph.state.models import StateRecord
from infragraph.utils.errors import CyclicDependency, DanglingReference


def _resource(resource_type, name, attributes=None, depends_on=()):
    return Resource(type=resource_type, name=name, attributes=attributes or {}, depends_on=depends_on)


@pytest.fixture
def network_resources():
    """Network N, gateway G referencing N, route table R referencing G."""
    return [
        _resource("aws_route_table", "public", {
            "vpc_id": "${aws_vpc.main.id}",
            "route": [{"cidr_block": "0.0.0.0/0", "gateway_id": "${aws_internet_gateway.gw.id}"}],
        }),
        _resource("aws_internet_gateway", "gw", {"vpc_id": "${aws_vpc.main.id}"}),
        _resource("aws_vpc", "main", {"cidr_block": "10.0.0.0/16"}),
    ]


class TestDependencyGraph:
    """Test dependency graph construction."""

    def test_build_graph_from_resources(self, network_resources):
        """Test building graph from resources."""
        graph = DependencyGraph()
        graph.build_from_resources(network_resources)

        assert graph.graph.number_of_nodes() == 3
        assert graph.graph.number_of_edges() == 3

    def test_topological_order(self, network_resources):
        """Dependencies come before dependents."""
        graph = DependencyGraph()
        graph.build_from_resources(network_resources)

        assert graph.topological_order() == [
            "aws_vpc.main",
            "aws_internet_gateway.gw",
            "aws_route_table.public",
        ]

    def test_implicit_edge_records_attribute(self, network_resources):
        graph = DependencyGraph()
        graph.build_from_resources(network_resources)

        assert graph.edge_kinds("aws_route_table.public", "aws_internet_gateway.gw") == {"implicit"}
        assert graph.graph.edges["aws_route_table.public", "aws_internet_gateway.gw"]["attributes"] == {"route"}

    def test_get_downstream_resources(self, network_resources):
        """Downstream of the network is everything built on it."""
        graph = DependencyGraph()
        graph.build_from_resources(network_resources)

        assert graph.get_downstream_resources("aws_vpc.main") == {
            "aws_internet_gateway.gw",
            "aws_route_table.public",
        }
        assert graph.get_dependents("aws_vpc.main") == ["aws_internet_gateway.gw", "aws_route_table.public"]

    def test_get_upstream_resources(self, network_resources):
        """Upstream of the route table is what it depends on, transitively."""
        graph = DependencyGraph()
        graph.build_from_resources(network_resources)

        assert graph.get_upstream_resources("aws_route_table.public") == {
            "aws_vpc.main",
            "aws_internet_gateway.gw",
        }
        assert graph.get_dependencies("aws_internet_gateway.gw") == ["aws_vpc.main"]


class TestExplicitDependencies:
    """Test depends_on edges."""

    def test_explicit_only_dependency(self):
        """NAT gateway waits for the internet gateway without referencing it."""
        graph = DependencyGraph()
        graph.build_from_resources([
            _resource("aws_nat_gateway", "nat", {"subnet_id": "subnet-static"}, depends_on=["aws_internet_gateway.gw"]),
            _resource("aws_internet_gateway", "gw"),
        ])

        assert graph.edge_kinds("aws_nat_gateway.nat", "aws_internet_gateway.gw") == {"explicit"}
        order = graph.topological_order()
        assert order.index("aws_internet_gateway.gw") < order.index("aws_nat_gateway.nat")

    def test_explicit_and_implicit_merge(self):
        graph = DependencyGraph()
        graph.build_from_resources([
            _resource("aws_vpc", "main"),
            _resource("aws_subnet", "a", {"vpc_id": "${aws_vpc.main.id}"}, depends_on=["aws_vpc.main"]),
        ])

        assert graph.graph.number_of_edges() == 1
        assert graph.edge_kinds("aws_subnet.a", "aws_vpc.main") == {"implicit", "explicit"}


class TestValidation:
    """Test rejection of invalid graphs."""

    def test_cross_referencing_security_groups_are_acyclic(self):
        """db SG referencing the web SG is one edge, not a cycle."""
        graph = DependencyGraph()
        graph.build_from_resources([
            _resource("aws_security_group", "web", {"vpc_id": "vpc-1"}),
            _resource("aws_security_group", "db", {
                "ingress": [{"from_port": 5432, "security_groups": ["${aws_security_group.web.id}"]}],
            }),
        ])
        assert graph.get_dependencies("aws_security_group.db") == ["aws_security_group.web"]

    def test_mutual_references_rejected(self):
        with pytest.raises(CyclicDependency) as exc_info:
            DependencyGraph().build_from_resources([
                _resource("aws_security_group", "a", {"peer": "${aws_security_group.b.id}"}),
                _resource("aws_security_group", "b", {"peer": "${aws_security_group.a.id}"}),
            ])
        chain = exc_info.value.chain
        assert chain[0] == chain[-1]
        assert set(chain) == {"aws_security_group.a", "aws_security_group.b"}
        assert " -> " in str(exc_info.value)

    def test_self_reference_rejected(self):
        with pytest.raises(CyclicDependency):
            DependencyGraph().build_from_resources([
                _resource("aws_security_group", "a", {"peer": "${aws_security_group.a.id}"}),
            ])

    def test_multi_hop_cycle_through_depends_on(self):
        with pytest.raises(CyclicDependency):
            DependencyGraph().build_from_resources([
                _resource("aws_vpc", "a", depends_on=["aws_subnet.c"]),
                _resource("aws_internet_gateway", "b", {"vpc_id": "${aws_vpc.a.id}"}),
                _resource("aws_subnet", "c", {"gw": "${aws_internet_gateway.b.id}"}),
            ])

    def test_dangling_reference(self):
        with pytest.raises(DanglingReference) as exc_info:
            DependencyGraph().build_from_resources([
                _resource("aws_subnet", "a", {"vpc_id": "${aws_vpc.missing.id}"}),
            ])
        assert exc_info.value.source == "aws_subnet.a"

    def test_dangling_depends_on(self):
        with pytest.raises(DanglingReference):
            DependencyGraph().build_from_resources([
                _resource("aws_subnet", "a", depends_on=["aws_vpc.missing"]),
            ])


class TestStateOnlyResources:
    """Resources tracked in state but no longer declared."""

    def test_recorded_dependencies_become_edges(self):
        records = [
            StateRecord(type="aws_vpc", name="old", provider_id="vpc-1"),
            StateRecord(type="aws_subnet", name="old", provider_id="subnet-1", dependencies=["aws_vpc.old"]),
        ]
        graph = DependencyGraph()
        graph.build_from_resources([], records)

        assert not graph.is_declared("aws_subnet.old")
        assert graph.get_state_only_addresses() == ["aws_subnet.old", "aws_vpc.old"]
        assert graph.edge_kinds("aws_subnet.old", "aws_vpc.old") == {"recorded"}

    def test_declared_resource_keeps_edge_to_removed_dependency(self):
        records = [
            StateRecord(type="aws_security_group", name="old", provider_id="sg-1"),
            StateRecord(type="aws_instance", name="web", provider_id="i-1", dependencies=["aws_security_group.old"]),
        ]
        graph = DependencyGraph()
        graph.build_from_resources([_resource("aws_instance", "web")], records)

        assert graph.edge_kinds("aws_instance.web", "aws_security_group.old") == {"recorded"}
