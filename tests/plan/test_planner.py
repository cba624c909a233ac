"""Tests for plan generation."""

import pytest
from infragraph.engine import Engine
from infragraph.graph.dependency_graph import DependencyGraph
from infragraph.model import Lifecycle, Resource
from infragraph.plan import ActionKind, generate_plan
from infragraph.providers import LocalProvider, default_registry
from infragraph.state.backends import MemoryStateBackend
from infragraph.state.models import StateRecord
from infragraph.state.store import StateStore
from infragraph.utils.errors import PreventDestroyViolation, ValidationError


def _record(resource_type, name, provider_id, attributes, dependencies=(), lifecycle=None, exports=None):
    return StateRecord(
        type=resource_type,
        name=name,
        provider_id=provider_id,
        attributes=attributes,
        exports={**attributes, **(exports or {}), "id": provider_id},
        dependencies=list(dependencies),
        lifecycle=lifecycle or Lifecycle(),
    )


def _plan(resources, records=(), destroy=False):
    state = {record.address: record for record in records}
    graph = DependencyGraph()
    graph.build_from_resources(resources, state.values())
    return generate_plan(graph, state, default_registry(), destroy=destroy)


@pytest.fixture
def network():
    """VPC and a subnet referencing it."""
    return [
        Resource(type="aws_vpc", name="main", attributes={"cidr_block": "10.0.0.0/16", "tags": {"Name": "main"}}),
        Resource(type="aws_subnet", name="public", attributes={
            "vpc_id": "${aws_vpc.main.id}",
            "cidr_block": "10.0.1.0/24",
        }),
    ]


@pytest.fixture
def network_state():
    """State matching the network fixture after a successful apply."""
    return [
        _record("aws_vpc", "main", "vpc-000001", {"cidr_block": "10.0.0.0/16", "tags": {"Name": "main"}}),
        _record("aws_subnet", "public", "subnet-000001", {
            "vpc_id": "vpc-000001",
            "cidr_block": "10.0.1.0/24",
        }, dependencies=["aws_vpc.main"]),
    ]


class TestCreateAndDestroy:
    """Test actions for resources missing on one side."""

    def test_everything_created_from_empty_state(self, network):
        plan = _plan(network)

        assert [(a.address, a.kind) for a in plan.actions] == [
            ("aws_vpc.main", ActionKind.CREATE),
            ("aws_subnet.public", ActionKind.CREATE),
        ]
        vpc_id = next(c for c in plan.get("aws_subnet.public").changes if c.name == "vpc_id")
        assert vpc_id.after_unknown is True
        assert vpc_id.after == "${aws_vpc.main.id}"

    def test_undeclared_record_destroyed(self, network, network_state):
        extra = _record("aws_eip", "old", "eipalloc-000001", {"domain": "vpc"})
        plan = _plan(network, network_state + [extra])

        assert plan.get("aws_eip.old").kind == ActionKind.DESTROY
        assert plan.get("aws_vpc.main").kind == ActionKind.NO_OP

    def test_destroy_mode(self, network, network_state):
        plan = _plan(network, network_state, destroy=True)

        assert plan.destroy_mode is True
        assert {a.kind for a in plan.actions} == {ActionKind.DESTROY}
        assert plan.summary()["destroy"] == 2

    def test_destroy_mode_skips_untracked(self, network):
        plan = _plan(network, destroy=True)
        assert plan.actions == []


class TestIdempotence:
    """Re-planning after a successful apply."""

    def test_replan_is_all_no_op(self, network, network_state):
        plan = _plan(network, network_state)

        assert all(a.kind == ActionKind.NO_OP for a in plan.actions)
        assert not plan.has_changes
        assert plan.actionable() == []


class TestDiff:
    """Test attribute-level classification."""

    def test_updatable_change_is_update(self, network, network_state):
        network[0] = Resource(type="aws_vpc", name="main", attributes={
            "cidr_block": "10.0.0.0/16",
            "tags": {"Name": "renamed"},
        })
        plan = _plan(network, network_state)

        action = plan.get("aws_vpc.main")
        assert action.kind == ActionKind.UPDATE
        assert [c.name for c in action.changes] == ["tags"]
        assert action.changes[0].before == {"Name": "main"}
        assert action.changes[0].after == {"Name": "renamed"}
        # the subnet only references the id, which an update keeps
        assert plan.get("aws_subnet.public").kind == ActionKind.NO_OP

    def test_non_updatable_change_is_replace(self, network, network_state):
        network[0] = Resource(type="aws_vpc", name="main", attributes={
            "cidr_block": "10.1.0.0/16",
            "tags": {"Name": "main"},
        })
        plan = _plan(network, network_state)

        vpc = plan.get("aws_vpc.main")
        assert vpc.kind == ActionKind.REPLACE
        assert vpc.replace_attributes() == ["cidr_block"]
        assert "cidr_block" in vpc.reason

        # new vpc id is unknown, and a subnet cannot move between vpcs
        subnet = plan.get("aws_subnet.public")
        assert subnet.kind == ActionKind.REPLACE
        assert subnet.changes[0].after_unknown is True

    def test_removed_attribute(self, network, network_state):
        network[0] = Resource(type="aws_vpc", name="main", attributes={"cidr_block": "10.0.0.0/16"})
        plan = _plan(network, network_state)

        change = plan.get("aws_vpc.main").changes[0]
        assert change.name == "tags"
        assert change.after is None
        assert plan.get("aws_vpc.main").kind == ActionKind.UPDATE

    def test_unknown_type_defaults_to_replace(self):
        resources = [Resource(type="custom_widget", name="w", attributes={"size": 2})]
        records = [_record("custom_widget", "w", "res-000001", {"size": 1})]

        assert _plan(resources, records).get("custom_widget.w").kind == ActionKind.REPLACE

    def test_ignore_changes(self, network_state):
        resources = [
            Resource(
                type="aws_vpc",
                name="main",
                attributes={"cidr_block": "10.0.0.0/16", "tags": {"Name": "changed"}},
                lifecycle=Lifecycle(ignore_changes=("tags",)),
            ),
        ]
        plan = _plan(resources, network_state[:1])
        assert plan.get("aws_vpc.main").kind == ActionKind.NO_OP

    def test_reference_to_updated_attribute_uses_new_value(self, network_state):
        resources = [
            Resource(type="aws_vpc", name="main", attributes={"cidr_block": "10.0.0.0/16", "tags": {"Name": "new"}}),
            Resource(type="aws_subnet", name="public", attributes={
                "vpc_id": "${aws_vpc.main.id}",
                "cidr_block": "10.0.1.0/24",
                "tags": "${aws_vpc.main.tags}",
            }),
        ]
        plan = _plan(resources, network_state)

        subnet = plan.get("aws_subnet.public")
        assert subnet.kind == ActionKind.UPDATE
        assert subnet.changes[0].name == "tags"
        assert subnet.changes[0].after == {"Name": "new"}
        assert subnet.changes[0].after_unknown is False


class TestRepointing:
    """Dependents of a replaced resource are updated to the new instance."""

    def test_dependents_of_replaced_security_group(self):
        resources = [
            Resource(
                type="aws_security_group",
                name="web",
                attributes={"description": "v2"},
                lifecycle=Lifecycle(create_before_destroy=True),
            ),
            Resource(type="aws_instance", name="web", attributes={
                "instance_type": "t3.micro",
                "vpc_security_group_ids": ["${aws_security_group.web.id}"],
            }),
        ]
        records = [
            _record("aws_security_group", "web", "sg-000001", {"description": "v1"}),
            _record("aws_instance", "web", "i-000001", {
                "instance_type": "t3.micro",
                "vpc_security_group_ids": ["sg-000001"],
            }, dependencies=["aws_security_group.web"]),
        ]
        plan = _plan(resources, records)

        assert plan.get("aws_security_group.web").kind == ActionKind.REPLACE
        instance = plan.get("aws_instance.web")
        assert instance.kind == ActionKind.UPDATE
        assert instance.changes[0].name == "vpc_security_group_ids"
        assert instance.changes[0].after_unknown is True


class TestPreventDestroy:
    """prevent_destroy is enforced at plan time."""

    def test_replace_of_protected_resource(self, network_state):
        resources = [Resource(
            type="aws_vpc",
            name="main",
            attributes={"cidr_block": "10.9.0.0/16", "tags": {"Name": "main"}},
            lifecycle=Lifecycle(prevent_destroy=True),
        )]
        with pytest.raises(PreventDestroyViolation) as exc_info:
            _plan(resources, network_state[:1])
        assert exc_info.value.address == "aws_vpc.main"

    def test_destroy_of_protected_record(self):
        record = _record("aws_db_instance", "main", "db-000001", {"engine": "postgres"},
                         lifecycle=Lifecycle(prevent_destroy=True))
        with pytest.raises(ValidationError):
            _plan([], [record])

    def test_destroy_mode_blocked_by_protected_resource(self, network, network_state):
        protected = _record("aws_db_instance", "main", "db-000001", {"engine": "postgres"},
                            lifecycle=Lifecycle(prevent_destroy=True))
        with pytest.raises(PreventDestroyViolation):
            _plan(network, network_state + [protected], destroy=True)

    def test_update_of_protected_resource_allowed(self, network_state):
        resources = [Resource(
            type="aws_vpc",
            name="main",
            attributes={"cidr_block": "10.0.0.0/16", "tags": {"Name": "changed"}},
            lifecycle=Lifecycle(prevent_destroy=True),
        )]
        assert _plan(resources, network_state[:1]).get("aws_vpc.main").kind == ActionKind.UPDATE

    def test_declared_protection_overrides_stale_record(self, network_state):
        declared = [Resource(type="aws_vpc", name="main", attributes={"cidr_block": "10.0.0.0/16"},
                             lifecycle=Lifecycle(prevent_destroy=True))]
        state = {record.address: record for record in network_state}
        graph = DependencyGraph()
        graph.build_from_resources([], state.values())

        with pytest.raises(PreventDestroyViolation) as exc_info:
            generate_plan(graph, state, default_registry(), destroy=True,
                          declared={resource.address: resource for resource in declared})
        assert exc_info.value.address == "aws_vpc.main"

    def test_declared_protection_removed(self):
        record = _record("aws_db_instance", "main", "db-000001", {"engine": "postgres"},
                         lifecycle=Lifecycle(prevent_destroy=True))
        declared = Resource(type="aws_db_instance", name="main", attributes={"engine": "postgres"})
        graph = DependencyGraph()
        graph.build_from_resources([], [record])

        plan = generate_plan(graph, {record.address: record}, default_registry(), destroy=True,
                             declared={declared.address: declared})
        assert plan.get("aws_db_instance.main").kind == ActionKind.DESTROY

    def test_protection_added_after_apply_blocks_destroy(self):
        provider = LocalProvider()
        backend = MemoryStateBackend()
        engine = Engine(provider, backend)
        vpc = Resource(type="aws_vpc", name="main", attributes={"cidr_block": "10.0.0.0/16"})
        engine.apply([vpc], refresh=False)

        protected = Resource(type="aws_vpc", name="main", attributes={"cidr_block": "10.0.0.0/16"},
                             lifecycle=Lifecycle(prevent_destroy=True))
        rerun = engine.apply([protected], refresh=False)
        assert rerun.plan.get("aws_vpc.main").kind == ActionKind.NO_OP
        store = StateStore(backend)
        store.load()
        assert store.get("aws_vpc.main").lifecycle.prevent_destroy is True

        with pytest.raises(PreventDestroyViolation):
            engine.apply([protected], destroy=True, refresh=False)
        with pytest.raises(PreventDestroyViolation):
            engine.apply([], destroy=True, refresh=False)
        assert [call[0] for call in provider.calls] == ["create"]
