"""Tests for terminal output."""

import pytest
from infragraph.engine import Engine
from infragraph.execute.results import ApplyReport, ResourceResult, ResourceStatus
from infragraph.model import Lifecycle, Resource
from infragraph.plan import ActionKind
from infragraph.plan.models import AttributeChange, DriftEntry, Plan, PlannedAction
from infragraph.presentation import format_apply_report, format_plan
from infragraph.presentation.human_formatter import action_marker
from infragraph.providers import LocalProvider
from infragraph.state.backends import MemoryStateBackend


@pytest.fixture
def engine():
    return Engine(LocalProvider(), MemoryStateBackend())


class TestActionMarker:
    """Markers follow the usual plan notation."""

    @pytest.mark.parametrize("kind,marker", [
        (ActionKind.CREATE, "+"),
        (ActionKind.UPDATE, "~"),
        (ActionKind.DESTROY, "-"),
        (ActionKind.REPLACE, "-/+"),
    ])
    def test_markers(self, kind, marker):
        action = PlannedAction(address="aws_vpc.main", type="aws_vpc", kind=kind)
        assert action_marker(action) == marker

    def test_create_before_destroy_replace(self):
        action = PlannedAction(address="aws_vpc.main", type="aws_vpc", kind=ActionKind.REPLACE,
                               lifecycle=Lifecycle(create_before_destroy=True))
        assert action_marker(action) == "+/-"
        assert action_marker(action, create_before_destroy=False) == "-/+"


class TestFormatPlan:
    """Test plan rendering."""

    def test_create_plan(self, engine):
        planned = engine.plan([
            Resource(type="aws_vpc", name="main", attributes={"cidr_block": "10.0.0.0/16"}),
            Resource(type="aws_subnet", name="a", attributes={"vpc_id": "${aws_vpc.main.id}"}),
        ])
        output = format_plan(planned.plan, planned.order, ascii_mode=True)

        assert "+ aws_vpc.main" in output
        assert 'cidr_block = "10.0.0.0/16"' in output
        assert "vpc_id = (known after apply)" in output
        assert "Plan: 2 to add, 0 to change, 0 to replace, 0 to destroy." in output
        assert "[wave 1] create:aws_subnet.a" in output

    def test_no_changes(self):
        output = format_plan(Plan(), ascii_mode=True)
        assert "No changes." in output

    def test_replace_and_drift(self):
        plan = Plan(
            actions=[PlannedAction(
                address="aws_vpc.main",
                type="aws_vpc",
                kind=ActionKind.REPLACE,
                provider_id="vpc-000001",
                changes=[AttributeChange(name="cidr_block", before="10.0.0.0/16", after="10.1.0.0/16",
                                         requires_replace=True)],
            )],
            drift=[DriftEntry(address="aws_vpc.main", attributes={"tags": {"recorded": "a", "actual": "b"}})],
        )
        output = format_plan(plan, ascii_mode=True)

        assert "DRIFT" in output
        assert 'aws_vpc.main.tags: "a" -> "b"' in output
        assert "-/+ aws_vpc.main" in output
        assert "# forces replacement" in output

    def test_ascii_mode_from_environment(self, monkeypatch):
        monkeypatch.setenv("INFRAGRAPH_ASCII", "1")
        assert "┌" not in format_plan(Plan())
        monkeypatch.setenv("INFRAGRAPH_ASCII", "0")
        assert "┌" in format_plan(Plan())


class TestFormatApplyReport:
    """Test run report rendering."""

    def test_partial_failure(self):
        report = ApplyReport(resources=[
            ResourceResult(address="aws_vpc.main", action=ActionKind.CREATE, status=ResourceStatus.APPLIED),
            ResourceResult(address="aws_subnet.a", action=ActionKind.CREATE, status=ResourceStatus.FAILED,
                           error="quota exceeded"),
            ResourceResult(address="aws_route_table_association.a", action=ActionKind.CREATE,
                           status=ResourceStatus.BLOCKED, blocked_by="create:aws_subnet.a"),
        ])
        output = format_apply_report(report, ascii_mode=True)

        assert "Apply incomplete" in output
        assert "[FAILED] aws_subnet.a (create): quota exceeded" in output
        assert "blocked by create:aws_subnet.a" in output
        assert "Resources: 1 applied, 0 unchanged, 1 failed, 1 blocked, 0 cancelled." in output

    def test_cancelled(self):
        output = format_apply_report(ApplyReport(cancelled=True), ascii_mode=True)
        assert "Apply cancelled" in output
