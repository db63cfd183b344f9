"""Tests for data models."""

from pathlib import Path

import pytest

from kvm_deploy.models import (
    ClusterTopology,
    DeploymentReport,
    DisplayEndpoint,
    DomainState,
    NodeRole,
    NodeSpec,
    ReconcileResult,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("running\n", DomainState.RUNNING),
        ("shut off\n\n", DomainState.SHUT_OFF),
        ("  Paused ", DomainState.PAUSED),
        ("in shutdown", DomainState.IN_SHUTDOWN),
        ("something new", DomainState.UNKNOWN),
        ("", DomainState.UNKNOWN),
    ],
)
def test_domain_state_parse(raw, expected):
    """Test virsh domstate output maps to DomainState."""
    assert DomainState.parse(raw) is expected


def test_display_three_maps_to_port_5903():
    """Test display index N is reported as port 5900+N."""
    assert DisplayEndpoint(hostname="hs-1", display=3).port == 5903
    assert DisplayEndpoint(hostname="hs-1", display=0).port == 5900


def test_node_role():
    """Test role derives from ha_mode presence."""
    assert NodeSpec("1", "hs-1").role is NodeRole.DATA
    assert NodeSpec("1", "hs-1", ha_mode="Standalone").role is NodeRole.CONTROL
    assert NodeSpec("1", "hs-1", ha_mode=0).role is NodeRole.CONTROL


def test_topology_iterates_nodes_in_order():
    """Test iteration yields NodeSpecs in insertion order."""
    nodes = {"b": NodeSpec("b", "hs-b"), "a": NodeSpec("a", "hs-a")}
    topology = ClusterTopology(source=Path("installer.yaml"), nodes=nodes)

    assert [n.node_id for n in topology] == ["b", "a"]


def test_reconcile_result_noop():
    assert ReconcileResult().is_noop
    assert not ReconcileResult(undefined=["hs-1"]).is_noop
    assert not ReconcileResult(removed_workspaces=["hs-1"]).is_noop


def test_deployment_report_success():
    assert DeploymentReport(provisioned=["hs-1"]).success
    assert not DeploymentReport(failures={"hs-1": "boom"}).success
