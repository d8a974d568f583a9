"""Shared fixtures for coordinator tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from operator_cassandra.config import ClusterSpec, OperatorSettings
from operator_cassandra.membership import MembershipView
from operator_cassandra.protocols import CrossRegionGateway, MembershipProvider, NodeControl
from operator_cassandra.seeds import seed_count
from operator_cassandra.types import DatacenterState, HostNode, Member


# =============================================================================
# Builders
# =============================================================================


def _make_members(
    cluster: ClusterSpec,
    dc: str,
    count: int,
    ready: bool | set[int] = True,
    ip_base: str = "10.0.1",
) -> list[Member]:
    """
    Members 0..count-1 of `dc`, with seed labels matching the declared seed count.

    `ready` is either a flag for all members or the set of ready ordinals.
    """
    spec = cluster.datacenter(dc)
    seeds = seed_count(cluster.num_seeds, spec.replicas) if spec else 0
    prefix = cluster.dc_object_name(dc)
    members = []
    for i in range(count):
        is_ready = ready if isinstance(ready, bool) else i in ready
        members.append(
            Member(
                name=f"{prefix}-{i}",
                uid=f"uid-{dc}-{i}",
                dc=dc,
                pod_ip=f"{ip_base}.{i + 1}",
                node_name=f"node-{dc}-{i}",
                ready=is_ready,
                seed=i < seeds,
            )
        )
    return members


def _make_view(members: list[Member], states: dict[str, tuple[int, int]]) -> MembershipView:
    """View over `members` with datacenter states given as {dc: (replicas, ready)}."""
    return MembershipView.build(
        members,
        [DatacenterState(name=n, replicas=r, ready_replicas=rr) for n, (r, rr) in states.items()],
    )


@pytest.fixture
def make_members():
    return _make_members


@pytest.fixture
def make_view():
    return _make_view


# =============================================================================
# Configuration
# =============================================================================


@pytest.fixture
def cluster() -> ClusterSpec:
    """Two datacenters, pod networking, no cooperating regions."""
    return ClusterSpec.model_validate(
        {
            "name": "test-cluster",
            "namespace": "default",
            "ingress_domain": "us-south.example.com",
            "num_seeds": 2,
            "datacenters": [
                {"name": "dc1", "replicas": 3},
                {"name": "dc2", "replicas": 3},
            ],
        }
    )


@pytest.fixture
def multi_region_cluster() -> ClusterSpec:
    """Host networking with one managed and one unmanaged region."""
    return ClusterSpec.model_validate(
        {
            "name": "test-cluster",
            "namespace": "default",
            "ingress_domain": "us-south.example.com",
            "num_seeds": 2,
            "datacenters": [{"name": "dc1", "replicas": 3}],
            "host_network": {"enabled": True},
            "managed_regions": [{"domain": "eu-de.example.com"}],
            "unmanaged_regions": [{"seeds": ["172.16.0.1", "172.16.0.2"]}],
        }
    )


@pytest.fixture
def settings(tmp_path) -> OperatorSettings:
    return OperatorSettings(db_path=tmp_path / "cassandra.db")


# =============================================================================
# Collaborators
# =============================================================================


@pytest.fixture
def gateway():
    """Cross-region gateway where every region is ready and publishes one seed."""
    mock = MagicMock(spec=CrossRegionGateway)
    mock.publish_local_seeds = AsyncMock(return_value=None)
    mock.publish_local_readiness = AsyncMock(return_value=None)
    mock.fetch_seeds = AsyncMock(return_value=["192.168.100.1"])
    mock.is_region_ready = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def provider():
    """Membership provider with no members; tests fill in return values."""
    mock = MagicMock(spec=MembershipProvider)
    mock.list_members = AsyncMock(return_value=[])
    mock.list_datacenters = AsyncMock(return_value=[])
    mock.get_host = AsyncMock(side_effect=lambda name: HostNode(name=name))
    mock.set_replicas = AsyncMock(return_value=None)
    mock.set_seed_label = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def node_control():
    mock = MagicMock(spec=NodeControl)
    mock.operation_mode = AsyncMock()
    mock.cluster_view = AsyncMock()
    mock.decommission = AsyncMock(return_value=None)
    return mock
