"""Tests for replica-count reconciliation and decommission confirmation."""

from datetime import datetime

import pytest

from operator_cassandra.addresses import AddressResolver
from operator_cassandra.config import ClusterSpec
from operator_cassandra.db import JobDB
from operator_cassandra.errors import (
    ConfigurationInvariantError,
    DecommissionUnconfirmedError,
    NodeControlError,
)
from operator_cassandra.jobs import DecommissionJobTracker
from operator_cassandra.scaling import ScaleCoordinator, ScaleOutcome
from operator_cassandra.types import ClusterView, DecommissionJob, JobStatus, OperationMode

TARGET = "test-cluster-cassandra-dc1-5"
TARGET_ADDRESS = "10.0.1.6"
JOB = "pod-decommission-" + TARGET


@pytest.fixture
def shrinking_cluster() -> ClusterSpec:
    """dc1 declared with 5 replicas while its object still has 6."""
    return ClusterSpec.model_validate(
        {"name": "test-cluster", "num_seeds": 2, "datacenters": [{"name": "dc1", "replicas": 5}]}
    )


@pytest.fixture
def view(shrinking_cluster, make_members, make_view):
    return make_view(make_members(shrinking_cluster, "dc1", 6), {"dc1": (6, 6)})


def peers_seeing_target(live_at: set[str]):
    """cluster_view side effect: peers at `live_at` still list the target as live."""

    async def cluster_view(address):
        return ClusterView(live_nodes=[TARGET_ADDRESS] if address in live_at else [])

    return cluster_view


class TestScaleUp:
    """Tests for raising replica counts."""

    @pytest.mark.asyncio
    async def test_raises_replicas_without_node_checks(
        self, cluster, provider, node_control, make_view, tmp_path
    ):
        view = make_view([], {"dc1": (2, 2), "dc2": (3, 3)})
        async with JobDB(tmp_path / "jobs.db") as db:
            coordinator = ScaleCoordinator(provider, node_control, DecommissionJobTracker(db))

            action = await coordinator.reconcile(cluster, view, AddressResolver(cluster, provider))

        assert action.outcome == ScaleOutcome.SCALED_UP
        assert action.dc == "dc1"
        provider.set_replicas.assert_awaited_once_with("dc1", expected=2, replicas=3)
        node_control.operation_mode.assert_not_called()
        node_control.cluster_view.assert_not_called()

    @pytest.mark.asyncio
    async def test_one_datacenter_per_pass(
        self, cluster, provider, node_control, make_view, tmp_path
    ):
        view = make_view([], {"dc1": (1, 1), "dc2": (1, 1)})
        async with JobDB(tmp_path / "jobs.db") as db:
            coordinator = ScaleCoordinator(provider, node_control, DecommissionJobTracker(db))

            await coordinator.reconcile(cluster, view, AddressResolver(cluster, provider))

        assert provider.set_replicas.await_count == 1
        provider.set_replicas.assert_awaited_once_with("dc1", expected=1, replicas=3)

    @pytest.mark.asyncio
    async def test_converged_and_missing_objects(
        self, cluster, provider, node_control, make_view, tmp_path
    ):
        view = make_view([], {"dc1": (3, 3)})
        async with JobDB(tmp_path / "jobs.db") as db:
            coordinator = ScaleCoordinator(provider, node_control, DecommissionJobTracker(db))

            action = await coordinator.reconcile(cluster, view, AddressResolver(cluster, provider))

        assert action.converged
        provider.set_replicas.assert_not_called()


class TestScaleDown:
    """Tests for decommission-driven scale-down."""

    @pytest.mark.asyncio
    async def test_normal_target_starts_decommission(
        self, shrinking_cluster, view, provider, node_control, tmp_path
    ):
        node_control.operation_mode.return_value = OperationMode.NORMAL
        async with JobDB(tmp_path / "jobs.db") as db:
            tracker = DecommissionJobTracker(db)
            coordinator = ScaleCoordinator(provider, node_control, tracker)

            action = await coordinator.reconcile(
                shrinking_cluster, view, AddressResolver(shrinking_cluster, provider)
            )
            await tracker.wait(JOB)
            job = await db.get_job(JOB)

        assert action.outcome == ScaleOutcome.DECOMMISSION_STARTED
        assert action.member == TARGET
        assert job.target_member == TARGET
        assert job.status == JobStatus.SUCCEEDED
        node_control.operation_mode.assert_awaited_once_with(TARGET_ADDRESS)
        node_control.decommission.assert_awaited_once_with(TARGET_ADDRESS)
        provider.set_replicas.assert_not_called()

    @pytest.mark.asyncio
    async def test_running_job_waits_without_queries(
        self, shrinking_cluster, view, provider, node_control, tmp_path
    ):
        async with JobDB(tmp_path / "jobs.db") as db:
            await db.create_job(
                DecommissionJob(name=JOB, target_member=TARGET, heartbeat_at=datetime.now())
            )
            coordinator = ScaleCoordinator(provider, node_control, DecommissionJobTracker(db))

            action = await coordinator.reconcile(
                shrinking_cluster, view, AddressResolver(shrinking_cluster, provider)
            )

        assert action.outcome == ScaleOutcome.DECOMMISSION_IN_PROGRESS
        node_control.operation_mode.assert_not_called()

    @pytest.mark.asyncio
    async def test_leaving_target_waits(
        self, shrinking_cluster, view, provider, node_control, tmp_path
    ):
        node_control.operation_mode.return_value = OperationMode.LEAVING
        async with JobDB(tmp_path / "jobs.db") as db:
            coordinator = ScaleCoordinator(provider, node_control, DecommissionJobTracker(db))

            action = await coordinator.reconcile(
                shrinking_cluster, view, AddressResolver(shrinking_cluster, provider)
            )
            assert await db.list_jobs() == []

        assert action.outcome == ScaleOutcome.DECOMMISSION_IN_PROGRESS
        node_control.decommission.assert_not_called()
        provider.set_replicas.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_target_is_fatal(
        self, shrinking_cluster, provider, node_control, make_members, make_view, tmp_path
    ):
        view = make_view(make_members(shrinking_cluster, "dc1", 5), {"dc1": (6, 5)})
        async with JobDB(tmp_path / "jobs.db") as db:
            coordinator = ScaleCoordinator(provider, node_control, DecommissionJobTracker(db))

            with pytest.raises(ConfigurationInvariantError):
                await coordinator.reconcile(
                    shrinking_cluster, view, AddressResolver(shrinking_cluster, provider)
                )

    @pytest.mark.asyncio
    async def test_unreachable_target_partially_confirmed(
        self, shrinking_cluster, view, provider, node_control, tmp_path
    ):
        """Only 2 of 5 peers see the target gone: the original error comes back."""
        original = NodeControlError("connection refused")
        node_control.operation_mode.side_effect = original
        node_control.cluster_view.side_effect = peers_seeing_target(
            {"10.0.1.1", "10.0.1.2", "10.0.1.3"}
        )
        async with JobDB(tmp_path / "jobs.db") as db:
            await db.create_job(
                DecommissionJob(name=JOB, target_member=TARGET, status=JobStatus.FAILED)
            )
            coordinator = ScaleCoordinator(provider, node_control, DecommissionJobTracker(db))

            with pytest.raises(DecommissionUnconfirmedError) as exc_info:
                await coordinator.reconcile(
                    shrinking_cluster, view, AddressResolver(shrinking_cluster, provider)
                )
            jobs = await db.list_jobs()

        assert exc_info.value.cause is original
        assert exc_info.value.__cause__ is original
        assert exc_info.value.not_live == 2
        assert exc_info.value.peers == 5
        provider.set_replicas.assert_not_called()
        assert [(j.name, j.status) for j in jobs] == [(JOB, JobStatus.FAILED)]

    @pytest.mark.asyncio
    async def test_unreachable_target_fully_confirmed(
        self, shrinking_cluster, view, provider, node_control, tmp_path
    ):
        node_control.operation_mode.side_effect = NodeControlError("connection refused")
        node_control.cluster_view.side_effect = peers_seeing_target(set())
        async with JobDB(tmp_path / "jobs.db") as db:
            await db.create_job(
                DecommissionJob(name=JOB, target_member=TARGET, status=JobStatus.SUCCEEDED)
            )
            coordinator = ScaleCoordinator(provider, node_control, DecommissionJobTracker(db))

            action = await coordinator.reconcile(
                shrinking_cluster, view, AddressResolver(shrinking_cluster, provider)
            )
            jobs = await db.list_jobs()

        assert action.outcome == ScaleOutcome.SCALED_DOWN
        provider.set_replicas.assert_awaited_once_with("dc1", expected=6, replicas=5)
        assert node_control.cluster_view.await_count == 5
        assert jobs == []

    @pytest.mark.asyncio
    async def test_peer_query_failure_blocks_shrink(
        self, shrinking_cluster, view, provider, node_control, tmp_path
    ):
        original = NodeControlError("connection refused")
        node_control.operation_mode.side_effect = original
        node_control.cluster_view.side_effect = NodeControlError("peer down")
        async with JobDB(tmp_path / "jobs.db") as db:
            coordinator = ScaleCoordinator(provider, node_control, DecommissionJobTracker(db))

            with pytest.raises(DecommissionUnconfirmedError) as exc_info:
                await coordinator.reconcile(
                    shrinking_cluster, view, AddressResolver(shrinking_cluster, provider)
                )

        assert exc_info.value.cause is original
        provider.set_replicas.assert_not_called()

    @pytest.mark.asyncio
    async def test_decommissioned_target_still_seen_live(
        self, shrinking_cluster, view, provider, node_control, tmp_path
    ):
        node_control.operation_mode.return_value = OperationMode.DECOMMISSIONED
        node_control.cluster_view.side_effect = peers_seeing_target({"10.0.1.1"})
        async with JobDB(tmp_path / "jobs.db") as db:
            coordinator = ScaleCoordinator(provider, node_control, DecommissionJobTracker(db))

            action = await coordinator.reconcile(
                shrinking_cluster, view, AddressResolver(shrinking_cluster, provider)
            )

        assert action.outcome == ScaleOutcome.DECOMMISSION_IN_PROGRESS
        provider.set_replicas.assert_not_called()

    @pytest.mark.asyncio
    async def test_decommissioned_target_confirmed(
        self, shrinking_cluster, view, provider, node_control, tmp_path
    ):
        node_control.operation_mode.return_value = OperationMode.DECOMMISSIONED
        node_control.cluster_view.side_effect = peers_seeing_target(set())
        async with JobDB(tmp_path / "jobs.db") as db:
            coordinator = ScaleCoordinator(provider, node_control, DecommissionJobTracker(db))

            action = await coordinator.reconcile(
                shrinking_cluster, view, AddressResolver(shrinking_cluster, provider)
            )

        assert action.outcome == ScaleOutcome.SCALED_DOWN
        provider.set_replicas.assert_awaited_once_with("dc1", expected=6, replicas=5)

    @pytest.mark.asyncio
    async def test_members_of_undeclared_datacenters_are_not_peers(
        self, shrinking_cluster, provider, node_control, make_members, make_view, tmp_path
    ):
        members = make_members(shrinking_cluster, "dc1", 6) + make_members(
            shrinking_cluster, "old", 2, ip_base="10.0.9"
        )
        view = make_view(members, {"dc1": (6, 6)})
        node_control.operation_mode.side_effect = NodeControlError("connection refused")
        node_control.cluster_view.side_effect = peers_seeing_target({"10.0.9.1", "10.0.9.2"})
        async with JobDB(tmp_path / "jobs.db") as db:
            coordinator = ScaleCoordinator(provider, node_control, DecommissionJobTracker(db))

            action = await coordinator.reconcile(
                shrinking_cluster, view, AddressResolver(shrinking_cluster, provider)
            )

        assert action.outcome == ScaleOutcome.SCALED_DOWN
        assert node_control.cluster_view.await_count == 5
