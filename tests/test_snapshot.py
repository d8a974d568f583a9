"""Tests for the YAML snapshot membership provider."""

import pytest
import yaml

from operator_cassandra.errors import ConflictError
from operator_cassandra.snapshot import SnapshotMembershipProvider
from operator_cassandra.types import HostNode

SNAPSHOT = {
    "datacenters": [{"name": "dc1", "replicas": 2, "ready_replicas": 1}],
    "members": [
        {
            "name": "test-cluster-cassandra-dc1-0",
            "uid": "a",
            "dc": "dc1",
            "pod_ip": "10.0.1.1",
            "node_name": "node-a",
            "ready": True,
            "seed": True,
        },
        {"name": "test-cluster-cassandra-dc1-1", "uid": "b", "dc": "dc1"},
    ],
    "hosts": [{"name": "node-a", "internal_ip": "192.168.0.1", "zone": "zone-a"}],
}


@pytest.fixture
def provider(tmp_path) -> SnapshotMembershipProvider:
    path = tmp_path / "state.yaml"
    path.write_text(yaml.safe_dump(SNAPSHOT))
    return SnapshotMembershipProvider(path)


class TestSnapshotReads:
    """Tests for reading members, datacenters and hosts."""

    @pytest.mark.asyncio
    async def test_list_members(self, provider):
        members = await provider.list_members()

        assert [m.name for m in members] == [
            "test-cluster-cassandra-dc1-0",
            "test-cluster-cassandra-dc1-1",
        ]
        assert members[0].seed is True
        assert members[1].scheduled is False

    @pytest.mark.asyncio
    async def test_list_datacenters(self, provider):
        (dc,) = await provider.list_datacenters()
        assert (dc.name, dc.replicas, dc.ready_replicas) == ("dc1", 2, 1)

    @pytest.mark.asyncio
    async def test_get_host(self, provider):
        assert (await provider.get_host("node-a")).zone == "zone-a"
        assert await provider.get_host("node-x") == HostNode(name="node-x")


class TestSnapshotWrites:
    """Tests for compare-and-set replica updates and seed labels."""

    @pytest.mark.asyncio
    async def test_set_replicas(self, provider):
        await provider.set_replicas("dc1", expected=2, replicas=3)

        (dc,) = await provider.list_datacenters()
        assert dc.replicas == 3

    @pytest.mark.asyncio
    async def test_set_replicas_conflict(self, provider):
        with pytest.raises(ConflictError) as exc_info:
            await provider.set_replicas("dc1", expected=5, replicas=4)
        assert exc_info.value.actual == 2

        (dc,) = await provider.list_datacenters()
        assert dc.replicas == 2

    @pytest.mark.asyncio
    async def test_set_replicas_unknown_datacenter(self, provider):
        with pytest.raises(ConflictError):
            await provider.set_replicas("dc9", expected=0, replicas=1)

    @pytest.mark.asyncio
    async def test_set_seed_label(self, provider):
        await provider.set_seed_label("test-cluster-cassandra-dc1-1", True)
        await provider.set_seed_label("test-cluster-cassandra-dc1-9", True)

        members = await provider.list_members()
        assert [m.seed for m in members] == [True, True]
        assert not provider.path.with_name("state.yaml.tmp").exists()
