"""Tests for the CLI commands that need no running cluster."""

import asyncio
from datetime import datetime

import httpx
import pytest
import yaml
from typer.testing import CliRunner

from operator_cassandra.cli.main import app
from operator_cassandra.db import JobDB
from operator_cassandra.prober_client import ProberClient
from operator_cassandra.types import DecommissionJob, JobStatus

runner = CliRunner()


@pytest.fixture
def cluster_file(tmp_path):
    path = tmp_path / "cluster.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "name": "test-cluster",
                "num_seeds": 2,
                "datacenters": [{"name": "dc1", "replicas": 6}, {"name": "dc2", "replicas": 1}],
            }
        )
    )
    return path


def seed_jobs(db_path, *jobs):
    async def _seed():
        async with JobDB(db_path) as db:
            for job in jobs:
                await db.create_job(job)

    asyncio.run(_seed())


class TestSeedsCommand:
    """Tests for `seeds`."""

    def test_prints_counts(self, cluster_file):
        result = runner.invoke(app, ["seeds", str(cluster_file)])

        assert result.exit_code == 0
        assert "dc1" in result.output
        assert "dc2" in result.output

    def test_invalid_declaration(self, tmp_path):
        path = tmp_path / "cluster.yaml"
        path.write_text("name: test-cluster\ndatacenters: []\n")

        result = runner.invoke(app, ["seeds", str(path)])

        assert result.exit_code == 1
        assert "invalid cluster declaration" in result.output


class TestJobsCommands:
    """Tests for `jobs list` and `jobs remove`."""

    def test_list(self, tmp_path):
        db_path = tmp_path / "cassandra.db"
        seed_jobs(
            db_path,
            DecommissionJob(name="pod-decommission-a", target_member="a", status=JobStatus.FAILED),
        )

        result = runner.invoke(app, ["jobs", "list", "--db", str(db_path)])

        assert result.exit_code == 0
        assert "failed" in result.output

    def test_remove_finished(self, tmp_path):
        db_path = tmp_path / "cassandra.db"
        seed_jobs(
            db_path,
            DecommissionJob(name="pod-decommission-a", target_member="a", status=JobStatus.SUCCEEDED),
        )

        result = runner.invoke(app, ["jobs", "remove", "pod-decommission-a", "--db", str(db_path)])

        assert result.exit_code == 0
        assert "Removed job pod-decommission-a" in result.output

    def test_remove_missing(self, tmp_path):
        result = runner.invoke(
            app, ["jobs", "remove", "pod-decommission-x", "--db", str(tmp_path / "cassandra.db")]
        )

        assert result.exit_code == 0
        assert "not found" in result.output

    def test_remove_running_is_refused(self, tmp_path):
        db_path = tmp_path / "cassandra.db"
        seed_jobs(
            db_path,
            DecommissionJob(
                name="pod-decommission-a", target_member="a", owner="other", heartbeat_at=datetime.now()
            ),
        )

        result = runner.invoke(app, ["jobs", "remove", "pod-decommission-a", "--db", str(db_path)])

        assert result.exit_code == 1
        assert "still running" in result.output


@pytest.fixture
def accepting_prober(monkeypatch):
    """Route the plan command's prober calls to a transport that accepts every PUT."""

    def create(settings):
        http = httpx.AsyncClient(
            base_url="http://prober:8888",
            transport=httpx.MockTransport(lambda request: httpx.Response(200)),
        )
        return ProberClient(http=http)

    monkeypatch.setattr("operator_cassandra.cli.main.create_prober_client", create)


def write_files(tmp_path, replicas, members):
    cluster_path = tmp_path / "cluster.yaml"
    cluster_path.write_text(
        yaml.safe_dump({"name": "test-cluster", "datacenters": [{"name": "dc1", "replicas": replicas}]})
    )
    snapshot_path = tmp_path / "state.yaml"
    snapshot_path.write_text(
        yaml.safe_dump(
            {
                "datacenters": [{"name": "dc1", "replicas": replicas, "ready_replicas": 0}],
                "members": members,
            }
        )
    )
    return cluster_path, snapshot_path


class TestPlanCommand:
    """Tests for `plan`."""

    def test_empty_converged_cluster(self, tmp_path, accepting_prober):
        cluster_path, snapshot_path = write_files(tmp_path, replicas=0, members=[])

        result = runner.invoke(
            app,
            ["plan", str(cluster_path), "--snapshot", str(snapshot_path), "--db", str(tmp_path / "c.db")],
        )

        assert result.exit_code == 0
        assert "Pass aborted" not in result.output
        assert "Not converged" not in result.output

    def test_unscheduled_member_aborts(self, tmp_path, accepting_prober):
        member = {"name": "test-cluster-cassandra-dc1-0", "uid": "u0", "dc": "dc1", "seed": True}
        cluster_path, snapshot_path = write_files(tmp_path, replicas=1, members=[member])

        result = runner.invoke(
            app,
            ["plan", str(cluster_path), "--snapshot", str(snapshot_path), "--db", str(tmp_path / "c.db")],
        )

        assert result.exit_code == 1
        assert "Pass aborted" in result.output
