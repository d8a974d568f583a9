"""
Declarative configuration for the Cassandra coordinator.

This module provides the Pydantic models parsed from configuration files:

- ClusterSpec: the declared topology (datacenters, seeds, regions, host network)
- OperatorSettings: endpoints, credentials, storage and retry timings

Example cluster file:

    ```yaml
    name: test-cluster
    namespace: default
    ingress_domain: us-south.example.com
    num_seeds: 2
    datacenters:
      - name: dc1
        replicas: 6
      - name: dc2
        replicas: 3
    host_network:
      enabled: true
    managed_regions:
      - domain: eu-de.example.com
    unmanaged_regions:
      - seeds: ["10.0.0.1", "10.0.0.2"]
    ```
"""

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_NUM_SEEDS = 2
DEFAULT_DB_PATH = Path.home() / ".operator" / "cassandra.db"


class DatacenterSpec(BaseModel):
    """A declared datacenter. Declaration order is the bring-up order."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, max_length=63, pattern=r"^[a-z0-9][a-z0-9\-]*$")
    replicas: int = Field(ge=0)


class HostNetwork(BaseModel):
    """Host-network exposure settings."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    use_external_host_ip: bool = False


class ManagedRegion(BaseModel):
    """A cooperating region run by another instance of this coordinator."""

    model_config = ConfigDict(frozen=True)

    domain: str = Field(min_length=1)
    namespace: str | None = None


class UnmanagedRegion(BaseModel):
    """An external region that only contributes a static seed list."""

    model_config = ConfigDict(frozen=True)

    seeds: list[str] = Field(default_factory=list)


class ClusterSpec(BaseModel):
    """
    Declared topology of the cluster.

    Attributes:
        name: Cluster name, used as a prefix for all member names.
        namespace: Namespace the cluster runs in.
        ingress_domain: Domain under which this region's prober is exposed.
        datacenters: Declared datacenters in bring-up order.
        num_seeds: Configured seed target per datacenter.
        host_network: Host-network exposure settings.
        managed_regions: Cooperating regions, queried for seeds and readiness.
        unmanaged_regions: External regions with statically configured seeds.
        zones_as_racks: Publish the hosting machine's zone as the member's rack.
    """

    name: str = Field(min_length=1)
    namespace: str = "default"
    ingress_domain: str = ""
    datacenters: list[DatacenterSpec] = Field(min_length=1)
    num_seeds: int = Field(default=DEFAULT_NUM_SEEDS, ge=1)
    host_network: HostNetwork = Field(default_factory=HostNetwork)
    managed_regions: list[ManagedRegion] = Field(default_factory=list)
    unmanaged_regions: list[UnmanagedRegion] = Field(default_factory=list)
    zones_as_racks: bool = False

    @field_validator("datacenters")
    @classmethod
    def _unique_dc_names(cls, dcs: list[DatacenterSpec]) -> list[DatacenterSpec]:
        seen: set[str] = set()
        for dc in dcs:
            if dc.name in seen:
                raise ValueError(f"datacenter name {dc.name!r} is declared twice")
            seen.add(dc.name)
        return dcs

    @property
    def region_host(self) -> str:
        """Identifier of the local region."""
        return f"{self.name}-{self.namespace}.{self.ingress_domain}"

    def managed_region_host(self, region: ManagedRegion) -> str:
        return f"{self.name}-{region.namespace or self.namespace}.{region.domain}"

    def managed_region_hosts(self) -> list[str]:
        """Managed region identifiers in declaration order."""
        return [self.managed_region_host(r) for r in self.managed_regions]

    def dc_object_name(self, dc_name: str) -> str:
        """Name of the orchestration object (and member name prefix) of a datacenter."""
        return f"{self.name}-cassandra-{dc_name}"

    def datacenter(self, dc_name: str) -> DatacenterSpec | None:
        for dc in self.datacenters:
            if dc.name == dc_name:
                return dc
        return None

    def dc_names(self) -> list[str]:
        return [dc.name for dc in self.datacenters]

    @property
    def region_gating_enabled(self) -> bool:
        """Cross-region bring-up ordering applies only with host-network exposure."""
        return self.host_network.enabled and len(self.managed_regions) > 0


class OperatorSettings(BaseModel):
    """
    Runtime settings for the coordinator process.

    Retry delays map the error taxonomy onto requeue intervals: unscheduled
    members retry quickly, cross-region and decommission waits retry slower.
    """

    prober_url: str = "http://localhost:8888"
    prober_user: str = ""
    prober_password: str = ""
    jolokia_url: str = "http://localhost:8080/jolokia/"
    jmx_user: str = ""
    jmx_password: str = ""
    jmx_port: int = 7199
    db_path: Path = DEFAULT_DB_PATH
    interval_seconds: float = Field(default=30.0, gt=0)
    not_scheduled_retry_seconds: float = Field(default=5.0, gt=0)
    region_retry_seconds: float = Field(default=10.0, gt=0)
    progress_retry_seconds: float = Field(default=10.0, gt=0)
    conflict_retry_seconds: float = Field(default=1.0, gt=0)
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    job_lease_seconds: float = Field(default=60.0, gt=0)


def load_cluster_spec(path: Path) -> ClusterSpec:
    """Load and validate a cluster declaration from a YAML file.

    Raises:
        FileNotFoundError: If file doesn't exist
        pydantic.ValidationError: If YAML doesn't match schema
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    return ClusterSpec.model_validate(data)


def load_settings(path: Path | None = None, **overrides: object) -> OperatorSettings:
    """Load operator settings from an optional YAML file.

    Keyword overrides whose value is not None take precedence over the file.
    """
    data: dict[str, object] = {}
    if path is not None:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    data.update({k: v for k, v in overrides.items() if v is not None})
    return OperatorSettings.model_validate(data)
