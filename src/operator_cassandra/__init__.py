"""
Operator Cassandra Library

Bootstrap ordering and scaling coordinator for multi-datacenter,
multi-region Cassandra clusters. This package provides:

- Init ordering: per-member pause/run decisions across regions and datacenters
- Seed computation: local, managed-region and unmanaged-region seed lists
- Scaling: replica-count reconciliation with orchestrated decommission
- Job registry: single-flight decommission jobs over a durable store
- Clients: prober (cross-region gateway) and Jolokia (node control)
"""

__version__ = "0.1.0"

# Re-export public types for convenient imports
from operator_cassandra.config import ClusterSpec, OperatorSettings
from operator_cassandra.errors import (
    ConfigurationInvariantError,
    ConflictError,
    DecommissionUnconfirmedError,
    OperatorError,
    PodNotScheduledError,
    RegionNotReadyError,
)
from operator_cassandra.facts import MemberFacts
from operator_cassandra.init_order import InitOrderCoordinator, Pause, PauseReason, Run
from operator_cassandra.jobs import DecommissionJobTracker
from operator_cassandra.reconciler import ClusterReconciler, ReconcileResult
from operator_cassandra.scaling import ScaleAction, ScaleCoordinator, ScaleOutcome
from operator_cassandra.seeds import SeedSetCalculator, seed_count
from operator_cassandra.types import (
    ClusterView,
    DatacenterState,
    DecommissionJob,
    HostNode,
    JobStatus,
    Member,
    OperationMode,
)

__all__ = [
    "__version__",
    # Configuration
    "ClusterSpec",
    "OperatorSettings",
    # Errors
    "ConfigurationInvariantError",
    "ConflictError",
    "DecommissionUnconfirmedError",
    "OperatorError",
    "PodNotScheduledError",
    "RegionNotReadyError",
    # Coordinators
    "ClusterReconciler",
    "DecommissionJobTracker",
    "InitOrderCoordinator",
    "ReconcileResult",
    "ScaleAction",
    "ScaleCoordinator",
    "ScaleOutcome",
    "SeedSetCalculator",
    "seed_count",
    # Decisions and facts
    "MemberFacts",
    "Pause",
    "PauseReason",
    "Run",
    # Types
    "ClusterView",
    "DatacenterState",
    "DecommissionJob",
    "HostNode",
    "JobStatus",
    "Member",
    "OperationMode",
]
