"""
Pydantic response types for the coordinator's HTTP collaborators.

This module provides Pydantic models for parsing responses from:
- Jolokia JMX proxy: read/exec envelopes and StorageService attribute values
- Prober: seed lists published by cooperating regions

These are API response types for external data validation. Internal
types (ClusterView, OperationMode, etc.) are dataclasses/enums in
operator_cassandra.types.

Notes:
- Jolokia reports JMX failures inside a 200 response ("error" set,
  "status" carries the JMX status code)
- StorageService list attributes may come back as null on a fresh node
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


# =============================================================================
# Jolokia Response Types
# =============================================================================
# Response structure: {"request": {...}, "value": {...}, "status": 200}


class JolokiaResponse(BaseModel):
    """
    Envelope returned by the Jolokia proxy for a single request.

    Example response:
    {
        "request": {"type": "read", "mbean": "org.apache.cassandra.db:type=StorageService"},
        "value": {"OperationMode": "NORMAL"},
        "status": 200
    }
    """

    request: dict[str, Any] | None = None
    value: Any = None
    status: int = 0
    error: str | None = None
    error_type: str | None = None


class OperationModeValue(BaseModel):
    """Value of a read of the StorageService OperationMode attribute."""

    model_config = ConfigDict(populate_by_name=True)

    operation_mode: str = Field(alias="OperationMode")


class ClusterViewValue(BaseModel):
    """Value of a read of the StorageService ring membership attributes."""

    model_config = ConfigDict(populate_by_name=True)

    live_nodes: list[str] = Field(default_factory=list, alias="LiveNodes")
    leaving_nodes: list[str] = Field(default_factory=list, alias="LeavingNodes")
    joining_nodes: list[str] = Field(default_factory=list, alias="JoiningNodes")
    unreachable_nodes: list[str] = Field(default_factory=list, alias="UnreachableNodes")
    moving_nodes: list[str] = Field(default_factory=list, alias="MovingNodes")

    @field_validator(
        "live_nodes",
        "leaving_nodes",
        "joining_nodes",
        "unreachable_nodes",
        "moving_nodes",
        mode="before",
    )
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


# =============================================================================
# Prober Response Types
# =============================================================================
# GET /seeds returns a bare JSON array: ["10.0.0.1", "10.0.0.2"]

SeedList = TypeAdapter(list[str])
