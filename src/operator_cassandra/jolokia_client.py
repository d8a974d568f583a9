"""
Node-control client talking to Cassandra's StorageService MBean through a
Jolokia JMX proxy.

Every request is a POST of a JSON body naming the operation and a JMX
target URL built from the node's address:

    {
        "type": "read",
        "mbean": "org.apache.cassandra.db:type=StorageService",
        "attribute": ["OperationMode"],
        "target": {"url": "service:jmx:rmi:///jndi/rmi://10.0.0.1:7199/jmxrmi", ...}
    }

Transport failures, non-200 statuses, JMX errors reported in the response
envelope and malformed values are all raised as NodeControlError.
"""

import logging
from dataclasses import dataclass
from typing import Any

import httpx
import pydantic

from operator_cassandra.errors import NodeControlError
from operator_cassandra.responses import ClusterViewValue, JolokiaResponse, OperationModeValue
from operator_cassandra.types import Address, ClusterView, OperationMode

logger = logging.getLogger(__name__)

STORAGE_SERVICE_MBEAN = "org.apache.cassandra.db:type=StorageService"
JMX_PORT = 7199

CLUSTER_VIEW_ATTRIBUTES = [
    "LiveNodes",
    "LeavingNodes",
    "JoiningNodes",
    "UnreachableNodes",
    "MovingNodes",
]


def jmx_url(address: Address, port: int = JMX_PORT) -> str:
    return f"service:jmx:rmi:///jndi/rmi://{address}:{port}/jmxrmi"


@dataclass
class JolokiaClient:
    """
    Jolokia node-control client with injected httpx client.

    Attributes:
        http: Pre-configured httpx.AsyncClient with base_url set to the
            Jolokia proxy.
        jmx_user: JMX user passed in each request's target.
        jmx_password: JMX password passed in each request's target.
        jmx_port: JMX port of the nodes.
        decommission_timeout: Timeout for the decommission call, which only
            returns once the node has streamed its data away (None waits forever).

    Example:
        async with httpx.AsyncClient(base_url="http://jolokia:8080/jolokia") as http:
            client = JolokiaClient(http=http, jmx_user="cassandra", jmx_password="...")
            mode = await client.operation_mode("10.0.0.1")
    """

    http: httpx.AsyncClient
    jmx_user: str = ""
    jmx_password: str = ""
    jmx_port: int = JMX_PORT
    decommission_timeout: float | None = None

    async def operation_mode(self, address: Address) -> OperationMode:
        """
        Read the node's operation mode.

        Raises:
            NodeControlError: On request failure, or an unknown mode.
        """
        value = await self._post(
            address,
            {"type": "read", "mbean": STORAGE_SERVICE_MBEAN, "attribute": ["OperationMode"]},
        )
        try:
            mode = OperationModeValue.model_validate(value).operation_mode
        except pydantic.ValidationError as e:
            raise NodeControlError(f"Couldn't find operation mode field, raw value: {value!r}") from e
        try:
            return OperationMode(mode)
        except ValueError as e:
            raise NodeControlError(f"Unknown operation mode {mode}") from e

    async def cluster_view(self, address: Address) -> ClusterView:
        """
        Read the node's view of ring membership.

        Raises:
            NodeControlError: On request failure or malformed value.
        """
        value = await self._post(
            address,
            {"type": "read", "mbean": STORAGE_SERVICE_MBEAN, "attribute": CLUSTER_VIEW_ATTRIBUTES},
        )
        try:
            data = ClusterViewValue.model_validate(value)
        except pydantic.ValidationError as e:
            raise NodeControlError(f"Malformed cluster view from {address}: {e}") from e
        return ClusterView(
            live_nodes=data.live_nodes,
            leaving_nodes=data.leaving_nodes,
            joining_nodes=data.joining_nodes,
            unreachable_nodes=data.unreachable_nodes,
            moving_nodes=data.moving_nodes,
        )

    async def decommission(self, address: Address) -> None:
        """
        Run the decommission operation on the node.

        Returns once the node has left the ring.

        Raises:
            NodeControlError: On request failure.
        """
        await self._post(
            address,
            {"type": "exec", "mbean": STORAGE_SERVICE_MBEAN, "operation": "decommission"},
            timeout=self.decommission_timeout,
        )

    async def _post(
        self,
        address: Address,
        request: dict[str, Any],
        **kwargs: Any,
    ) -> Any:
        body = {
            **request,
            "target": {
                "url": jmx_url(address, self.jmx_port),
                "user": self.jmx_user,
                "password": self.jmx_password,
            },
        }
        try:
            response = await self.http.post("", json=body, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise NodeControlError(f"JMX request to {address} failed: {e}") from e

        try:
            data = JolokiaResponse.model_validate_json(response.content)
        except pydantic.ValidationError as e:
            raise NodeControlError(
                f"Cannot parse JMX response from {address}, raw body: {response.text!r}"
            ) from e

        if data.error:
            logger.debug(f"Raw JMX error response from {address}: {response.text}")
            raise NodeControlError(f"Received error JMX response from {address}: {data.error}")
        return data.value
