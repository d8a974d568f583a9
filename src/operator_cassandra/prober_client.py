"""
Prober API client for cross-region seed and readiness exchange.

Every region runs a prober service behind its ingress. The local prober
receives this region's seeds and readiness (PUT to the injected client's
base_url); peer regions' probers are queried directly by ingress host over
HTTPS. All requests use basic auth.

Failures of any kind (transport, status, decoding) are raised as
GatewayError, which the coordinators turn into RegionNotReadyError.
"""

import json
from dataclasses import dataclass

import httpx
import pydantic

from operator_cassandra.errors import GatewayError
from operator_cassandra.responses import SeedList
from operator_cassandra.types import Address, RegionHost


@dataclass
class ProberClient:
    """
    Prober API client with injected httpx client.

    Attributes:
        http: Pre-configured httpx.AsyncClient with base_url set to the local
            prober and basic auth configured.
        scheme: URL scheme used to reach peer regions' probers.

    Example:
        async with httpx.AsyncClient(
            base_url="http://prober:8888", auth=httpx.BasicAuth("user", "pass")
        ) as http:
            client = ProberClient(http=http)
            await client.publish_local_seeds(["10.0.0.1"])
            ready = await client.is_region_ready("test-cluster-default.east.example.com")
    """

    http: httpx.AsyncClient
    scheme: str = "https"

    def _region_url(self, region: RegionHost, path: str) -> str:
        return f"{self.scheme}://{region}{path}"

    async def publish_local_seeds(self, seeds: list[Address]) -> None:
        """
        Publish this region's seed list.

        Calls PUT /seeds on the local prober with a JSON array body.

        Raises:
            GatewayError: On transport or HTTP errors.
        """
        await self._put("/seeds", content=json.dumps(seeds))

    async def publish_local_readiness(self, ready: bool) -> None:
        """
        Publish whether every local datacenter is ready.

        Calls PUT /region-ready on the local prober with a "true"/"false" body.

        Raises:
            GatewayError: On transport or HTTP errors.
        """
        await self._put("/region-ready", content="true" if ready else "false")

    async def fetch_seeds(self, region: RegionHost) -> list[Address]:
        """
        Get the seed list a peer region published.

        Calls GET https://{region}/seeds.

        Raises:
            GatewayError: On transport or HTTP errors, or if the body is not
                a JSON array of strings.
        """
        response = await self._get(self._region_url(region, "/seeds"))
        try:
            return SeedList.validate_json(response.content)
        except pydantic.ValidationError as e:
            raise GatewayError(f"Malformed seed list from region {region}: {e}") from e

    async def is_region_ready(self, region: RegionHost) -> bool:
        """
        Get whether a peer region reports all of its datacenters ready.

        Calls GET https://{region}/region-ready, which answers "true" or "false".

        Raises:
            GatewayError: On transport or HTTP errors, or any other body.
        """
        response = await self._get(self._region_url(region, "/region-ready"))
        body = response.text.strip().lower()
        if body not in ("true", "false"):
            raise GatewayError(
                f"Unexpected response from prober of region {region}: "
                f"expected true or false, got {response.text!r}"
            )
        return body == "true"

    async def _get(self, url: str) -> httpx.Response:
        try:
            response = await self.http.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise GatewayError(f"GET request to prober {url} failed: {e}") from e
        return response

    async def _put(self, path: str, content: str) -> None:
        try:
            response = await self.http.put(path, content=content)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise GatewayError(f"PUT request to prober's {path} endpoint failed: {e}") from e
