"""
Factory functions wiring settings into concrete collaborators.

Used by the CLI so command bodies stay free of client construction details.
"""

import httpx

from operator_cassandra.config import OperatorSettings
from operator_cassandra.jolokia_client import JolokiaClient
from operator_cassandra.prober_client import ProberClient


def create_prober_client(
    settings: OperatorSettings,
    http: httpx.AsyncClient | None = None,
) -> ProberClient:
    """
    Create a prober client for the local region.

    Args:
        settings: Operator settings (prober URL, credentials, timeout)
        http: Optional pre-configured httpx client. If None, a new client is
            created with base_url, basic auth and the configured timeout.
    """
    if http is None:
        http = httpx.AsyncClient(
            base_url=settings.prober_url,
            auth=httpx.BasicAuth(settings.prober_user, settings.prober_password),
            timeout=settings.request_timeout_seconds,
        )
    return ProberClient(http=http)


def create_jolokia_client(
    settings: OperatorSettings,
    http: httpx.AsyncClient | None = None,
) -> JolokiaClient:
    """
    Create a node-control client.

    Args:
        settings: Operator settings (Jolokia URL, JMX credentials, timeout)
        http: Optional pre-configured httpx client. If None, a new client is
            created with base_url and the configured timeout.

    Example:
        nodes = create_jolokia_client(settings)
        mode = await nodes.operation_mode("10.0.0.1")
    """
    if http is None:
        http = httpx.AsyncClient(
            base_url=settings.jolokia_url,
            timeout=settings.request_timeout_seconds,
        )
    return JolokiaClient(
        http=http,
        jmx_user=settings.jmx_user,
        jmx_password=settings.jmx_password,
        jmx_port=settings.jmx_port,
    )
