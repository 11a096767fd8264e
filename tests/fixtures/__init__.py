"""
Shared test fixtures for the gatewaycutover tests.

Usage:
    from tests.fixtures import (
        FakeClusterLinkClient,
        FakeGatewayClient,
        gateway_document,
        mirror,
        render_gateway,
    )
"""

from tests.fixtures.clusterlink import FakeClusterLinkClient, mirror
from tests.fixtures.gateway import (
    DESTINATION_DOMAIN,
    DESTINATION_ROUTE,
    GATEWAY_NAME,
    NAMESPACE,
    ROUTE_ENDPOINT,
    SOURCE_DOMAIN,
    SOURCE_ROUTE,
    FakeGatewayClient,
    gateway_document,
    render_gateway,
)

__all__ = [
    "FakeClusterLinkClient",
    "mirror",
    "FakeGatewayClient",
    "gateway_document",
    "render_gateway",
    "NAMESPACE",
    "GATEWAY_NAME",
    "SOURCE_DOMAIN",
    "DESTINATION_DOMAIN",
    "SOURCE_ROUTE",
    "DESTINATION_ROUTE",
    "ROUTE_ENDPOINT",
]
