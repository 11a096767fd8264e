"""
Gateway access for the cutover engine.

- GatewayClient: Protocol used by the workflow steps
- GatewayResource / validate_gateway: parsed resource and pre-flight checks
- KubernetesGatewayClient: implementation on the official kubernetes client
"""

from gatewaycutover.gateway.client import (
    GATEWAY_GROUP,
    GATEWAY_PLURAL,
    GATEWAY_VERSION,
    GatewayClient,
    GatewayConfig,
    PatchOperation,
)
from gatewaycutover.gateway.k8s import KubernetesGatewayClient
from gatewaycutover.gateway.resource import (
    GatewayResource,
    Route,
    parse_gateway_yaml,
    validate_gateway,
)

__all__ = [
    "GATEWAY_GROUP",
    "GATEWAY_VERSION",
    "GATEWAY_PLURAL",
    "PatchOperation",
    "GatewayConfig",
    "GatewayClient",
    "GatewayResource",
    "Route",
    "parse_gateway_yaml",
    "validate_gateway",
    "KubernetesGatewayClient",
]
