"""
GatewaySwitchover - repoint the gateway route at the destination cluster.

Runs when a migration leaves the ``promoted`` phase.

Switchover Sequence:
    1. Re-fetch the gateway and locate the source route by name
    2. Build one JSON-Patch document with exactly two operations:
       - append a streaming domain for the destination cluster
       - replace the source route with one pointing at that domain
    3. Apply the patch in a single request, unless a previous run already did
    4. Wait for the gateway pods to be recycled and ready (only ready when
       the patch was skipped)

The replacement route keeps the source route's name, identifies brokers by
port, and uses ``swap`` security: clients send no credentials to the
gateway and the gateway authenticates to the destination with PLAIN using a
pre-provisioned JAAS secret.
"""

from __future__ import annotations

import logging
from typing import Any

from gatewaycutover.exceptions import SwitchoverError
from gatewaycutover.gateway import GatewayClient, GatewayConfig, PatchOperation, Route
from gatewaycutover.gateway.resource import GatewayResource, parse_gateway_yaml
from gatewaycutover.models import MigrationConfig, SwitchoverSettings
from gatewaycutover.observability import (
    ATTR_GATEWAY_NAME,
    ATTR_GATEWAY_NAMESPACE,
    ATTR_PATCH_OPERATIONS,
    ATTR_ROUTE_NAME,
    Tracer,
    create_tracer,
)

logger = logging.getLogger(__name__)


def build_streaming_domain(cc_bootstrap_endpoint: str, settings: SwitchoverSettings) -> dict[str, Any]:
    """Streaming domain entry for the destination cluster."""
    return {
        "name": settings.domain_name,
        "type": "kafka",
        "kafkaCluster": {
            "bootstrapServers": [
                {
                    "id": settings.bootstrap_server_id,
                    "endpoint": cc_bootstrap_endpoint,
                    "tls": {"secretRef": settings.tls_secret_name},
                }
            ],
            "nodeIdRanges": [
                {
                    "name": settings.node_id_pool_name,
                    "start": settings.node_id_start,
                    "end": settings.node_id_end,
                }
            ],
        },
    }


def build_switched_route(name: str, endpoint: str, settings: SwitchoverSettings) -> dict[str, Any]:
    """Route definition that sends traffic for ``name`` to the new domain."""
    return {
        "name": name,
        "endpoint": endpoint,
        "brokerIdentificationStrategy": {"type": "port"},
        "streamingDomain": {
            "name": settings.domain_name,
            "bootstrapServerId": settings.bootstrap_server_id,
        },
        "security": {
            "auth": "swap",
            "client": {"authentication": {"type": "none"}},
            "cluster": {
                "authentication": {
                    "type": "plain",
                    "jaasConfig": {"secretRef": settings.jaas_secret_name},
                }
            },
        },
    }


def build_switchover_patch(
    route_index: int,
    source_route: Route,
    *,
    cc_bootstrap_endpoint: str,
    load_balancer_endpoint: str = "",
    settings: SwitchoverSettings | None = None,
) -> list[PatchOperation]:
    """
    Build the two-operation JSON-Patch document for the switchover.

    Args:
        route_index: Index of the source route in ``spec.routes``.
        source_route: The route being replaced.
        cc_bootstrap_endpoint: Destination bootstrap endpoint.
        load_balancer_endpoint: Endpoint for the new route; defaults to the
            source route's endpoint.
        settings: Names for the new domain and secrets.

    Returns:
        ``[add /spec/streamingDomains/-, replace /spec/routes/<route_index>]``

    Raises:
        SwitchoverError: If no bootstrap endpoint or route endpoint is known.
    """
    settings = settings or SwitchoverSettings()
    if not cc_bootstrap_endpoint:
        raise SwitchoverError("destination bootstrap endpoint is not configured")

    endpoint = load_balancer_endpoint or source_route.endpoint or ""
    if not endpoint:
        raise SwitchoverError(
            f"route '{source_route.name}' has no endpoint and no load balancer endpoint is configured"
        )

    return [
        {
            "op": "add",
            "path": "/spec/streamingDomains/-",
            "value": build_streaming_domain(cc_bootstrap_endpoint, settings),
        },
        {
            "op": "replace",
            "path": f"/spec/routes/{route_index}",
            "value": build_switched_route(source_route.name, endpoint, settings),
        },
    ]


class GatewaySwitchover:
    """
    Applies the switchover patch and waits for the gateway to roll.

    Args:
        gateway: Gateway client.
        config: Engine tunables (pod poll interval and timeout, patch names).
        tracer: Optional custom Tracer.
        enable_tracing: Create an OpenTelemetry tracer when no tracer is given.

    Example:
        >>> switchover = GatewaySwitchover(gateway_client)
        >>> await switchover.switch(
        ...     gateway_config,
        ...     cc_bootstrap_endpoint="SASL_SSL://pkc-123.confluent.cloud:9092",
        ... )
    """

    def __init__(
        self,
        gateway: GatewayClient,
        *,
        config: MigrationConfig | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._gateway = gateway
        self._config = config or MigrationConfig()
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    async def switch(
        self,
        gateway_config: GatewayConfig,
        *,
        cc_bootstrap_endpoint: str,
        load_balancer_endpoint: str = "",
    ) -> list[PatchOperation]:
        """
        Repoint the source route at the destination cluster.

        Safe to re-run: if an earlier attempt already applied the patch (for
        example before a pod recycle timeout) the patch is skipped and only
        pod readiness is awaited.

        Returns:
            The patch document that was applied, empty if nothing was patched.

        Raises:
            SwitchoverError: If the source route is gone or endpoints are missing.
            PodRecycleTimeoutError: If the pods are not ready in time.
            GatewayError: If a Kubernetes call fails.
        """
        namespace = gateway_config.namespace
        name = gateway_config.crd_name
        settings = self._config.switchover

        with self._tracer.span(
            "gatewaycutover.switchover.switch",
            {
                ATTR_GATEWAY_NAMESPACE: namespace,
                ATTR_GATEWAY_NAME: name,
                ATTR_ROUTE_NAME: gateway_config.source_route_name,
            },
        ) as span:
            gateway = parse_gateway_yaml(await self._gateway.get_gateway_yaml(namespace, name))
            route_index = gateway.find_route_index(gateway_config.source_route_name)

            patch: list[PatchOperation] = []
            if is_switched(gateway, route_index, settings):
                logger.info(
                    "Route %s of gateway %s/%s already points at domain %s, skipping patch",
                    gateway_config.source_route_name,
                    namespace,
                    name,
                    settings.domain_name,
                )
            else:
                patch = build_switchover_patch(
                    route_index,
                    gateway.spec.routes[route_index],
                    cc_bootstrap_endpoint=cc_bootstrap_endpoint,
                    load_balancer_endpoint=load_balancer_endpoint,
                    settings=settings,
                )
                logger.info(
                    "Switching route %s (index %d) of gateway %s/%s to domain %s",
                    gateway_config.source_route_name,
                    route_index,
                    namespace,
                    name,
                    settings.domain_name,
                )
                await self._gateway.patch_gateway(namespace, name, patch)

            if span is not None:
                span.set_attribute(ATTR_PATCH_OPERATIONS, len(patch))

            logger.info(
                "Waiting up to %.0fs for gateway pods to recycle", self._config.pod_ready_timeout
            )
            await self._gateway.wait_for_gateway_pods(
                namespace,
                name,
                self._config.pod_poll_interval,
                self._config.pod_ready_timeout,
                expect_rollout=bool(patch),
            )
            logger.info("Gateway %s/%s switched", namespace, name)
            return patch


def is_switched(gateway: GatewayResource, route_index: int, settings: SwitchoverSettings) -> bool:
    """True if the route already uses the destination domain and that domain exists."""
    return (
        gateway.spec.routes[route_index].domain_name == settings.domain_name
        and settings.domain_name in gateway.domain_names
    )


__all__ = [
    "build_streaming_domain",
    "build_switched_route",
    "build_switchover_patch",
    "is_switched",
    "GatewaySwitchover",
]
