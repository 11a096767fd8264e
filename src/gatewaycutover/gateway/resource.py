"""
Gateway custom resource models and pre-flight validation.

Only the parts of the ``platform.confluent.io/v1beta1`` Gateway resource the
cutover depends on are modelled; everything else is ignored on parse and
left untouched by the switchover patch.
"""

from __future__ import annotations

import logging
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gatewaycutover.exceptions import GatewayValidationError, SwitchoverError
from gatewaycutover.gateway.client import GatewayConfig

logger = logging.getLogger(__name__)


class _GatewayModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class StreamingDomain(_GatewayModel):
    name: str = ""


class RouteStreamingDomain(_GatewayModel):
    name: str = ""
    bootstrap_server_id: str | None = Field(default=None, alias="bootstrapServerId")


class Authentication(_GatewayModel):
    type: str | None = None


class SecuritySide(_GatewayModel):
    authentication: Authentication | None = None

    @property
    def authentication_type(self) -> str:
        if self.authentication is None:
            return ""
        return self.authentication.type or ""


class RouteSecurity(_GatewayModel):
    auth: str | None = None
    client: SecuritySide | None = None
    cluster: SecuritySide | None = None


class Route(_GatewayModel):
    name: str = ""
    endpoint: str | None = None
    streaming_domain: RouteStreamingDomain | None = Field(default=None, alias="streamingDomain")
    security: RouteSecurity | None = None

    @property
    def domain_name(self) -> str:
        return self.streaming_domain.name if self.streaming_domain else ""

    @property
    def auth(self) -> str:
        if self.security is None:
            return ""
        return self.security.auth or ""

    @property
    def client_authentication_type(self) -> str:
        if self.security is None or self.security.client is None:
            return ""
        return self.security.client.authentication_type

    @property
    def cluster_authentication_type(self) -> str:
        if self.security is None or self.security.cluster is None:
            return ""
        return self.security.cluster.authentication_type


class GatewaySpec(_GatewayModel):
    streaming_domains: list[StreamingDomain] = Field(default_factory=list, alias="streamingDomains")
    routes: list[Route] = Field(default_factory=list)


class GatewayResource(_GatewayModel):
    """Parsed Gateway custom resource."""

    spec: GatewaySpec = Field(default_factory=GatewaySpec)

    @property
    def domain_names(self) -> list[str]:
        return [d.name for d in self.spec.streaming_domains]

    @property
    def route_names(self) -> list[str]:
        return [r.name for r in self.spec.routes]

    def get_route(self, name: str) -> Route | None:
        for route in self.spec.routes:
            if route.name == name:
                return route
        return None

    def find_route_index(self, name: str) -> int:
        """
        Locate a route by name.

        Args:
            name: Route name.

        Returns:
            Index of the route in ``spec.routes``.

        Raises:
            SwitchoverError: If no route has that name.
        """
        for index, route in enumerate(self.spec.routes):
            if route.name == name:
                return index
        raise SwitchoverError(
            f"route '{name}' not found in gateway routes. Available routes: {self.route_names}"
        )


def parse_gateway_yaml(gateway_yaml: str | bytes) -> GatewayResource:
    """
    Parse a Gateway resource from YAML.

    Raises:
        GatewayValidationError: If the document is not valid YAML or does not
            have the Gateway shape.
    """
    try:
        data: Any = yaml.safe_load(gateway_yaml)
    except yaml.YAMLError as e:
        raise GatewayValidationError(f"failed to parse gateway YAML: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise GatewayValidationError("gateway YAML must be a mapping")

    try:
        return GatewayResource.model_validate(data)
    except ValidationError as e:
        raise GatewayValidationError(f"gateway resource has an unexpected shape: {e}") from e


def validate_gateway(gateway_yaml: str | bytes, config: GatewayConfig) -> None:
    """
    Check the gateway is in the shape the cutover expects.

    Checks, in order:
        1. Source and destination streaming domains exist.
        2. Source and destination routes exist.
        3. The source route points at the source domain and declares the
           security mode expected by the configured auth mode.
        4. The destination route points at the destination domain and
           declares client and cluster authentication types.

    Args:
        gateway_yaml: The gateway resource as YAML.
        config: Expected names and auth mode.

    Raises:
        GatewayValidationError: Naming the offending domain or route and the
            available alternatives.
    """
    gateway = parse_gateway_yaml(gateway_yaml)
    domains = gateway.domain_names
    routes = gateway.route_names

    if config.source_name not in domains:
        raise GatewayValidationError(
            f"source streaming domain '{config.source_name}' not found in gateway "
            f"streamingDomains. Available domains: {domains}"
        )
    if config.destination_name not in domains:
        raise GatewayValidationError(
            f"destination streaming domain '{config.destination_name}' not found in gateway "
            f"streamingDomains. Available domains: {domains}"
        )

    source_route = gateway.get_route(config.source_route_name)
    if source_route is None:
        raise GatewayValidationError(
            f"source route '{config.source_route_name}' not found in gateway routes. "
            f"Available routes: {routes}"
        )
    destination_route = gateway.get_route(config.destination_route_name)
    if destination_route is None:
        raise GatewayValidationError(
            f"destination route '{config.destination_route_name}' not found in gateway routes. "
            f"Available routes: {routes}"
        )

    _validate_source_route(source_route, config)
    _validate_destination_route(destination_route, config)

    logger.info(
        "Gateway %s/%s validated (source route %s, destination route %s)",
        config.namespace,
        config.crd_name,
        config.source_route_name,
        config.destination_route_name,
    )


def _validate_source_route(route: Route, config: GatewayConfig) -> None:
    if route.domain_name != config.source_name:
        raise GatewayValidationError(
            f"source route '{route.name}' streaming domain '{route.domain_name}' does not "
            f"match expected source streaming domain '{config.source_name}'"
        )

    expected = config.auth_mode.expected_source_auth
    if route.auth != expected:
        raise GatewayValidationError(
            f"source route '{route.name}' expected to be '{expected}' for auth mode "
            f"'{config.auth_mode.value}', found '{route.auth}'"
        )


def _validate_destination_route(route: Route, config: GatewayConfig) -> None:
    if route.domain_name != config.destination_name:
        raise GatewayValidationError(
            f"destination route '{route.name}' streaming domain '{route.domain_name}' does not "
            f"match expected destination streaming domain '{config.destination_name}'"
        )
    if not route.client_authentication_type:
        raise GatewayValidationError(
            f"destination route '{route.name}' is missing client authentication configuration"
        )
    if not route.cluster_authentication_type:
        raise GatewayValidationError(
            f"destination route '{route.name}' is missing cluster authentication configuration"
        )


__all__ = [
    "StreamingDomain",
    "RouteStreamingDomain",
    "Authentication",
    "SecuritySide",
    "RouteSecurity",
    "Route",
    "GatewaySpec",
    "GatewayResource",
    "parse_gateway_yaml",
    "validate_gateway",
]
