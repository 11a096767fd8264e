"""
Unit tests for gateway resource parsing and validation.

Tests cover:
- Parsing YAML into the gateway models
- Domain and route existence checks naming the alternatives
- Source route auth per auth mode
- Destination route authentication checks
"""

import pytest

from gatewaycutover.exceptions import GatewayValidationError, SwitchoverError
from gatewaycutover.gateway import GatewayConfig, parse_gateway_yaml, validate_gateway
from gatewaycutover.models import AuthMode
from tests.fixtures import (
    DESTINATION_DOMAIN,
    DESTINATION_ROUTE,
    GATEWAY_NAME,
    NAMESPACE,
    SOURCE_DOMAIN,
    SOURCE_ROUTE,
    gateway_document,
    render_gateway,
)


@pytest.fixture
def config() -> GatewayConfig:
    return GatewayConfig(
        namespace=NAMESPACE,
        crd_name=GATEWAY_NAME,
        source_name=SOURCE_DOMAIN,
        destination_name=DESTINATION_DOMAIN,
        source_route_name=SOURCE_ROUTE,
        destination_route_name=DESTINATION_ROUTE,
    )


class TestParseGatewayYaml:
    """Tests for parse_gateway_yaml."""

    def test_parses_routes_and_domains(self) -> None:
        gateway = parse_gateway_yaml(render_gateway())

        assert gateway.domain_names == [SOURCE_DOMAIN, DESTINATION_DOMAIN]
        assert gateway.route_names == [SOURCE_ROUTE, DESTINATION_ROUTE]
        route = gateway.get_route(DESTINATION_ROUTE)
        assert route.domain_name == DESTINATION_DOMAIN
        assert route.client_authentication_type == "plain"
        assert route.streaming_domain.bootstrap_server_id == "cc-1"

    def test_empty_document(self) -> None:
        assert parse_gateway_yaml("").route_names == []

    def test_invalid_yaml(self) -> None:
        with pytest.raises(GatewayValidationError, match="failed to parse"):
            parse_gateway_yaml("spec: [unclosed")

    def test_non_mapping(self) -> None:
        with pytest.raises(GatewayValidationError, match="mapping"):
            parse_gateway_yaml("- a\n- b\n")

    def test_wrong_shape(self) -> None:
        with pytest.raises(GatewayValidationError, match="unexpected shape"):
            parse_gateway_yaml("spec:\n  routes: 5\n")

    def test_find_route_index(self) -> None:
        gateway = parse_gateway_yaml(render_gateway())
        assert gateway.find_route_index(DESTINATION_ROUTE) == 1
        with pytest.raises(SwitchoverError, match="Available routes"):
            gateway.find_route_index("missing")


class TestValidateGateway:
    """Tests for validate_gateway."""

    def test_valid_gateway(self, config) -> None:
        validate_gateway(render_gateway(), config)

    def test_missing_source_domain(self, config) -> None:
        document = gateway_document()
        document["spec"]["streamingDomains"].pop(0)

        with pytest.raises(GatewayValidationError) as exc_info:
            validate_gateway(render_gateway(document), config)

        message = str(exc_info.value)
        assert f"source streaming domain '{SOURCE_DOMAIN}' not found" in message
        assert DESTINATION_DOMAIN in message

    def test_missing_destination_route(self, config) -> None:
        document = gateway_document()
        document["spec"]["routes"].pop(1)

        with pytest.raises(GatewayValidationError, match=f"destination route '{DESTINATION_ROUTE}'"):
            validate_gateway(render_gateway(document), config)

    def test_source_route_on_wrong_domain(self, config) -> None:
        document = gateway_document()
        document["spec"]["routes"][0]["streamingDomain"]["name"] = DESTINATION_DOMAIN

        with pytest.raises(GatewayValidationError, match="does not match expected source"):
            validate_gateway(render_gateway(document), config)

    def test_source_route_must_be_passthrough_for_dest_swap(self, config) -> None:
        document = gateway_document()
        document["spec"]["routes"][0]["security"]["auth"] = "swap"

        with pytest.raises(GatewayValidationError) as exc_info:
            validate_gateway(render_gateway(document), config)

        assert str(exc_info.value) == (
            f"source route '{SOURCE_ROUTE}' expected to be 'passthrough' for auth mode "
            "'dest_swap', found 'swap'"
        )

    def test_source_swap_mode_requires_swap(self, config) -> None:
        source_swap = GatewayConfig(
            namespace=config.namespace,
            crd_name=config.crd_name,
            source_name=config.source_name,
            destination_name=config.destination_name,
            source_route_name=config.source_route_name,
            destination_route_name=config.destination_route_name,
            auth_mode=AuthMode.SOURCE_SWAP,
        )
        with pytest.raises(GatewayValidationError, match="expected to be 'swap'"):
            validate_gateway(render_gateway(), source_swap)

        document = gateway_document()
        document["spec"]["routes"][0]["security"]["auth"] = "swap"
        validate_gateway(render_gateway(document), source_swap)

    def test_destination_route_missing_client_auth(self, config) -> None:
        document = gateway_document()
        del document["spec"]["routes"][1]["security"]["client"]

        with pytest.raises(GatewayValidationError) as exc_info:
            validate_gateway(render_gateway(document), config)

        assert str(exc_info.value) == (
            f"destination route '{DESTINATION_ROUTE}' is missing client authentication configuration"
        )

    def test_destination_route_missing_cluster_auth(self, config) -> None:
        document = gateway_document()
        document["spec"]["routes"][1]["security"]["cluster"]["authentication"] = {}

        with pytest.raises(GatewayValidationError, match="missing cluster authentication"):
            validate_gateway(render_gateway(document), config)
