"""
Gateway client protocol.

The workflow steps only talk to Kubernetes through ``GatewayClient``, so
tests can drive them with an in-memory fake.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from gatewaycutover.models import AuthMode

if TYPE_CHECKING:
    from gatewaycutover.models import MigrationRecord

GATEWAY_GROUP = "platform.confluent.io"
GATEWAY_VERSION = "v1beta1"
GATEWAY_PLURAL = "gateways"

PatchOperation = dict[str, Any]
"""One RFC 6902 JSON-Patch operation."""


@dataclass(frozen=True)
class GatewayConfig:
    """
    Names the gateway validation and switchover work against.

    Attributes:
        namespace: Namespace of the gateway resource.
        crd_name: Name of the gateway resource.
        source_name: Source streaming domain.
        destination_name: Destination streaming domain.
        source_route_name: Route carrying client traffic today.
        destination_route_name: Pre-provisioned destination route.
        auth_mode: Credential swap direction.
        kube_config_path: Kube config file (empty = default loader).
    """

    namespace: str
    crd_name: str
    source_name: str
    destination_name: str
    source_route_name: str
    destination_route_name: str
    auth_mode: AuthMode = AuthMode.DEST_SWAP
    kube_config_path: str = ""

    @classmethod
    def from_record(cls, record: MigrationRecord) -> GatewayConfig:
        return cls(
            namespace=record.gateway_namespace,
            crd_name=record.gateway_crd_name,
            source_name=record.source_name,
            destination_name=record.destination_name,
            source_route_name=record.source_route_name,
            destination_route_name=record.destination_route_name,
            auth_mode=record.auth_mode,
            kube_config_path=record.kube_config_path,
        )


@runtime_checkable
class GatewayClient(Protocol):
    """
    Operations the cutover engine needs against the gateway resource.

    Implementations:
    - KubernetesGatewayClient: official kubernetes client
    - FakeGatewayClient (tests): in-memory gateway document
    """

    async def check_permissions(self, verb: str, resource: str, group: str, namespace: str) -> bool:
        """Return True if the caller may perform ``verb`` on the resource."""
        ...

    async def get_gateway_yaml(self, namespace: str, name: str) -> str:
        """Fetch the gateway resource rendered as YAML."""
        ...

    def validate_gateway(self, gateway_yaml: str, config: GatewayConfig) -> None:
        """
        Check the gateway shape.

        Raises:
            GatewayValidationError: On any mismatch.
        """
        ...

    async def patch_gateway(
        self,
        namespace: str,
        name: str,
        patch_ops: Sequence[PatchOperation],
    ) -> None:
        """Apply a JSON-Patch document in a single request."""
        ...

    async def wait_for_gateway_pods(
        self,
        namespace: str,
        name: str,
        poll_interval: float,
        timeout: float,
        *,
        expect_rollout: bool = True,
    ) -> None:
        """
        Wait for the gateway pods to be recycled and ready.

        With ``expect_rollout=False`` only readiness is awaited; used when the
        patch was applied by an earlier run.

        Raises:
            PodRecycleTimeoutError: If the pods are not recycled and ready in time.
        """
        ...


__all__ = [
    "GATEWAY_GROUP",
    "GATEWAY_VERSION",
    "GATEWAY_PLURAL",
    "PatchOperation",
    "GatewayConfig",
    "GatewayClient",
]
