"""
In-memory gateway for tests.

``gateway_document()`` returns a Gateway resource that passes validation
for the names used throughout the test suite; tests mutate the dict to
build failing variants and render it with ``render_gateway``.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import yaml

from gatewaycutover.gateway import GatewayConfig, PatchOperation, validate_gateway

NAMESPACE = "confluent"
GATEWAY_NAME = "kafka-gateway"
SOURCE_DOMAIN = "msk-source"
DESTINATION_DOMAIN = "cc-destination"
SOURCE_ROUTE = "msk-route"
DESTINATION_ROUTE = "cc-route"
ROUTE_ENDPOINT = "gateway.example.com:9092"


def gateway_document() -> dict[str, Any]:
    return {
        "apiVersion": "platform.confluent.io/v1beta1",
        "kind": "Gateway",
        "metadata": {"name": GATEWAY_NAME, "namespace": NAMESPACE},
        "spec": {
            "replicas": 2,
            "streamingDomains": [
                {"name": SOURCE_DOMAIN, "type": "kafka"},
                {"name": DESTINATION_DOMAIN, "type": "kafka"},
            ],
            "routes": [
                {
                    "name": SOURCE_ROUTE,
                    "endpoint": ROUTE_ENDPOINT,
                    "streamingDomain": {"name": SOURCE_DOMAIN, "bootstrapServerId": "msk-1"},
                    "security": {"auth": "passthrough"},
                },
                {
                    "name": DESTINATION_ROUTE,
                    "endpoint": "gateway.example.com:9192",
                    "streamingDomain": {"name": DESTINATION_DOMAIN, "bootstrapServerId": "cc-1"},
                    "security": {
                        "auth": "swap",
                        "client": {"authentication": {"type": "plain"}},
                        "cluster": {"authentication": {"type": "plain"}},
                    },
                },
            ],
        },
    }


def render_gateway(document: dict[str, Any] | None = None) -> str:
    return yaml.safe_dump(document if document is not None else gateway_document(), sort_keys=False)


def apply_patch(document: dict[str, Any], patch_ops: Sequence[PatchOperation]) -> dict[str, Any]:
    """Apply the ``add``/``replace`` JSON-Patch operations the switchover emits."""
    for op in patch_ops:
        *parents, last = op["path"].lstrip("/").split("/")
        target: Any = document
        for key in parents:
            target = target[int(key)] if isinstance(target, list) else target[key]
        if isinstance(target, list):
            if op["op"] == "add" and last == "-":
                target.append(op["value"])
            elif op["op"] == "add":
                target.insert(int(last), op["value"])
            else:
                target[int(last)] = op["value"]
        else:
            target[last] = op["value"]
    return document


class FakeGatewayClient:
    """
    GatewayClient backed by a YAML string.

    Patches are applied to ``gateway_yaml``, so a later fetch sees them.

    Attributes:
        gateway_yaml: Returned by ``get_gateway_yaml``.
        allowed: Result of ``check_permissions``.
        patches: Every patch document applied.
        pod_waits: Arguments of every ``wait_for_gateway_pods`` call.
        pod_wait_errors: Raised by successive ``wait_for_gateway_pods`` calls
            while non-empty.
        get_calls: Number of ``get_gateway_yaml`` calls.
    """

    def __init__(self, gateway_yaml: str | None = None, *, allowed: bool = True) -> None:
        self.gateway_yaml = gateway_yaml if gateway_yaml is not None else render_gateway()
        self.allowed = allowed
        self.permission_checks: list[tuple[str, str, str, str]] = []
        self.patches: list[list[PatchOperation]] = []
        self.pod_waits: list[tuple[str, str, float, float, bool]] = []
        self.pod_wait_errors: list[Exception] = []
        self.get_calls = 0

    @property
    def document(self) -> dict[str, Any]:
        return yaml.safe_load(self.gateway_yaml)

    async def check_permissions(self, verb: str, resource: str, group: str, namespace: str) -> bool:
        self.permission_checks.append((verb, resource, group, namespace))
        return self.allowed

    async def get_gateway_yaml(self, namespace: str, name: str) -> str:
        self.get_calls += 1
        return self.gateway_yaml

    def validate_gateway(self, gateway_yaml: str, config: GatewayConfig) -> None:
        validate_gateway(gateway_yaml, config)

    async def patch_gateway(
        self,
        namespace: str,
        name: str,
        patch_ops: Sequence[PatchOperation],
    ) -> None:
        self.patches.append(list(patch_ops))
        self.gateway_yaml = render_gateway(apply_patch(self.document, patch_ops))

    async def wait_for_gateway_pods(
        self,
        namespace: str,
        name: str,
        poll_interval: float,
        timeout: float,
        *,
        expect_rollout: bool = True,
    ) -> None:
        self.pod_waits.append((namespace, name, poll_interval, timeout, expect_rollout))
        if self.pod_wait_errors:
            raise self.pod_wait_errors.pop(0)
