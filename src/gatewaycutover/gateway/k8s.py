"""
Gateway client backed by the official Kubernetes Python client.

The kubernetes client is synchronous, so every API call runs in a worker
thread through ``asyncio.to_thread``. Waits are ``asyncio.sleep`` calls in
the calling task so cancellation interrupts them immediately.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

import yaml
from kubernetes import client
from kubernetes import config as kube_config
from kubernetes.client.exceptions import ApiException
from kubernetes.config.config_exception import ConfigException

from gatewaycutover.exceptions import GatewayError, PodRecycleTimeoutError
from gatewaycutover.gateway.client import (
    GATEWAY_GROUP,
    GATEWAY_PLURAL,
    GATEWAY_VERSION,
    GatewayConfig,
    PatchOperation,
)
from gatewaycutover.gateway.resource import validate_gateway

logger = logging.getLogger(__name__)

T = TypeVar("T")


def load_api_client(kube_config_path: str = "") -> client.ApiClient:
    """
    Build an ApiClient without touching the global kubernetes configuration.

    An explicit path wins. Otherwise the in-cluster service account is tried
    first, then the default kube config location.

    Raises:
        GatewayError: If no usable configuration is found.
    """
    try:
        if kube_config_path:
            return kube_config.new_client_from_config(config_file=kube_config_path)
        configuration = client.Configuration()
        try:
            kube_config.load_incluster_config(client_configuration=configuration)
        except ConfigException:
            return kube_config.new_client_from_config()
        return client.ApiClient(configuration)
    except ConfigException as e:
        raise GatewayError(f"failed to load kube config: {e}") from e


def is_pod_ready(pod: Any) -> bool:
    """A pod is ready when it is Running and its Ready condition is True."""
    status = pod.status
    if status is None or status.phase != "Running":
        return False
    for condition in status.conditions or []:
        if condition.type == "Ready":
            return condition.status == "True"
    return False


class KubernetesGatewayClient:
    """
    GatewayClient implementation for Confluent for Kubernetes gateways.

    Args:
        kube_config_path: Kube config file (empty = in-cluster, then default).
        api_client: Pre-built ApiClient; skips config loading when given.

    Example:
        >>> gateway = KubernetesGatewayClient("~/.kube/config")
        >>> allowed = await gateway.check_permissions(
        ...     "update", "gateways", "platform.confluent.io", "confluent"
        ... )
    """

    def __init__(
        self,
        kube_config_path: str = "",
        *,
        api_client: client.ApiClient | None = None,
    ) -> None:
        self._kube_config_path = kube_config_path
        self._api_client = api_client

    @property
    def api_client(self) -> client.ApiClient:
        if self._api_client is None:
            self._api_client = load_api_client(self._kube_config_path)
        return self._api_client

    async def _call(self, action: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except ApiException as e:
            raise GatewayError(f"failed to {action}: {e.status} {e.reason}") from e

    async def check_permissions(self, verb: str, resource: str, group: str, namespace: str) -> bool:
        """
        Ask the API server whether the current identity may act on a resource.

        Uses a SelfSubjectAccessReview, so no extra RBAC is needed to ask.
        """
        review = client.V1SelfSubjectAccessReview(
            spec=client.V1SelfSubjectAccessReviewSpec(
                resource_attributes=client.V1ResourceAttributes(
                    namespace=namespace,
                    verb=verb,
                    group=group,
                    resource=resource,
                )
            )
        )
        api = client.AuthorizationV1Api(self.api_client)
        response = await self._call(
            "check permissions", api.create_self_subject_access_review, review
        )
        allowed = bool(response.status and response.status.allowed)
        logger.info(
            "Permission check %s %s.%s in %s: allowed=%s",
            verb,
            resource,
            group,
            namespace,
            allowed,
        )
        return allowed

    async def get_gateway_yaml(self, namespace: str, name: str) -> str:
        api = client.CustomObjectsApi(self.api_client)
        gateway = await self._call(
            f"get gateway {namespace}/{name}",
            api.get_namespaced_custom_object,
            GATEWAY_GROUP,
            GATEWAY_VERSION,
            namespace,
            GATEWAY_PLURAL,
            name,
        )
        return yaml.safe_dump(gateway, sort_keys=False)

    def validate_gateway(self, gateway_yaml: str, config: GatewayConfig) -> None:
        validate_gateway(gateway_yaml, config)

    async def patch_gateway(
        self,
        namespace: str,
        name: str,
        patch_ops: Sequence[PatchOperation],
    ) -> None:
        """
        Apply a JSON-Patch document to the gateway in one request.

        A list body is sent as ``application/json-patch+json`` by the client.
        """
        api = client.CustomObjectsApi(self.api_client)
        await self._call(
            f"patch gateway {namespace}/{name}",
            api.patch_namespaced_custom_object,
            GATEWAY_GROUP,
            GATEWAY_VERSION,
            namespace,
            GATEWAY_PLURAL,
            name,
            list(patch_ops),
        )
        logger.info("Patched gateway %s/%s with %d operations", namespace, name, len(patch_ops))

    async def _list_pods(self, namespace: str, label_selector: str) -> list[Any]:
        api = client.CoreV1Api(self.api_client)
        pods = await self._call(
            "list gateway pods",
            api.list_namespaced_pod,
            namespace,
            label_selector=label_selector,
        )
        return list(pods.items or [])

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
        Wait for the operator to roll the gateway pods after a patch.

        Works in two phases sharing one deadline:
            1. Rollout started: a pod UID not seen before, or a pod not Ready.
               Skipped when ``expect_rollout`` is False.
            2. Rollout complete: every pod matching ``app=<name>`` is Ready.

        Raises:
            PodRecycleTimeoutError: If either phase does not finish in time.
            GatewayError: If listing pods fails.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        label_selector = f"app={name}"

        if expect_rollout:
            logger.info(
                "Waiting for gateway rollout to start in %s (selector %s)",
                namespace,
                label_selector,
            )
            initial_uids = {
                pod.metadata.uid for pod in await self._list_pods(namespace, label_selector)
            }
            logger.debug("Recorded %d initial gateway pods", len(initial_uids))

            rollout_started = False
            while loop.time() < deadline:
                for pod in await self._list_pods(namespace, label_selector):
                    if pod.metadata.uid not in initial_uids:
                        logger.info("New pod %s detected, rollout has started", pod.metadata.name)
                        rollout_started = True
                        break
                    if not is_pod_ready(pod):
                        logger.info(
                            "Pod %s not ready (phase %s), rollout has started",
                            pod.metadata.name,
                            pod.status.phase if pod.status else None,
                        )
                        rollout_started = True
                        break
                if rollout_started:
                    break
                await asyncio.sleep(poll_interval)

            if not rollout_started:
                logger.error("Gateway rollout did not start within %.0fs", timeout)
                raise PodRecycleTimeoutError(namespace, name, timeout)

            logger.info("Rollout started, waiting for all gateway pods to become ready")
        else:
            logger.info("Waiting for all gateway pods in %s to be ready", namespace)

        while loop.time() < deadline:
            pods = await self._list_pods(namespace, label_selector)
            if not pods:
                logger.info("No gateway pods found yet, waiting")
            else:
                ready = sum(1 for pod in pods if is_pod_ready(pod))
                if ready == len(pods):
                    logger.info("All %d gateway pods are ready", len(pods))
                    return
                logger.info("Rollout in progress: %d/%d pods ready", ready, len(pods))
            await asyncio.sleep(poll_interval)

        raise PodRecycleTimeoutError(namespace, name, timeout)


__all__ = ["KubernetesGatewayClient", "load_api_client", "is_pod_ready"]
