"""
Cluster link client for the Kafka REST v3 API.

Talks to the destination cluster's REST endpoint with HTTP basic auth:

    GET  /kafka/v3/clusters/{id}/links/{link}/mirrors
    GET  /kafka/v3/clusters/{id}/links/{link}/configs
    POST /kafka/v3/clusters/{id}/links/{link}/mirrors:promote
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import httpx
from pydantic import ValidationError

from gatewaycutover.clusterlink.client import ClusterLinkConfig, validate_topics
from gatewaycutover.exceptions import ClusterLinkError
from gatewaycutover.models import MirrorTopic, PromoteMirrorTopicsResponse

logger = logging.getLogger(__name__)


class RestClusterLinkClient:
    """
    Async cluster-link client built on httpx.

    A new ``httpx.AsyncClient`` is opened per request so credentials can
    change between calls (they are supplied on each ``execute``).

    Args:
        timeout_seconds: Per-request timeout.
        transport: Optional httpx transport, e.g. ``httpx.MockTransport`` in tests.

    Example:
        >>> client = RestClusterLinkClient()
        >>> mirrors = await client.list_mirror_topics(config)
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout_seconds
        self._transport = transport

    def _client(self, config: ClusterLinkConfig) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=config.rest_endpoint.rstrip("/"),
            auth=(config.api_key, config.api_secret),
            timeout=self._timeout,
            transport=self._transport,
        )

    @staticmethod
    def _link_path(config: ClusterLinkConfig) -> str:
        return f"/kafka/v3/clusters/{config.cluster_id}/links/{config.link_name}"

    async def _get(self, config: ClusterLinkConfig, path: str) -> Any:
        try:
            async with self._client(config) as client:
                resp = await client.get(path)
        except httpx.HTTPError as e:
            raise ClusterLinkError(f"request to {path} failed: {e}") from e

        if resp.status_code != 200:
            raise ClusterLinkError(
                f"unexpected status code {resp.status_code}: {resp.text}",
                status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as e:
            raise ClusterLinkError(f"failed to decode response from {path}: {e}") from e

    async def list_mirror_topics(self, config: ClusterLinkConfig) -> list[MirrorTopic]:
        """
        List the mirror topics of the link.

        Returns:
            Every mirror topic with status and per-partition lag.

        Raises:
            ClusterLinkError: On transport errors, non-200 responses or bad payloads.
        """
        payload = await self._get(config, f"{self._link_path(config)}/mirrors")
        try:
            return [MirrorTopic.model_validate(item) for item in payload.get("data") or []]
        except (AttributeError, ValidationError) as e:
            raise ClusterLinkError(f"failed to parse mirror topics: {e}") from e

    async def list_configs(self, config: ClusterLinkConfig) -> dict[str, str]:
        """
        Fetch the link's configuration.

        Returns:
            Mapping of config name to value.
        """
        payload = await self._get(config, f"{self._link_path(config)}/configs")
        try:
            return {
                str(item["name"]): "" if item.get("value") is None else str(item["value"])
                for item in payload.get("data") or []
            }
        except (AttributeError, KeyError, TypeError) as e:
            raise ClusterLinkError(f"failed to parse cluster link configs: {e}") from e

    def validate_topics(self, requested: Sequence[str], available: Sequence[str]) -> None:
        validate_topics(requested, available)

    async def promote_mirror_topics(
        self,
        config: ClusterLinkConfig,
        topic_names: Sequence[str],
    ) -> PromoteMirrorTopicsResponse:
        """
        Request promotion of mirror topics.

        An empty name list returns an empty response without calling the API.

        Args:
            config: Link connection details.
            topic_names: Topics to promote.

        Returns:
            Per-topic promotion results.

        Raises:
            ClusterLinkError: On transport errors or a status other than 200/204.
        """
        if not topic_names:
            return PromoteMirrorTopicsResponse()

        path = f"{self._link_path(config)}/mirrors:promote"
        try:
            async with self._client(config) as client:
                resp = await client.post(path, json={"mirror_topic_names": list(topic_names)})
        except httpx.HTTPError as e:
            raise ClusterLinkError(f"request to {path} failed: {e}") from e

        if resp.status_code not in (200, 204):
            raise ClusterLinkError(
                f"unexpected status code {resp.status_code}: {resp.text}",
                status_code=resp.status_code,
            )

        if not resp.content:
            return PromoteMirrorTopicsResponse()
        try:
            return PromoteMirrorTopicsResponse.model_validate_json(resp.content)
        except ValidationError as e:
            raise ClusterLinkError(f"failed to parse promote response: {e}") from e


__all__ = ["RestClusterLinkClient"]
