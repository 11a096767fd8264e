"""
Cluster link client protocol and mirror-topic helpers.

The workflow steps only talk to the cluster-link API through
``ClusterLinkClient``. The helpers here classify mirror topics the same
way for the initializer, the lag monitor and the promotion controller.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from gatewaycutover.exceptions import TopicNotFoundError
from gatewaycutover.models import MirrorTopic, PromoteMirrorTopicsResponse

if TYPE_CHECKING:
    from gatewaycutover.models import MigrationRecord


@dataclass(frozen=True)
class ClusterLinkConfig:
    """
    Connection details for one cluster link.

    Attributes:
        rest_endpoint: Base URL of the cluster REST API.
        cluster_id: Destination cluster ID.
        link_name: Cluster link name.
        api_key: REST API key.
        api_secret: REST API secret.
        topics: Topics of the migration (empty = all).
    """

    rest_endpoint: str
    cluster_id: str
    link_name: str
    api_key: str = field(default="", repr=False)
    api_secret: str = field(default="", repr=False)
    topics: tuple[str, ...] = ()

    @classmethod
    def from_record(cls, record: MigrationRecord) -> ClusterLinkConfig:
        return cls(
            rest_endpoint=record.cluster_rest_endpoint,
            cluster_id=record.cluster_id,
            link_name=record.cluster_link_name,
            api_key=record.cluster_api_key,
            api_secret=record.cluster_api_secret,
            topics=tuple(record.topics),
        )


@runtime_checkable
class ClusterLinkClient(Protocol):
    """
    Operations the cutover engine needs from the cluster-link API.

    Implementations:
    - RestClusterLinkClient: httpx client against the Kafka REST v3 API
    - FakeClusterLinkClient (tests): scripted in-memory responses
    """

    async def list_mirror_topics(self, config: ClusterLinkConfig) -> list[MirrorTopic]:
        """List every mirror topic on the link with per-partition lag."""
        ...

    async def list_configs(self, config: ClusterLinkConfig) -> dict[str, str]:
        """Fetch the link's configuration key/value pairs."""
        ...

    def validate_topics(self, requested: Sequence[str], available: Sequence[str]) -> None:
        """
        Check every requested topic is mirrored by the link.

        Raises:
            TopicNotFoundError: Naming the first missing topic.
        """
        ...

    async def promote_mirror_topics(
        self,
        config: ClusterLinkConfig,
        topic_names: Sequence[str],
    ) -> PromoteMirrorTopicsResponse:
        """Request promotion of the given mirror topics."""
        ...


def validate_topics(requested: Sequence[str], available: Sequence[str]) -> None:
    """
    Check every requested topic appears among the available mirror topics.

    Args:
        requested: Topics the operator asked for.
        available: Mirror topic names reported by the link.

    Raises:
        TopicNotFoundError: For the first requested topic that is missing.
    """
    known = set(available)
    for topic in requested:
        if topic not in known:
            raise TopicNotFoundError(topic)


def classify_mirror_topics(mirrors: Iterable[MirrorTopic]) -> tuple[list[str], list[str]]:
    """
    Split mirror topics into all names and inactive descriptions.

    Returns:
        Tuple of (every topic name, ``"<name> (status: <status>)"`` for each
        topic that is not ACTIVE).
    """
    names: list[str] = []
    inactive: list[str] = []
    for mirror in mirrors:
        names.append(mirror.mirror_topic_name)
        if not mirror.is_active:
            inactive.append(f"{mirror.mirror_topic_name} (status: {mirror.mirror_status})")
    return names, inactive


def restrict_to_topics(mirrors: Iterable[MirrorTopic], topics: Iterable[str]) -> list[MirrorTopic]:
    """Keep only the mirrors whose name is in ``topics``."""
    wanted = set(topics)
    return [m for m in mirrors if m.mirror_topic_name in wanted]


def active_topics_with_zero_lag(mirrors: Iterable[MirrorTopic]) -> list[str]:
    """Names of ACTIVE mirrors with zero lag on every partition."""
    return [m.mirror_topic_name for m in mirrors if m.is_active and m.has_zero_lag]


def count_active_mirror_topics(mirrors: Iterable[MirrorTopic]) -> int:
    return sum(1 for m in mirrors if m.is_active)


__all__ = [
    "ClusterLinkConfig",
    "ClusterLinkClient",
    "validate_topics",
    "classify_mirror_topics",
    "restrict_to_topics",
    "active_topics_with_zero_lag",
    "count_active_mirror_topics",
]
