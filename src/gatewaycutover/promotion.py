"""
PromotionController - promote mirror topics on the destination cluster.

Runs when a migration leaves the ``fenced`` phase. With writes to the source
blocked, mirror lag drains to zero and each mirror topic can be promoted to
a regular writable topic on the destination.

Loop body (one pass every ``promotion_poll_interval`` seconds):
    1. List mirror topics. None on the link means promotion is complete.
    2. Restrict to the migration's topics and count the ACTIVE ones.
       None active means promotion is complete.
    3. Active topics with zero lag on every partition are promotable.
       If none are promotable yet, wait and poll again.
    4. Otherwise send one promote request for all of them. Per-topic errors
       in the response are logged, not raised; the topic is still ACTIVE on
       the next pass and is retried.

Request failures are logged and retried on the next pass. Cancellation of
the calling task stops the loop immediately.

The completion check run when leaving ``promoting`` is a single poll that
fails if any migration topic is still ACTIVE.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from gatewaycutover.clusterlink import (
    ClusterLinkClient,
    ClusterLinkConfig,
    active_topics_with_zero_lag,
    count_active_mirror_topics,
    restrict_to_topics,
)
from gatewaycutover.exceptions import ClusterLinkError, PromotionIncompleteError
from gatewaycutover.models import MigrationConfig, MirrorTopic, PromoteMirrorTopicsResponse
from gatewaycutover.observability import (
    ATTR_ACTIVE_COUNT,
    ATTR_CLUSTER_LINK_NAME,
    ATTR_POLL_COUNT,
    ATTR_PROMOTABLE_COUNT,
    ATTR_TOPIC_COUNT,
    Tracer,
    create_tracer,
)

logger = logging.getLogger(__name__)


class PromotionController:
    """
    Promotes the migration's mirror topics until none remain active.

    Args:
        cluster_link: Client used to list and promote mirror topics.
        config: Engine tunables (promotion poll interval).
        tracer: Optional custom Tracer.
        enable_tracing: Create an OpenTelemetry tracer when no tracer is given.
        sleep: Async sleep function.

    Example:
        >>> controller = PromotionController(cluster_link)
        >>> await controller.promote_all(link_config)
        >>> await controller.check_completion(link_config)
    """

    def __init__(
        self,
        cluster_link: ClusterLinkClient,
        *,
        config: MigrationConfig | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._cluster_link = cluster_link
        self._config = config or MigrationConfig()
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._sleep = sleep

    def _scope(self, mirrors: Sequence[MirrorTopic], link_config: ClusterLinkConfig) -> list[MirrorTopic]:
        if not link_config.topics:
            return list(mirrors)
        return restrict_to_topics(mirrors, link_config.topics)

    async def promote_all(self, link_config: ClusterLinkConfig) -> int:
        """
        Promote every migration topic, polling until none is still active.

        Args:
            link_config: Link connection details; ``topics`` is the migration set.

        Returns:
            Number of passes performed.

        Raises:
            asyncio.CancelledError: If the calling task is cancelled.
        """
        interval = self._config.promotion_poll_interval
        with self._tracer.span(
            "gatewaycutover.promotion.promote_all",
            {
                ATTR_CLUSTER_LINK_NAME: link_config.link_name,
                ATTR_TOPIC_COUNT: len(link_config.topics),
            },
        ) as span:
            passes = 0
            while True:
                passes += 1
                if span is not None:
                    span.set_attribute(ATTR_POLL_COUNT, passes)

                try:
                    mirrors = await self._cluster_link.list_mirror_topics(link_config)
                except ClusterLinkError as e:
                    logger.warning(
                        "Failed to list mirror topics on pass %d, retrying in %.0fs: %s",
                        passes,
                        interval,
                        e,
                    )
                    await self._sleep(interval)
                    continue

                if not mirrors:
                    logger.info("Cluster link has no mirror topics, promotion complete")
                    return passes

                scoped = self._scope(mirrors, link_config)
                active = count_active_mirror_topics(scoped)
                if active == 0:
                    logger.info("No active mirror topics remain, promotion complete")
                    return passes

                promotable = active_topics_with_zero_lag(scoped)
                if not promotable:
                    logger.info(
                        "%d active mirror topics, none with zero lag yet; polling again in %.0fs",
                        active,
                        interval,
                    )
                    await self._sleep(interval)
                    continue

                await self._promote(link_config, promotable, active)
                await self._sleep(interval)

    async def _promote(
        self,
        link_config: ClusterLinkConfig,
        topic_names: list[str],
        active: int,
    ) -> None:
        with self._tracer.span(
            "gatewaycutover.promotion.promote",
            {
                ATTR_PROMOTABLE_COUNT: len(topic_names),
                ATTR_ACTIVE_COUNT: active,
            },
        ):
            logger.info(
                "Promoting %d of %d active mirror topics: %s",
                len(topic_names),
                active,
                ", ".join(topic_names),
            )
            try:
                response = await self._cluster_link.promote_mirror_topics(link_config, topic_names)
            except ClusterLinkError as e:
                logger.warning("Promote request failed, retrying on next pass: %s", e)
                return
            self._log_results(response)

    @staticmethod
    def _log_results(response: PromoteMirrorTopicsResponse) -> None:
        for result in response.data:
            if result.succeeded:
                logger.info("Promoted mirror topic %s", result.mirror_topic_name)
            else:
                logger.warning(
                    "Failed to promote mirror topic %s: code=%s message=%s",
                    result.mirror_topic_name,
                    result.error_code,
                    result.error_message,
                )

    async def check_completion(self, link_config: ClusterLinkConfig) -> None:
        """
        Confirm no migration topic is still mirroring.

        Raises:
            PromotionIncompleteError: Naming every topic still ACTIVE.
            ClusterLinkError: If listing mirror topics fails.
        """
        mirrors = await self._cluster_link.list_mirror_topics(link_config)
        still_active = [m.mirror_topic_name for m in self._scope(mirrors, link_config) if m.is_active]
        if still_active:
            raise PromotionIncompleteError(still_active)
        logger.info("Promotion confirmed complete for %d topics", len(link_config.topics))


__all__ = ["PromotionController"]
