"""
LagMonitor - wait for mirror lag to drain before fencing.

The LagMonitor is the work done when a migration leaves the ``initialized``
phase. It polls the cluster link until every partition of every migration
topic has a lag strictly below the threshold, or the wait budget runs out.

Responsibilities:
    - Poll mirror topics at a fixed interval
    - Restrict the check to the migration's topics
    - Treat ``lag >= threshold`` as not caught up; zero lag always passes,
      so a threshold of 0 requires every partition to be at 0
    - Log a bounded sample of lagging partitions on each poll
    - Keep the last poll as a LagReport for status output

Usage:
    >>> monitor = LagMonitor(cluster_link, config=MigrationConfig())
    >>> report = await monitor.wait_for_lags(
    ...     link_config, threshold=100, max_wait_seconds=600
    ... )
    >>> report.max_lag
    42

Cancellation:
    Every wait is an ``asyncio.sleep`` in the calling task, so cancelling
    the task interrupts the monitor immediately with ``CancelledError``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from gatewaycutover.clusterlink import ClusterLinkClient, ClusterLinkConfig, restrict_to_topics
from gatewaycutover.exceptions import LagTimeoutError
from gatewaycutover.models import MigrationConfig, MirrorTopic
from gatewaycutover.observability import (
    ATTR_CLUSTER_LINK_NAME,
    ATTR_LAG_MAX_WAIT_SECONDS,
    ATTR_LAG_PARTITIONS_OVER,
    ATTR_LAG_THRESHOLD,
    ATTR_POLL_COUNT,
    ATTR_TOPIC_COUNT,
    Tracer,
    create_tracer,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PartitionLag:
    """Lag of one topic partition that is not caught up."""

    topic: str
    partition: int
    lag: int


@dataclass(frozen=True)
class LagReport:
    """
    Result of one lag poll.

    Attributes:
        poll: 1-based poll number within the wait.
        threshold: Threshold the partitions were compared against.
        partitions_checked: Partitions of migration topics seen in the poll.
        lagging: Partitions with ``lag >= threshold`` and non-zero lag.
        max_lag: Highest lag seen across checked partitions.
        total_lag: Sum of lag across checked partitions.
        measured_at: When the poll completed.
    """

    poll: int
    threshold: int
    partitions_checked: int
    lagging: tuple[PartitionLag, ...] = ()
    max_lag: int = 0
    total_lag: int = 0
    measured_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def caught_up(self) -> bool:
        return not self.lagging

    @classmethod
    def from_mirrors(cls, mirrors: Sequence[MirrorTopic], threshold: int, poll: int) -> LagReport:
        lagging: list[PartitionLag] = []
        checked = 0
        max_lag = 0
        total_lag = 0
        for mirror in mirrors:
            for partition in mirror.mirror_lags:
                checked += 1
                max_lag = max(max_lag, partition.lag)
                total_lag += partition.lag
                if partition.lag >= threshold and partition.lag > 0:
                    lagging.append(
                        PartitionLag(mirror.mirror_topic_name, partition.partition, partition.lag)
                    )
        return cls(
            poll=poll,
            threshold=threshold,
            partitions_checked=checked,
            lagging=tuple(lagging),
            max_lag=max_lag,
            total_lag=total_lag,
        )


class LagMonitor:
    """
    Polls the cluster link until migration topics have caught up.

    Args:
        cluster_link: Client used to list mirror topics.
        config: Engine tunables (poll interval, log sample size).
        tracer: Optional custom Tracer.
        enable_tracing: Create an OpenTelemetry tracer when no tracer is given.
        clock: Monotonic clock in seconds.
        sleep: Async sleep function.
    """

    def __init__(
        self,
        cluster_link: ClusterLinkClient,
        *,
        config: MigrationConfig | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._cluster_link = cluster_link
        self._config = config or MigrationConfig()
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._clock = clock
        self._sleep = sleep
        self._last_report: LagReport | None = None

    @property
    def last_report(self) -> LagReport | None:
        """The most recent poll, if any."""
        return self._last_report

    async def wait_for_lags(
        self,
        link_config: ClusterLinkConfig,
        threshold: int,
        max_wait_seconds: float,
    ) -> LagReport | None:
        """
        Block until no migration partition has a non-zero ``lag >= threshold``.

        Args:
            link_config: Link connection details; ``topics`` is the migration set.
            threshold: Per-partition lag threshold.
            max_wait_seconds: Budget for the whole wait.

        Returns:
            The successful poll, or None if the migration has no topics.

        Raises:
            LagTimeoutError: If the budget runs out first.
            ClusterLinkError: If listing mirror topics fails.
            asyncio.CancelledError: If the calling task is cancelled.
        """
        topics = link_config.topics
        if not topics:
            logger.info("No topics to check, skipping lag wait")
            return None

        with self._tracer.span(
            "gatewaycutover.lag_monitor.wait",
            {
                ATTR_CLUSTER_LINK_NAME: link_config.link_name,
                ATTR_TOPIC_COUNT: len(topics),
                ATTR_LAG_THRESHOLD: threshold,
                ATTR_LAG_MAX_WAIT_SECONDS: max_wait_seconds,
            },
        ) as span:
            logger.info(
                "Waiting for lag below %d on %d topics (max wait %.0fs)",
                threshold,
                len(topics),
                max_wait_seconds,
            )
            start = self._clock()
            poll = 0

            while True:
                poll += 1
                mirrors = await self._cluster_link.list_mirror_topics(link_config)
                report = LagReport.from_mirrors(
                    restrict_to_topics(mirrors, topics), threshold, poll
                )
                self._last_report = report

                if report.caught_up:
                    logger.info(
                        "All %d partitions below lag threshold %d after %d polls (max lag %d)",
                        report.partitions_checked,
                        threshold,
                        poll,
                        report.max_lag,
                    )
                    if span is not None:
                        span.set_attribute(ATTR_POLL_COUNT, poll)
                    return report

                elapsed = self._clock() - start
                remaining = max_wait_seconds - elapsed
                if remaining <= 0:
                    if span is not None:
                        span.set_attribute(ATTR_POLL_COUNT, poll)
                        span.set_attribute(ATTR_LAG_PARTITIONS_OVER, len(report.lagging))
                    raise LagTimeoutError(threshold, elapsed, max(remaining, 0.0))

                self._log_lagging(report, elapsed, remaining)
                await self._sleep(min(self._config.lag_poll_interval, remaining))

    def _log_lagging(self, report: LagReport, elapsed: float, remaining: float) -> None:
        sample = report.lagging[: self._config.lag_sample_size]
        logger.info(
            "%d partitions at or above lag threshold %d (elapsed %.1fs, remaining %.1fs)",
            len(report.lagging),
            report.threshold,
            elapsed,
            remaining,
        )
        for item in sample:
            logger.info("  %s[%d] lag=%d", item.topic, item.partition, item.lag)
        if len(report.lagging) > len(sample):
            logger.info("  ... and %d more", len(report.lagging) - len(sample))


__all__ = ["PartitionLag", "LagReport", "LagMonitor"]
