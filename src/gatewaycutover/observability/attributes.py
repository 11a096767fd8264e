"""
Standard span attributes for gatewaycutover.

This module defines attribute constants used across all cutover components
for consistent span naming. They follow OpenTelemetry semantic conventions
where applicable.

Example:
    >>> from gatewaycutover.observability.attributes import (
    ...     ATTR_MIGRATION_ID,
    ...     ATTR_MIGRATION_PHASE,
    ... )
    >>>
    >>> with tracer.span(
    ...     "gatewaycutover.fsm.fire",
    ...     {
    ...         ATTR_MIGRATION_ID: migration_id,
    ...         ATTR_MIGRATION_PHASE: "initialized",
    ...     },
    ... ):
    ...     pass
"""

# =============================================================================
# Migration Attributes
# =============================================================================

ATTR_MIGRATION_ID = "gatewaycutover.migration.id"
"""Caller supplied migration identifier."""

ATTR_MIGRATION_PHASE = "gatewaycutover.migration.phase"
"""Phase the migration is in when the span starts."""

ATTR_MIGRATION_EVENT = "gatewaycutover.migration.event"
"""Event being fired on the migration state machine."""

ATTR_MIGRATION_TARGET_PHASE = "gatewaycutover.migration.target_phase"
"""Phase the migration moves to if the event succeeds."""

ATTR_TOPIC_COUNT = "gatewaycutover.migration.topic_count"
"""Number of topics covered by the migration (integer)."""

# =============================================================================
# Lag Attributes
# =============================================================================

ATTR_LAG_THRESHOLD = "gatewaycutover.lag.threshold"
"""Per-partition lag threshold (integer)."""

ATTR_LAG_MAX_WAIT_SECONDS = "gatewaycutover.lag.max_wait_seconds"
"""Maximum time to wait for lag to drain (float seconds)."""

ATTR_LAG_PARTITIONS_OVER = "gatewaycutover.lag.partitions_over_threshold"
"""Partitions at or above the threshold in the last poll (integer)."""

ATTR_POLL_COUNT = "gatewaycutover.poll.count"
"""Number of polls performed by a wait loop (integer)."""

# =============================================================================
# Promotion Attributes
# =============================================================================

ATTR_PROMOTABLE_COUNT = "gatewaycutover.promotion.promotable_count"
"""Topics promoted in a single promotion pass (integer)."""

ATTR_ACTIVE_COUNT = "gatewaycutover.promotion.active_count"
"""Active mirror topics seen in a promotion pass (integer)."""

# =============================================================================
# Gateway Attributes
# =============================================================================

ATTR_GATEWAY_NAMESPACE = "gatewaycutover.gateway.namespace"
"""Kubernetes namespace of the gateway resource."""

ATTR_GATEWAY_NAME = "gatewaycutover.gateway.name"
"""Name of the gateway custom resource."""

ATTR_ROUTE_NAME = "gatewaycutover.gateway.route"
"""Name of the gateway route being switched."""

ATTR_PATCH_OPERATIONS = "gatewaycutover.gateway.patch_operations"
"""Number of JSON-Patch operations applied (integer)."""

# =============================================================================
# Cluster Link Attributes
# =============================================================================

ATTR_CLUSTER_ID = "gatewaycutover.cluster_link.cluster_id"
"""Destination cluster ID that owns the cluster link."""

ATTR_CLUSTER_LINK_NAME = "gatewaycutover.cluster_link.name"
"""Name of the cluster link."""


__all__ = [
    "ATTR_MIGRATION_ID",
    "ATTR_MIGRATION_PHASE",
    "ATTR_MIGRATION_EVENT",
    "ATTR_MIGRATION_TARGET_PHASE",
    "ATTR_TOPIC_COUNT",
    "ATTR_LAG_THRESHOLD",
    "ATTR_LAG_MAX_WAIT_SECONDS",
    "ATTR_LAG_PARTITIONS_OVER",
    "ATTR_POLL_COUNT",
    "ATTR_PROMOTABLE_COUNT",
    "ATTR_ACTIVE_COUNT",
    "ATTR_GATEWAY_NAMESPACE",
    "ATTR_GATEWAY_NAME",
    "ATTR_ROUTE_NAME",
    "ATTR_PATCH_OPERATIONS",
    "ATTR_CLUSTER_ID",
    "ATTR_CLUSTER_LINK_NAME",
]
