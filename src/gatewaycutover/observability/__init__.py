"""
Observability utilities for gatewaycutover.

This module provides the composition-based tracer used by every cutover
component, plus the standard span attribute keys.

Example:
    >>> from gatewaycutover.observability import create_tracer
    >>>
    >>> class GatewaySwitchover:
    ...     def __init__(self, enable_tracing: bool = True):
    ...         self._tracer = create_tracer(__name__, enable_tracing)
"""

from gatewaycutover.observability.attributes import (
    ATTR_ACTIVE_COUNT,
    ATTR_CLUSTER_ID,
    ATTR_CLUSTER_LINK_NAME,
    ATTR_GATEWAY_NAME,
    ATTR_GATEWAY_NAMESPACE,
    ATTR_LAG_MAX_WAIT_SECONDS,
    ATTR_LAG_PARTITIONS_OVER,
    ATTR_LAG_THRESHOLD,
    ATTR_MIGRATION_EVENT,
    ATTR_MIGRATION_ID,
    ATTR_MIGRATION_PHASE,
    ATTR_MIGRATION_TARGET_PHASE,
    ATTR_PATCH_OPERATIONS,
    ATTR_POLL_COUNT,
    ATTR_PROMOTABLE_COUNT,
    ATTR_ROUTE_NAME,
    ATTR_TOPIC_COUNT,
)
from gatewaycutover.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)

__all__ = [
    # Tracer (composition-based API)
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
    # Attributes - Migration
    "ATTR_MIGRATION_ID",
    "ATTR_MIGRATION_PHASE",
    "ATTR_MIGRATION_EVENT",
    "ATTR_MIGRATION_TARGET_PHASE",
    "ATTR_TOPIC_COUNT",
    # Attributes - Lag
    "ATTR_LAG_THRESHOLD",
    "ATTR_LAG_MAX_WAIT_SECONDS",
    "ATTR_LAG_PARTITIONS_OVER",
    "ATTR_POLL_COUNT",
    # Attributes - Promotion
    "ATTR_PROMOTABLE_COUNT",
    "ATTR_ACTIVE_COUNT",
    # Attributes - Gateway
    "ATTR_GATEWAY_NAMESPACE",
    "ATTR_GATEWAY_NAME",
    "ATTR_ROUTE_NAME",
    "ATTR_PATCH_OPERATIONS",
    # Attributes - Cluster link
    "ATTR_CLUSTER_ID",
    "ATTR_CLUSTER_LINK_NAME",
]
