"""
Cluster link access for the cutover engine.

- ClusterLinkClient: Protocol used by the workflow steps
- RestClusterLinkClient: Kafka REST v3 implementation on httpx
"""

from gatewaycutover.clusterlink.client import (
    ClusterLinkClient,
    ClusterLinkConfig,
    active_topics_with_zero_lag,
    classify_mirror_topics,
    count_active_mirror_topics,
    restrict_to_topics,
    validate_topics,
)
from gatewaycutover.clusterlink.rest import RestClusterLinkClient

__all__ = [
    "ClusterLinkClient",
    "ClusterLinkConfig",
    "RestClusterLinkClient",
    "validate_topics",
    "classify_mirror_topics",
    "restrict_to_topics",
    "active_topics_with_zero_lag",
    "count_active_mirror_topics",
]
