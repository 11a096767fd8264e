"""
MigrationInitializer - pre-flight validation and audit snapshots.

Runs when a migration leaves the ``uninitialized`` phase. Every step is
read-only against the external systems; any failure cancels the transition
and leaves the record untouched.

Initialization Sequence:
    1. Check the caller may update gateway resources in the namespace
    2. Fetch the gateway and validate its domains, routes and auth modes
    3. List mirror topics on the cluster link; check the requested topics
       exist (or adopt all of them) and that every mirror is ACTIVE
    4. Fetch the cluster link configuration
    5. Record topics, configs and the original gateway YAML on the migration
"""

from __future__ import annotations

import logging

from gatewaycutover.clusterlink import (
    ClusterLinkClient,
    ClusterLinkConfig,
    classify_mirror_topics,
)
from gatewaycutover.exceptions import (
    InactiveMirrorTopicsError,
    MigrationValidationError,
    PermissionDeniedError,
)
from gatewaycutover.gateway import GATEWAY_GROUP, GATEWAY_PLURAL, GatewayClient, GatewayConfig
from gatewaycutover.models import MigrationRecord
from gatewaycutover.observability import (
    ATTR_CLUSTER_ID,
    ATTR_CLUSTER_LINK_NAME,
    ATTR_GATEWAY_NAME,
    ATTR_GATEWAY_NAMESPACE,
    ATTR_MIGRATION_ID,
    Tracer,
    create_tracer,
)

logger = logging.getLogger(__name__)


class MigrationInitializer:
    """
    Validates the environment and snapshots it onto the migration record.

    Args:
        gateway: Gateway client.
        cluster_link: Cluster link client.
        tracer: Optional custom Tracer.
        enable_tracing: Create an OpenTelemetry tracer when no tracer is given.
    """

    def __init__(
        self,
        gateway: GatewayClient,
        cluster_link: ClusterLinkClient,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._gateway = gateway
        self._cluster_link = cluster_link
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    async def run(self, record: MigrationRecord) -> None:
        """
        Validate and snapshot.

        On success ``record`` gains ``topics``, ``cluster_link_topics``,
        ``cluster_link_configs`` and, if not captured before,
        ``gateway_original_yaml``.

        Raises:
            PermissionDeniedError: If the gateway may not be updated.
            GatewayValidationError: If the gateway shape is wrong.
            TopicNotFoundError: If a requested topic is not on the link.
            InactiveMirrorTopicsError: If any mirror topic on the link is not ACTIVE.
            MigrationValidationError: If the link has no mirror topics.
        """
        gateway_config = GatewayConfig.from_record(record)
        link_config = ClusterLinkConfig.from_record(record)

        with self._tracer.span(
            "gatewaycutover.initializer.run",
            {
                ATTR_MIGRATION_ID: record.migration_id,
                ATTR_GATEWAY_NAMESPACE: gateway_config.namespace,
                ATTR_GATEWAY_NAME: gateway_config.crd_name,
                ATTR_CLUSTER_ID: link_config.cluster_id,
                ATTR_CLUSTER_LINK_NAME: link_config.link_name,
            },
        ):
            await self._check_permissions(gateway_config.namespace)

            logger.info(
                "Fetching gateway %s/%s", gateway_config.namespace, gateway_config.crd_name
            )
            gateway_yaml = await self._gateway.get_gateway_yaml(
                gateway_config.namespace, gateway_config.crd_name
            )
            self._gateway.validate_gateway(gateway_yaml, gateway_config)

            logger.info(
                "Listing mirror topics on cluster link %s (cluster %s)",
                link_config.link_name,
                link_config.cluster_id,
            )
            mirrors = await self._cluster_link.list_mirror_topics(link_config)
            if not mirrors:
                raise MigrationValidationError(
                    f"no mirror topics found in cluster link '{link_config.link_name}'"
                )
            link_topics, inactive = classify_mirror_topics(mirrors)

            if record.topics:
                logger.info("Validating %d requested topics", len(record.topics))
                self._cluster_link.validate_topics(record.topics, link_topics)
                topics = list(record.topics)
            else:
                logger.info("No topics requested, adopting all %d mirror topics", len(link_topics))
                topics = list(link_topics)

            if inactive:
                raise InactiveMirrorTopicsError(inactive)

            configs = await self._cluster_link.list_configs(link_config)

        record.topics = topics
        record.cluster_link_topics = link_topics
        record.cluster_link_configs = configs
        if not record.gateway_original_yaml:
            record.gateway_original_yaml = gateway_yaml
        record.touch()
        logger.info(
            "Migration %s initialized with %d topics (%d on link)",
            record.migration_id,
            len(topics),
            len(link_topics),
        )

    async def _check_permissions(self, namespace: str) -> None:
        allowed = await self._gateway.check_permissions(
            "update", GATEWAY_PLURAL, GATEWAY_GROUP, namespace
        )
        if not allowed:
            raise PermissionDeniedError("update", GATEWAY_PLURAL, namespace)


__all__ = ["MigrationInitializer"]
