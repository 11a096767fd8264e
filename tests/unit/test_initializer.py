"""
Unit tests for MigrationInitializer.

Tests cover:
- Successful validation records topics, link configs and the gateway YAML
- Missing topics, inactive topics and an empty link
- Permission and gateway validation failures leave the record untouched
- Adopting every mirror topic when none were requested
"""

import pytest

from gatewaycutover.exceptions import (
    GatewayValidationError,
    InactiveMirrorTopicsError,
    MigrationValidationError,
    PermissionDeniedError,
    TopicNotFoundError,
)
from gatewaycutover.initializer import MigrationInitializer
from tests.fixtures import (
    NAMESPACE,
    FakeClusterLinkClient,
    FakeGatewayClient,
    gateway_document,
    mirror,
    render_gateway,
)


def snapshot(record) -> dict:
    return record.model_dump(exclude={"updated_at"})


class TestMigrationInitializer:
    """Tests for MigrationInitializer.run."""

    @pytest.mark.asyncio
    async def test_success_records_snapshots(self, record, gateway_client, cluster_link) -> None:
        initializer = MigrationInitializer(gateway_client, cluster_link, enable_tracing=False)

        await initializer.run(record)

        assert record.topics == ["orders", "payments"]
        assert record.cluster_link_topics == ["orders", "payments", "audit"]
        assert record.cluster_link_configs == {"consumer.offset.sync.enable": "true"}
        assert record.gateway_original_yaml == gateway_client.gateway_yaml
        assert gateway_client.permission_checks == [
            ("update", "gateways", "platform.confluent.io", NAMESPACE)
        ]

    @pytest.mark.asyncio
    async def test_missing_topic_names_it(self, record, gateway_client, cluster_link) -> None:
        record.topics = ["orders", "refunds"]
        before = snapshot(record)
        initializer = MigrationInitializer(gateway_client, cluster_link, enable_tracing=False)

        with pytest.raises(TopicNotFoundError) as exc_info:
            await initializer.run(record)

        assert exc_info.value.topic == "refunds"
        assert str(exc_info.value) == "topic refunds not found in cluster link"
        assert snapshot(record) == before

    @pytest.mark.asyncio
    async def test_permission_denied_stops_before_fetching(self, record, cluster_link) -> None:
        gateway = FakeGatewayClient(allowed=False)
        initializer = MigrationInitializer(gateway, cluster_link, enable_tracing=False)

        with pytest.raises(PermissionDeniedError):
            await initializer.run(record)

        assert gateway.get_calls == 0
        assert cluster_link.list_calls == 0
        assert record.gateway_original_yaml == ""

    @pytest.mark.asyncio
    async def test_invalid_gateway(self, record, cluster_link) -> None:
        document = gateway_document()
        document["spec"]["routes"][0]["security"]["auth"] = "swap"
        gateway = FakeGatewayClient(render_gateway(document))
        initializer = MigrationInitializer(gateway, cluster_link, enable_tracing=False)

        with pytest.raises(GatewayValidationError, match="expected to be 'passthrough'"):
            await initializer.run(record)

        assert cluster_link.list_calls == 0

    @pytest.mark.asyncio
    async def test_inactive_mirror_topics(self, record, gateway_client) -> None:
        cluster_link = FakeClusterLinkClient(
            [mirror("orders"), mirror("payments", status="PAUSED"), mirror("audit", status="FAILED")]
        )
        initializer = MigrationInitializer(gateway_client, cluster_link, enable_tracing=False)

        with pytest.raises(InactiveMirrorTopicsError) as exc_info:
            await initializer.run(record)

        assert exc_info.value.topics == ["payments (status: PAUSED)", "audit (status: FAILED)"]
        assert record.cluster_link_topics == []
        assert cluster_link.configs_calls == 0

    @pytest.mark.asyncio
    async def test_inactive_mirror_outside_requested_topics(
        self, record, gateway_client
    ) -> None:
        record.topics = ["orders"]
        cluster_link = FakeClusterLinkClient([mirror("orders"), mirror("payments", status="PAUSED")])
        initializer = MigrationInitializer(gateway_client, cluster_link, enable_tracing=False)

        with pytest.raises(InactiveMirrorTopicsError) as exc_info:
            await initializer.run(record)

        assert exc_info.value.topics == ["payments (status: PAUSED)"]
        assert record.cluster_link_topics == []

    @pytest.mark.asyncio
    async def test_empty_link_is_rejected(self, record, gateway_client) -> None:
        initializer = MigrationInitializer(gateway_client, FakeClusterLinkClient([]), enable_tracing=False)

        with pytest.raises(MigrationValidationError, match="no mirror topics"):
            await initializer.run(record)

    @pytest.mark.asyncio
    async def test_no_requested_topics_adopts_all(self, record, gateway_client, cluster_link) -> None:
        record.topics = []
        initializer = MigrationInitializer(gateway_client, cluster_link, enable_tracing=False)

        await initializer.run(record)

        assert record.topics == ["orders", "payments", "audit"]

    @pytest.mark.asyncio
    async def test_gateway_snapshot_is_not_overwritten(
        self, record, gateway_client, cluster_link
    ) -> None:
        record.gateway_original_yaml = "original: true\n"
        initializer = MigrationInitializer(gateway_client, cluster_link, enable_tracing=False)

        await initializer.run(record)

        assert record.gateway_original_yaml == "original: true\n"

    @pytest.mark.asyncio
    async def test_records_span(self, record, gateway_client, cluster_link, mock_tracer) -> None:
        initializer = MigrationInitializer(gateway_client, cluster_link, tracer=mock_tracer)
        await initializer.run(record)

        assert mock_tracer.span_names == ["gatewaycutover.initializer.run"]
