"""
Shared pytest fixtures for the gatewaycutover tests.

This module provides:
- Migration option and record fixtures matching the fake gateway document
- Fake gateway and cluster link clients (FakeGatewayClient, FakeClusterLinkClient)
- State store fixtures with instant retries
- A fast MigrationConfig so polling loops finish in milliseconds
"""

from __future__ import annotations

import pytest

from gatewaycutover.exceptions import ErrorHandler, RetryConfig
from gatewaycutover.models import (
    MigrationConfig,
    MigrationOptions,
    MigrationRecord,
    MigrationState,
)
from gatewaycutover.observability import MockTracer
from gatewaycutover.stores import FileStateStore, InMemoryStateStore
from tests.fixtures import (
    DESTINATION_DOMAIN,
    DESTINATION_ROUTE,
    GATEWAY_NAME,
    NAMESPACE,
    SOURCE_DOMAIN,
    SOURCE_ROUTE,
    FakeClusterLinkClient,
    FakeGatewayClient,
    mirror,
)

FAST_RETRY = RetryConfig(
    max_attempts=3,
    base_delay_ms=1.0,
    max_delay_ms=4.0,
    exponential_base=2.0,
    jitter_factor=0.0,
)


class RecordingSleep:
    """Async sleep replacement that records delays and returns immediately."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


# ============================================================================
# Configuration
# ============================================================================


@pytest.fixture
def migration_options() -> MigrationOptions:
    """Options for a two-topic migration against the fake gateway."""
    return MigrationOptions(
        gateway_namespace=NAMESPACE,
        gateway_crd_name=GATEWAY_NAME,
        source_name=SOURCE_DOMAIN,
        destination_name=DESTINATION_DOMAIN,
        source_route_name=SOURCE_ROUTE,
        destination_route_name=DESTINATION_ROUTE,
        cluster_id="lkc-abc123",
        cluster_rest_endpoint="https://pkc-abc123.us-east-1.aws.confluent.cloud:443",
        cluster_link_name="msk-to-cc",
        cluster_api_key="api-key",
        cluster_api_secret="api-secret",
        topics=("orders", "payments"),
        cc_bootstrap_endpoint="pkc-abc123.us-east-1.aws.confluent.cloud:9092",
    )


@pytest.fixture
def record(migration_options: MigrationOptions) -> MigrationRecord:
    return MigrationRecord.from_options("migration-test", migration_options)


@pytest.fixture
def fast_config() -> MigrationConfig:
    """Tunables with millisecond poll intervals."""
    return MigrationConfig(
        lag_poll_interval=0.001,
        promotion_poll_interval=0.001,
        pod_poll_interval=0.001,
        pod_ready_timeout=0.01,
        persistence_retry=FAST_RETRY,
    )


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def mock_tracer() -> MockTracer:
    return MockTracer()


# ============================================================================
# Collaborators
# ============================================================================


@pytest.fixture
def gateway_client() -> FakeGatewayClient:
    return FakeGatewayClient()


@pytest.fixture
def cluster_link() -> FakeClusterLinkClient:
    """Link mirroring orders, payments and audit, all caught up."""
    return FakeClusterLinkClient(
        [
            mirror("orders", lags=(0, 0, 0)),
            mirror("payments", lags=(0, 0)),
            mirror("audit", lags=(0,)),
        ]
    )


# ============================================================================
# Stores
# ============================================================================


@pytest.fixture
def error_handler(recording_sleep: RecordingSleep) -> ErrorHandler:
    return ErrorHandler(sleep=recording_sleep)


@pytest.fixture
def in_memory_store(error_handler: ErrorHandler) -> InMemoryStateStore:
    return InMemoryStateStore(retry_config=FAST_RETRY, error_handler=error_handler)


@pytest.fixture
def file_store(tmp_path, error_handler: ErrorHandler) -> FileStateStore:
    return FileStateStore(
        tmp_path / "migration-state.json",
        retry_config=FAST_RETRY,
        error_handler=error_handler,
    )


@pytest.fixture
def state() -> MigrationState:
    return MigrationState()
