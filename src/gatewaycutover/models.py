"""
Data models for the gateway cutover engine.

This module defines the phases and events of the cutover state machine,
the configuration objects passed into the engine, the persisted migration
records, and the cluster-link payloads consumed by the workflow steps.

Models in this module:

Enums:
    - MigrationPhase: Cutover lifecycle phases
    - MigrationEvent: Events that advance a migration one phase
    - AuthMode: Direction of the credential swap performed by the gateway

Configuration:
    - MigrationOptions: Everything needed to create a migration
    - ExecuteOptions: Per-call inputs of ``Migration.execute``
    - MigrationConfig: Engine tunables (poll intervals, timeouts, retries)
    - SwitchoverSettings: Names used in the switchover patch

Persisted Models:
    - MigrationRecord: One migration attempt
    - BuildInfo: Version metadata written with the state document
    - MigrationState: The store's top-level document

Cluster Link Payloads:
    - MirrorLag / MirrorTopic: Mirror topic status with per-partition lag
    - PromoteMirrorTopicResult / PromoteMirrorTopicsResponse: Promotion results
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from gatewaycutover.exceptions import (
    PERSISTENCE_RETRY_CONFIG,
    MigrationNotFoundError,
    RetryConfig,
)

MIRROR_STATUS_ACTIVE = "ACTIVE"
"""Mirror status reported by the cluster-link API for a replicating topic."""


def _utcnow() -> datetime:
    return datetime.now(UTC)


class MigrationPhase(Enum):
    """
    Cutover lifecycle phases.

    State machine transitions (strict linear chain):
        UNINITIALIZED -> INITIALIZED -> LAGS_OK -> FENCED
            -> PROMOTING -> PROMOTED -> SWITCHED

    Attributes:
        UNINITIALIZED: Migration created, nothing validated yet.
        INITIALIZED: Gateway and cluster link validated, snapshots taken.
        LAGS_OK: Mirror lag on every partition dropped below the threshold.
        FENCED: Writes to the source domain are blocked.
        PROMOTING: Mirror topics are being promoted on the destination.
        PROMOTED: No migration topic is still mirroring.
        SWITCHED: The gateway route points at the destination cluster.
    """

    UNINITIALIZED = "uninitialized"
    """Migration created, nothing validated yet."""

    INITIALIZED = "initialized"
    """Gateway and cluster link validated, snapshots taken."""

    LAGS_OK = "lags_ok"
    """Mirror lag on every partition dropped below the threshold."""

    FENCED = "fenced"
    """Writes to the source domain are blocked."""

    PROMOTING = "promoting"
    """Mirror topics are being promoted on the destination."""

    PROMOTED = "promoted"
    """No migration topic is still mirroring."""

    SWITCHED = "switched"
    """The gateway route points at the destination cluster."""

    @property
    def is_terminal(self) -> bool:
        """
        Check if this is the final phase.

        Returns:
            True only for SWITCHED.
        """
        return self == MigrationPhase.SWITCHED


class MigrationEvent(Enum):
    """
    Events of the cutover state machine.

    Each event moves exactly one source phase to exactly one destination
    phase. The mapping lives in ``gatewaycutover.fsm.TRANSITIONS``.
    """

    INITIALIZE = "initialize"
    WAIT_FOR_LAGS = "wait_for_lags"
    FENCE = "fence"
    PROMOTE = "promote"
    WAIT_FOR_PROMOTION_COMPLETION = "wait_for_promotion_completion"
    SWITCH = "switch"


class AuthMode(Enum):
    """
    Direction of the credential swap performed by the gateway.

    Attributes:
        DEST_SWAP: Clients keep source credentials. The source route must be
            ``passthrough`` today and becomes ``swap`` after the cutover.
        SOURCE_SWAP: Clients already use destination credentials. The source
            route must already be ``swap``.
    """

    DEST_SWAP = "dest_swap"
    SOURCE_SWAP = "source_swap"

    @property
    def expected_source_auth(self) -> str:
        """Security mode the source route must declare before the cutover."""
        if self == AuthMode.DEST_SWAP:
            return "passthrough"
        return "swap"


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True)
class MigrationOptions:
    """
    Everything needed to create a migration.

    Built once per process invocation and handed to ``Migration.new_migration``.

    Attributes:
        gateway_namespace: Namespace the gateway custom resource lives in.
        gateway_crd_name: Name of the gateway custom resource.
        source_name: Streaming domain of the source cluster.
        destination_name: Streaming domain of the destination cluster.
        source_route_name: Route currently serving client traffic.
        destination_route_name: Route pre-provisioned for the destination.
        cluster_id: Destination cluster ID owning the cluster link.
        cluster_rest_endpoint: Base URL of the cluster REST API.
        cluster_link_name: Name of the cluster link.
        cluster_api_key: REST API key (never persisted).
        cluster_api_secret: REST API secret (never persisted).
        topics: Topics to migrate; empty means every mirror topic on the link.
        auth_mode: Credential swap direction.
        kube_config_path: Kube config file; empty means the default loader.
        cc_bootstrap_endpoint: Destination bootstrap endpoint for the new domain.
        load_balancer_endpoint: Endpoint the switched route listens on.
    """

    gateway_namespace: str
    gateway_crd_name: str
    source_name: str
    destination_name: str
    source_route_name: str
    destination_route_name: str
    cluster_id: str
    cluster_rest_endpoint: str
    cluster_link_name: str
    cluster_api_key: str = ""
    cluster_api_secret: str = ""
    topics: tuple[str, ...] = ()
    auth_mode: AuthMode = AuthMode.DEST_SWAP
    kube_config_path: str = ""
    cc_bootstrap_endpoint: str = ""
    load_balancer_endpoint: str = ""

    def __post_init__(self) -> None:
        """Validate configuration values."""
        required = (
            "gateway_namespace",
            "gateway_crd_name",
            "source_name",
            "destination_name",
            "source_route_name",
            "destination_route_name",
            "cluster_id",
            "cluster_rest_endpoint",
            "cluster_link_name",
        )
        for name in required:
            if not getattr(self, name):
                raise ValueError(f"{name} must not be empty")

        if not isinstance(self.auth_mode, AuthMode):
            # Accept the raw string form coming from flags or env vars
            object.__setattr__(self, "auth_mode", AuthMode(self.auth_mode))

        object.__setattr__(self, "topics", tuple(self.topics))


@dataclass(frozen=True)
class ExecuteOptions:
    """
    Inputs of a single ``Migration.execute`` call.

    Attributes:
        lag_threshold: Per-partition lag that counts as caught up when strictly
            below it. 0 requires every partition to have zero lag.
        max_wait_seconds: Budget for the lag wait.
        api_key: Cluster REST API key, held in memory only.
        api_secret: Cluster REST API secret, held in memory only.
    """

    lag_threshold: int
    max_wait_seconds: float
    api_key: str = ""
    api_secret: str = ""

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.lag_threshold < 0:
            raise ValueError(f"lag_threshold must be >= 0, got {self.lag_threshold}")
        if self.max_wait_seconds <= 0:
            raise ValueError(f"max_wait_seconds must be > 0, got {self.max_wait_seconds}")


@dataclass(frozen=True)
class SwitchoverSettings:
    """
    Names used when building the switchover patch.

    The secrets are expected to exist in the gateway namespace already.

    Attributes:
        domain_name: Name of the streaming domain appended to the gateway.
        bootstrap_server_id: ID of the bootstrap server inside that domain.
        tls_secret_name: Secret holding the TLS material for the destination.
        jaas_secret_name: Secret holding the JAAS config for cluster auth.
        node_id_pool_name: Name of the broker node-ID range pool.
        node_id_start: First broker node ID in the pool.
        node_id_end: Last broker node ID in the pool.
    """

    domain_name: str = "confluent-cloud"
    bootstrap_server_id: str = "cc-bootstrap"
    tls_secret_name: str = "cc-tls"
    jaas_secret_name: str = "cc-jaas"
    node_id_pool_name: str = "cc-pool"
    node_id_start: int = 0
    node_id_end: int = 99

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.node_id_start < 0:
            raise ValueError(f"node_id_start must be >= 0, got {self.node_id_start}")
        if self.node_id_end < self.node_id_start:
            raise ValueError(
                f"node_id_end ({self.node_id_end}) must be >= node_id_start ({self.node_id_start})"
            )


@dataclass(frozen=True)
class MigrationConfig:
    """
    Engine tunables for the cutover workflow.

    Attributes:
        lag_poll_interval: Seconds between lag polls (default 2.0).
        lag_sample_size: Offending partitions logged per lag poll (default 5).
        promotion_poll_interval: Seconds between promotion passes (default 5.0).
        pod_poll_interval: Seconds between gateway pod checks (default 5.0).
        pod_ready_timeout: Seconds to wait for recycled pods (default 300.0).
        persistence_retry: Retry policy for writing the state document.
        switchover: Names used in the switchover patch.

    Example:
        >>> config = MigrationConfig(lag_poll_interval=0.5)
        >>> config.pod_ready_timeout
        300.0
    """

    lag_poll_interval: float = 2.0
    lag_sample_size: int = 5
    promotion_poll_interval: float = 5.0
    pod_poll_interval: float = 5.0
    pod_ready_timeout: float = 300.0
    persistence_retry: RetryConfig = PERSISTENCE_RETRY_CONFIG
    switchover: SwitchoverSettings = field(default_factory=SwitchoverSettings)

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.lag_poll_interval <= 0:
            raise ValueError(f"lag_poll_interval must be > 0, got {self.lag_poll_interval}")

        if self.lag_sample_size < 1:
            raise ValueError(f"lag_sample_size must be >= 1, got {self.lag_sample_size}")

        if self.promotion_poll_interval <= 0:
            raise ValueError(
                f"promotion_poll_interval must be > 0, got {self.promotion_poll_interval}"
            )

        if self.pod_poll_interval <= 0:
            raise ValueError(f"pod_poll_interval must be > 0, got {self.pod_poll_interval}")

        if self.pod_ready_timeout < self.pod_poll_interval:
            raise ValueError(
                f"pod_ready_timeout ({self.pod_ready_timeout}) must be >= "
                f"pod_poll_interval ({self.pod_poll_interval})"
            )

    def to_dict(self) -> dict[str, Any]:
        """
        Convert to dictionary for logging.

        Returns:
            Dictionary representation of the tunables.
        """
        return {
            "lag_poll_interval": self.lag_poll_interval,
            "lag_sample_size": self.lag_sample_size,
            "promotion_poll_interval": self.promotion_poll_interval,
            "pod_poll_interval": self.pod_poll_interval,
            "pod_ready_timeout": self.pod_ready_timeout,
            "persistence_retry": self.persistence_retry.to_dict(),
        }


# =============================================================================
# Cluster link payloads
# =============================================================================


class MirrorLag(BaseModel):
    """Lag of one partition of a mirror topic."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    partition: int
    lag: int
    last_source_fetch_offset: int = 0


class MirrorTopic(BaseModel):
    """
    A mirror topic as reported by the cluster-link API.

    Attributes:
        mirror_topic_name: Topic name on the destination cluster.
        mirror_status: Status string, ``ACTIVE`` while replicating.
        mirror_lags: Per-partition lag.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    mirror_topic_name: str
    mirror_status: str
    mirror_lags: list[MirrorLag] = Field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.mirror_status == MIRROR_STATUS_ACTIVE

    @property
    def has_zero_lag(self) -> bool:
        return all(lag.lag == 0 for lag in self.mirror_lags)


class PromoteMirrorTopicResult(BaseModel):
    """Outcome of promoting one mirror topic."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    mirror_topic_name: str
    error_code: int = 0
    error_message: str | None = None

    @property
    def succeeded(self) -> bool:
        return not self.error_code and not self.error_message


class PromoteMirrorTopicsResponse(BaseModel):
    """Response of a ``mirrors:promote`` request."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    data: list[PromoteMirrorTopicResult] = Field(default_factory=list)


# =============================================================================
# Persisted models
# =============================================================================


class MigrationRecord(BaseModel):
    """
    One migration attempt, as persisted in the state document.

    The API key and secret live on the record in memory only; they are
    excluded from serialization so a reloaded record never carries them.

    Example:
        >>> record = MigrationRecord.from_options("migration-1", options)
        >>> record.current_state
        <MigrationPhase.UNINITIALIZED: 'uninitialized'>
    """

    model_config = ConfigDict(extra="ignore")

    migration_id: str
    current_state: MigrationPhase = MigrationPhase.UNINITIALIZED

    # Gateway
    gateway_namespace: str
    gateway_crd_name: str
    source_name: str = ""
    destination_name: str = ""
    source_route_name: str = ""
    destination_route_name: str = ""
    auth_mode: AuthMode = AuthMode.DEST_SWAP
    kube_config_path: str = ""
    cc_bootstrap_endpoint: str = ""
    load_balancer_endpoint: str = ""

    # Cluster link
    cluster_id: str
    cluster_rest_endpoint: str
    cluster_link_name: str
    cluster_api_key: str = Field(default="", exclude=True, repr=False)
    cluster_api_secret: str = Field(default="", exclude=True, repr=False)
    topics: list[str] = Field(default_factory=list)

    # Collected during initialization
    cluster_link_topics: list[str] = Field(default_factory=list)
    cluster_link_configs: dict[str, str] = Field(default_factory=dict)
    gateway_original_yaml: str = ""

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def from_options(cls, migration_id: str, options: MigrationOptions) -> MigrationRecord:
        """
        Create a fresh record in the uninitialized phase.

        Args:
            migration_id: Caller supplied identifier.
            options: Migration options.

        Returns:
            New MigrationRecord.
        """
        return cls(
            migration_id=migration_id,
            gateway_namespace=options.gateway_namespace,
            gateway_crd_name=options.gateway_crd_name,
            source_name=options.source_name,
            destination_name=options.destination_name,
            source_route_name=options.source_route_name,
            destination_route_name=options.destination_route_name,
            auth_mode=options.auth_mode,
            kube_config_path=options.kube_config_path,
            cc_bootstrap_endpoint=options.cc_bootstrap_endpoint,
            load_balancer_endpoint=options.load_balancer_endpoint,
            cluster_id=options.cluster_id,
            cluster_rest_endpoint=options.cluster_rest_endpoint,
            cluster_link_name=options.cluster_link_name,
            cluster_api_key=options.cluster_api_key,
            cluster_api_secret=options.cluster_api_secret,
            topics=list(options.topics),
        )

    def touch(self) -> None:
        """Record a modification time."""
        self.updated_at = _utcnow()


class BuildInfo(BaseModel):
    """Version metadata of the engine that last wrote the document."""

    version: str = "unknown"
    commit: str = "unknown"
    date: str = "unknown"

    @classmethod
    def current(cls) -> BuildInfo:
        from gatewaycutover import __version__

        return cls(version=__version__)


class MigrationState(BaseModel):
    """
    The store's top-level document.

    Holds every known migration in insertion order, at most one record per
    migration ID.

    Example:
        >>> state = MigrationState()
        >>> state.upsert_migration(record)
        >>> state.get_migration(record.migration_id).migration_id == record.migration_id
        True
    """

    migrations: list[MigrationRecord] = Field(default_factory=list)
    build_info: BuildInfo = Field(default_factory=BuildInfo.current)
    timestamp: datetime = Field(default_factory=_utcnow)

    def upsert_migration(self, record: MigrationRecord) -> None:
        """
        Add a migration or replace the existing one with the same ID.

        A copy is stored so later mutation of ``record`` does not leak into
        the document before the next upsert.

        Args:
            record: The migration to store.
        """
        stored = record.model_copy(deep=True)
        for index, existing in enumerate(self.migrations):
            if existing.migration_id == record.migration_id:
                self.migrations[index] = stored
                return
        self.migrations.append(stored)

    def get_migration(self, migration_id: str) -> MigrationRecord:
        """
        Get a copy of the migration with the given ID.

        Args:
            migration_id: The migration to look up.

        Returns:
            A deep copy of the stored record.

        Raises:
            MigrationNotFoundError: If no migration has that ID.
        """
        for existing in self.migrations:
            if existing.migration_id == migration_id:
                return existing.model_copy(deep=True)
        raise MigrationNotFoundError(migration_id)

    def has_migration(self, migration_id: str) -> bool:
        return any(m.migration_id == migration_id for m in self.migrations)

    def to_json(self) -> str:
        """Serialize the document, stamping the write time."""
        self.timestamp = _utcnow()
        return self.model_dump_json(indent=2)

    @classmethod
    def from_json(cls, data: str | bytes) -> MigrationState:
        return cls.model_validate_json(data)


__all__ = [
    "MIRROR_STATUS_ACTIVE",
    "MigrationPhase",
    "MigrationEvent",
    "AuthMode",
    "MigrationOptions",
    "ExecuteOptions",
    "SwitchoverSettings",
    "MigrationConfig",
    "MirrorLag",
    "MirrorTopic",
    "PromoteMirrorTopicResult",
    "PromoteMirrorTopicsResponse",
    "MigrationRecord",
    "BuildInfo",
    "MigrationState",
]
