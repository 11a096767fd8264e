"""
gatewaycutover - Zero-downtime Kafka cutover behind a Confluent Gateway.

This library provides:
- A persisted state machine that moves one migration through its phases
- Pre-flight validation of the gateway resource and cluster link
- Lag monitoring and mirror topic promotion over the Kafka REST API
- The gateway route switchover as a single JSON-Patch
- File and in-memory state stores with retried, atomic writes
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("gateway-cutover")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from gatewaycutover.clusterlink import (
    ClusterLinkClient,
    ClusterLinkConfig,
    RestClusterLinkClient,
)
from gatewaycutover.exceptions import (
    ClusterLinkError,
    ErrorHandler,
    ErrorRecoverability,
    ErrorSeverity,
    GatewayError,
    GatewayValidationError,
    InactiveMirrorTopicsError,
    InvalidTransitionError,
    LagTimeoutError,
    MigrationError,
    MigrationNotFoundError,
    MigrationValidationError,
    PermissionDeniedError,
    PersistenceError,
    PodRecycleTimeoutError,
    PromotionIncompleteError,
    RetryConfig,
    StateLoadError,
    StateWriteError,
    StepFailedError,
    SwitchoverError,
    TopicNotFoundError,
)
from gatewaycutover.fsm import EVENT_ORDER, TRANSITIONS, MigrationFSM
from gatewaycutover.gateway import (
    GatewayClient,
    GatewayConfig,
    KubernetesGatewayClient,
)
from gatewaycutover.migration import Migration
from gatewaycutover.models import (
    AuthMode,
    ExecuteOptions,
    MigrationConfig,
    MigrationEvent,
    MigrationOptions,
    MigrationPhase,
    MigrationRecord,
    MigrationState,
    SwitchoverSettings,
)
from gatewaycutover.stores import FileStateStore, InMemoryStateStore, StateStore

__all__ = [
    "__version__",
    # Facade
    "Migration",
    "MigrationFSM",
    "TRANSITIONS",
    "EVENT_ORDER",
    # Models
    "AuthMode",
    "ExecuteOptions",
    "MigrationConfig",
    "MigrationEvent",
    "MigrationOptions",
    "MigrationPhase",
    "MigrationRecord",
    "MigrationState",
    "SwitchoverSettings",
    # Clients
    "ClusterLinkClient",
    "ClusterLinkConfig",
    "RestClusterLinkClient",
    "GatewayClient",
    "GatewayConfig",
    "KubernetesGatewayClient",
    # Stores
    "StateStore",
    "FileStateStore",
    "InMemoryStateStore",
    # Errors
    "ErrorHandler",
    "ErrorRecoverability",
    "ErrorSeverity",
    "RetryConfig",
    "MigrationError",
    "MigrationNotFoundError",
    "InvalidTransitionError",
    "MigrationValidationError",
    "PermissionDeniedError",
    "GatewayValidationError",
    "TopicNotFoundError",
    "InactiveMirrorTopicsError",
    "LagTimeoutError",
    "PromotionIncompleteError",
    "SwitchoverError",
    "PodRecycleTimeoutError",
    "GatewayError",
    "ClusterLinkError",
    "StateLoadError",
    "StateWriteError",
    "PersistenceError",
    "StepFailedError",
]
