"""
Exceptions for the gateway cutover engine.

This module defines every exception that can be raised while a migration
moves through its state machine, organized by the step that raises them.

Exception Hierarchy:
    MigrationError (base)
    +-- MigrationNotFoundError
    +-- InvalidTransitionError
    +-- MigrationValidationError
    |   +-- PermissionDeniedError
    |   +-- GatewayValidationError
    |   +-- TopicNotFoundError
    |   +-- InactiveMirrorTopicsError
    +-- LagTimeoutError
    +-- PromotionIncompleteError
    +-- SwitchoverError
    |   +-- PodRecycleTimeoutError
    +-- GatewayError
    +-- ClusterLinkError
    +-- StateLoadError
    +-- StateWriteError
    +-- PersistenceError
    +-- StepFailedError

Error Classification System:
    - ErrorSeverity: CRITICAL, ERROR, WARNING, INFO levels
    - ErrorRecoverability: RECOVERABLE, TRANSIENT, FATAL categories
    - ErrorClassification: Rich metadata for each error type
    - ErrorHandler: Automatic retry for transient errors
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Callable, Coroutine, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from gatewaycutover.models import MigrationEvent, MigrationPhase

logger = logging.getLogger(__name__)

# Type variable for generic async functions
T = TypeVar("T")


class ErrorSeverity(Enum):
    """
    Severity level of migration errors.

    Used for logging and for the exit status chosen by the process entry point.

    Attributes:
        CRITICAL: The engine cannot safely continue.
            Examples: Progress could not be persisted after retries.
        ERROR: Significant failure that requires operator intervention.
            Examples: Gateway shape mismatch, switchover failure.
        WARNING: Issue that should be monitored but may self-resolve.
            Examples: Lag did not drain in time, transient API errors.
        INFO: Informational condition, not a failure.
    """

    CRITICAL = "critical"
    """The engine cannot safely continue."""

    ERROR = "error"
    """Significant failure that requires operator intervention."""

    WARNING = "warning"
    """Issue that should be monitored but may self-resolve."""

    INFO = "info"
    """Informational condition, not a failure."""

    @property
    def log_level(self) -> int:
        """
        Get the corresponding Python logging level.

        Returns:
            Python logging level constant.
        """
        level_map = {
            ErrorSeverity.CRITICAL: logging.CRITICAL,
            ErrorSeverity.ERROR: logging.ERROR,
            ErrorSeverity.WARNING: logging.WARNING,
            ErrorSeverity.INFO: logging.INFO,
        }
        return level_map[self]


class ErrorRecoverability(Enum):
    """
    Recoverability classification for migration errors.

    Attributes:
        RECOVERABLE: The operator fixes the underlying condition and
            re-runs execute, which resumes from the persisted phase.
        TRANSIENT: Temporary error that may resolve on automatic retry.
        FATAL: The engine must stop; the process exits non-zero.
    """

    RECOVERABLE = "recoverable"
    """Error can be recovered from with operator action."""

    TRANSIENT = "transient"
    """Temporary error that may resolve on retry."""

    FATAL = "fatal"
    """Unrecoverable error; the engine must stop."""

    @property
    def should_retry(self) -> bool:
        """
        Check if automatic retry is appropriate for this category.

        Returns:
            True only for TRANSIENT errors.
        """
        return self == ErrorRecoverability.TRANSIENT


@dataclass(frozen=True)
class ErrorClassification:
    """
    Rich metadata for error classification.

    Attributes:
        severity: The severity level of the error.
        recoverability: How the error can be recovered from.
        error_code: Unique error code for programmatic handling.
        category: Error category for grouping related errors.
        suggested_action: Human-readable guidance for operators.
        retry_config: Configuration for automatic retry (if applicable).
    """

    severity: ErrorSeverity
    recoverability: ErrorRecoverability
    error_code: str
    category: str
    suggested_action: str
    retry_config: RetryConfig | None = None

    def to_dict(self) -> dict[str, Any]:
        """
        Convert classification to dictionary for serialization.

        Returns:
            Dictionary representation of the classification.
        """
        result: dict[str, Any] = {
            "severity": self.severity.value,
            "recoverability": self.recoverability.value,
            "error_code": self.error_code,
            "category": self.category,
            "suggested_action": self.suggested_action,
        }
        if self.retry_config:
            result["retry_config"] = self.retry_config.to_dict()
        return result


@dataclass(frozen=True)
class RetryConfig:
    """
    Configuration for automatic error retry.

    Implements exponential backoff with optional jitter.

    Attributes:
        max_attempts: Maximum number of attempts (including the first).
        base_delay_ms: Base delay between retries in milliseconds.
        max_delay_ms: Maximum delay between retries in milliseconds.
        exponential_base: Base for exponential backoff (default 2.0).
        jitter_factor: Random jitter factor (0.0 to 1.0, default 0.1).

    Example:
        >>> config = RetryConfig(max_attempts=3, base_delay_ms=1000, jitter_factor=0.0)
        >>> config.get_delay_ms(attempt=1)
        2000.0
    """

    max_attempts: int = 3
    base_delay_ms: float = 100.0
    max_delay_ms: float = 30000.0
    exponential_base: float = 2.0
    jitter_factor: float = 0.1

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay_ms < 0:
            raise ValueError(f"base_delay_ms must be >= 0, got {self.base_delay_ms}")
        if self.max_delay_ms < self.base_delay_ms:
            raise ValueError(
                f"max_delay_ms ({self.max_delay_ms}) must be >= "
                f"base_delay_ms ({self.base_delay_ms})"
            )
        if self.exponential_base < 1.0:
            raise ValueError(f"exponential_base must be >= 1.0, got {self.exponential_base}")
        if not 0.0 <= self.jitter_factor <= 1.0:
            raise ValueError(f"jitter_factor must be between 0.0 and 1.0, got {self.jitter_factor}")

    def get_delay_ms(self, attempt: int) -> float:
        """
        Calculate delay for a specific retry attempt.

        Args:
            attempt: Current attempt number (0-indexed).

        Returns:
            Delay in milliseconds before the next retry.
        """
        delay = self.base_delay_ms * (self.exponential_base**attempt)

        if self.jitter_factor > 0:
            jitter = delay * self.jitter_factor * random.random()  # nosec B311 - retry jitter, not security
            delay = delay + jitter

        return min(delay, self.max_delay_ms)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "max_attempts": self.max_attempts,
            "base_delay_ms": self.base_delay_ms,
            "max_delay_ms": self.max_delay_ms,
            "exponential_base": self.exponential_base,
            "jitter_factor": self.jitter_factor,
        }


# Default retry configurations for different error categories
TRANSIENT_RETRY_CONFIG = RetryConfig(
    max_attempts=5,
    base_delay_ms=100.0,
    max_delay_ms=30000.0,
    exponential_base=2.0,
    jitter_factor=0.1,
)

# 3 attempts, 1s then 2s between them
PERSISTENCE_RETRY_CONFIG = RetryConfig(
    max_attempts=3,
    base_delay_ms=1000.0,
    max_delay_ms=4000.0,
    exponential_base=2.0,
    jitter_factor=0.0,
)


class MigrationError(Exception):
    """
    Base exception for all cutover errors.

    Attributes:
        message: Human-readable error description.
        migration_id: The ID of the migration that caused the error, if known.
        suggested_action: Suggested action for recovery.
        classification: Rich error classification metadata.
    """

    _default_classification: ErrorClassification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.FATAL,
        error_code="MIGRATION_ERROR",
        category="general",
        suggested_action="Review migration logs",
    )

    def __init__(
        self,
        message: str,
        *,
        migration_id: str | None = None,
        suggested_action: str | None = None,
    ) -> None:
        self.message = message
        self.migration_id = migration_id
        self.suggested_action = suggested_action or self._default_classification.suggested_action
        super().__init__(message)

    def __str__(self) -> str:
        """Return formatted error string with context."""
        if self.migration_id:
            return f"{self.message} (migration_id={self.migration_id})"
        return self.message

    @property
    def classification(self) -> ErrorClassification:
        """
        Get the error classification for this exception.

        Subclasses override _default_classification to provide
        specific classification metadata for their error type.
        """
        return self._default_classification

    @property
    def severity(self) -> ErrorSeverity:
        """Get the severity level of this error."""
        return self.classification.severity

    @property
    def recoverability(self) -> ErrorRecoverability:
        """Get the recoverability classification of this error."""
        return self.classification.recoverability

    @property
    def error_code(self) -> str:
        """Get the unique error code for this exception (e.g., "LAG_TIMEOUT")."""
        return self.classification.error_code

    @property
    def retry_config(self) -> RetryConfig | None:
        """Get the retry configuration for this error, if applicable."""
        return self.classification.retry_config

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the exception to a dictionary for serialization.

        Returns:
            Dictionary representation of the error.
        """
        return {
            "message": self.message,
            "migration_id": self.migration_id,
            "error_code": self.error_code,
            "classification": self.classification.to_dict(),
        }


class MigrationNotFoundError(MigrationError):
    """
    Raised when a migration ID is not present in the state document.

    Attributes:
        migration_id: The ID that was not found.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="MIGRATION_NOT_FOUND",
        category="lookup",
        suggested_action="Check the migration ID against the migrations in the state file",
    )

    def __init__(self, migration_id: str) -> None:
        super().__init__(
            message=f"migration not found: {migration_id}",
            migration_id=migration_id,
        )


class InvalidTransitionError(MigrationError):
    """
    Raised when an event is fired from a phase that does not accept it.

    Attributes:
        current_phase: The phase the migration is in.
        event: The event that was attempted.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.FATAL,
        error_code="INVALID_TRANSITION",
        category="state",
        suggested_action="Check the migration's current state before firing this event",
    )

    def __init__(
        self,
        current_phase: MigrationPhase,
        event: MigrationEvent,
        *,
        migration_id: str | None = None,
    ) -> None:
        self.current_phase = current_phase
        self.event = event
        super().__init__(
            message=f"event '{event.value}' is not valid in state '{current_phase.value}'",
            migration_id=migration_id,
        )


# =============================================================================
# Validation errors
# =============================================================================


class MigrationValidationError(MigrationError):
    """
    Base exception for pre-flight validation failures.

    Validation errors are raised before any state-advancing side effect,
    so the migration stays in its current phase and the operator can
    retry after fixing the underlying condition.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="VALIDATION_FAILED",
        category="validation",
        suggested_action="Fix the reported configuration and re-run the migration",
    )


class PermissionDeniedError(MigrationValidationError):
    """
    Raised when the caller may not perform a required Kubernetes verb.

    Attributes:
        verb: Kubernetes verb that was checked.
        resource: Resource plural that was checked.
        namespace: Namespace the check was made in.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="PERMISSION_DENIED",
        category="validation",
        suggested_action="Grant the kube context RBAC permission on the gateway resource",
    )

    def __init__(self, verb: str, resource: str, namespace: str) -> None:
        self.verb = verb
        self.resource = resource
        self.namespace = namespace
        super().__init__(
            f"you don't have permission to {verb} {resource} in namespace '{namespace}'"
        )


class GatewayValidationError(MigrationValidationError):
    """Raised when the gateway resource does not have the expected shape."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="GATEWAY_VALIDATION_FAILED",
        category="validation",
        suggested_action="Compare the gateway routes and streaming domains with the migration flags",
    )


class TopicNotFoundError(MigrationValidationError):
    """
    Raised when a requested topic is not mirrored by the cluster link.

    Attributes:
        topic: The missing topic.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="TOPIC_NOT_FOUND",
        category="validation",
        suggested_action="Create the mirror topic on the cluster link or drop it from --topics",
    )

    def __init__(self, topic: str) -> None:
        self.topic = topic
        super().__init__(f"topic {topic} not found in cluster link")


class InactiveMirrorTopicsError(MigrationValidationError):
    """
    Raised when mirror topics covered by the migration are not ACTIVE.

    Attributes:
        topics: Descriptions of every offending topic with its status.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="INACTIVE_MIRROR_TOPICS",
        category="validation",
        suggested_action="Resume or recreate the listed mirror topics before migrating",
    )

    def __init__(self, topics: Sequence[str]) -> None:
        self.topics = list(topics)
        super().__init__(
            f"{len(self.topics)} mirror topics are not active: {', '.join(self.topics)}"
        )


# =============================================================================
# Wait and switchover errors
# =============================================================================


class LagTimeoutError(MigrationError):
    """
    Raised when mirror lag does not drop below the threshold in time.

    Attributes:
        threshold: The per-partition lag threshold.
        elapsed_seconds: How long the monitor waited.
        remaining_seconds: Time left in the budget when the monitor gave up.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.WARNING,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="LAG_TIMEOUT",
        category="lag",
        suggested_action="Re-run execute with a larger --max-wait-time or threshold",
    )

    def __init__(
        self,
        threshold: int,
        elapsed_seconds: float,
        remaining_seconds: float,
    ) -> None:
        self.threshold = threshold
        self.elapsed_seconds = elapsed_seconds
        self.remaining_seconds = remaining_seconds
        super().__init__(
            f"timed out waiting for lag to drop below {threshold} "
            f"(elapsed: {elapsed_seconds:.1f}s, remaining: {remaining_seconds:.1f}s)"
        )


class PromotionIncompleteError(MigrationError):
    """Raised when mirror topics are still active after promotion finished."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="PROMOTION_INCOMPLETE",
        category="promotion",
        suggested_action="Re-run execute to resume promoting the remaining topics",
    )

    def __init__(self, topics: Sequence[str]) -> None:
        self.topics = list(topics)
        super().__init__(f"mirror topics still active after promotion: {', '.join(self.topics)}")


class SwitchoverError(MigrationError):
    """Raised when the gateway could not be repointed at the destination."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="SWITCHOVER_ERROR",
        category="switchover",
        suggested_action="Inspect the gateway resource and re-run execute",
    )


class PodRecycleTimeoutError(SwitchoverError):
    """
    Raised when gateway pods are not ready within the recycle window.

    Attributes:
        timeout_seconds: The recycle window that was exceeded.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="POD_RECYCLE_TIMEOUT",
        category="switchover",
        suggested_action="Check the gateway pods with kubectl and re-run execute",
    )

    def __init__(self, namespace: str, gateway_name: str, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"timed out waiting for gateway pods {namespace}/{gateway_name} "
            f"to become ready (timeout: {timeout_seconds:.0f}s)"
        )


# =============================================================================
# Collaborator and persistence errors
# =============================================================================


class GatewayError(MigrationError):
    """Raised when a Kubernetes API call against the gateway fails."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.WARNING,
        recoverability=ErrorRecoverability.TRANSIENT,
        error_code="GATEWAY_API_ERROR",
        category="connectivity",
        suggested_action="Check kube config and API server connectivity",
        retry_config=TRANSIENT_RETRY_CONFIG,
    )


class ClusterLinkError(MigrationError):
    """
    Raised when a cluster-link REST call fails.

    Attributes:
        status_code: HTTP status returned by the API, if any.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.WARNING,
        recoverability=ErrorRecoverability.TRANSIENT,
        error_code="CLUSTER_LINK_API_ERROR",
        category="connectivity",
        suggested_action="Check the REST endpoint and API credentials",
        retry_config=TRANSIENT_RETRY_CONFIG,
    )

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class StateLoadError(MigrationError):
    """Raised when the state document is missing or cannot be parsed."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="STATE_LOAD_FAILED",
        category="persistence",
        suggested_action="Run 'gateway-cutover init' first or point --state-file at the right file",
    )


class StateWriteError(MigrationError):
    """Raised when a single attempt to write the state document fails."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.WARNING,
        recoverability=ErrorRecoverability.TRANSIENT,
        error_code="STATE_WRITE_FAILED",
        category="persistence",
        suggested_action="Check disk space and permissions on the state file directory",
        retry_config=PERSISTENCE_RETRY_CONFIG,
    )


class PersistenceError(MigrationError):
    """
    Raised when progress could not be persisted after all retries.

    The in-memory phase has advanced past a side effect that has already
    been applied, but the durable record has not. There is no rollback for
    that side effect, so the engine stops and the entry point exits with a
    non-zero status instead of firing further events.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.CRITICAL,
        recoverability=ErrorRecoverability.FATAL,
        error_code="PERSISTENCE_FAILED",
        category="persistence",
        suggested_action=(
            "Restore write access to the state file, then set the migration's "
            "current_state by hand to the last phase reported in the logs"
        ),
    )


class StepFailedError(MigrationError):
    """
    Raised by execute when a named step fails.

    Attributes:
        step: Human-readable step name (e.g., "checking lags").
        cause: The underlying exception.
    """

    def __init__(self, step: str, cause: BaseException, *, migration_id: str | None = None) -> None:
        self.step = step
        self.cause = cause
        super().__init__(f"failed during {step}: {cause}", migration_id=migration_id)

    @property
    def classification(self) -> ErrorClassification:
        """Delegate to the wrapped error so exit handling sees the real kind."""
        return classify_exception(self.cause)


# =============================================================================
# Retry handling
# =============================================================================


class ErrorHandler:
    """
    Error handler with automatic retry for transient errors.

    Usage:
        >>> handler = ErrorHandler()
        >>> result = await handler.execute_with_retry(
        ...     lambda: store.save(state),
        ...     operation_name="save_state",
        ...     retry_config=PERSISTENCE_RETRY_CONFIG,
        ... )
    """

    def __init__(
        self,
        sleep: Callable[[float], Coroutine[Any, Any, None]] | None = None,
    ) -> None:
        self._sleep = sleep or asyncio.sleep

    async def execute_with_retry(
        self,
        operation: Callable[[], Coroutine[Any, Any, T]],
        operation_name: str,
        *,
        retry_config: RetryConfig | None = None,
        on_retry: Callable[[int, Exception, float], None] | None = None,
    ) -> T:
        """
        Execute an operation with automatic retry for transient errors.

        Args:
            operation: Async callable to execute.
            operation_name: Name for logging.
            retry_config: Override retry configuration.
            on_retry: Callback invoked on each retry (attempt, exception, delay_ms).

        Returns:
            The result of the operation.

        Raises:
            MigrationError: If all retries are exhausted or error is non-transient.
        """
        attempt = 0

        while True:
            try:
                result = await operation()
            except MigrationError as e:
                logger.log(
                    e.severity.log_level,
                    "Error in '%s': %s [code=%s, recoverability=%s]",
                    operation_name,
                    e.message,
                    e.error_code,
                    e.recoverability.value,
                )

                if not e.recoverability.should_retry:
                    raise

                config = retry_config or e.retry_config or TRANSIENT_RETRY_CONFIG
                if attempt + 1 >= config.max_attempts:
                    logger.error(
                        "Exhausted %d attempts for '%s': %s",
                        config.max_attempts,
                        operation_name,
                        e.message,
                    )
                    raise

                delay_ms = config.get_delay_ms(attempt)
                logger.warning(
                    "Retryable error in '%s' (attempt %d/%d): %s. Retrying in %.1fs",
                    operation_name,
                    attempt + 1,
                    config.max_attempts,
                    e.message,
                    delay_ms / 1000.0,
                )
                if on_retry:
                    on_retry(attempt, e, delay_ms)

                await self._sleep(delay_ms / 1000.0)
                attempt += 1
                continue

            if attempt > 0:
                logger.info(
                    "Operation '%s' succeeded after %d retries",
                    operation_name,
                    attempt,
                )
            return result


def classify_exception(exc: BaseException) -> ErrorClassification:
    """
    Classify any exception and return its error classification.

    Args:
        exc: The exception to classify.

    Returns:
        ErrorClassification for the exception.
    """
    if isinstance(exc, MigrationError):
        return exc.classification

    return ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.FATAL,
        error_code="UNKNOWN_ERROR",
        category="unknown",
        suggested_action="An unexpected error occurred. Review the logs.",
    )


__all__ = [
    "ErrorSeverity",
    "ErrorRecoverability",
    "ErrorClassification",
    "RetryConfig",
    "TRANSIENT_RETRY_CONFIG",
    "PERSISTENCE_RETRY_CONFIG",
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
    "ErrorHandler",
    "classify_exception",
]
