"""
State store interface.

The state store holds the ``MigrationState`` document: every known
migration with its current phase. Only the after-event hook of the
migration being executed writes it.

This module provides:
- StateStore: Abstract base class for state store implementations, with the
  shared retry policy for writes
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from gatewaycutover.exceptions import (
    PERSISTENCE_RETRY_CONFIG,
    ErrorHandler,
    PersistenceError,
    RetryConfig,
    StateWriteError,
)
from gatewaycutover.models import MigrationState

logger = logging.getLogger(__name__)


class StateStore(ABC):
    """
    Abstract base class for migration state stores.

    Implementations provide ``load``, ``save`` and ``exists``. Each ``save``
    must be atomic: a reader never observes a half-written document. A failed
    write attempt raises ``StateWriteError`` so ``save_with_retry`` can retry
    it.

    Args:
        retry_config: Retry policy for ``save_with_retry``.
        error_handler: Retry executor (tests inject one with a fake sleep).
    """

    def __init__(
        self,
        *,
        retry_config: RetryConfig | None = None,
        error_handler: ErrorHandler | None = None,
    ) -> None:
        self._retry_config = retry_config or PERSISTENCE_RETRY_CONFIG
        self._error_handler = error_handler or ErrorHandler()

    @property
    def retry_config(self) -> RetryConfig:
        return self._retry_config

    @abstractmethod
    async def load(self) -> MigrationState:
        """
        Read the state document.

        Raises:
            StateLoadError: If the document is missing or unreadable.
        """
        pass

    @abstractmethod
    async def save(self, state: MigrationState) -> None:
        """
        Write the whole state document once.

        Raises:
            StateWriteError: If the write fails.
        """
        pass

    @abstractmethod
    async def exists(self) -> bool:
        """Check whether a state document has been written."""
        pass

    async def load_or_create(self) -> MigrationState:
        """Load the document, or start an empty one if none exists yet."""
        if await self.exists():
            return await self.load()
        return MigrationState()

    async def save_with_retry(self, state: MigrationState) -> None:
        """
        Write the state document, retrying failed attempts with backoff.

        Args:
            state: The document to write.

        Raises:
            PersistenceError: If every attempt failed. The caller must stop
                advancing the migration.
        """
        try:
            await self._error_handler.execute_with_retry(
                lambda: self.save(state),
                operation_name="save_migration_state",
                retry_config=self._retry_config,
            )
        except StateWriteError as e:
            raise PersistenceError(
                f"failed to persist migration state after "
                f"{self._retry_config.max_attempts} attempts: {e.message}"
            ) from e


__all__ = ["StateStore"]
