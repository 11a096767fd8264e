"""
In-memory state store for tests and dry runs.

The document is kept in its serialized JSON form so a load behaves like
reading the file back: excluded fields such as credentials do not survive.
"""

from __future__ import annotations

import asyncio

from gatewaycutover.exceptions import ErrorHandler, RetryConfig, StateLoadError
from gatewaycutover.models import MigrationState
from gatewaycutover.stores.interface import StateStore


class InMemoryStateStore(StateStore):
    """
    State store holding the document in memory.

    Attributes:
        save_count: Number of successful ``save`` calls.

    Example:
        >>> store = InMemoryStateStore()
        >>> await store.save(MigrationState())
        >>> store.save_count
        1
    """

    def __init__(
        self,
        initial: MigrationState | None = None,
        *,
        retry_config: RetryConfig | None = None,
        error_handler: ErrorHandler | None = None,
    ) -> None:
        super().__init__(retry_config=retry_config, error_handler=error_handler)
        self._document: str | None = initial.model_dump_json() if initial else None
        self._lock = asyncio.Lock()
        self.save_count = 0

    async def exists(self) -> bool:
        return self._document is not None

    async def load(self) -> MigrationState:
        async with self._lock:
            if self._document is None:
                raise StateLoadError("no migration state has been saved")
            return MigrationState.from_json(self._document)

    async def save(self, state: MigrationState) -> None:
        async with self._lock:
            self._document = state.to_json()
            self.save_count += 1

    def clear(self) -> None:
        """Drop the stored document. Useful for test cleanup."""
        self._document = None
        self.save_count = 0


__all__ = ["InMemoryStateStore"]
