"""
JSON file state store.

Writes go to a temporary file in the same directory which is then renamed
over the target, so the document on disk is always either the previous or
the new version.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from gatewaycutover.exceptions import ErrorHandler, RetryConfig, StateLoadError, StateWriteError
from gatewaycutover.models import MigrationState
from gatewaycutover.stores.interface import StateStore

logger = logging.getLogger(__name__)


class FileStateStore(StateStore):
    """
    State store backed by a single JSON file.

    Example:
        >>> store = FileStateStore("migration-state.json")
        >>> state = await store.load_or_create()
        >>> state.upsert_migration(record)
        >>> await store.save_with_retry(state)
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        retry_config: RetryConfig | None = None,
        error_handler: ErrorHandler | None = None,
    ) -> None:
        super().__init__(retry_config=retry_config, error_handler=error_handler)
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    async def exists(self) -> bool:
        return await asyncio.to_thread(self._path.is_file)

    async def load(self) -> MigrationState:
        try:
            data = await asyncio.to_thread(self._path.read_bytes)
        except FileNotFoundError as e:
            raise StateLoadError(f"migration state file not found: {self._path}") from e
        except OSError as e:
            raise StateLoadError(f"failed to read migration state file {self._path}: {e}") from e

        try:
            return MigrationState.from_json(data)
        except ValidationError as e:
            raise StateLoadError(f"failed to parse migration state file {self._path}: {e}") from e

    async def save(self, state: MigrationState) -> None:
        payload = state.to_json()
        try:
            await asyncio.to_thread(self._write_atomic, payload)
        except OSError as e:
            raise StateWriteError(f"failed to write {self._path}: {e}") from e
        logger.debug("Wrote %d migrations to %s", len(state.migrations), self._path)

    def _write_atomic(self, payload: str) -> None:
        directory = self._path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=directory
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self._path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise


__all__ = ["FileStateStore"]
