"""
Unit tests for InMemoryStateStore.

Tests cover:
- Save/load through the serialized form
- save_count bookkeeping and clear()
- Transient write failures retried by save_with_retry
"""

import pytest

from gatewaycutover.exceptions import StateLoadError, StateWriteError
from gatewaycutover.models import MigrationPhase, MigrationState
from gatewaycutover.stores import InMemoryStateStore


class FlakyStateStore(InMemoryStateStore):
    """Fails the first ``failures`` writes."""

    def __init__(self, failures: int, **kwargs) -> None:
        super().__init__(**kwargs)
        self.failures = failures

    async def save(self, state: MigrationState) -> None:
        if self.failures:
            self.failures -= 1
            raise StateWriteError("temporarily unavailable")
        await super().save(state)


class TestInMemoryStateStore:
    """Tests for InMemoryStateStore."""

    @pytest.mark.asyncio
    async def test_empty_store(self, in_memory_store) -> None:
        assert not await in_memory_store.exists()
        with pytest.raises(StateLoadError):
            await in_memory_store.load()

    @pytest.mark.asyncio
    async def test_load_returns_independent_copy(self, in_memory_store, state, record) -> None:
        state.upsert_migration(record)
        await in_memory_store.save(state)

        record.current_state = MigrationPhase.SWITCHED
        state.upsert_migration(record)
        loaded = await in_memory_store.load()

        assert loaded.get_migration(record.migration_id).current_state == MigrationPhase.UNINITIALIZED
        assert loaded.get_migration(record.migration_id).cluster_api_secret == ""

    @pytest.mark.asyncio
    async def test_initial_document(self, record) -> None:
        state = MigrationState()
        state.upsert_migration(record)
        store = InMemoryStateStore(state)

        assert await store.exists()
        assert (await store.load()).has_migration(record.migration_id)
        assert store.save_count == 0

    @pytest.mark.asyncio
    async def test_clear(self, in_memory_store, state) -> None:
        await in_memory_store.save(state)
        in_memory_store.clear()

        assert in_memory_store.save_count == 0
        assert not await in_memory_store.exists()

    @pytest.mark.asyncio
    async def test_save_with_retry_recovers(self, in_memory_store, error_handler, recording_sleep) -> None:
        store = FlakyStateStore(
            2, retry_config=in_memory_store.retry_config, error_handler=error_handler
        )

        await store.save_with_retry(MigrationState())

        assert store.save_count == 1
        assert len(recording_sleep.delays) == 2
