"""
Unit tests for the Migration facade.

Tests cover:
- new_migration / load_migration construction
- initialize and the full execute walk to ``switched``
- Resuming from a persisted phase, including after a pod recycle timeout
- Step failures wrapped in StepFailedError
- Persistence failure halting the migration
- Credentials kept out of the persisted document
- Cancellation leaving the phase unchanged and unpersisted
"""

import asyncio

import pytest

from gatewaycutover.exceptions import (
    InvalidTransitionError,
    LagTimeoutError,
    MigrationNotFoundError,
    PersistenceError,
    PodRecycleTimeoutError,
    StateWriteError,
    StepFailedError,
    TopicNotFoundError,
)
from gatewaycutover.migration import Migration
from gatewaycutover.models import MigrationConfig, MigrationPhase, MigrationState
from gatewaycutover.stores import InMemoryStateStore
from tests.fixtures import GATEWAY_NAME, NAMESPACE, mirror


class FailingStateStore(InMemoryStateStore):
    """Store whose every write fails."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.attempts = 0

    async def save(self, state: MigrationState) -> None:
        self.attempts += 1
        raise StateWriteError("disk full")


@pytest.fixture
def migration_factory(state, in_memory_store, gateway_client, cluster_link, fast_config):
    def factory(options=None, *, store=None, migration_id="migration-test") -> Migration:
        return Migration.new_migration(
            migration_id,
            options,
            state=state,
            store=store or in_memory_store,
            gateway=gateway_client,
            cluster_link=cluster_link,
            config=fast_config,
            enable_tracing=False,
        )

    return factory


class TestConstruction:
    """Tests for new_migration and load_migration."""

    def test_new_migration_starts_uninitialized(self, migration_factory, migration_options) -> None:
        migration = migration_factory(migration_options)

        assert migration.migration_id == "migration-test"
        assert migration.current_state == MigrationPhase.UNINITIALIZED
        assert migration.get_current_state() == "uninitialized"
        assert not migration.halted

    def test_new_migration_rejects_existing_id(
        self, migration_factory, migration_options, state, record
    ) -> None:
        state.upsert_migration(record)

        with pytest.raises(ValueError, match="already exists"):
            migration_factory(migration_options)

    def test_load_missing_migration(
        self, state, in_memory_store, gateway_client, cluster_link
    ) -> None:
        with pytest.raises(MigrationNotFoundError):
            Migration.load_migration(
                "migration-missing",
                state=state,
                store=in_memory_store,
                gateway=gateway_client,
                cluster_link=cluster_link,
                enable_tracing=False,
            )


class TestInitialize:
    """Tests for Migration.initialize."""

    @pytest.mark.asyncio
    async def test_initialize_persists_initialized(
        self, migration_factory, migration_options, in_memory_store
    ) -> None:
        migration = migration_factory(migration_options)

        await migration.initialize()

        assert migration.get_current_state() == "initialized"
        assert in_memory_store.save_count == 1
        stored = (await in_memory_store.load()).get_migration("migration-test")
        assert stored.current_state == MigrationPhase.INITIALIZED
        assert stored.cluster_link_topics == ["orders", "payments", "audit"]

    @pytest.mark.asyncio
    async def test_initialize_twice_is_invalid(self, migration_factory, migration_options) -> None:
        migration = migration_factory(migration_options)
        await migration.initialize()

        with pytest.raises(InvalidTransitionError):
            await migration.initialize()

    @pytest.mark.asyncio
    async def test_validation_failure_is_wrapped(
        self, migration_factory, migration_options, in_memory_store, cluster_link
    ) -> None:
        cluster_link.mirrors = [mirror("orders")]
        migration = migration_factory(migration_options)

        with pytest.raises(StepFailedError) as exc_info:
            await migration.initialize()

        assert str(exc_info.value).startswith(
            "failed during initializing: topic payments not found in cluster link"
        )
        assert isinstance(exc_info.value.cause, TopicNotFoundError)
        assert migration.current_state == MigrationPhase.UNINITIALIZED
        assert in_memory_store.save_count == 0

    @pytest.mark.asyncio
    async def test_persist_without_transition(
        self, migration_factory, migration_options, in_memory_store
    ) -> None:
        migration = migration_factory(migration_options)

        await migration.persist()

        stored = (await in_memory_store.load()).get_migration("migration-test")
        assert stored.current_state == MigrationPhase.UNINITIALIZED


class TestExecute:
    """Tests for Migration.execute."""

    @pytest.mark.asyncio
    async def test_full_run_reaches_switched(
        self, migration_factory, migration_options, in_memory_store, gateway_client, cluster_link
    ) -> None:
        migration = migration_factory(migration_options)

        await migration.execute(lag_threshold=0, max_wait_seconds=5)

        assert migration.get_current_state() == "switched"
        assert in_memory_store.save_count == 6
        assert cluster_link.promoted_topics == ["orders", "payments"]
        assert len(gateway_client.patches) == 1
        assert migration.lag_report is not None
        assert migration.lag_report.caught_up

    @pytest.mark.asyncio
    async def test_resume_runs_only_remaining_steps(
        self, state, record, in_memory_store, gateway_client, cluster_link, fast_config
    ) -> None:
        record.current_state = MigrationPhase.PROMOTED
        state.upsert_migration(record)
        migration = Migration.load_migration(
            record.migration_id,
            state=state,
            store=in_memory_store,
            gateway=gateway_client,
            cluster_link=cluster_link,
            config=fast_config,
            enable_tracing=False,
        )

        await migration.execute(lag_threshold=0, max_wait_seconds=5)

        assert migration.get_current_state() == "switched"
        assert cluster_link.list_calls == 0
        assert cluster_link.promote_calls == []
        assert len(gateway_client.patches) == 1
        assert in_memory_store.save_count == 1

    @pytest.mark.asyncio
    async def test_execute_on_switched_is_a_no_op(
        self, state, record, in_memory_store, gateway_client, cluster_link
    ) -> None:
        record.current_state = MigrationPhase.SWITCHED
        state.upsert_migration(record)
        migration = Migration.load_migration(
            record.migration_id,
            state=state,
            store=in_memory_store,
            gateway=gateway_client,
            cluster_link=cluster_link,
            enable_tracing=False,
        )

        await migration.execute(lag_threshold=0, max_wait_seconds=5)

        assert gateway_client.patches == []
        assert in_memory_store.save_count == 0

    @pytest.mark.asyncio
    async def test_lag_timeout_names_the_step(
        self, migration_factory, migration_options, in_memory_store, cluster_link
    ) -> None:
        cluster_link.set_lags("payments", (0, 12))
        migration = migration_factory(migration_options)

        with pytest.raises(StepFailedError) as exc_info:
            await migration.execute(lag_threshold=0, max_wait_seconds=0.01)

        assert "failed during checking lags" in str(exc_info.value)
        assert isinstance(exc_info.value.cause, LagTimeoutError)
        assert migration.current_state == MigrationPhase.INITIALIZED
        assert in_memory_store.save_count == 1
        assert cluster_link.promote_calls == []

    @pytest.mark.asyncio
    async def test_invalid_options_raise_before_any_step(
        self, migration_factory, migration_options, cluster_link
    ) -> None:
        migration = migration_factory(migration_options)

        with pytest.raises(ValueError):
            await migration.execute(lag_threshold=-1, max_wait_seconds=5)
        with pytest.raises(ValueError):
            await migration.execute(lag_threshold=0, max_wait_seconds=0)

        assert cluster_link.list_calls == 0

    @pytest.mark.asyncio
    async def test_credentials_are_used_but_not_persisted(
        self, migration_factory, migration_options, in_memory_store, cluster_link
    ) -> None:
        migration = migration_factory(migration_options)

        await migration.execute(
            lag_threshold=0, max_wait_seconds=5, api_key="exec-key", api_secret="exec-secret"
        )

        assert cluster_link.configs_seen[-1].api_key == "exec-key"
        assert cluster_link.configs_seen[-1].api_secret == "exec-secret"
        stored = (await in_memory_store.load()).get_migration("migration-test")
        assert stored.cluster_api_key == ""
        assert stored.cluster_api_secret == ""

    @pytest.mark.asyncio
    async def test_rerun_after_pod_timeout_switches_once(
        self, migration_factory, migration_options, in_memory_store, gateway_client
    ) -> None:
        gateway_client.pod_wait_errors = [PodRecycleTimeoutError(NAMESPACE, GATEWAY_NAME, 0.05)]
        migration = migration_factory(migration_options)

        with pytest.raises(StepFailedError, match="failed during switching gateway"):
            await migration.execute(lag_threshold=0, max_wait_seconds=5)
        assert migration.current_state == MigrationPhase.PROMOTED

        await migration.execute(lag_threshold=0, max_wait_seconds=5)

        assert migration.get_current_state() == "switched"
        assert len(gateway_client.patches) == 1
        domains = [d["name"] for d in gateway_client.document["spec"]["streamingDomains"]]
        assert len(domains) == len(set(domains))
        stored = (await in_memory_store.load()).get_migration("migration-test")
        assert stored.current_state == MigrationPhase.SWITCHED


class TestCancellation:
    """Cancelling execute leaves the migration where it was."""

    @pytest.mark.asyncio
    async def test_cancel_during_lag_wait(
        self, state, migration_options, in_memory_store, gateway_client, cluster_link
    ) -> None:
        migration = Migration.new_migration(
            "migration-test",
            migration_options,
            state=state,
            store=in_memory_store,
            gateway=gateway_client,
            cluster_link=cluster_link,
            config=MigrationConfig(lag_poll_interval=30.0),
            enable_tracing=False,
        )
        await migration.initialize()
        cluster_link.set_lags("orders", (4,))
        saves_before = in_memory_store.save_count

        task = asyncio.create_task(migration.execute(lag_threshold=0, max_wait_seconds=600))
        while cluster_link.list_calls < 2:
            await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert migration.current_state == MigrationPhase.INITIALIZED
        assert not migration.halted
        assert in_memory_store.save_count == saves_before
        stored = (await in_memory_store.load()).get_migration("migration-test")
        assert stored.current_state == MigrationPhase.INITIALIZED


class TestPersistenceFailure:
    """A failed write halts the migration."""

    @pytest.mark.asyncio
    async def test_halts_after_exhausted_retries(
        self, migration_factory, migration_options, in_memory_store, error_handler, recording_sleep
    ) -> None:
        store = FailingStateStore(
            retry_config=in_memory_store.retry_config, error_handler=error_handler
        )
        migration = migration_factory(migration_options, store=store)

        with pytest.raises(PersistenceError):
            await migration.execute(lag_threshold=0, max_wait_seconds=5)

        assert store.attempts == 3
        assert len(recording_sleep.delays) == 2
        assert migration.halted
        # The side effect already happened, so memory is ahead of disk
        assert migration.current_state == MigrationPhase.INITIALIZED

        with pytest.raises(PersistenceError, match="halted"):
            await migration.execute(lag_threshold=0, max_wait_seconds=5)
        assert store.attempts == 3
