"""
Migration - the orchestration facade.

A Migration owns one MigrationFSM, the migration record it drives, and the
workflow components that do the work of each transition. Callers only see
``initialize``, ``execute`` and ``get_current_state``.

Leave Handlers (work done to get out of a phase):
    uninitialized -> MigrationInitializer.run
    initialized   -> LagMonitor.wait_for_lags
    lags_ok       -> fencing (logged, no external action)
    fenced        -> PromotionController.promote_all
    promoting     -> PromotionController.check_completion
    promoted      -> GatewaySwitchover.switch

Persistence:
    After every transition the record is upserted into the MigrationState
    document and written through ``StateStore.save_with_retry``. If that
    fails the migration is halted: the error propagates as PersistenceError
    and every later call refuses to run. The process entry point exits
    non-zero.

Usage:
    >>> state = await store.load_or_create()
    >>> migration = Migration.load_migration(
    ...     "migration-1234",
    ...     state=state,
    ...     store=store,
    ...     gateway=KubernetesGatewayClient(),
    ...     cluster_link=RestClusterLinkClient(),
    ... )
    >>> await migration.execute(
    ...     lag_threshold=0, max_wait_seconds=600, api_key=key, api_secret=secret
    ... )
    >>> migration.get_current_state()
    'switched'
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from gatewaycutover.clusterlink import ClusterLinkClient, ClusterLinkConfig
from gatewaycutover.exceptions import (
    InvalidTransitionError,
    PersistenceError,
    StepFailedError,
)
from gatewaycutover.fsm import EVENT_ORDER, LeaveHandler, MigrationFSM
from gatewaycutover.gateway import GatewayClient, GatewayConfig
from gatewaycutover.initializer import MigrationInitializer
from gatewaycutover.lag_monitor import LagMonitor, LagReport
from gatewaycutover.models import (
    ExecuteOptions,
    MigrationConfig,
    MigrationEvent,
    MigrationOptions,
    MigrationPhase,
    MigrationRecord,
    MigrationState,
)
from gatewaycutover.observability import Tracer, create_tracer
from gatewaycutover.promotion import PromotionController
from gatewaycutover.stores import StateStore
from gatewaycutover.switchover import GatewaySwitchover

logger = logging.getLogger(__name__)

STEP_NAMES: dict[MigrationEvent, str] = {
    MigrationEvent.INITIALIZE: "initializing",
    MigrationEvent.WAIT_FOR_LAGS: "checking lags",
    MigrationEvent.FENCE: "fencing",
    MigrationEvent.PROMOTE: "promoting topics",
    MigrationEvent.WAIT_FOR_PROMOTION_COMPLETION: "waiting for promotion completion",
    MigrationEvent.SWITCH: "switching gateway",
}
"""Step names used in StepFailedError messages."""


class Migration:
    """
    Drives one migration through its phases.

    Build one with ``new_migration`` or ``load_migration`` rather than the
    constructor.

    Args:
        record: The migration record (mutated in place as phases advance).
        state: The in-memory state document the record is upserted into.
        store: Where the state document is persisted.
        gateway: Gateway client.
        cluster_link: Cluster link client.
        config: Engine tunables.
        tracer: Optional custom Tracer shared with every component.
        enable_tracing: Create an OpenTelemetry tracer when no tracer is given.
    """

    def __init__(
        self,
        record: MigrationRecord,
        *,
        state: MigrationState,
        store: StateStore,
        gateway: GatewayClient,
        cluster_link: ClusterLinkClient,
        config: MigrationConfig | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._record = record
        self._state = state
        self._store = store
        self._config = config or MigrationConfig()
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._halted = False

        self._fsm = MigrationFSM(
            record.current_state,
            after_event=self._persist_transition,
            migration_id=record.migration_id,
            tracer=self._tracer,
        )
        self._initializer = MigrationInitializer(gateway, cluster_link, tracer=self._tracer)
        self._lag_monitor = LagMonitor(cluster_link, config=self._config, tracer=self._tracer)
        self._promotion = PromotionController(cluster_link, config=self._config, tracer=self._tracer)
        self._switchover = GatewaySwitchover(gateway, config=self._config, tracer=self._tracer)

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def new_migration(
        cls,
        migration_id: str,
        options: MigrationOptions,
        *,
        state: MigrationState,
        store: StateStore,
        gateway: GatewayClient,
        cluster_link: ClusterLinkClient,
        config: MigrationConfig | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> Migration:
        """
        Create a migration in the ``uninitialized`` phase.

        Nothing is persisted until the first transition or ``persist()``.

        Raises:
            ValueError: If ``migration_id`` already exists in ``state``.
        """
        if state.has_migration(migration_id):
            raise ValueError(f"migration '{migration_id}' already exists")
        record = MigrationRecord.from_options(migration_id, options)
        return cls(
            record,
            state=state,
            store=store,
            gateway=gateway,
            cluster_link=cluster_link,
            config=config,
            tracer=tracer,
            enable_tracing=enable_tracing,
        )

    @classmethod
    def load_migration(
        cls,
        migration_id: str,
        *,
        state: MigrationState,
        store: StateStore,
        gateway: GatewayClient,
        cluster_link: ClusterLinkClient,
        config: MigrationConfig | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> Migration:
        """
        Rehydrate a migration in its last persisted phase.

        Raises:
            MigrationNotFoundError: If ``migration_id`` is not in ``state``.
        """
        record = state.get_migration(migration_id)
        logger.info("Loaded migration %s in state %s", migration_id, record.current_state.value)
        return cls(
            record,
            state=state,
            store=store,
            gateway=gateway,
            cluster_link=cluster_link,
            config=config,
            tracer=tracer,
            enable_tracing=enable_tracing,
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def migration_id(self) -> str:
        return self._record.migration_id

    @property
    def current_state(self) -> MigrationPhase:
        return self._fsm.current

    @property
    def record(self) -> MigrationRecord:
        """The live migration record."""
        return self._record

    @property
    def halted(self) -> bool:
        """True once a transition could not be persisted."""
        return self._halted

    @property
    def lag_report(self) -> LagReport | None:
        """Last lag poll made by this instance, if any."""
        return self._lag_monitor.last_report

    def get_current_state(self) -> str:
        return self._fsm.current.value

    # =========================================================================
    # Entry points
    # =========================================================================

    async def initialize(self) -> None:
        """
        Validate the environment and move to ``initialized``.

        Raises:
            InvalidTransitionError: If the migration is past ``uninitialized``.
            StepFailedError: If validation fails.
            PersistenceError: If the new phase could not be persisted.
        """
        self._ensure_not_halted()
        if not self._fsm.can(MigrationEvent.INITIALIZE):
            raise InvalidTransitionError(
                self._fsm.current, MigrationEvent.INITIALIZE, migration_id=self.migration_id
            )
        await self._fire(MigrationEvent.INITIALIZE, self._leave_uninitialized)

    async def execute(
        self,
        lag_threshold: int,
        max_wait_seconds: float,
        api_key: str = "",
        api_secret: str = "",
    ) -> None:
        """
        Run every remaining transition in order.

        Events whose source phase has already been passed are skipped, so
        calling this again after a failure resumes where the last call
        stopped.

        Args:
            lag_threshold: Per-partition lag threshold (>= 0).
            max_wait_seconds: Budget for the lag wait (> 0).
            api_key: Cluster REST API key (kept in memory only).
            api_secret: Cluster REST API secret (kept in memory only).

        Raises:
            ValueError: If the threshold or wait budget is invalid.
            StepFailedError: Wrapping the first failure, e.g.
                ``failed during checking lags: ...``.
            PersistenceError: If a transition could not be persisted.
            asyncio.CancelledError: If the calling task is cancelled.
        """
        options = ExecuteOptions(
            lag_threshold=lag_threshold,
            max_wait_seconds=max_wait_seconds,
            api_key=api_key,
            api_secret=api_secret,
        )
        self._ensure_not_halted()

        if options.api_key:
            self._record.cluster_api_key = options.api_key
        if options.api_secret:
            self._record.cluster_api_secret = options.api_secret

        handlers = self._leave_handlers(options)
        logger.info(
            "Executing migration %s from state %s",
            self.migration_id,
            self._fsm.current.value,
        )
        for event in EVENT_ORDER:
            if not self._fsm.can(event):
                logger.debug("Skipping %s from state %s", event.value, self._fsm.current.value)
                continue
            await self._fire(event, handlers[self._fsm.current])

        logger.info("Migration %s finished in state %s", self.migration_id, self._fsm.current.value)

    async def persist(self) -> None:
        """
        Write the record in its current phase without transitioning.

        Raises:
            PersistenceError: If the write fails after retries.
        """
        self._ensure_not_halted()
        await self._save()

    # =========================================================================
    # Transitions
    # =========================================================================

    async def _fire(self, event: MigrationEvent, handler: LeaveHandler) -> None:
        try:
            await self._fsm.fire(event, on_leave=handler)
        except PersistenceError:
            raise
        except Exception as e:
            step = STEP_NAMES[event]
            logger.error("Migration %s failed during %s: %s", self.migration_id, step, e)
            raise StepFailedError(step, e, migration_id=self.migration_id) from e

    def _leave_handlers(self, options: ExecuteOptions) -> dict[MigrationPhase, LeaveHandler]:
        async def wait_for_lags() -> None:
            await self._lag_monitor.wait_for_lags(
                self._link_config(), options.lag_threshold, options.max_wait_seconds
            )

        async def promote() -> None:
            await self._promotion.promote_all(self._link_config())

        async def check_promotion() -> None:
            await self._promotion.check_completion(self._link_config())

        async def switch() -> None:
            await self._switchover.switch(
                GatewayConfig.from_record(self._record),
                cc_bootstrap_endpoint=self._record.cc_bootstrap_endpoint,
                load_balancer_endpoint=self._record.load_balancer_endpoint,
            )

        handlers: dict[MigrationPhase, Callable[[], Awaitable[None]]] = {
            MigrationPhase.UNINITIALIZED: self._leave_uninitialized,
            MigrationPhase.INITIALIZED: wait_for_lags,
            MigrationPhase.LAGS_OK: self._fence,
            MigrationPhase.FENCED: promote,
            MigrationPhase.PROMOTING: check_promotion,
            MigrationPhase.PROMOTED: switch,
        }
        return handlers

    async def _leave_uninitialized(self) -> None:
        await self._initializer.run(self._record)

    async def _fence(self) -> None:
        # Writes are blocked by the operator's own tooling; the phase is only
        # recorded here so promotion never starts before it.
        logger.info(
            "Migration %s: source domain %s fenced",
            self.migration_id,
            self._record.source_name,
        )

    def _link_config(self) -> ClusterLinkConfig:
        return ClusterLinkConfig.from_record(self._record)

    # =========================================================================
    # Persistence
    # =========================================================================

    async def _persist_transition(
        self,
        event: MigrationEvent,
        source: MigrationPhase,
        destination: MigrationPhase,
    ) -> None:
        self._record.current_state = destination
        await self._save()

    async def _save(self) -> None:
        self._record.touch()
        self._state.upsert_migration(self._record)
        try:
            await self._store.save_with_retry(self._state)
        except PersistenceError as e:
            self._halted = True
            logger.critical(
                "Migration %s advanced to %s but the state could not be persisted: %s. "
                "Refusing further transitions.",
                self.migration_id,
                self._record.current_state.value,
                e,
            )
            raise

    def _ensure_not_halted(self) -> None:
        if self._halted:
            raise PersistenceError(
                "migration is halted after a persistence failure; fix the state store "
                "and restart the process",
                migration_id=self.migration_id,
            )


__all__ = ["STEP_NAMES", "Migration"]
