"""
MigrationFSM - the cutover state machine.

The transition table is a plain mapping from event to (source, destination)
phase. There are no string-keyed callback registrations: the work for
leaving a phase is passed to ``fire`` by the caller, and persistence is a
single after-event hook supplied at construction.

Transition Protocol:
    1. Pre-transition log line
    2. Leave handler for the current phase (an exception cancels the
       transition and leaves ``current`` unchanged)
    3. Advance ``current``
    4. Post-transition log line
    5. After-event hook, shielded from cancellation

Usage:
    >>> fsm = MigrationFSM(MigrationPhase.UNINITIALIZED, after_event=persist)
    >>> fsm.can(MigrationEvent.INITIALIZE)
    True
    >>> await fsm.fire(MigrationEvent.INITIALIZE, on_leave=initializer.run)
    <MigrationPhase.INITIALIZED: 'initialized'>
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from gatewaycutover.exceptions import InvalidTransitionError
from gatewaycutover.models import MigrationEvent, MigrationPhase
from gatewaycutover.observability import (
    ATTR_MIGRATION_EVENT,
    ATTR_MIGRATION_ID,
    ATTR_MIGRATION_PHASE,
    ATTR_MIGRATION_TARGET_PHASE,
    Tracer,
    create_tracer,
)

logger = logging.getLogger(__name__)

LeaveHandler = Callable[[], Awaitable[None]]
"""Work that must succeed before the machine leaves the current phase."""

AfterEventHook = Callable[[MigrationEvent, MigrationPhase, MigrationPhase], Awaitable[None]]
"""Called with (event, source, destination) after every successful transition."""

TRANSITIONS: dict[MigrationEvent, tuple[MigrationPhase, MigrationPhase]] = {
    MigrationEvent.INITIALIZE: (MigrationPhase.UNINITIALIZED, MigrationPhase.INITIALIZED),
    MigrationEvent.WAIT_FOR_LAGS: (MigrationPhase.INITIALIZED, MigrationPhase.LAGS_OK),
    MigrationEvent.FENCE: (MigrationPhase.LAGS_OK, MigrationPhase.FENCED),
    MigrationEvent.PROMOTE: (MigrationPhase.FENCED, MigrationPhase.PROMOTING),
    MigrationEvent.WAIT_FOR_PROMOTION_COMPLETION: (
        MigrationPhase.PROMOTING,
        MigrationPhase.PROMOTED,
    ),
    MigrationEvent.SWITCH: (MigrationPhase.PROMOTED, MigrationPhase.SWITCHED),
}

EVENT_ORDER: tuple[MigrationEvent, ...] = (
    MigrationEvent.INITIALIZE,
    MigrationEvent.WAIT_FOR_LAGS,
    MigrationEvent.FENCE,
    MigrationEvent.PROMOTE,
    MigrationEvent.WAIT_FOR_PROMOTION_COMPLETION,
    MigrationEvent.SWITCH,
)
"""Fixed order in which ``Migration.execute`` fires events."""


def next_phase(phase: MigrationPhase, event: MigrationEvent) -> MigrationPhase | None:
    """
    Destination of ``event`` from ``phase``.

    Returns:
        The destination phase, or None if the event is not valid from ``phase``.
    """
    source, destination = TRANSITIONS[event]
    if source != phase:
        return None
    return destination


class MigrationFSM:
    """
    State machine for a single migration.

    The machine does not retry anything. A failed leave handler leaves the
    phase unchanged and the caller decides whether to fire again.

    Args:
        initial: Phase to start in (the persisted phase when resuming).
        after_event: Hook run after every successful transition.
        migration_id: Used in log lines and span attributes.
        tracer: Optional custom Tracer.
        enable_tracing: Create an OpenTelemetry tracer when no tracer is given.
    """

    def __init__(
        self,
        initial: MigrationPhase = MigrationPhase.UNINITIALIZED,
        *,
        after_event: AfterEventHook | None = None,
        migration_id: str | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._current = initial
        self._after_event = after_event
        self._migration_id = migration_id
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    @property
    def current(self) -> MigrationPhase:
        return self._current

    def can(self, event: MigrationEvent) -> bool:
        """Check whether ``event`` is valid from the current phase."""
        return next_phase(self._current, event) is not None

    async def fire(
        self,
        event: MigrationEvent,
        on_leave: LeaveHandler | None = None,
    ) -> MigrationPhase:
        """
        Fire an event.

        Args:
            event: The event to fire.
            on_leave: Work required to leave the current phase.

        Returns:
            The new current phase.

        Raises:
            InvalidTransitionError: If ``event`` is not valid from the current phase.
            Exception: Whatever the leave handler or after-event hook raised.
        """
        source = self._current
        destination = next_phase(source, event)
        if destination is None:
            raise InvalidTransitionError(source, event, migration_id=self._migration_id)

        with self._tracer.span(
            "gatewaycutover.fsm.fire",
            {
                ATTR_MIGRATION_ID: self._migration_id or "",
                ATTR_MIGRATION_EVENT: event.value,
                ATTR_MIGRATION_PHASE: source.value,
                ATTR_MIGRATION_TARGET_PHASE: destination.value,
            },
        ):
            logger.debug(
                "Migration %s: firing %s (%s -> %s)",
                self._migration_id,
                event.value,
                source.value,
                destination.value,
            )

            if on_leave is not None:
                await on_leave()

            self._current = destination
            logger.info(
                "Migration %s transitioned %s -> %s on %s",
                self._migration_id,
                source.value,
                destination.value,
                event.value,
            )

            if self._after_event is not None:
                await self._run_after_event(self._after_event, event, source, destination)

        return destination

    async def _run_after_event(
        self,
        hook: AfterEventHook,
        event: MigrationEvent,
        source: MigrationPhase,
        destination: MigrationPhase,
    ) -> None:
        # Once the phase has advanced the record must be written even if the
        # caller is cancelled; cancellation is re-raised after the write.
        task = asyncio.ensure_future(hook(event, source, destination))
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.done():
                logger.warning(
                    "Migration %s: cancelled while persisting %s, finishing the write first",
                    self._migration_id,
                    destination.value,
                )
            await task
            raise


__all__ = [
    "LeaveHandler",
    "AfterEventHook",
    "TRANSITIONS",
    "EVENT_ORDER",
    "next_phase",
    "MigrationFSM",
]
