"""
Tracer protocol and implementations for composition-based tracing.

Every cutover component (FSM, initializer, lag monitor, promotion
controller, switchover) receives a tracer instead of calling OpenTelemetry
itself. Spans are named ``gatewaycutover.<component>.<operation>`` and carry
the keys from ``gatewaycutover.observability.attributes``.

Example:
    >>> tracer = create_tracer(__name__, enable_tracing=True)
    >>> with tracer.span("gatewaycutover.lag_monitor.wait", {ATTR_LAG_THRESHOLD: 0}):
    ...     await monitor_poll()
"""

from __future__ import annotations

import contextlib
from collections.abc import Generator
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from opentelemetry import trace

if TYPE_CHECKING:
    from opentelemetry.trace import Span


@runtime_checkable
class Tracer(Protocol):
    """
    What a cutover component needs from a tracer.

    ``span`` yields the live span (or None) so a component can attach
    attributes only known at the end, such as the number of polls.
    """

    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> AbstractContextManager[Span | None]: ...

    @property
    def enabled(self) -> bool: ...


class NullTracer:
    """Tracer used with ``enable_tracing=False``; spans are never created."""

    @contextlib.contextmanager
    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> Generator[None, None, None]:
        yield None

    @property
    def enabled(self) -> bool:
        return False


class OpenTelemetryTracer:
    """
    Tracer backed by the OpenTelemetry API.

    Spans go to whatever TracerProvider the process running the CLI has
    configured. With only ``opentelemetry-api`` installed they are
    non-recording, so a cutover without an exporter costs nothing.

    Args:
        tracer_name: Instrumentation scope, usually the component's ``__name__``.
    """

    def __init__(self, tracer_name: str) -> None:
        self._tracer = trace.get_tracer(tracer_name)

    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> AbstractContextManager[Span | None]:
        """Start ``name`` as the current span; exceptions are recorded on it."""
        return self._tracer.start_as_current_span(
            name,
            attributes=attributes or {},
        )

    @property
    def enabled(self) -> bool:
        return True


class MockTracer:
    """
    Records every span opened by a component under test.

    Example:
        >>> tracer = MockTracer()
        >>> await GatewaySwitchover(gateway, tracer=tracer).switch(...)
        >>> tracer.span_names
        ['gatewaycutover.switchover.switch']
    """

    def __init__(self) -> None:
        self.spans: list[tuple[str, dict[str, Any] | None]] = []

    @contextlib.contextmanager
    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> Generator[None, None, None]:
        self.spans.append((name, attributes))
        yield None

    @property
    def enabled(self) -> bool:
        return True

    @property
    def span_names(self) -> list[str]:
        return [name for name, _ in self.spans]

    def clear(self) -> None:
        self.spans.clear()


def create_tracer(
    name: str,
    enable_tracing: bool = True,
) -> Tracer:
    """
    Pick the tracer a cutover component uses when none is injected.

    ``Migration`` passes its own tracer down to the FSM and every step, so
    this only decides the default for the facade and for components built
    on their own, as the unit tests do with ``enable_tracing=False``.

    Args:
        name: Instrumentation scope, usually the calling module's ``__name__``.
        enable_tracing: False gives a NullTracer.
    """
    if enable_tracing:
        return OpenTelemetryTracer(name)
    return NullTracer()


__all__ = [
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
]
