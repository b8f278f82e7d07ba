"""Span instrumentation for saga steps.

``saga_step_span`` matches the saga runner's ``StepInstrument`` hook: pass it
as ``instrument=`` and every action runs in a span named
``saga.<saga>.<step>`` and every compensation in
``saga.<saga>.<step>.compensation``. Without a configured TracerProvider the
spans are non-recording and cost next to nothing.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from contextlib import AbstractAsyncContextManager

_TRACER_NAME = "rollcall.saga"


def set_span_error(span: trace.Span, exc: BaseException) -> None:
    """Record ``exc`` on ``span`` and mark the span failed."""
    span.set_status(Status(StatusCode.ERROR, str(exc)))
    span.record_exception(exc)


class SagaSpanInstrument:
    """Callable ``(saga, step, phase)`` that opens one span per saga step.

    Args:
        tracer_provider: Provider to draw the tracer from. The global
            provider is used when None.
    """

    def __init__(self, tracer_provider: trace.TracerProvider | None = None) -> None:
        self._tracer_provider = tracer_provider

    def __call__(
        self, saga: str, step: str, phase: str
    ) -> AbstractAsyncContextManager[trace.Span]:
        return self._span(saga, step, phase)

    @asynccontextmanager
    async def _span(self, saga: str, step: str, phase: str) -> AsyncIterator[trace.Span]:
        tracer = trace.get_tracer(_TRACER_NAME, tracer_provider=self._tracer_provider)
        compensation = phase == "compensation"
        name = f"saga.{saga}.{step}" + (".compensation" if compensation else "")
        with tracer.start_as_current_span(
            name,
            record_exception=False,
            set_status_on_exception=False,
        ) as span:
            span.set_attribute("saga.name", saga)
            span.set_attribute("saga.step", step)
            span.set_attribute("saga.compensation", compensation)
            try:
                yield span
            except Exception as exc:
                span.set_attribute("saga.outcome", "failed")
                set_span_error(span, exc)
                raise
            span.set_attribute("saga.outcome", "ok")
            span.set_status(Status(StatusCode.OK))


saga_step_span = SagaSpanInstrument()
