"""Ordered action/compensation runner for multi-resource operations.

A saga is a fixed list of :class:`SagaStep` entries. Steps run in order
against a shared mutable state object. When a step fails, the steps that
already completed are compensated in strict reverse order and the original
exception is re-raised to the caller.

Compensation is best-effort. A failing compensation is logged, recorded in
the :class:`SagaReport` and attached to the original exception as a note,
but it never replaces the original exception.

Cancellation of the calling task does not skip compensation: compensations
run shielded and the cancellation propagates once they have finished.

Example:
    >>> steps = [
    ...     SagaStep("reserve", reserve, compensation=release),
    ...     SagaStep("create", create, compensation=delete),
    ... ]
    >>> report = await Saga("provisioning", steps).run(state)
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import nullcontext
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, Protocol, TypeVar

from rollcall.foundation.domain.exceptions import StepTimeoutError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence
    from contextlib import AbstractAsyncContextManager

logger = logging.getLogger(__name__)

StateT = TypeVar("StateT")


@dataclass(frozen=True, slots=True)
class SagaStep(Generic[StateT]):
    """One forward action and the action that undoes it.

    Attributes:
        name: Step name used in logs, spans and reports.
        action: Coroutine function performing the step.
        compensation: Coroutine function undoing the step, or None when the
            step creates nothing.
        compensate_on_failure: Also run the compensation when this step's
            own action fails. Only for idempotent compensations of records
            whose identity is fixed before the action runs, so a write that
            landed but was reported as failed (e.g. timed out) is removed.
    """

    name: str
    action: Callable[[StateT], Awaitable[None]]
    compensation: Callable[[StateT], Awaitable[None]] | None = None
    compensate_on_failure: bool = False


@dataclass(frozen=True, slots=True)
class CompensationFailure:
    """A compensation that raised. Reported, never re-raised."""

    saga: str
    step: str
    error: BaseException

    def describe(self) -> str:
        return f"compensation of step {self.step!r} in {self.saga} failed: {self.error!r}"


@dataclass(slots=True)
class SagaReport:
    """What happened during one saga run."""

    saga: str
    completed: list[str] = field(default_factory=list)
    failed_step: str | None = None
    compensated: list[str] = field(default_factory=list)
    compensation_failures: list[CompensationFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.failed_step is None

    @property
    def fully_compensated(self) -> bool:
        return not self.compensation_failures


class StepInstrument(Protocol):
    """Wraps each action and compensation, e.g. in a tracing span."""

    def __call__(self, saga: str, step: str, phase: str) -> AbstractAsyncContextManager[object]:
        ...


def _no_instrument(saga: str, step: str, phase: str) -> AbstractAsyncContextManager[object]:
    return nullcontext()


class Saga(Generic[StateT]):
    """Runs a fixed sequence of steps with reverse-order compensation.

    Args:
        name: Saga name used in logs and reports.
        steps: Steps in execution order.
        step_timeout: Seconds allowed for each action and each compensation.
            None disables the limit. A timed-out action counts as failed.
        instrument: Optional hook wrapping every action and compensation.
    """

    def __init__(
        self,
        name: str,
        steps: Sequence[SagaStep[StateT]],
        *,
        step_timeout: float | None = None,
        instrument: StepInstrument | None = None,
    ) -> None:
        names = [s.name for s in steps]
        if len(set(names)) != len(names):
            msg = f"Saga {name!r} has duplicate step names: {names}"
            raise ValueError(msg)
        self._name = name
        self._steps = tuple(steps)
        self._step_timeout = step_timeout
        self._instrument = instrument or _no_instrument

    @property
    def name(self) -> str:
        return self._name

    @property
    def step_names(self) -> tuple[str, ...]:
        return tuple(s.name for s in self._steps)

    async def run(self, state: StateT, report: SagaReport | None = None) -> SagaReport:
        """Execute every step, compensating completed ones on failure.

        Args:
            state: Mutable state shared by all steps.
            report: Optional report to fill in, so callers can inspect the
                outcome even when the run raises.

        Returns:
            The report of a successful run.

        Raises:
            Exception: Whatever the failing step raised, after compensation.
        """
        report = report if report is not None else SagaReport(saga=self._name)
        completed: list[SagaStep[StateT]] = []

        for step in self._steps:
            try:
                await self._run_action(step, state)
            except (Exception, asyncio.CancelledError) as exc:
                report.failed_step = step.name
                logger.warning(
                    "saga_step_failed",
                    extra={
                        "saga": self._name,
                        "step": step.name,
                        "error_type": type(exc).__name__,
                        "completed_steps": [s.name for s in completed],
                    },
                )
                to_undo = [*completed, step] if step.compensate_on_failure else completed
                await self._compensate_shielded(to_undo, state, report)
                for failure in report.compensation_failures:
                    exc.add_note(failure.describe())
                raise
            completed.append(step)
            report.completed.append(step.name)

        logger.debug("saga_completed", extra={"saga": self._name, "steps": report.completed})
        return report

    async def _run_action(self, step: SagaStep[StateT], state: StateT) -> None:
        async with self._instrument(self._name, step.name, "action"):
            await self._with_timeout(step.name, step.action(state))

    async def _with_timeout(self, step_name: str, coro: Awaitable[None]) -> None:
        if self._step_timeout is None:
            await coro
            return
        try:
            async with asyncio.timeout(self._step_timeout):
                await coro
        except TimeoutError as exc:
            raise StepTimeoutError(self._name, step_name, self._step_timeout) from exc

    async def _compensate_shielded(
        self,
        completed: list[SagaStep[StateT]],
        state: StateT,
        report: SagaReport,
    ) -> None:
        task = asyncio.ensure_future(self._compensate(completed, state, report))
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            # The caller went away again; compensation finishes on its own.
            logger.warning(
                "saga_compensation_detached",
                extra={"saga": self._name, "pending_steps": [s.name for s in completed]},
            )
            raise

    async def _compensate(
        self,
        completed: list[SagaStep[StateT]],
        state: StateT,
        report: SagaReport,
    ) -> None:
        for step in reversed(completed):
            if step.compensation is None:
                continue
            try:
                async with self._instrument(self._name, step.name, "compensation"):
                    await self._with_timeout(step.name, step.compensation(state))
            except Exception as exc:
                report.compensation_failures.append(
                    CompensationFailure(saga=self._name, step=step.name, error=exc)
                )
                logger.exception(
                    "saga_compensation_failed",
                    extra={"saga": self._name, "step": step.name},
                )
            else:
                report.compensated.append(step.name)
                logger.info(
                    "saga_step_compensated",
                    extra={"saga": self._name, "step": step.name},
                )
