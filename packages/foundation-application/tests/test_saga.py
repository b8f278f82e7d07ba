"""Unit tests for the ordered action/compensation runner."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import pytest

from rollcall.foundation.application.saga import Saga, SagaReport, SagaStep
from rollcall.foundation.domain.exceptions import StepTimeoutError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


@dataclass
class _State:
    log: list[str] = field(default_factory=list)


def _step(
    name: str, *, fail: Exception | None = None, undo_fails: bool = False
) -> SagaStep[_State]:
    async def action(state: _State) -> None:
        if fail is not None:
            raise fail
        state.log.append(f"do:{name}")

    async def compensation(state: _State) -> None:
        if undo_fails:
            raise RuntimeError(f"cannot undo {name}")
        state.log.append(f"undo:{name}")

    return SagaStep(name, action, compensation)


@pytest.mark.unit
class TestSagaSuccess:
    @pytest.mark.asyncio
    async def test_runs_steps_in_order(self) -> None:
        state = _State()
        report = await Saga("demo", [_step("a"), _step("b"), _step("c")]).run(state)

        assert state.log == ["do:a", "do:b", "do:c"]
        assert report.succeeded
        assert report.completed == ["a", "b", "c"]
        assert report.compensated == []

    def test_duplicate_step_names_rejected(self) -> None:
        with pytest.raises(ValueError, match="duplicate step names"):
            Saga("demo", [_step("a"), _step("a")])

    def test_step_names(self) -> None:
        assert Saga("demo", [_step("a"), _step("b")]).step_names == ("a", "b")


@pytest.mark.unit
class TestSagaCompensation:
    @pytest.mark.asyncio
    async def test_failure_compensates_completed_steps_in_reverse(self) -> None:
        state = _State()
        boom = ValueError("boom")
        saga = Saga("demo", [_step("a"), _step("b"), _step("c", fail=boom), _step("d")])
        report = SagaReport(saga="demo")

        with pytest.raises(ValueError, match="boom") as exc_info:
            await saga.run(state, report)

        assert exc_info.value is boom
        assert state.log == ["do:a", "do:b", "undo:b", "undo:a"]
        assert report.failed_step == "c"
        assert report.compensated == ["b", "a"]
        assert report.fully_compensated

    @pytest.mark.asyncio
    async def test_first_step_failure_compensates_nothing(self) -> None:
        state = _State()
        with pytest.raises(ValueError):
            await Saga("demo", [_step("a", fail=ValueError("x")), _step("b")]).run(state)
        assert state.log == []

    @pytest.mark.asyncio
    async def test_compensation_failure_never_masks_original_error(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        state = _State()
        saga = Saga(
            "demo",
            [_step("a"), _step("b", undo_fails=True), _step("c", fail=KeyError("c"))],
        )
        report = SagaReport(saga="demo")

        with pytest.raises(KeyError) as exc_info:
            await saga.run(state, report)

        # "a" is still compensated after "b" failed to undo.
        assert state.log == ["do:a", "do:b", "undo:a"]
        assert report.compensated == ["a"]
        assert [f.step for f in report.compensation_failures] == ["b"]
        assert not report.fully_compensated
        assert any("cannot undo b" in note for note in exc_info.value.__notes__)
        assert "saga_compensation_failed" in caplog.text

    @pytest.mark.asyncio
    async def test_steps_without_compensation_are_skipped(self) -> None:
        state = _State()

        async def check(state: _State) -> None:
            state.log.append("check")

        saga = Saga("demo", [SagaStep("check", check), _step("a"), _step("b", fail=OSError())])
        with pytest.raises(OSError):
            await saga.run(state)
        assert state.log == ["check", "do:a", "undo:a"]

    @pytest.mark.asyncio
    async def test_failed_step_compensated_when_flagged(self) -> None:
        state = _State()

        async def write_then_fail(state: _State) -> None:
            state.log.append("do:write")
            raise TimeoutError

        async def delete(state: _State) -> None:
            state.log.append("undo:write")

        saga = Saga(
            "demo",
            [_step("a"), SagaStep("write", write_then_fail, delete, compensate_on_failure=True)],
        )
        with pytest.raises(TimeoutError):
            await saga.run(state)
        assert state.log == ["do:a", "do:write", "undo:write", "undo:a"]


@pytest.mark.unit
class TestSagaTimeouts:
    @pytest.mark.asyncio
    async def test_timed_out_step_is_treated_as_failed(self) -> None:
        state = _State()

        async def hang(state: _State) -> None:
            await asyncio.sleep(10)
            state.log.append("never")

        saga = Saga("demo", [_step("a"), SagaStep("hang", hang)], step_timeout=0.01)
        with pytest.raises(StepTimeoutError) as exc_info:
            await saga.run(state)

        assert exc_info.value.step == "hang"
        assert state.log == ["do:a", "undo:a"]


@pytest.mark.unit
class TestSagaCancellation:
    @pytest.mark.asyncio
    async def test_cancelled_caller_still_compensates(self) -> None:
        state = _State()
        entered = asyncio.Event()

        async def wait_forever(state: _State) -> None:
            entered.set()
            await asyncio.Event().wait()

        saga = Saga("demo", [_step("a"), _step("b"), SagaStep("wait", wait_forever)])
        task = asyncio.create_task(saga.run(state))
        await entered.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert state.log == ["do:a", "do:b", "undo:b", "undo:a"]


@pytest.mark.unit
class TestSagaInstrument:
    @pytest.mark.asyncio
    async def test_instrument_wraps_actions_and_compensations(self) -> None:
        calls: list[tuple[str, str, str]] = []

        @asynccontextmanager
        async def instrument(saga: str, step: str, phase: str) -> AsyncIterator[None]:
            calls.append((saga, step, phase))
            yield

        saga = Saga("demo", [_step("a"), _step("b", fail=ValueError())], instrument=instrument)
        with pytest.raises(ValueError):
            await saga.run(_State())

        assert calls == [
            ("demo", "a", "action"),
            ("demo", "b", "action"),
            ("demo", "a", "compensation"),
        ]
