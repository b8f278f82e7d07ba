"""Unit tests for rollcall.infra.taskiq.lifespan."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from rollcall.foundation.application import LIFESPAN_PRIORITY_TASKIQ, LifespanContribution
from rollcall.infra.taskiq.lifespan import _taskiq_lifespan, lifespan_contribution


@pytest.mark.unit
class TestLifespanContribution:
    def test_is_lifespan_contribution(self) -> None:
        assert isinstance(lifespan_contribution, LifespanContribution)

    def test_runs_after_persistence(self) -> None:
        assert lifespan_contribution.priority == LIFESPAN_PRIORITY_TASKIQ == 150


@pytest.mark.unit
class TestTaskIQLifespan:
    @pytest.mark.asyncio
    @patch("rollcall.infra.taskiq.lifespan.get_broker")
    async def test_starts_then_stops_broker(self, mock_get_broker: MagicMock) -> None:
        mock_broker = AsyncMock()
        mock_get_broker.return_value = mock_broker

        async with _taskiq_lifespan(MagicMock()):
            mock_broker.startup.assert_awaited_once()
            mock_broker.shutdown.assert_not_called()

        mock_broker.shutdown.assert_awaited_once()

    @pytest.mark.asyncio
    @patch("rollcall.infra.taskiq.lifespan.get_broker")
    async def test_shutdown_called_on_exception(self, mock_get_broker: MagicMock) -> None:
        mock_broker = AsyncMock()
        mock_get_broker.return_value = mock_broker

        with pytest.raises(ValueError, match="worker crashed"):
            async with _taskiq_lifespan(MagicMock()):
                raise ValueError("worker crashed")

        mock_broker.shutdown.assert_awaited_once()
