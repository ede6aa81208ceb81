"""Integration tests for the pool launch monitor."""
from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from metina.config import LaunchConfig
from metina.models import LaunchCheck
from metina.services.launch import LaunchMonitor

MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"
POOL = {"pool_address": "Pool1"}


@pytest.fixture()
def damm() -> AsyncMock:
    damm = AsyncMock()
    damm.check_token_launched.return_value = LaunchCheck(has_pool=False)
    return damm


class TestWaitUntilLaunched:
    @pytest.mark.asyncio
    async def test_stops_on_first_pool(self, damm: AsyncMock) -> None:
        damm.check_token_launched.side_effect = [
            LaunchCheck(has_pool=False),
            LaunchCheck(has_pool=False),
            LaunchCheck(has_pool=True, pool_info=POOL, total=1),
        ]
        monitor = LaunchMonitor(damm, LaunchConfig(interval_seconds=2.0, timeout_seconds=10.0))

        with patch("metina.services.launch.asyncio.sleep", new_callable=AsyncMock) as sleep:
            result = await monitor.wait_until_launched(MINT)

        assert result.launched
        assert result.attempts == 3
        assert result.max_attempts == 5
        assert result.pool_info == POOL
        assert sleep.await_count == 2
        sleep.assert_awaited_with(2.0)

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, damm: AsyncMock) -> None:
        monitor = LaunchMonitor(damm, LaunchConfig(interval_seconds=2.0, timeout_seconds=10.0))

        with patch("metina.services.launch.asyncio.sleep", new_callable=AsyncMock) as sleep:
            result = await monitor.wait_until_launched(MINT)

        assert not result.launched
        assert result.attempts == 5
        assert damm.check_token_launched.await_count == 5
        assert sleep.await_count == 4

    @pytest.mark.asyncio
    async def test_explicit_interval_and_timeout(self, damm: AsyncMock) -> None:
        monitor = LaunchMonitor(damm)

        with patch("metina.services.launch.asyncio.sleep", new_callable=AsyncMock):
            result = await monitor.wait_until_launched(MINT, interval_seconds=2.0, timeout_seconds=5.0)

        assert result.max_attempts == 2

    @pytest.mark.asyncio
    async def test_timeout_shorter_than_interval_checks_once(self, damm: AsyncMock) -> None:
        monitor = LaunchMonitor(damm)

        with patch("metina.services.launch.asyncio.sleep", new_callable=AsyncMock) as sleep:
            result = await monitor.wait_until_launched(MINT, interval_seconds=5.0, timeout_seconds=1.0)

        assert result.max_attempts == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_default_budget(self, damm: AsyncMock) -> None:
        monitor = LaunchMonitor(damm)

        with patch("metina.services.launch.asyncio.sleep", new_callable=AsyncMock):
            result = await monitor.wait_until_launched(MINT)

        assert result.max_attempts == 150

    @pytest.mark.asyncio
    async def test_rejects_non_positive_interval(self, damm: AsyncMock) -> None:
        with pytest.raises(ValueError):
            await LaunchMonitor(damm).wait_until_launched(MINT, interval_seconds=0)

    @pytest.mark.asyncio
    async def test_single_check(self, damm: AsyncMock) -> None:
        damm.check_token_launched.return_value = LaunchCheck(has_pool=True, pool_info=POOL)
        check = await LaunchMonitor(damm).check_token_launched(MINT)
        assert check.has_pool
        damm.check_token_launched.assert_awaited_once_with(MINT)
