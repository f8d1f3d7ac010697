"""Tests for synthetic progress estimation."""

import asyncio

import pytest

from photo_editor.services.progress import SyntheticProgress


class _Stop(Exception):
    pass


class _FixedRandom:
    def random(self) -> float:
        return 0.5


def _sleep_limit(limit: int):  # type: ignore[no-untyped-def]
    calls = 0

    async def sleep(seconds: float) -> None:
        nonlocal calls
        calls += 1
        if calls > limit:
            raise _Stop

    return sleep


def test_synthetic_progress_stays_below_ceiling() -> None:
    progress = SyntheticProgress(rng=_FixedRandom(), sleep=_sleep_limit(10))
    reported: list[float] = []

    with pytest.raises(_Stop):
        asyncio.run(progress.run(reported.append))

    assert reported == [15 + 7.5 * step for step in range(1, 10)]
    assert max(reported) < 85


def test_synthetic_progress_can_be_cancelled() -> None:
    progress = SyntheticProgress(interval_seconds=0.001)
    reported: list[float] = []

    async def scenario() -> None:
        task = asyncio.create_task(progress.run(reported.append))
        await asyncio.sleep(0.02)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())

    assert all(15 < value < 85 for value in reported)
