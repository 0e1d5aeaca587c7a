"""
Polling Tests
=============

Uses a fake clock and fake stat() so no real time passes, plus one
check against a real file.
"""

from types import SimpleNamespace

import pytest

from frameshot.errors import FileTimeoutError
from frameshot.models.error_codes import ErrorKind
from frameshot.pipeline.polling import PollTimeout, poll_until, wait_stable


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps = 0

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps += 1
        self.now += seconds


class FakeStat:
    """Replays a sequence of sizes; None means the file is missing."""

    def __init__(self, sizes) -> None:
        self.sizes = list(sizes)
        self.calls = 0

    def __call__(self, path):
        index = min(self.calls, len(self.sizes) - 1)
        self.calls += 1
        size = self.sizes[index]
        if size is None:
            raise FileNotFoundError(path)
        return SimpleNamespace(st_size=size)


class GrowingStat:
    """File that never stops growing."""

    def __init__(self) -> None:
        self.size = 0

    def __call__(self, path):
        self.size += 100
        return SimpleNamespace(st_size=self.size)


class TestPollUntil:
    """Tests for poll_until."""

    @pytest.mark.asyncio
    async def test_returns_first_value(self):
        clock = FakeClock()
        answers = iter([None, None, "ready"])
        result = await poll_until(
            lambda: next(answers), interval=0.1, timeout=5, clock=clock, sleep=clock.sleep
        )
        assert result == "ready"
        assert clock.sleeps == 2

    @pytest.mark.asyncio
    async def test_times_out(self):
        clock = FakeClock()
        with pytest.raises(PollTimeout):
            await poll_until(lambda: None, interval=0.1, timeout=1, clock=clock, sleep=clock.sleep)
        assert clock.now == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_rejects_bad_interval(self):
        with pytest.raises(ValueError):
            await poll_until(lambda: 1, interval=0, timeout=1)


class TestWaitStable:
    """Tests for wait_stable."""

    @pytest.mark.asyncio
    async def test_waits_for_size_to_settle(self):
        """Verify a growing file is only accepted once it stops growing."""
        clock = FakeClock()
        stat = FakeStat([None, 10, 20, 20, 20])
        result = await wait_stable(
            "out.jpg", timeout=5, interval=0.1, required_checks=2,
            stat=stat, clock=clock, sleep=clock.sleep,
        )
        assert result.st_size == 20
        assert stat.calls == 5

    @pytest.mark.asyncio
    async def test_size_change_resets_count(self):
        clock = FakeClock()
        stat = FakeStat([10, 10, 30, 30, 30])
        result = await wait_stable(
            "out.jpg", timeout=5, interval=0.1, required_checks=2,
            stat=stat, clock=clock, sleep=clock.sleep,
        )
        assert result.st_size == 30
        assert stat.calls == 5

    @pytest.mark.asyncio
    async def test_missing_file_times_out(self):
        clock = FakeClock()
        with pytest.raises(FileTimeoutError) as exc_info:
            await wait_stable(
                "never.jpg", timeout=1, stat=FakeStat([None]),
                clock=clock, sleep=clock.sleep,
            )
        assert exc_info.value.kind == ErrorKind.OUTPUT_TIMEOUT

    @pytest.mark.asyncio
    async def test_empty_file_never_stable(self):
        clock = FakeClock()
        with pytest.raises(FileTimeoutError):
            await wait_stable(
                "empty.jpg", timeout=1, stat=FakeStat([0]),
                clock=clock, sleep=clock.sleep,
            )

    @pytest.mark.asyncio
    async def test_growing_file_times_out(self):
        clock = FakeClock()
        with pytest.raises(FileTimeoutError):
            await wait_stable(
                "growing.mp4", timeout=2, stat=GrowingStat(),
                clock=clock, sleep=clock.sleep,
            )
        assert clock.now == pytest.approx(2.0)

    @pytest.mark.asyncio
    async def test_real_file(self, tmp_path):
        path = tmp_path / "frame.jpg"
        path.write_bytes(b"x" * 600)
        result = await wait_stable(path, timeout=2, interval=0.01)
        assert result.st_size == 600
