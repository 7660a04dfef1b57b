"""Shared fakes and utilities for tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


# 2025-03-01 10:00 KST
START = datetime(2025, 3, 1, 1, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock: wall time and monotonic time move together."""

    def __init__(self, start: datetime = START) -> None:
        self._now = start
        self._monotonic = 0.0

    def now(self) -> datetime:
        return self._now

    def monotonic(self) -> float:
        return self._monotonic

    def advance(self, seconds: float) -> None:
        self._now += timedelta(seconds=seconds)
        self._monotonic += seconds


STATE_KEY = "test-app-state"
ORGANIZATION = "테스트 체험 프로그램"
