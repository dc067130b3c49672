"""Unit tests for the reminder job's time arithmetic."""

from __future__ import annotations

from datetime import UTC, datetime
from zoneinfo import ZoneInfo

import pytest

from services.scheduler_service.implementations.reminder_job import (
    seconds_until_next_run,
    tomorrow_bounds,
)

SAO_PAULO = ZoneInfo("America/Sao_Paulo")


class TestSecondsUntilNextRun:
    @pytest.mark.parametrize(
        "now, expected_seconds",
        [
            # 07:00 local (UTC-3) -> 08:00 same day
            (datetime(2025, 12, 7, 10, 0, tzinfo=UTC), 3600),
            # 08:00 local exactly -> next day 08:00
            (datetime(2025, 12, 7, 11, 0, tzinfo=UTC), 24 * 3600),
            # 23:30 local -> 08:00 next day
            (datetime(2025, 12, 8, 2, 30, tzinfo=UTC), 8.5 * 3600),
        ],
    )
    def test_next_local_eight_am(self, now: datetime, expected_seconds: float) -> None:
        assert seconds_until_next_run(now, SAO_PAULO, 8, 0) == expected_seconds

    def test_custom_minute(self) -> None:
        now = datetime(2025, 12, 7, 11, 0, tzinfo=UTC)  # 08:00 local

        assert seconds_until_next_run(now, SAO_PAULO, 8, 15) == 15 * 60


class TestTomorrowBounds:
    def test_bounds_cover_the_next_local_day_in_utc(self) -> None:
        # 22:00 on Dec 7 local is already Dec 8 in UTC
        now = datetime(2025, 12, 8, 1, 0, tzinfo=UTC)

        start, end = tomorrow_bounds(now, SAO_PAULO)

        assert start == datetime(2025, 12, 8, 3, 0, tzinfo=UTC)
        assert end == datetime(2025, 12, 9, 2, 59, 59, 999999, tzinfo=UTC)
