"""Week overview: today, yesterday, the rolling week and its longest day."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, tzinfo
from typing import TYPE_CHECKING

from .errors import InvalidInput
from .models import WeekOverview
from .timeutil import to_local

if TYPE_CHECKING:
    from .repository import PulseRepository

logger = logging.getLogger(__name__)


def week_windows(reference: datetime) -> dict[str, tuple[datetime, datetime]]:
    """The four windows anchored at ``reference`` (D).

    yesterday = [D-1d, D), today = [D, D+1d), week = [D-7d, D), and
    longest_day covers the days D-7d through D inclusive, i.e. [D-7d, D+1d).
    Arithmetic is wall-clock in the reference's own zone.
    """
    week_start = reference - timedelta(days=7)
    yesterday = reference - timedelta(days=1)
    tomorrow = reference + timedelta(days=1)
    return {
        "longest_day": (week_start, tomorrow),
        "yesterday": (yesterday, reference),
        "today": (reference, tomorrow),
        "week": (week_start, reference),
    }


class WeekOverviewCalculator:
    def __init__(self, repository: "PulseRepository", tz: tzinfo):
        self.repository = repository
        self.tz = tz

    def week_overview(self, reference: date | datetime | str) -> WeekOverview:
        """Compute the week overview for a reference date (a date means local midnight)."""
        if reference is None:
            raise InvalidInput("A reference date is required")
        windows = week_windows(to_local(reference, self.tz))

        overview = WeekOverview(
            longest_day_minutes=self.repository.get_longest_day_in_range_minutes(*windows["longest_day"]),
            yesterday_minutes=self.repository.get_range_minutes(*windows["yesterday"]),
            today_minutes=self.repository.get_range_minutes(*windows["today"]),
            week_minutes=self.repository.get_range_minutes(*windows["week"]),
        )
        logger.debug(f"Week overview for {windows['today'][0].isoformat()}: {overview}")
        return overview
