"""Deep work detection: merge same-day flow segments into periods.

A period's ``end_date`` is, by default, the *start* of the last segment merged
into it, which is what existing dashboards display. Pass ``true_end=True`` to
get the end of that segment instead.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timedelta, tzinfo
from typing import TYPE_CHECKING

from .errors import InvalidInput
from .models import DeepWorkPeriod, FlowSegment
from .timeutil import next_day, same_local_day, start_of_day, to_local

if TYPE_CHECKING:
    from .repository import PulseRepository


def _segment_end(segment: FlowSegment, true_end: bool) -> datetime:
    if true_end:
        return segment.flow_start + timedelta(minutes=segment.flow_time)
    return segment.flow_start


def merge_deep_work(
    segments: Iterable[FlowSegment],
    tz: tzinfo,
    true_end: bool = False,
) -> list[DeepWorkPeriod]:
    """Merge segments (ascending by start) into per-day deep work periods.

    A segment extends the open period when it starts on the same calendar day
    in ``tz`` as the period's start; otherwise the period is closed and a new
    one begins. Periods never span a day boundary.
    """
    periods: list[DeepWorkPeriod] = []
    current: DeepWorkPeriod | None = None

    for segment in segments:
        if current is not None and same_local_day(current.start_date, segment.flow_start, tz):
            current = current.model_copy(
                update={
                    "end_date": _segment_end(segment, true_end),
                    "time": current.time + segment.flow_time,
                }
            )
        else:
            if current is not None:
                periods.append(current)
            current = DeepWorkPeriod(
                start_date=segment.flow_start,
                end_date=_segment_end(segment, true_end),
                time=segment.flow_time,
            )

    if current is not None:
        periods.append(current)
    return periods


class DeepWorkDetector:
    """Fetches flow segments from storage and merges them per day."""

    def __init__(self, repository: "PulseRepository", tz: tzinfo):
        self.repository = repository
        self.tz = tz

    def raw_segments(self, start: date | datetime | str, end: date | datetime | str) -> list[FlowSegment]:
        if start is None or end is None:
            raise InvalidInput("Both start and end are required")
        return self.repository.get_deep_work(to_local(start, self.tz), to_local(end, self.tz))

    def deep_work_between_dates(
        self,
        start_day: date | datetime | str,
        end_day: date | datetime | str,
        true_end: bool = False,
    ) -> list[DeepWorkPeriod]:
        """Deep work periods for whole days, from start_day through end_day."""
        if start_day is None or end_day is None:
            raise InvalidInput("Both start and end days are required")
        segments = self.repository.get_deep_work(
            start_of_day(start_day, self.tz), next_day(end_day, self.tz)
        )
        return merge_deep_work(segments, self.tz, true_end=true_end)
