"""Tests for deep work detection."""

from datetime import date, datetime, timedelta, timezone
from unittest.mock import Mock

import pytest
from dateutil import tz

from helpers import TEST_HOST, epoch, minute_run

from pulsemeter.deep_work import DeepWorkDetector, merge_deep_work
from pulsemeter.errors import InvalidInput
from pulsemeter.ingest import PulseIngestor
from pulsemeter.models import FlowSegment

UTC = timezone.utc


def _seg(day, hour, minutes, minute=0):
    return FlowSegment(flow_start=datetime(2025, 1, day, hour, minute, tzinfo=UTC), flow_time=minutes)


def test_merges_same_day_segments():
    segments = [_seg(15, 9, 30), _seg(15, 10, 20), _seg(16, 9, 15)]

    periods = merge_deep_work(segments, UTC)

    assert [p.time for p in periods] == [50, 15]
    assert periods[0].start_date == datetime(2025, 1, 15, 9, 0, tzinfo=UTC)
    assert periods[1].start_date == datetime(2025, 1, 16, 9, 0, tzinfo=UTC)


def test_end_date_is_start_of_last_segment_by_default():
    periods = merge_deep_work([_seg(15, 9, 30), _seg(15, 10, 20)], UTC)
    assert periods[0].end_date == datetime(2025, 1, 15, 10, 0, tzinfo=UTC)


def test_true_end_adds_segment_duration():
    periods = merge_deep_work([_seg(15, 9, 30), _seg(15, 10, 20)], UTC, true_end=True)
    assert periods[0].end_date == datetime(2025, 1, 15, 10, 20, tzinfo=UTC)


def test_single_segment_period():
    periods = merge_deep_work([_seg(15, 9, 25)], UTC)
    assert len(periods) == 1
    assert periods[0].start_date == periods[0].end_date
    assert periods[0].time == 25


def test_no_segments():
    assert merge_deep_work([], UTC) == []


def test_day_boundary_follows_zone():
    """23:30 and 00:30 UTC are the same day in New York."""
    new_york = tz.gettz("America/New_York")
    segments = [_seg(15, 23, 20, minute=30), FlowSegment(
        flow_start=datetime(2025, 1, 16, 0, 30, tzinfo=UTC), flow_time=20
    )]

    assert len(merge_deep_work(segments, UTC)) == 2
    assert len(merge_deep_work(segments, new_york)) == 1


def test_periods_never_span_days():
    segments = [_seg(d, 9, 20) for d in range(10, 17)]
    periods = merge_deep_work(segments, UTC)
    for period in periods:
        assert period.start_date.date() == period.end_date.date()


# ─────────────────────────────────────────────────────────────────────────────
# DeepWorkDetector
# ─────────────────────────────────────────────────────────────────────────────


def test_detector_queries_whole_days():
    repo = Mock()
    repo.get_deep_work.return_value = []
    detector = DeepWorkDetector(repo, UTC)

    detector.deep_work_between_dates(date(2025, 1, 13), date(2025, 1, 15))

    start, end = repo.get_deep_work.call_args[0]
    assert start == datetime(2025, 1, 13, tzinfo=UTC)
    assert end == datetime(2025, 1, 16, tzinfo=UTC)


def test_detector_requires_both_days():
    detector = DeepWorkDetector(Mock(), UTC)
    with pytest.raises(InvalidInput):
        detector.deep_work_between_dates(None, date(2025, 1, 15))


def test_detector_end_to_end(repo):
    PulseIngestor(repo, host=TEST_HOST).ingest_batch(
        minute_run(epoch(2025, 1, 15, 9, 0), 30)
        + minute_run(epoch(2025, 1, 15, 11, 0), 20)
        + minute_run(epoch(2025, 1, 15, 14, 0), 5)  # too short to count
        + minute_run(epoch(2025, 1, 16, 9, 0), 25)
    )
    detector = DeepWorkDetector(repo, UTC)

    periods = detector.deep_work_between_dates("2025-01-15", "2025-01-16")

    assert [p.time for p in periods] == [50, 25]
    assert periods[0].end_date == datetime(2025, 1, 15, 11, 0, tzinfo=UTC)


def test_raw_segments(repo):
    PulseIngestor(repo, host=TEST_HOST).ingest_batch(minute_run(epoch(2025, 1, 15, 9, 0), 21))
    detector = DeepWorkDetector(repo, UTC)

    segments = detector.raw_segments(
        datetime(2025, 1, 15, tzinfo=UTC), datetime(2025, 1, 15, tzinfo=UTC) + timedelta(days=1)
    )

    assert [(s.flow_start.hour, s.flow_time) for s in segments] == [(9, 21)]
