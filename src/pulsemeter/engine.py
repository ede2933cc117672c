"""Activity engine - wires storage, ingestion and the analytics services."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import date, datetime, tzinfo

from .aggregate import TimeAggregator
from .config import Settings
from .constants import DEFAULT_RECENT_LIMIT, DEFAULT_TOP_N
from .deep_work import DeepWorkDetector
from .export import generate_pulses_csv
from .ingest import PulseIngestor
from .models import (
    DeepWorkPeriod,
    EntityTime,
    IngestResult,
    Page,
    PageOptions,
    ProjectProgress,
    ProjectTime,
    Pulse,
    PulseSubmission,
    SiteMinutes,
    Source,
    SourceMinutes,
    StatusBar,
    TimeOverview,
    WeekOverview,
)
from .normalize import HostEnvironment
from .repository import PulseRepository, SQLitePulseRepository
from .week import WeekOverviewCalculator

logger = logging.getLogger(__name__)

DateLike = date | datetime | str


class ActivityEngine:
    """Main entry point for ingestion and analytics.

    Single-process use only. Aggregations are computed on demand from stored
    pulses; nothing is cached between calls.
    """

    def __init__(
        self,
        repository: PulseRepository,
        tz: tzinfo,
        host: HostEnvironment | None = None,
    ):
        self.repository = repository
        self.tz = tz
        self.ingestor = PulseIngestor(repository, host=host)
        self.aggregator = TimeAggregator(repository, tz)
        self.deep_work = DeepWorkDetector(repository, tz)
        self.week = WeekOverviewCalculator(repository, tz)

    @classmethod
    def open(cls, settings: Settings, host: HostEnvironment | None = None) -> "ActivityEngine":
        """Create an engine over the SQLite store in the settings' data dir."""
        tz = settings.tzinfo()
        repository = SQLitePulseRepository(settings.db_path, tz=tz)
        logger.info(f"Activity engine ready (data_dir={settings.data_dir}, tz={tz})")
        return cls(repository, tz, host=host)

    def close(self) -> None:
        close = getattr(self.repository, "close", None)
        if close is not None:
            close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # --- ingestion ---

    def create_pulse(self, submission: PulseSubmission | Mapping) -> IngestResult:
        return self.ingestor.ingest_one(submission)

    def create_pulses(self, submissions: Sequence) -> IngestResult:
        return self.ingestor.ingest_batch(submissions)

    def get_latest_pulses(self, limit: int = DEFAULT_RECENT_LIMIT) -> list[Pulse]:
        return self.repository.get_latest_pulses(limit)

    # --- analytics ---

    def get_activity_status_bar(self, day: DateLike | None = None) -> StatusBar:
        return self.aggregator.activity_status_bar(day)

    def get_category_time_overview(self, periods: Sequence) -> list[list[TimeOverview]]:
        return self.aggregator.category_overview_for_periods(periods)

    def get_week_overview(self, reference: DateLike) -> WeekOverview:
        return self.week.week_overview(reference)

    def get_sources(self) -> list[Source]:
        return self.aggregator.list_sources()

    def get_sources_minutes(self, start: DateLike, end: DateLike) -> list[SourceMinutes]:
        return self.aggregator.sources_minutes(start, end)

    def get_sites_minutes(self, start: DateLike, end: DateLike) -> list[SiteMinutes]:
        return self.aggregator.sites_minutes(start, end)

    def get_deep_work_between_dates(
        self, start_day: DateLike, end_day: DateLike, true_end: bool = False
    ) -> list[DeepWorkPeriod]:
        return self.deep_work.deep_work_between_dates(start_day, end_day, true_end=true_end)

    def get_per_project_top_n(
        self, start: DateLike, end: DateLike, n: int = DEFAULT_TOP_N
    ) -> dict[str, list[ProjectProgress]]:
        return self.aggregator.per_project_top_n(start, end, n)

    def get_per_project_overview_by_category(
        self, start: DateLike, end: DateLike, category: str, options: PageOptions | None = None
    ) -> Page[ProjectTime]:
        return self.aggregator.per_project_overview_by_category(start, end, category, options)

    def get_projects_time_by_range(self, start_day: DateLike, end_day: DateLike) -> list[ProjectTime]:
        return self.aggregator.projects_time_by_range(start_day, end_day)

    def get_social_media_time_by_range(self, start_day: DateLike, end_day: DateLike) -> list[EntityTime]:
        return self.aggregator.social_media_time_by_range(start_day, end_day)

    def get_growth_and_mastery_time_by_range(
        self, start_day: DateLike, end_day: DateLike
    ) -> list[EntityTime]:
        return self.aggregator.growth_and_mastery_time_by_range(start_day, end_day)

    def get_total_time_by_range(self, start_day: DateLike, end_day: DateLike) -> int:
        return self.aggregator.total_time_by_range(start_day, end_day)

    # --- export ---

    def generate_pulses_csv(self) -> bytes:
        return generate_pulses_csv(self.repository)
