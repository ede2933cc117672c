"""Read-only time aggregation over stored pulses.

Every operation takes its window explicitly. Windows are half-open,
[start, end); the *_by_range operations take whole days and cover
[start of first day, start of the day after the last day).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, tzinfo
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from .constants import (
    CATEGORY_FOLDS,
    CATEGORY_SYNONYMS,
    DEFAULT_TOP_N,
    DISPLAY_BASELINE_MINUTES,
    GROWTH_SITES,
    SOCIAL_MEDIA_SITES,
)
from .errors import InvalidInput
from .models import (
    EntityTime,
    Page,
    PageMeta,
    PageOptions,
    ProjectProgress,
    ProjectTime,
    SiteMinutes,
    Source,
    SourceMinutes,
    StatusBar,
    TimeOverview,
    TimePeriod,
)
from .sources import list_sources, resolve_site
from .timeutil import minutes_to_hours, next_day, start_of_day, to_local

if TYPE_CHECKING:
    from .repository import PulseRepository

logger = logging.getLogger(__name__)

DateLike = date | datetime | str


# --- Pure helpers ---


def normalize_category(category: str) -> str:
    """Map a synonym category onto its canonical name."""
    return CATEGORY_SYNONYMS.get(category, category)


def merge_category_synonyms(overview: Iterable[TimeOverview]) -> list[TimeOverview]:
    """Collapse synonym categories into one entry, summing their minutes."""
    merged: dict[str, int] = {}
    for item in overview:
        category = normalize_category(item.category)
        merged[category] = merged.get(category, 0) + item.minutes
    return [TimeOverview(category=c, minutes=m) for c, m in merged.items()]


def category_minutes(overview: Iterable[TimeOverview], category: str) -> int:
    """Minutes for a category, including any categories folded into it.

    "coding" includes "debugging"; asking for "debugging" directly returns
    only its own minutes.
    """
    by_category = {item.category: item.minutes for item in overview}
    minutes = by_category.get(category, 0)
    for folded in CATEGORY_FOLDS.get(category, ()):
        minutes += by_category.get(folded, 0)
    return minutes


def category_percentage(overview: list[TimeOverview], category: str) -> float:
    """Category minutes as a percentage of the display baseline day."""
    total = sum(item.minutes for item in overview)
    if total <= 0:
        return 0.0
    return category_minutes(overview, category) / DISPLAY_BASELINE_MINUTES * 100


def project_progress(project: ProjectTime) -> ProjectProgress:
    return ProjectProgress(
        title=project.name,
        time=minutes_to_hours(project.minutes),
        progress=project.minutes / DISPLAY_BASELINE_MINUTES * 100,
    )


def filter_entities_by_sites(rows: Iterable[EntityTime], sites: Iterable[str]) -> list[EntityTime]:
    """Keep rows whose entity contains any of the sites (case-insensitive)."""
    needles = [site.lower() for site in sites]
    return [row for row in rows if any(site in row.entity.lower() for site in needles)]


class TimeAggregator:
    """Computes minute totals grouped by category, project, entity or source."""

    def __init__(self, repository: "PulseRepository", tz: tzinfo, max_workers: int = 4):
        self.repository = repository
        self.tz = tz
        self.max_workers = max_workers

    # --- window helpers ---

    def _window(self, start: DateLike, end: DateLike) -> tuple[datetime, datetime]:
        if start is None or end is None:
            raise InvalidInput("Both start and end are required")
        return to_local(start, self.tz), to_local(end, self.tz)

    def _day_window(self, start_day: DateLike, end_day: DateLike) -> tuple[datetime, datetime]:
        if start_day is None or end_day is None:
            raise InvalidInput("Both start and end days are required")
        return start_of_day(start_day, self.tz), next_day(end_day, self.tz)

    def _period_window(self, period: Any, index: int) -> tuple[datetime, datetime]:
        if isinstance(period, Mapping):
            try:
                period = TimePeriod.model_validate(dict(period))
            except ValidationError as e:
                raise InvalidInput(f"Invalid time period at index {index}: {e}") from e
        if not isinstance(period, TimePeriod):
            raise InvalidInput(f"Invalid time period at index {index}")
        if period.start_date is None or period.end_date is None:
            raise InvalidInput(f"Invalid time period at index {index}: start and end are required")
        return self._window(period.start_date, period.end_date)

    # --- categories ---

    def category_overview(self, start: DateLike, end: DateLike) -> list[TimeOverview]:
        """Minutes per category in [start, end), synonyms merged."""
        window = self._window(start, end)
        return merge_category_synonyms(self.repository.get_category_time_overview(*window))

    def category_overview_for_periods(self, periods: Sequence) -> list[list[TimeOverview]]:
        """Category overviews for several periods, queried concurrently.

        Every period is validated before any query runs. Results are returned
        in the order the periods were given.

        Raises:
            InvalidInput: If periods is not an array or any period lacks a bound
        """
        if periods is None or isinstance(periods, (str, bytes, Mapping)) or not isinstance(
            periods, Sequence
        ):
            raise InvalidInput("Periods must be an array")

        windows = [self._period_window(period, i) for i, period in enumerate(periods)]
        if not windows:
            return []

        logger.debug(f"Computing category overview for {len(windows)} periods")
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(windows))) as pool:
            return list(pool.map(lambda window: self.category_overview(*window), windows))

    def category_time_by_range(self, start_day: DateLike, end_day: DateLike) -> list[TimeOverview]:
        window = self._day_window(start_day, end_day)
        return merge_category_synonyms(self.repository.get_time_by_category_and_range(*window))

    def total_time_by_range(self, start_day: DateLike, end_day: DateLike) -> int:
        return sum(item.minutes for item in self.category_time_by_range(start_day, end_day))

    def activity_status_bar(self, day: DateLike | None = None) -> StatusBar:
        """Today's (or the given day's) total in status bar form."""
        day = day if day is not None else datetime.now(self.tz)
        overview = self.category_overview(start_of_day(day, self.tz), next_day(day, self.tz))
        return StatusBar.from_overview(overview)

    # --- projects ---

    def per_project_top_n(
        self, start: DateLike, end: DateLike, n: int = DEFAULT_TOP_N
    ) -> dict[str, list[ProjectProgress]]:
        """Top ``n`` projects per category, ready for display.

        Raises:
            InvalidInput: If n is negative
        """
        if n < 0:
            raise InvalidInput(f"n must not be negative, got {n}")
        window = self._window(start, end)
        grouped: dict[str, dict[str, int]] = {}
        for row in self.repository.get_time_by_project_category_and_range(*window):
            projects = grouped.setdefault(normalize_category(row.category), {})
            projects[row.name] = projects.get(row.name, 0) + row.minutes

        result = {}
        for category, projects in grouped.items():
            ranked = sorted(projects.items(), key=lambda item: (-item[1], item[0]))[:n]
            result[category] = [
                project_progress(ProjectTime(name=name, minutes=minutes))
                for name, minutes in ranked
            ]
        return result

    def per_project_overview_top_three(
        self, start: DateLike, end: DateLike
    ) -> dict[str, list[ProjectTime]]:
        return self.repository.get_per_project_overview_top_three(*self._window(start, end))

    def per_project_overview_by_category(
        self,
        start: DateLike,
        end: DateLike,
        category: str,
        options: PageOptions | None = None,
    ) -> Page[ProjectTime]:
        options = options or PageOptions()
        rows, item_count = self.repository.get_per_project_overview_by_category(
            *self._window(start, end), category, options
        )
        return Page[ProjectTime](data=rows, meta=PageMeta.build(options, item_count))

    def projects_time_by_range_and_category(
        self, start_day: DateLike, end_day: DateLike
    ) -> dict[str, list[ProjectTime]]:
        window = self._day_window(start_day, end_day)
        overview: dict[str, list[ProjectTime]] = {}
        for row in self.repository.get_time_by_project_category_and_range(*window):
            overview.setdefault(row.category, []).append(
                ProjectTime(name=row.name, minutes=row.minutes)
            )
        return overview

    def projects_time_by_range(self, start_day: DateLike, end_day: DateLike) -> list[ProjectTime]:
        return self.repository.get_time_by_project_and_range(*self._day_window(start_day, end_day))

    # --- entities ---

    def social_media_time_by_range(self, start_day: DateLike, end_day: DateLike) -> list[EntityTime]:
        rows = self.repository.get_time_by_entity_and_range(*self._day_window(start_day, end_day))
        return filter_entities_by_sites(rows, SOCIAL_MEDIA_SITES)

    def growth_and_mastery_time_by_range(
        self, start_day: DateLike, end_day: DateLike
    ) -> list[EntityTime]:
        rows = self.repository.get_time_by_entity_and_range(*self._day_window(start_day, end_day))
        return filter_entities_by_sites(rows, GROWTH_SITES)

    # --- sources and sites ---

    def list_sources(self) -> list[Source]:
        return list_sources(self.repository.get_unique_user_agents_and_last_active())

    def sources_minutes(self, start: DateLike, end: DateLike) -> list[SourceMinutes]:
        """Per-source minutes for known sources.

        A key matches the known source with the same name, or failing that the
        first one whose name contains it. Keys with zero minutes, or that match
        no known source, are dropped.
        """
        known = self.list_sources()
        by_name = {s.name.lower(): s for s in known}
        raw = self.repository.get_sources_minutes(*self._window(start, end))

        result = []
        for key, minutes in raw.items():
            if not minutes:
                continue
            match = by_name.get(key.lower()) or next(
                (s for s in known if key.lower() in s.name.lower()), None
            )
            if match is None:
                continue
            result.append(SourceMinutes(name=key, minutes=minutes, last_active=match.last_active))
        return result

    def sites_minutes(self, start: DateLike, end: DateLike) -> list[SiteMinutes]:
        """Per-site minutes for known sites. Unknown hosts and zero totals are dropped."""
        raw = self.repository.get_sites_minutes(*self._window(start, end))

        totals: dict[str, int] = {}
        for key, minutes in raw.items():
            site = resolve_site(key)
            if site is None or not minutes:
                continue
            totals[site] = totals.get(site, 0) + minutes
        return [SiteMinutes(name=name, minutes=minutes) for name, minutes in totals.items()]
