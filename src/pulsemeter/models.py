"""Core data models for pulse ingestion and time analytics.

Uses Pydantic v2 for validation, ULID for sortable unique IDs.
"""

import math
from datetime import datetime, timezone
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from ulid import ULID

from .constants import DEFAULT_PAGE_SIZE, LOCAL_USER_ID, MAX_PAGE_SIZE


def generate_id() -> str:
    """Generate a ULID (sortable, unique identifier)."""
    return str(ULID())


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ─────────────────────────────────────────────────────────────────────────────
# Pulses
# ─────────────────────────────────────────────────────────────────────────────


class PulseSubmission(BaseModel):
    """A raw heartbeat as sent by an editor or browser plugin.

    Field names follow the wakatime wire format. Unknown keys are ignored.
    """

    model_config = ConfigDict(extra="ignore")

    entity: str
    time: float = Field(allow_inf_nan=False)  # seconds since epoch, may be fractional
    project: str | None = None
    branch: str | None = None
    type: str | None = None
    is_write: bool | None = None
    editor: str | None = None
    language: str | None = None
    operating_system: str | None = None
    machine: str | None = None
    user_agent: str | None = None
    origin: str | None = None
    origin_id: str | None = None
    category: str | None = None

    @field_validator("time")
    @classmethod
    def _representable_time(cls, value: float) -> float:
        try:
            datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise ValueError(f"time {value} is outside the representable range") from e
        return value


class Pulse(BaseModel):
    """One observed moment of activity. Never mutated once created."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None  # assigned by storage
    user_id: str = LOCAL_USER_ID
    project: str | None = None
    branch: str | None = None
    entity: str
    type: str | None = None  # "code", "web", or anything a plugin sends
    is_write: bool = False
    editor: str = ""
    language: str | None = None
    operating_system: str = ""
    machine: str = ""
    user_agent: str = ""
    time: datetime
    hash: str
    origin: str = ""
    origin_id: str = ""
    category: str = ""
    created_at: datetime = Field(default_factory=utc_now)
    description: str | None = None

    @field_validator("time", "created_at")
    @classmethod
    def _normalize_instant(cls, value: datetime) -> datetime:
        return _as_utc(value)


# ─────────────────────────────────────────────────────────────────────────────
# Sources
# ─────────────────────────────────────────────────────────────────────────────


class UserAgentActivity(BaseModel):
    """A distinct user agent and the last time it sent a pulse."""

    user_agent: str
    last_active: datetime


class Source(BaseModel):
    """A classified client (editor or browser) and its latest activity."""

    name: str
    last_active: datetime


class SourceMinutes(BaseModel):
    name: str
    minutes: int
    last_active: datetime


class SiteMinutes(BaseModel):
    name: str
    minutes: int


# ─────────────────────────────────────────────────────────────────────────────
# Time aggregation
# ─────────────────────────────────────────────────────────────────────────────


class TimePeriod(BaseModel):
    """A requested aggregation window. Both bounds are required at use time."""

    start_date: datetime | None = None
    end_date: datetime | None = None


class TimeOverview(BaseModel):
    category: str
    minutes: int


class ProjectTime(BaseModel):
    name: str
    minutes: int


class ProjectCategoryTime(BaseModel):
    category: str
    name: str
    minutes: int


class EntityTime(BaseModel):
    entity: str
    minutes: int


class ProjectProgress(BaseModel):
    """Display-ready project row: hours text and percent of the baseline day."""

    title: str
    time: str
    progress: float


class FlowSegment(BaseModel):
    """A contiguous run of focused activity as reported by storage."""

    flow_start: datetime
    flow_time: int  # minutes


class DeepWorkPeriod(BaseModel):
    """One or more same-day flow segments merged together."""

    start_date: datetime
    end_date: datetime
    time: int  # minutes


class WeekOverview(BaseModel):
    longest_day_minutes: int
    yesterday_minutes: int
    today_minutes: int
    week_minutes: int


# ─────────────────────────────────────────────────────────────────────────────
# Pagination
# ─────────────────────────────────────────────────────────────────────────────

T = TypeVar("T")


class PageOptions(BaseModel):
    page: int = Field(default=1, ge=1)
    take: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    order: Literal["ASC", "DESC"] = "DESC"

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.take


class PageMeta(BaseModel):
    page: int
    take: int
    item_count: int
    page_count: int
    has_previous_page: bool
    has_next_page: bool

    @classmethod
    def build(cls, options: PageOptions, item_count: int) -> "PageMeta":
        page_count = math.ceil(item_count / options.take) if item_count else 0
        return cls(
            page=options.page,
            take=options.take,
            item_count=item_count,
            page_count=page_count,
            has_previous_page=options.page > 1,
            has_next_page=options.page < page_count,
        )


class Page(BaseModel, Generic[T]):
    data: list[T]
    meta: PageMeta


# ─────────────────────────────────────────────────────────────────────────────
# Plugin-facing responses
# ─────────────────────────────────────────────────────────────────────────────


class IngestResult(BaseModel):
    """Acknowledgement of a submission.

    ``count`` echoes how many pulses the client sent, not how many were new.
    """

    count: int

    def to_response(self) -> dict:
        """Render the bulk response body wakatime clients expect."""
        return {"responses": [[None, 201] for _ in range(self.count)]}


class GrandTotal(BaseModel):
    total_seconds: int
    hours: int
    minutes: int
    digital: str
    decimal: str
    text: str


class StatusBar(BaseModel):
    """Today's total in the shape editor status bars render."""

    grand_total: GrandTotal
    categories: list[TimeOverview] = Field(default_factory=list)

    @classmethod
    def from_overview(cls, overview: list[TimeOverview]) -> "StatusBar":
        total = sum(item.minutes for item in overview)
        hours, minutes = divmod(total, 60)
        if hours:
            text = f"{hours} hr{'s' if hours != 1 else ''} {minutes} min{'s' if minutes != 1 else ''}"
        else:
            text = f"{minutes} min{'s' if minutes != 1 else ''}"
        return cls(
            grand_total=GrandTotal(
                total_seconds=total * 60,
                hours=hours,
                minutes=minutes,
                digital=f"{hours}:{minutes:02d}",
                decimal=f"{total / 60:.2f}",
                text=text,
            ),
            categories=overview,
        )
