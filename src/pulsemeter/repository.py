"""Pulse storage: the repository contract and its SQLite implementation.

All windows are half-open, [start, end). "Minutes" of a group means the
number of distinct UTC minutes in which the group has at least one pulse.
Times are stored as fixed-width UTC ISO-8601 strings so that string
comparison orders instants.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone, tzinfo
from pathlib import Path
from typing import Protocol

from .constants import (
    FLOW_MAX_GAP_MINUTES,
    FLOW_MIN_MINUTES,
    SCHEMA_VERSION,
    UNSET_PROJECT_TOKEN,
)
from .models import (
    EntityTime,
    FlowSegment,
    PageOptions,
    ProjectCategoryTime,
    ProjectTime,
    Pulse,
    TimeOverview,
    UserAgentActivity,
    generate_id,
)
from .sources import resolve_source, site_host
from .timeutil import to_utc_iso

logger = logging.getLogger(__name__)


class PulseRepository(Protocol):
    """Storage operations the ingestion and aggregation code depend on."""

    def get_latest_project(self) -> str | None: ...

    def create_pulse(self, pulse: Pulse) -> int: ...

    def create_pulses(self, pulses: list[Pulse]) -> int: ...

    def get_latest_pulses(self, limit: int = ...) -> list[Pulse]: ...

    def get_all_pulses(self) -> list[Pulse]: ...

    def get_category_time_overview(self, start: datetime, end: datetime) -> list[TimeOverview]: ...

    def get_time_by_category_and_range(self, start: datetime, end: datetime) -> list[TimeOverview]: ...

    def get_range_minutes(self, start: datetime, end: datetime) -> int: ...

    def get_longest_day_in_range_minutes(self, start: datetime, end: datetime) -> int: ...

    def get_deep_work(self, start: datetime, end: datetime) -> list[FlowSegment]: ...

    def get_unique_user_agents_and_last_active(self) -> list[UserAgentActivity]: ...

    def get_sources_minutes(self, start: datetime, end: datetime) -> dict[str, int]: ...

    def get_sites_minutes(self, start: datetime, end: datetime) -> dict[str, int]: ...

    def get_time_by_project_category_and_range(
        self, start: datetime, end: datetime
    ) -> list[ProjectCategoryTime]: ...

    def get_time_by_project_and_range(self, start: datetime, end: datetime) -> list[ProjectTime]: ...

    def get_time_by_entity_and_range(self, start: datetime, end: datetime) -> list[EntityTime]: ...

    def get_per_project_overview_top_three(
        self, start: datetime, end: datetime
    ) -> dict[str, list[ProjectTime]]: ...

    def get_per_project_overview_by_category(
        self, start: datetime, end: datetime, category: str, options: PageOptions
    ) -> tuple[list[ProjectTime], int]: ...


_COLUMNS = (
    "id",
    "user_id",
    "entity",
    "type",
    "category",
    "project",
    "branch",
    "language",
    "is_write",
    "editor",
    "operating_system",
    "machine",
    "user_agent",
    "time",
    "hash",
    "origin",
    "origin_id",
    "created_at",
    "description",
)

_MINUTE = "substr(time, 1, 16)"
_WINDOW = "time >= ? AND time < ?"
_HAS_PROJECT = "project IS NOT NULL AND project != ''"


def _minute_to_datetime(minute: str) -> datetime:
    return datetime.fromisoformat(minute).replace(tzinfo=timezone.utc)


def chain_flows(
    minutes: list[datetime],
    max_gap: int = FLOW_MAX_GAP_MINUTES,
    min_minutes: int = FLOW_MIN_MINUTES,
) -> list[FlowSegment]:
    """Chain sorted active minutes into flow segments.

    Consecutive active minutes at most ``max_gap`` apart belong to one chain.
    Chains with fewer than ``min_minutes`` active minutes are discarded.
    """
    segments: list[FlowSegment] = []
    gap = timedelta(minutes=max_gap)
    run_start: datetime | None = None
    previous: datetime | None = None
    active = 0

    for minute in minutes:
        if previous is not None and minute - previous <= gap:
            active += 1
        else:
            if run_start is not None and active >= min_minutes:
                segments.append(FlowSegment(flow_start=run_start, flow_time=active))
            run_start = minute
            active = 1
        previous = minute

    if run_start is not None and active >= min_minutes:
        segments.append(FlowSegment(flow_start=run_start, flow_time=active))
    return segments


class SQLitePulseRepository:
    """Pulse store backed by a single SQLite file.

    One connection is shared between threads and serialized with a lock, so
    read queries issued from a thread pool are safe.
    """

    def __init__(self, db_path: Path, tz: tzinfo | None = None):
        """Initialize the store.

        Args:
            db_path: Path to pulsemeter.db
            tz: Zone used for calendar-day grouping (default: UTC)
        """
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.tz = tz or timezone.utc
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()
        self._init_db()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # --- lifecycle ---

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path), timeout=30.0, check_same_thread=False
            )
            self._conn.row_factory = sqlite3.Row
            # WAL lets readers proceed during a batch write
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA busy_timeout=30000")
        return self._conn

    def _init_db(self) -> None:
        """Initialize database schema."""
        conn = self._get_conn()
        with self._lock:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    created_at TEXT DEFAULT (datetime('now'))
                )
            """)

            version = conn.execute("SELECT version FROM schema_version").fetchone()
            if version is None:
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
            elif version[0] < SCHEMA_VERSION:
                logger.warning(f"Schema version {version[0]} detected, may need migration")

            conn.executescript("""
                CREATE TABLE IF NOT EXISTS pulses (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    entity TEXT NOT NULL,
                    type TEXT,
                    category TEXT NOT NULL DEFAULT '',
                    project TEXT,
                    branch TEXT,
                    language TEXT,
                    is_write INTEGER NOT NULL DEFAULT 0,
                    editor TEXT NOT NULL DEFAULT '',
                    operating_system TEXT NOT NULL DEFAULT '',
                    machine TEXT NOT NULL DEFAULT '',
                    user_agent TEXT NOT NULL DEFAULT '',
                    time TEXT NOT NULL,
                    hash TEXT NOT NULL UNIQUE,
                    origin TEXT NOT NULL DEFAULT '',
                    origin_id TEXT NOT NULL DEFAULT '',
                    created_at TEXT NOT NULL,
                    description TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_pulses_time ON pulses(time);
                CREATE INDEX IF NOT EXISTS idx_pulses_project ON pulses(project);
                CREATE INDEX IF NOT EXISTS idx_pulses_category ON pulses(category);
                CREATE INDEX IF NOT EXISTS idx_pulses_user_agent ON pulses(user_agent);
            """)
            conn.commit()
        logger.info(f"Pulse store opened at {self.db_path} (schema v{SCHEMA_VERSION})")

    def close(self) -> None:
        """Close database connection.

        Forces a WAL checkpoint so the main database file is complete.
        """
        with self._lock:
            if self._conn is not None:
                self._conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
                self._conn.close()
                self._conn = None

    def _query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        conn = self._get_conn()
        with self._lock:
            return conn.execute(sql, params).fetchall()

    @staticmethod
    def _window(start: datetime, end: datetime) -> tuple[str, str]:
        return to_utc_iso(start), to_utc_iso(end)

    # --- writes ---

    def create_pulse(self, pulse: Pulse) -> int:
        """Store one pulse. Returns 1 if inserted, 0 if its hash already existed."""
        return self.create_pulses([pulse])

    def create_pulses(self, pulses: list[Pulse]) -> int:
        """Store pulses in a single transaction.

        Rows whose hash already exists are ignored. Returns the number of rows
        actually inserted.
        """
        if not pulses:
            return 0

        placeholders = ", ".join("?" for _ in _COLUMNS)
        sql = f"INSERT OR IGNORE INTO pulses ({', '.join(_COLUMNS)}) VALUES ({placeholders})"
        rows = [
            (
                pulse.id or generate_id(),
                pulse.user_id,
                pulse.entity,
                pulse.type,
                pulse.category,
                pulse.project,
                pulse.branch,
                pulse.language,
                int(pulse.is_write),
                pulse.editor,
                pulse.operating_system,
                pulse.machine,
                pulse.user_agent,
                to_utc_iso(pulse.time),
                pulse.hash,
                pulse.origin,
                pulse.origin_id,
                to_utc_iso(pulse.created_at),
                pulse.description,
            )
            for pulse in pulses
        ]

        conn = self._get_conn()
        with self._lock:
            before = conn.total_changes
            with conn:
                conn.executemany(sql, rows)
            inserted = conn.total_changes - before

        if inserted < len(rows):
            logger.debug(f"Ignored {len(rows) - inserted} pulses with known hashes")
        return inserted

    # --- raw reads ---

    def _row_to_pulse(self, row: sqlite3.Row) -> Pulse:
        return Pulse(
            id=row["id"],
            user_id=row["user_id"],
            project=row["project"],
            branch=row["branch"],
            entity=row["entity"],
            type=row["type"],
            is_write=bool(row["is_write"]),
            editor=row["editor"],
            language=row["language"],
            operating_system=row["operating_system"],
            machine=row["machine"],
            user_agent=row["user_agent"],
            time=datetime.fromisoformat(row["time"]),
            hash=row["hash"],
            origin=row["origin"],
            origin_id=row["origin_id"],
            category=row["category"],
            created_at=datetime.fromisoformat(row["created_at"]),
            description=row["description"],
        )

    def get_latest_project(self) -> str | None:
        """Project of the most recent pulse that named one."""
        rows = self._query(
            f"""
            SELECT project FROM pulses
            WHERE {_HAS_PROJECT} AND project != ?
            ORDER BY time DESC, id DESC
            LIMIT 1
            """,
            (UNSET_PROJECT_TOKEN,),
        )
        return rows[0]["project"] if rows else None

    def get_latest_pulses(self, limit: int = 10) -> list[Pulse]:
        rows = self._query(
            f"SELECT {', '.join(_COLUMNS)} FROM pulses ORDER BY time DESC, id DESC LIMIT ?",
            (limit,),
        )
        return [self._row_to_pulse(row) for row in rows]

    def get_all_pulses(self) -> list[Pulse]:
        rows = self._query(f"SELECT {', '.join(_COLUMNS)} FROM pulses ORDER BY time, id")
        return [self._row_to_pulse(row) for row in rows]

    def count(self) -> int:
        """Count stored pulses."""
        return self._query("SELECT COUNT(*) FROM pulses")[0][0]

    # --- grouped sums ---

    def get_category_time_overview(self, start: datetime, end: datetime) -> list[TimeOverview]:
        rows = self._query(
            f"""
            SELECT category, COUNT(DISTINCT {_MINUTE}) AS minutes
            FROM pulses
            WHERE {_WINDOW}
            GROUP BY category
            ORDER BY minutes DESC, category
            """,
            self._window(start, end),
        )
        return [TimeOverview(category=row["category"], minutes=row["minutes"]) for row in rows]

    def get_time_by_category_and_range(self, start: datetime, end: datetime) -> list[TimeOverview]:
        return self.get_category_time_overview(start, end)

    def get_range_minutes(self, start: datetime, end: datetime) -> int:
        rows = self._query(
            f"SELECT COUNT(DISTINCT {_MINUTE}) FROM pulses WHERE {_WINDOW}",
            self._window(start, end),
        )
        return rows[0][0]

    def _active_minutes(self, start: datetime, end: datetime) -> list[datetime]:
        rows = self._query(
            f"SELECT DISTINCT {_MINUTE} AS minute FROM pulses WHERE {_WINDOW} ORDER BY minute",
            self._window(start, end),
        )
        return [_minute_to_datetime(row["minute"]) for row in rows]

    def get_longest_day_in_range_minutes(self, start: datetime, end: datetime) -> int:
        """Largest per-day minute total within the window, by calendar day in self.tz."""
        per_day = Counter(m.astimezone(self.tz).date() for m in self._active_minutes(start, end))
        return max(per_day.values(), default=0)

    def get_deep_work(self, start: datetime, end: datetime) -> list[FlowSegment]:
        """Flow segments in the window, ordered by start."""
        return chain_flows(self._active_minutes(start, end))

    def get_unique_user_agents_and_last_active(self) -> list[UserAgentActivity]:
        rows = self._query(
            """
            SELECT user_agent, MAX(time) AS last_active
            FROM pulses
            WHERE user_agent != ''
            GROUP BY user_agent
            ORDER BY last_active DESC
            """
        )
        return [
            UserAgentActivity(
                user_agent=row["user_agent"],
                last_active=datetime.fromisoformat(row["last_active"]),
            )
            for row in rows
        ]

    def get_sources_minutes(self, start: datetime, end: datetime) -> dict[str, int]:
        """Minutes per resolved source name."""
        rows = self._query(
            f"SELECT DISTINCT user_agent, {_MINUTE} AS minute FROM pulses WHERE {_WINDOW}",
            self._window(start, end),
        )
        minutes: dict[str, set[str]] = defaultdict(set)
        for row in rows:
            source = resolve_source(row["user_agent"])
            if source is not None:
                minutes[source].add(row["minute"])
        return {name: len(seen) for name, seen in minutes.items()}

    def get_sites_minutes(self, start: datetime, end: datetime) -> dict[str, int]:
        """Minutes per host of web pulses."""
        rows = self._query(
            f"SELECT DISTINCT entity, {_MINUTE} AS minute FROM pulses WHERE type = 'web' AND {_WINDOW}",
            self._window(start, end),
        )
        minutes: dict[str, set[str]] = defaultdict(set)
        for row in rows:
            host = site_host(row["entity"])
            if host is not None:
                minutes[host].add(row["minute"])
        return {host: len(seen) for host, seen in minutes.items()}

    def get_time_by_project_category_and_range(
        self, start: datetime, end: datetime
    ) -> list[ProjectCategoryTime]:
        rows = self._query(
            f"""
            SELECT category, project AS name, COUNT(DISTINCT {_MINUTE}) AS minutes
            FROM pulses
            WHERE {_WINDOW} AND {_HAS_PROJECT}
            GROUP BY category, project
            ORDER BY category, minutes DESC, name
            """,
            self._window(start, end),
        )
        return [
            ProjectCategoryTime(category=row["category"], name=row["name"], minutes=row["minutes"])
            for row in rows
        ]

    def get_time_by_project_and_range(self, start: datetime, end: datetime) -> list[ProjectTime]:
        rows = self._query(
            f"""
            SELECT project AS name, COUNT(DISTINCT {_MINUTE}) AS minutes
            FROM pulses
            WHERE {_WINDOW} AND {_HAS_PROJECT}
            GROUP BY project
            ORDER BY minutes DESC, name
            """,
            self._window(start, end),
        )
        return [ProjectTime(name=row["name"], minutes=row["minutes"]) for row in rows]

    def get_time_by_entity_and_range(self, start: datetime, end: datetime) -> list[EntityTime]:
        rows = self._query(
            f"""
            SELECT entity, COUNT(DISTINCT {_MINUTE}) AS minutes
            FROM pulses
            WHERE {_WINDOW}
            GROUP BY entity
            ORDER BY minutes DESC, entity
            """,
            self._window(start, end),
        )
        return [EntityTime(entity=row["entity"], minutes=row["minutes"]) for row in rows]

    def get_per_project_overview_top_three(
        self, start: datetime, end: datetime
    ) -> dict[str, list[ProjectTime]]:
        rows = self._query(
            f"""
            WITH totals AS (
                SELECT category, project AS name, COUNT(DISTINCT {_MINUTE}) AS minutes
                FROM pulses
                WHERE {_WINDOW} AND {_HAS_PROJECT}
                GROUP BY category, project
            )
            SELECT category, name, minutes FROM (
                SELECT category, name, minutes,
                       ROW_NUMBER() OVER (PARTITION BY category ORDER BY minutes DESC, name) AS rn
                FROM totals
            )
            WHERE rn <= 3
            ORDER BY category, minutes DESC, name
            """,
            self._window(start, end),
        )
        overview: dict[str, list[ProjectTime]] = {}
        for row in rows:
            overview.setdefault(row["category"], []).append(
                ProjectTime(name=row["name"], minutes=row["minutes"])
            )
        return overview

    def get_per_project_overview_by_category(
        self, start: datetime, end: datetime, category: str, options: PageOptions
    ) -> tuple[list[ProjectTime], int]:
        """One page of projects in a category plus the total project count."""
        # options.order is validated to ASC/DESC by PageOptions
        params = (*self._window(start, end), category)
        totals = f"""
            SELECT project AS name, COUNT(DISTINCT {_MINUTE}) AS minutes
            FROM pulses
            WHERE {_WINDOW} AND {_HAS_PROJECT} AND category = ?
            GROUP BY project
        """
        rows = self._query(
            f"SELECT name, minutes FROM ({totals}) ORDER BY minutes {options.order}, name LIMIT ? OFFSET ?",
            (*params, options.take, options.skip),
        )
        total = self._query(f"SELECT COUNT(*) FROM ({totals})", params)[0][0]
        return [ProjectTime(name=row["name"], minutes=row["minutes"]) for row in rows], total
