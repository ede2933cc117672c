"""CSV export of stored pulses.

Column order is fixed; consumers read the file by position.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable
from datetime import datetime
from typing import TYPE_CHECKING, Any

from .models import Pulse

if TYPE_CHECKING:
    from .repository import PulseRepository

CSV_COLUMNS: tuple[tuple[str, str], ...] = (
    ("ID", "id"),
    ("User ID", "user_id"),
    ("Entity", "entity"),
    ("Type", "type"),
    ("Category", "category"),
    ("Project", "project"),
    ("Branch", "branch"),
    ("Language", "language"),
    ("Is Write", "is_write"),
    ("Editor", "editor"),
    ("Operating System", "operating_system"),
    ("Machine", "machine"),
    ("User Agent", "user_agent"),
    ("Time", "time"),
    ("Hash", "hash"),
    ("Origin", "origin"),
    ("Origin ID", "origin_id"),
    ("Created At", "created_at"),
    ("Description", "description"),
)


def _render(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def pulses_to_csv(pulses: Iterable[Pulse]) -> str:
    """Render pulses as CSV with a header row. Nulls become empty strings."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow([header for header, _ in CSV_COLUMNS])
    for pulse in pulses:
        writer.writerow([_render(getattr(pulse, field)) for _, field in CSV_COLUMNS])
    return buffer.getvalue()


def generate_pulses_csv(repository: "PulseRepository") -> bytes:
    """All stored pulses as UTF-8 CSV bytes."""
    return pulses_to_csv(repository.get_all_pulses()).encode("utf-8")
