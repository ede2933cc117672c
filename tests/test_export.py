"""Tests for CSV export."""

import csv
import io

from helpers import TEST_HOST, epoch, make_submission

from pulsemeter.export import CSV_COLUMNS, generate_pulses_csv, pulses_to_csv
from pulsemeter.ingest import PulseIngestor


def _rows(data: bytes):
    return list(csv.reader(io.StringIO(data.decode("utf-8"))))


def test_empty_store_has_header_only(repo):
    rows = _rows(generate_pulses_csv(repo))
    assert rows == [[header for header, _ in CSV_COLUMNS]]


def test_header_order():
    header = pulses_to_csv([]).splitlines()[0]
    assert header.startswith("ID,User ID,Entity,Type,Category,Project")
    assert header.endswith("Origin,Origin ID,Created At,Description")


def test_rows_render_values(repo):
    PulseIngestor(repo, host=TEST_HOST).ingest_batch([
        make_submission(entity="/src/a, b.py", is_write=True, time=epoch(2025, 1, 15, 10, 0)),
        make_submission(entity="/src/c.py", time=epoch(2025, 1, 15, 10, 1)),
    ])

    rows = _rows(generate_pulses_csv(repo))
    header = rows[0]
    first = dict(zip(header, rows[1]))
    second = dict(zip(header, rows[2]))

    assert len(rows) == 3
    # Commas inside a field are quoted, not split
    assert first["Entity"] == "/src/a, b.py"
    assert first["Is Write"] == "true"
    assert second["Is Write"] == "false"
    assert first["Time"].startswith("2025-01-15T10:00:00")
    assert first["Description"] == ""
    assert first["Machine"] == "test-box"
