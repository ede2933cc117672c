"""Constants and builders shared by the pulsemeter test modules."""

from datetime import datetime, timezone

from pulsemeter.normalize import HostEnvironment

TEST_HOST = HostEnvironment(
    platform="linux",
    hostname="test-box",
    locale="en-US",
    user_agent="Python/3.12 (linux; x86_64) OS/6.0",
)

VSCODE_AGENT = "wakatime/v1.90.0 (linux-6.0-x86_64) go1.22 vscode/1.89.0 vscode-wakatime/24.5.0"
CHROME_AGENT = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 Chrome/124.0 Safari/537.36"


def epoch(year, month, day, hour=0, minute=0, second=0) -> float:
    """Epoch seconds for a UTC wall time."""
    return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc).timestamp()


def make_submission(entity: str = "/src/app.py", time: float | None = None, **fields) -> dict:
    """Helper to build a raw plugin submission.

    Args:
        entity: File path or URL
        time: Epoch seconds (default: 2025-01-15 10:00 UTC)
        **fields: Any other wire fields (project, category, user_agent, ...)

    Returns:
        A dict shaped like a plugin's JSON heartbeat.
    """
    submission = {
        "entity": entity,
        "time": time if time is not None else epoch(2025, 1, 15, 10, 0),
        "type": "file",
        "category": "coding",
        "project": "pulsemeter",
        "user_agent": VSCODE_AGENT,
    }
    submission.update(fields)
    return submission


def minute_run(start: float, count: int, step_minutes: int = 1, **fields) -> list[dict]:
    """Submissions one per ``step_minutes`` starting at ``start``."""
    return [
        make_submission(time=start + i * step_minutes * 60, **fields)
        for i in range(count)
    ]
