#!/usr/bin/env python3
"""Seed script to populate the pulse store with a week of demo activity.

Usage:
    PULSEMETER_PATH=/path/to/data python scripts/seed.py

    # Or with the default data dir (~/.pulsemeter):
    python scripts/seed.py
"""

import random
from datetime import datetime, timedelta

from pulsemeter.config import load_settings
from pulsemeter.engine import ActivityEngine

EDITOR_AGENT = "wakatime/v1.90.0 (linux-6.0-x86_64) go1.22 vscode/1.89.0 vscode-wakatime/24.5.0"
BROWSER_AGENT = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 Chrome/124.0 Safari/537.36"

PROJECTS = ["pulsemeter", "dotfiles", "blog"]
FILES = ["src/app.py", "src/models.py", "tests/test_app.py", "README.md"]
SITES = [
    "https://github.com/pulls",
    "https://stackoverflow.com/questions/tagged/python",
    "https://developer.mozilla.org/en-US/docs/Web",
    "https://twitter.com/home",
    "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
]


def coding_session(start: datetime, minutes: int, project: str) -> list[dict]:
    """One pulse per minute in an editor, mostly coding with some debugging."""
    pulses = []
    for i in range(minutes):
        pulses.append({
            "entity": f"/home/dev/{project}/{random.choice(FILES)}",
            "time": (start + timedelta(minutes=i)).timestamp(),
            "type": "file",
            "category": "debugging" if random.random() < 0.2 else "coding",
            "project": project,
            "branch": "main",
            "language": "Python",
            "is_write": random.random() < 0.3,
            "user_agent": EDITOR_AGENT,
        })
    return pulses


def browsing_session(start: datetime, minutes: int) -> list[dict]:
    """One pulse per minute in the browser."""
    return [
        {
            "entity": random.choice(SITES),
            "time": (start + timedelta(minutes=i)).timestamp(),
            "type": "web",
            "category": "browsing",
            "user_agent": BROWSER_AGENT,
        }
        for i in range(minutes)
    ]


def seed_week(engine: ActivityEngine, days: int = 7) -> int:
    """Seed ``days`` days ending today. Returns the number of pulses submitted."""
    today = datetime.now(engine.tz).replace(hour=0, minute=0, second=0, microsecond=0)
    submitted = 0

    for offset in range(days):
        day = today - timedelta(days=offset)
        pulses = []
        pulses += coding_session(day.replace(hour=9), random.randint(25, 90), random.choice(PROJECTS))
        pulses += browsing_session(day.replace(hour=11), random.randint(5, 30))
        pulses += coding_session(day.replace(hour=14), random.randint(10, 60), random.choice(PROJECTS))
        engine.create_pulses(pulses)
        submitted += len(pulses)
        print(f"  {day.date().isoformat()}: {len(pulses)} pulses")

    return submitted


def main():
    settings = load_settings()

    print(f"Seeding pulses at: {settings.data_dir}")
    with ActivityEngine.open(settings) as engine:
        existing = len(engine.get_latest_pulses(1))
        if existing > 0:
            response = input("Store already has pulses. Add more? [y/N] ")
            if response.lower() != "y":
                print("Aborted")
                return

        total = seed_week(engine)
        overview = engine.get_week_overview(datetime.now(engine.tz).date())

    print(f"\nSubmitted {total} pulses")
    print(f"Today: {overview.today_minutes} min, past week: {overview.week_minutes} min")
    print(f"Database: {settings.db_path}")


if __name__ == "__main__":
    main()
