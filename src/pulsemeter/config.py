"""Settings loader.

Reads settings from PULSEMETER_* environment variables and falls back to
defaults. Command line options override what is loaded here.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from datetime import tzinfo
from pathlib import Path

from dateutil import tz
from pydantic import BaseModel, Field

from .constants import DB_FILENAME, LOG_FILENAME
from .errors import InvalidInput

ENV_DATA_PATH = "PULSEMETER_PATH"
ENV_TIMEZONE = "PULSEMETER_TZ"
ENV_LOG_LEVEL = "PULSEMETER_LOG_LEVEL"


def default_data_dir() -> Path:
    return Path.home() / ".pulsemeter"


class Settings(BaseModel):
    """Runtime settings for the engine and CLI."""

    data_dir: Path = Field(default_factory=default_data_dir)
    db_name: str = DB_FILENAME
    timezone: str | None = None  # IANA name; None means the machine's local zone
    log_level: str = "INFO"
    log_file: str = LOG_FILENAME

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name

    @property
    def log_path(self) -> Path:
        return self.data_dir / self.log_file

    def tzinfo(self) -> tzinfo:
        """Resolve the configured zone.

        Raises:
            InvalidInput: If the zone name is unknown
        """
        if not self.timezone:
            return tz.tzlocal()
        zone = tz.gettz(self.timezone)
        if zone is None:
            raise InvalidInput(f"Unknown timezone: {self.timezone}")
        return zone


def load_settings(env: Mapping[str, str] | None = None, **overrides) -> Settings:
    """Build settings from environment variables.

    Keyword overrides with a value of None are ignored, so CLI options can be
    passed straight through.
    """
    env = os.environ if env is None else env
    values: dict = {}

    if data_path := env.get(ENV_DATA_PATH):
        values["data_dir"] = Path(data_path).expanduser()
    if zone := env.get(ENV_TIMEZONE):
        values["timezone"] = zone
    if level := env.get(ENV_LOG_LEVEL):
        values["log_level"] = level.upper()

    values.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**values)
