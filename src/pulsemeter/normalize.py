"""Map raw plugin submissions onto canonical Pulse records.

Normalization is a pure function of the submission, the most recently seen
project, and a HostEnvironment describing the machine. It never touches
storage.
"""

from __future__ import annotations

import hashlib
import locale
import platform
import socket
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache

from .constants import LOCAL_USER_ID, UNSET_PROJECT_TOKEN
from .models import Pulse, PulseSubmission, utc_now
from .timeutil import to_utc_iso

# Unit separator keeps "a|b" + "c" distinct from "a" + "b|c"
_HASH_FIELD_SEPARATOR = "\x1f"


@dataclass(frozen=True)
class HostEnvironment:
    """Fallback values for fields a plugin did not send."""

    platform: str
    hostname: str
    locale: str
    user_agent: str

    @classmethod
    def detect(cls) -> "HostEnvironment":
        """Read fallbacks from the running process (cached)."""
        return _detect_host()


@lru_cache(maxsize=1)
def _detect_host() -> HostEnvironment:
    language, _ = locale.getlocale()
    return HostEnvironment(
        platform=sys.platform,
        hostname=socket.gethostname(),
        locale=(language or "en_US").replace("_", "-"),
        user_agent=default_user_agent(),
    )


def default_user_agent() -> str:
    """Synthesize an identifying user agent for pulses that arrive without one."""
    return (
        f"Python/{platform.python_version()} "
        f"({sys.platform}; {platform.machine()}) OS/{platform.release()}"
    )


def epoch_to_instant(seconds: float) -> datetime:
    """Convert epoch seconds to an aware UTC datetime, keeping microseconds."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def calculate_pulse_hash(submission: PulseSubmission) -> str:
    """Content fingerprint of a submission.

    Covers entity, time, project, branch, origin and origin_id as submitted, so
    a retried submission collides with the original even if the backfilled
    project differs between attempts.
    """
    fields = (
        submission.entity,
        to_utc_iso(epoch_to_instant(submission.time)),
        submission.project or "",
        submission.branch or "",
        submission.origin or "",
        submission.origin_id or "",
    )
    payload = _HASH_FIELD_SEPARATOR.join(fields)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def resolve_project(submitted: str | None, latest_project: str | None) -> str | None:
    """Substitute the latest known project for a missing or placeholder one."""
    if (not submitted or submitted == UNSET_PROJECT_TOKEN) and latest_project:
        return latest_project
    return submitted


def normalize_pulse(
    submission: PulseSubmission,
    latest_project: str | None,
    host: HostEnvironment | None = None,
    now: datetime | None = None,
) -> Pulse:
    """Build a fully populated Pulse from a raw submission."""
    host = host or HostEnvironment.detect()

    return Pulse(
        user_id=LOCAL_USER_ID,
        project=resolve_project(submission.project, latest_project),
        branch=submission.branch,
        entity=submission.entity,
        type=submission.type,
        is_write=bool(submission.is_write),
        editor=submission.editor or "",
        language=submission.language or host.locale,
        operating_system=submission.operating_system or host.platform,
        machine=submission.machine or host.hostname,
        user_agent=submission.user_agent or host.user_agent,
        time=epoch_to_instant(submission.time),
        hash=calculate_pulse_hash(submission),
        origin=submission.origin or "",
        origin_id=submission.origin_id or "",
        category=submission.category or "",
        created_at=now or utc_now(),
    )
