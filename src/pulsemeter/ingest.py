"""Pulse ingestion: normalize, deduplicate, persist.

The latest-project read and the write are separate storage calls. Two
concurrent ingestions can therefore backfill from a stale latest project.
That is accepted for a single local user; wrap both calls in one storage
transaction if stronger consistency is ever needed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from .errors import InvalidInput
from .models import IngestResult, Pulse, PulseSubmission
from .normalize import HostEnvironment, normalize_pulse

if TYPE_CHECKING:
    from .repository import PulseRepository

logger = logging.getLogger(__name__)


def filter_unique_by_hash(pulses: Iterable[Pulse]) -> list[Pulse]:
    """Keep the first pulse for each hash, preserving order.

    Only deduplicates within the given batch; storage rejects hashes it has
    already seen.
    """
    seen: set[str] = set()
    unique = []
    for pulse in pulses:
        if pulse.hash in seen:
            continue
        seen.add(pulse.hash)
        unique.append(pulse)
    return unique


def _coerce_submission(entry: Any, index: int | None = None) -> PulseSubmission:
    """Validate one raw entry into a PulseSubmission."""
    where = f" at index {index}" if index is not None else ""
    if isinstance(entry, PulseSubmission):
        return entry
    if not isinstance(entry, Mapping):
        raise InvalidInput(f"Pulse{where} must be an object, got {type(entry).__name__}")
    try:
        return PulseSubmission.model_validate(dict(entry))
    except ValidationError as e:
        raise InvalidInput(f"Malformed pulse{where}: {e}") from e


def _require_batch(submissions: Any) -> Sequence:
    if submissions is None:
        raise InvalidInput("Pulses are required")
    if isinstance(submissions, (str, bytes, bytearray, Mapping)) or not isinstance(
        submissions, Sequence
    ):
        raise InvalidInput("Pulses must be an array")
    if not submissions:
        raise InvalidInput("Pulses must not be empty")
    return submissions


class PulseIngestor:
    """Orchestrates latest-project lookup, normalization, dedup and persistence."""

    def __init__(self, repository: "PulseRepository", host: HostEnvironment | None = None):
        self.repository = repository
        self.host = host

    def _normalize(self, submission: PulseSubmission, latest_project: str | None, now: datetime | None) -> Pulse:
        return normalize_pulse(submission, latest_project, host=self.host, now=now)

    def ingest_one(self, submission: PulseSubmission | Mapping, now: datetime | None = None) -> IngestResult:
        """Normalize and store a single pulse."""
        parsed = _coerce_submission(submission)
        latest_project = self.repository.get_latest_project()
        pulse = self._normalize(parsed, latest_project, now)
        self.repository.create_pulse(pulse)
        logger.debug(f"Stored pulse {pulse.hash[:12]} for {pulse.entity}")
        return IngestResult(count=1)

    def ingest_batch(self, submissions: Sequence, now: datetime | None = None) -> IngestResult:
        """Normalize, deduplicate and store a batch in one write.

        Every entry is validated before anything is written. The returned count
        is the number of submitted entries, which is what plugins expect back.

        Raises:
            InvalidInput: If the batch is missing, not an array, empty, or
                contains a malformed entry
        """
        batch = _require_batch(submissions)
        parsed = [_coerce_submission(entry, i) for i, entry in enumerate(batch)]

        latest_project = self.repository.get_latest_project()
        pulses = [self._normalize(sub, latest_project, now) for sub in parsed]
        unique = filter_unique_by_hash(pulses)

        inserted = self.repository.create_pulses(unique)
        dropped = len(pulses) - len(unique)
        if dropped:
            logger.debug(f"Dropped {dropped} in-batch duplicate pulses")
        logger.info(
            f"Ingested batch of {len(batch)} pulses ({len(unique)} unique, {inserted} new)"
        )
        return IngestResult(count=len(batch))
