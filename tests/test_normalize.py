"""Tests for pulse normalization and hashing."""

from datetime import datetime, timezone

from helpers import TEST_HOST, epoch, make_submission

from pulsemeter.constants import LOCAL_USER_ID, UNSET_PROJECT_TOKEN
from pulsemeter.models import PulseSubmission
from pulsemeter.normalize import (
    calculate_pulse_hash,
    epoch_to_instant,
    normalize_pulse,
    resolve_project,
)


def _sub(**fields) -> PulseSubmission:
    return PulseSubmission.model_validate(make_submission(**fields))


# ─────────────────────────────────────────────────────────────────────────────
# Hashing
# ─────────────────────────────────────────────────────────────────────────────


def test_hash_is_deterministic():
    assert calculate_pulse_hash(_sub()) == calculate_pulse_hash(_sub())


def test_hash_is_hex_sha256():
    digest = calculate_pulse_hash(_sub())
    assert len(digest) == 64
    int(digest, 16)


def test_hash_changes_with_each_identity_field():
    base = calculate_pulse_hash(_sub())
    variants = [
        _sub(entity="/src/other.py"),
        _sub(time=epoch(2025, 1, 15, 10, 0, 1)),
        _sub(project="elsewhere"),
        _sub(branch="feature"),
        _sub(origin="cli"),
        _sub(origin_id="42"),
    ]
    for variant in variants:
        assert calculate_pulse_hash(variant) != base


def test_hash_ignores_non_identity_fields():
    base = calculate_pulse_hash(_sub())
    assert calculate_pulse_hash(_sub(category="debugging")) == base
    assert calculate_pulse_hash(_sub(user_agent="emacs/29")) == base
    assert calculate_pulse_hash(_sub(is_write=True)) == base


def test_hash_fields_do_not_run_together():
    """Moving text between adjacent fields must change the hash."""
    a = _sub(project="ab", branch="c")
    b = _sub(project="a", branch="bc")
    assert calculate_pulse_hash(a) != calculate_pulse_hash(b)


# ─────────────────────────────────────────────────────────────────────────────
# Project backfill
# ─────────────────────────────────────────────────────────────────────────────


def test_resolve_project_keeps_submitted():
    assert resolve_project("mine", "latest") == "mine"


def test_resolve_project_backfills_missing_and_placeholder():
    assert resolve_project(None, "latest") == "latest"
    assert resolve_project("", "latest") == "latest"
    assert resolve_project(UNSET_PROJECT_TOKEN, "latest") == "latest"


def test_resolve_project_without_latest_keeps_submitted():
    assert resolve_project(None, None) is None
    assert resolve_project(UNSET_PROJECT_TOKEN, None) == UNSET_PROJECT_TOKEN


# ─────────────────────────────────────────────────────────────────────────────
# normalize_pulse
# ─────────────────────────────────────────────────────────────────────────────


def test_epoch_to_instant_keeps_fraction():
    instant = epoch_to_instant(epoch(2025, 1, 15, 10, 0) + 0.25)
    assert instant.tzinfo is not None
    assert instant.microsecond == 250000


def test_normalize_fills_host_fallbacks():
    sub = PulseSubmission(entity="/src/app.py", time=epoch(2025, 1, 15, 10, 0))
    pulse = normalize_pulse(sub, latest_project=None, host=TEST_HOST)

    assert pulse.user_id == LOCAL_USER_ID
    assert pulse.operating_system == "linux"
    assert pulse.machine == "test-box"
    assert pulse.language == "en-US"
    assert pulse.user_agent == TEST_HOST.user_agent
    assert pulse.is_write is False
    assert pulse.editor == ""
    assert pulse.category == ""
    assert pulse.origin == ""


def test_normalize_prefers_submitted_values():
    sub = _sub(operating_system="darwin", machine="laptop", language="Python", is_write=True)
    pulse = normalize_pulse(sub, latest_project=None, host=TEST_HOST)

    assert pulse.operating_system == "darwin"
    assert pulse.machine == "laptop"
    assert pulse.language == "Python"
    assert pulse.is_write is True


def test_normalize_sets_time_and_created_at():
    now = datetime(2025, 1, 16, 8, 0, tzinfo=timezone.utc)
    pulse = normalize_pulse(_sub(), latest_project=None, host=TEST_HOST, now=now)

    assert pulse.time == datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)
    assert pulse.created_at == now


def test_normalize_hash_uses_submitted_project():
    """A backfilled project does not change the fingerprint."""
    sub = _sub(project=None)
    first = normalize_pulse(sub, latest_project="alpha", host=TEST_HOST)
    second = normalize_pulse(sub, latest_project="beta", host=TEST_HOST)

    assert first.project == "alpha"
    assert second.project == "beta"
    assert first.hash == second.hash == calculate_pulse_hash(sub)
