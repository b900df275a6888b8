"""Timeout policy tests."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from genrecon.models.generation_job import GenerationJob, MediaClass
from genrecon.services.timeout_policy import (
    MAX_PENDING_DURATIONS,
    is_timed_out,
    max_pending_duration,
    timeout_reason,
)

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def job_created(ago: timedelta, media_class: MediaClass) -> GenerationJob:
    return GenerationJob(owner_id=uuid4(), media_class=media_class, created_at=NOW - ago)


def test_every_media_class_has_a_ceiling():
    assert set(MAX_PENDING_DURATIONS) == set(MediaClass)


@pytest.mark.parametrize(
    "media_class, minutes",
    [
        (MediaClass.MUSIC, 20),
        (MediaClass.VIDEO, 20),
        (MediaClass.IMAGE, 10),
        (MediaClass.OTHER, 10),
    ],
)
def test_max_pending_duration(media_class, minutes):
    assert max_pending_duration(media_class) == timedelta(minutes=minutes)


@pytest.mark.parametrize("media_class", list(MediaClass))
def test_timeout_boundary(media_class):
    """One second under the ceiling is fine, one second over is timed out."""
    ceiling = max_pending_duration(media_class)

    assert not is_timed_out(job_created(ceiling - timedelta(seconds=1), media_class), NOW)
    assert not is_timed_out(job_created(ceiling, media_class), NOW)
    assert is_timed_out(job_created(ceiling + timedelta(seconds=1), media_class), NOW)


def test_naive_created_at_is_read_as_utc():
    """SQLite returns timestamps without an offset."""
    job = job_created(timedelta(minutes=25), MediaClass.MUSIC)
    job.created_at = job.created_at.replace(tzinfo=None)

    assert is_timed_out(job, NOW)


def test_other_offsets_are_normalized():
    job = job_created(timedelta(minutes=9), MediaClass.IMAGE)
    now_in_kyiv = NOW.astimezone(timezone(timedelta(hours=2)))

    assert not is_timed_out(job, now_in_kyiv)


def test_timeout_reason_mentions_minutes():
    assert timeout_reason(MediaClass.MUSIC) == "Generation timed out after 20 minutes"
    assert timeout_reason(MediaClass.IMAGE) == "Generation timed out after 10 minutes"
