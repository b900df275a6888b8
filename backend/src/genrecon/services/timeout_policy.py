"""Per-media-class pending ceilings.

Staleness is recomputed from created_at on every pass; nothing about retries is
stored on the job.
"""

from datetime import datetime, timedelta

from genrecon.core.timezone import as_utc
from genrecon.models.generation_job import GenerationJob, MediaClass

DEFAULT_MAX_PENDING_DURATION = timedelta(minutes=10)

# Music and video providers legitimately take longer
MAX_PENDING_DURATIONS: dict[MediaClass, timedelta] = {
    MediaClass.MUSIC: timedelta(minutes=20),
    MediaClass.VIDEO: timedelta(minutes=20),
    MediaClass.IMAGE: DEFAULT_MAX_PENDING_DURATION,
    MediaClass.OTHER: DEFAULT_MAX_PENDING_DURATION,
}


def max_pending_duration(media_class: MediaClass) -> timedelta:
    return MAX_PENDING_DURATIONS.get(media_class, DEFAULT_MAX_PENDING_DURATION)


def is_timed_out(job: GenerationJob, now: datetime) -> bool:
    """True once the job has been pending strictly longer than its class allows."""
    elapsed = as_utc(now) - as_utc(job.created_at)
    return elapsed > max_pending_duration(job.media_class)


def timeout_reason(media_class: MediaClass) -> str:
    minutes = round(max_pending_duration(media_class).total_seconds() / 60)
    return f"Generation timed out after {minutes} minutes"
