"""SQLModel database entities.

All models are imported here to ensure they're registered with SQLModel metadata
for Alembic autogenerate support.
"""

from genrecon.models.generation_job import (
    GenerationJob,
    InvalidStateTransition,
    JobKind,
    JobStatus,
    MediaClass,
    ProviderFamily,
)
from genrecon.models.profile import Profile

__all__ = [
    "GenerationJob",
    "JobStatus",
    "JobKind",
    "MediaClass",
    "ProviderFamily",
    "InvalidStateTransition",
    "Profile",
]
