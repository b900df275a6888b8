"""Repository layer for the reconciliation backend.

Provides data access abstractions for all domain entities.
No base classes - each repository is self-contained.
"""

from genrecon.repositories.generation_job import GenerationJobRepository
from genrecon.repositories.profile import ProfileRepository

__all__ = [
    "GenerationJobRepository",
    "ProfileRepository",
]
