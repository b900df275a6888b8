"""Profile repository.

Provides the two operations the reconciler consumes from the profile store:
reading the subscription status and atomically returning credits.
"""

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from genrecon.core.timezone import utcnow
from genrecon.models.profile import Profile


class ProfileRepository:
    """Repository for Profile entities."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def get_by_owner(self, owner_id: UUID) -> Profile | None:
        result = await self.session.execute(
            select(Profile).where(Profile.owner_id == owner_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def add(self, profile: Profile) -> Profile:
        self.session.add(profile)
        await self.session.flush()
        return profile

    async def increment_credits(self, owner_id: UUID, amount: int) -> bool:
        """Add credits to an owner's balance in a single UPDATE statement.

        Query explanation:
        - SET credits = credits + :amount: evaluated by the database, so
          concurrent increments never overwrite each other
        - WHERE owner_id = :owner_id: no row means no profile to credit

        Args:
            owner_id: Owner's unique identifier
            amount: Credits to add (must be positive)

        Returns:
            True if a profile row was updated, False if the owner has no profile

        Raises:
            ValueError: If amount is not positive
        """
        if amount <= 0:
            raise ValueError(f"amount must be positive, got {amount}")

        result = await self.session.execute(
            update(Profile)
            .where(Profile.owner_id == owner_id)  # type: ignore[arg-type]
            .values(credits=Profile.credits + amount, updated_at=utcnow())
        )
        return result.rowcount > 0  # type: ignore[attr-defined]
