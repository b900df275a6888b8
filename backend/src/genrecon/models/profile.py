"""Profile entity - owner credit balance and subscription state."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel

from genrecon.core.timezone import utcnow

# Owners on these plans are not charged per generation, so failures are not refunded
UNLIMITED_SUBSCRIPTION_STATUSES = frozenset({"active", "trialing"})


class Profile(SQLModel, table=True):
    """Profile holds the credit balance and subscription status of one owner."""

    __tablename__ = "profiles"  # type: ignore[assignment]

    owner_id: UUID = Field(primary_key=True)
    credits: int = Field(default=0, ge=0)
    subscription_status: Optional[str] = Field(default=None, max_length=50)
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    @property
    def has_unlimited_plan(self) -> bool:
        return (self.subscription_status or "").lower() in UNLIMITED_SUBSCRIPTION_STATUSES
