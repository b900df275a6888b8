"""Credit compensation for failed generations."""

from uuid import UUID

import structlog

from genrecon.repositories.profile import ProfileRepository

logger = structlog.get_logger()


class RefundLedger:
    """Returns reserved credits to owners who pay per generation.

    Deduplication is not handled here: callers invoke refund_if_eligible only
    after a failure transition was actually applied, inside the same transaction.
    """

    def __init__(self, profiles: ProfileRepository):
        self.profiles = profiles

    async def refund_if_eligible(self, owner_id: UUID, amount: int) -> int:
        """Credit `amount` back to the owner unless they hold an unlimited plan.

        Args:
            owner_id: Owner to compensate
            amount: Credits reserved by the failed job

        Returns:
            Credits actually returned (0 when skipped)
        """
        if amount <= 0:
            return 0

        profile = await self.profiles.get_by_owner(owner_id)
        if profile is None:
            logger.warning(
                "credits.refund_skipped",
                owner_id=str(owner_id),
                amount=amount,
                reason="profile_not_found",
            )
            return 0

        if profile.has_unlimited_plan:
            logger.info(
                "credits.refund_skipped",
                owner_id=str(owner_id),
                amount=amount,
                reason="unlimited_plan",
                subscription_status=profile.subscription_status,
            )
            return 0

        # Atomic increment; the loaded balance is never written back
        await self.profiles.increment_credits(owner_id, amount)

        logger.info("credits.refunded", owner_id=str(owner_id), amount=amount)
        return amount
