"""Refund ledger tests."""

from uuid import uuid4

import pytest

from genrecon.models.profile import Profile
from genrecon.repositories.profile import ProfileRepository
from genrecon.services.credits.refund_ledger import RefundLedger


@pytest.mark.asyncio
async def test_refund_credits_pay_per_use_owner(session):
    profiles = ProfileRepository(session)
    owner_id = uuid4()
    await profiles.add(Profile(owner_id=owner_id, credits=20))

    refunded = await RefundLedger(profiles).refund_if_eligible(owner_id, 15)

    assert refunded == 15
    session.expire_all()
    assert (await profiles.get_by_owner(owner_id)).credits == 35


@pytest.mark.asyncio
@pytest.mark.parametrize("subscription_status", ["active", "trialing", "ACTIVE"])
async def test_unlimited_plan_is_not_refunded(session, subscription_status):
    profiles = ProfileRepository(session)
    owner_id = uuid4()
    await profiles.add(Profile(owner_id=owner_id, credits=20, subscription_status=subscription_status))

    refunded = await RefundLedger(profiles).refund_if_eligible(owner_id, 15)

    assert refunded == 0
    session.expire_all()
    assert (await profiles.get_by_owner(owner_id)).credits == 20


@pytest.mark.asyncio
@pytest.mark.parametrize("subscription_status", ["canceled", "past_due", None])
async def test_lapsed_subscription_is_refunded(session, subscription_status):
    profiles = ProfileRepository(session)
    owner_id = uuid4()
    await profiles.add(Profile(owner_id=owner_id, credits=0, subscription_status=subscription_status))

    assert await RefundLedger(profiles).refund_if_eligible(owner_id, 4) == 4


@pytest.mark.asyncio
async def test_zero_amount_is_a_no_op(session):
    profiles = ProfileRepository(session)
    owner_id = uuid4()
    await profiles.add(Profile(owner_id=owner_id, credits=20))

    assert await RefundLedger(profiles).refund_if_eligible(owner_id, 0) == 0


@pytest.mark.asyncio
async def test_missing_profile_refunds_nothing(session):
    assert await RefundLedger(ProfileRepository(session)).refund_if_eligible(uuid4(), 10) == 0
