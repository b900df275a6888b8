"""Repository tests.

Covers candidate selection for reconciliation passes, owner scoping, fan-out
records and the atomic credit increment.
"""

from datetime import timedelta
from uuid import uuid4

import pytest

from genrecon.core.timezone import as_utc, utcnow
from genrecon.models.generation_job import GenerationJob, JobStatus, MediaClass
from genrecon.models.profile import Profile
from genrecon.repositories.generation_job import GenerationJobRepository
from genrecon.repositories.profile import ProfileRepository
from genrecon.services.providers.outputs import ResultItem


@pytest.mark.asyncio
async def test_list_reconcile_candidates_selection_and_order(make_job, uow_factory, owner_id):
    """Active jobs plus recoverable failed Kie jobs, newest first."""
    oldest = await make_job(age=timedelta(minutes=30), status=JobStatus.PROCESSING)
    recoverable = await make_job(age=timedelta(minutes=20), status=JobStatus.FAILED)
    newest = await make_job(age=timedelta(minutes=1))

    # Not candidates
    await make_job(status=JobStatus.COMPLETED, output_url="https://cdn/done.png")
    await make_job(status=JobStatus.FAILED, provider_endpoint="fal:fal-ai/flux/dev")
    await make_job(status=JobStatus.FAILED, external_task_id=None)
    await make_job(owner_id=uuid4())

    async with await uow_factory() as uow:
        candidates = await uow.generation_jobs.list_reconcile_candidates(owner_id)

    assert [job.id for job in candidates] == [newest.id, recoverable.id, oldest.id]


@pytest.mark.asyncio
async def test_list_reconcile_candidates_includes_legacy_processing_jobs(make_job, uow_factory, owner_id):
    legacy = await make_job(
        provider_endpoint="translate-video",
        external_task_id=None,
        status=JobStatus.PROCESSING,
    )

    async with await uow_factory() as uow:
        candidates = await uow.generation_jobs.list_reconcile_candidates(owner_id)

    assert [job.id for job in candidates] == [legacy.id]


@pytest.mark.asyncio
async def test_get_for_owner_is_scoped(make_job, uow_factory, owner_id):
    job = await make_job()

    async with await uow_factory() as uow:
        assert (await uow.generation_jobs.get_for_owner(job.id, owner_id)).id == job.id
        assert await uow.generation_jobs.get_for_owner(job.id, uuid4()) is None
        assert await uow.generation_jobs.get_for_owner(uuid4(), owner_id) is None


@pytest.mark.asyncio
async def test_add_variations_copies_parent_fields(session):
    repo = GenerationJobRepository(session)
    parent = GenerationJob(
        owner_id=uuid4(),
        media_class=MediaClass.MUSIC,
        provider_endpoint="kie:kie-music-v4",
        model="kie-music-v4",
        external_task_id="task-1",
        credits_reserved=12,
        prompt="lofi rain",
    )
    await repo.add(parent)
    await repo.mark_completed(parent, "https://cdn/song-1.mp3", title="Rain I")

    variations = await repo.add_variations(
        parent,
        [
            ResultItem(url="https://cdn/song-2.mp3", title="Rain II", variation_number=2),
            ResultItem(url="https://cdn/song-3.mp3", variation_number=3),
        ],
        original_title=None,
    )

    assert len(variations) == 2
    for variation in variations:
        assert variation.owner_id == parent.owner_id
        assert variation.media_class == MediaClass.MUSIC
        assert variation.provider_endpoint == "kie:kie-music-v4"
        assert variation.model == "kie-music-v4"
        assert variation.prompt == "lofi rain"
        assert variation.status == JobStatus.COMPLETED
        assert variation.credits_reserved == 0
        assert variation.external_task_id is None
    assert variations[0].title == "Rain II"
    # Named after the job as submitted, not the title of the first result
    assert variations[1].title == "lofi rain (Variation 3)"
    assert parent.title == "Rain I"


@pytest.mark.asyncio
async def test_add_variations_title_falls_back_to_prompt(session):
    repo = GenerationJobRepository(session)
    parent = GenerationJob(owner_id=uuid4(), external_task_id="task-1", prompt="ocean waves")
    await repo.add(parent)

    [variation] = await repo.add_variations(
        parent, [ResultItem(url="https://cdn/2.mp3", variation_number=2)], original_title=None
    )

    assert variation.title == "ocean waves (Variation 2)"


@pytest.mark.asyncio
async def test_add_variations_prefers_original_title(session):
    repo = GenerationJobRepository(session)
    parent = GenerationJob(owner_id=uuid4(), external_task_id="task-1", title="My Song", prompt="piano")
    await repo.add(parent)
    await repo.mark_completed(parent, "https://cdn/1.mp3", title="Take 1")

    [variation] = await repo.add_variations(
        parent, [ResultItem(url="https://cdn/2.mp3", variation_number=2)], original_title="My Song"
    )

    assert variation.title == "My Song (Variation 2)"


@pytest.mark.asyncio
async def test_timestamps_round_trip_as_utc(make_job, load_job):
    """Aware UTC timestamps persist and read back as the same instant."""
    created_at = utcnow() - timedelta(minutes=3)
    job = await make_job(created_at=created_at)

    stored = await load_job(job.id)

    assert as_utc(stored.created_at) == created_at
    assert GenerationJob.__table__.c.created_at.type.timezone is True
    assert Profile.__table__.c.updated_at.type.timezone is True


@pytest.mark.asyncio
async def test_increment_credits(session):
    repo = ProfileRepository(session)
    owner_id = uuid4()
    await repo.add(Profile(owner_id=owner_id, credits=5, subscription_status="canceled"))

    assert await repo.increment_credits(owner_id, 7) is True
    assert await repo.increment_credits(uuid4(), 7) is False

    session.expire_all()
    profile = await repo.get_by_owner(owner_id)
    assert profile.credits == 12
    assert profile.subscription_status == "canceled"


@pytest.mark.asyncio
async def test_increment_credits_rejects_non_positive_amount(session):
    repo = ProfileRepository(session)

    with pytest.raises(ValueError):
        await repo.increment_credits(uuid4(), 0)
