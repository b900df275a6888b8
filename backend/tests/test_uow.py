"""Unit of Work pattern tests.

Tests focus on transaction management:
- Successful commits persist changes
- Exceptions trigger rollback
- Multiple repository operations are atomic
"""

from uuid import uuid4

import pytest

from genrecon.models.generation_job import GenerationJob, JobStatus
from genrecon.models.profile import Profile


@pytest.mark.asyncio
async def test_uow_commits_on_successful_exit(uow_factory):
    """Changes made within the context persist after the context exits."""
    owner_id = uuid4()

    async with await uow_factory() as uow:
        job = GenerationJob(owner_id=owner_id, external_task_id="task-1")
        await uow.generation_jobs.add(job)
        job_id = job.id

    async with await uow_factory() as uow:
        found = await uow.generation_jobs.get_by_id(job_id)
        assert found is not None
        assert found.owner_id == owner_id
        assert found.status == JobStatus.PENDING


@pytest.mark.asyncio
async def test_uow_rollback_on_exception(uow_factory):
    """Changes are rolled back and the exception propagates."""
    job_id = None

    with pytest.raises(ValueError, match="Intentional error"):
        async with await uow_factory() as uow:
            job = GenerationJob(owner_id=uuid4(), external_task_id="task-1")
            await uow.generation_jobs.add(job)
            job_id = job.id
            raise ValueError("Intentional error")

    async with await uow_factory() as uow:
        assert await uow.generation_jobs.get_by_id(job_id) is None


@pytest.mark.asyncio
async def test_failure_and_refund_are_atomic(uow_factory):
    """A failed write after mark_failed also discards the refund."""
    owner_id = uuid4()
    async with await uow_factory() as uow:
        await uow.profiles.add(Profile(owner_id=owner_id, credits=10))
        job = GenerationJob(owner_id=owner_id, external_task_id="task-1", credits_reserved=4)
        await uow.generation_jobs.add(job)

    with pytest.raises(RuntimeError):
        async with await uow_factory() as uow:
            locked = await uow.generation_jobs.get_for_update(job.id)
            await uow.generation_jobs.mark_failed(locked, "provider error")
            await uow.profiles.increment_credits(owner_id, 4)
            raise RuntimeError("storage write failed")

    async with await uow_factory() as uow:
        stored_job = await uow.generation_jobs.get_by_id(job.id)
        profile = await uow.profiles.get_by_owner(owner_id)

    assert stored_job.status == JobStatus.PENDING
    assert profile.credits == 10
