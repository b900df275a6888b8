"""GenerationJob repository.

Provides data access methods for GenerationJob entities, including the row lock
used to make terminal transitions safe across concurrent reconciliation passes.
"""

from typing import Iterable
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from genrecon.models.generation_job import (
    ACTIVE_STATUSES,
    GenerationJob,
    JobStatus,
)
from genrecon.services.providers.outputs import ResultItem


class GenerationJobRepository:
    """Repository for GenerationJob entities.

    Methods:
    - get_by_id / get_for_owner: plain lookups
    - get_for_update: re-read a job under a row lock before a terminal write
    - list_reconcile_candidates: active jobs plus failed jobs eligible for late recovery
    - mark_completed / mark_failed: persist state transitions
    - add_variations: fan-out records for multi-result completions
    """

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def get_by_id(self, job_id: UUID) -> GenerationJob | None:
        """Retrieve job by UUID.

        Args:
            job_id: Job's unique identifier

        Returns:
            GenerationJob if found, None otherwise
        """
        result = await self.session.execute(
            select(GenerationJob).where(GenerationJob.id == job_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def get_for_owner(self, job_id: UUID, owner_id: UUID) -> GenerationJob | None:
        """Retrieve job by UUID, scoped to its owner.

        Args:
            job_id: Job's unique identifier
            owner_id: Requesting owner's identifier

        Returns:
            GenerationJob if it exists and belongs to owner, None otherwise
        """
        result = await self.session.execute(
            select(GenerationJob).where(
                GenerationJob.id == job_id,  # type: ignore[arg-type]
                GenerationJob.owner_id == owner_id,  # type: ignore[arg-type]
            )
        )
        return result.scalar_one_or_none()

    async def get_for_update(self, job_id: UUID) -> GenerationJob | None:
        """Retrieve the latest committed state of a job and lock its row.

        A concurrent pass that reaches the same job blocks here until this
        transaction ends, then observes the already-applied transition.

        Args:
            job_id: Job's unique identifier

        Returns:
            Locked GenerationJob if found, None otherwise
        """
        result = await self.session.execute(
            select(GenerationJob)
            .where(GenerationJob.id == job_id)  # type: ignore[arg-type]
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def add(self, job: GenerationJob) -> GenerationJob:
        """Persist new job to database.

        Args:
            job: GenerationJob entity to persist

        Returns:
            Persisted job with generated ID
        """
        self.session.add(job)
        await self.session.flush()
        return job

    async def list_reconcile_candidates(self, owner_id: UUID) -> list[GenerationJob]:
        """Retrieve every job of an owner that a reconciliation pass should examine.

        Query explanation:
        - status IN (pending, processing): still waiting on the provider
        - OR status = failed with a task id, no output and a kie: tag:
          failed by an earlier timeout but still recoverable
        - ORDER BY created_at DESC: newest first

        Args:
            owner_id: Owner's unique identifier

        Returns:
            List of candidate jobs (newest first)
        """
        recoverable_failed = and_(
            GenerationJob.status == JobStatus.FAILED,  # type: ignore[arg-type]
            GenerationJob.output_url.is_(None),  # type: ignore[union-attr]
            GenerationJob.external_task_id.is_not(None),  # type: ignore[union-attr]
            GenerationJob.provider_endpoint.startswith("kie:"),  # type: ignore[union-attr]
        )
        result = await self.session.execute(
            select(GenerationJob)
            .where(
                GenerationJob.owner_id == owner_id,  # type: ignore[arg-type]
                or_(
                    GenerationJob.status.in_(ACTIVE_STATUSES),  # type: ignore[attr-defined]
                    recoverable_failed,
                ),
            )
            .order_by(GenerationJob.created_at.desc())  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())

    async def mark_completed(
        self,
        job: GenerationJob,
        output_url: str,
        thumbnail_url: str | None = None,
        title: str | None = None,
    ) -> bool:
        """Persist the completion of a job.

        Args:
            job: GenerationJob entity to update (should be locked via get_for_update)
            output_url: Primary result URL
            thumbnail_url: Optional preview URL
            title: Optional provider-reported title

        Returns:
            True if the stored state changed, False for an identical repeat

        Raises:
            InvalidStateTransition: If the job cannot be completed
        """
        changed = job.mark_completed(output_url, thumbnail_url, title=title)
        if changed:
            self.session.add(job)
            await self.session.flush()
            await self.session.refresh(job)
        return changed

    async def mark_failed(self, job: GenerationJob, reason: str) -> None:
        """Persist the failure of a job.

        Args:
            job: GenerationJob entity to update (should be locked via get_for_update)
            reason: Failure description (truncated to 1000 characters)

        Raises:
            InvalidStateTransition: If the job is already terminal
        """
        job.mark_failed(reason)
        self.session.add(job)
        await self.session.flush()
        await self.session.refresh(job)

    async def add_variations(
        self,
        parent: GenerationJob,
        results: Iterable[ResultItem],
        original_title: str | None,
    ) -> list[GenerationJob]:
        """Create completed jobs for the extra results of a multi-result task.

        Variations inherit owner, media class, prompt, model and provider tag from
        the parent. They carry no task id and no reserved credits.

        Args:
            parent: Original job that was completed with the first result
            results: Additional results beyond the first
            original_title: Parent title before the completion replaced it with
                the first result's title; untitled variations are named after it

        Returns:
            Newly persisted variation jobs, in result order
        """
        base_title = original_title or parent.prompt or "Untitled"
        variations = []
        for item in results:
            variation = GenerationJob(
                owner_id=parent.owner_id,
                media_class=parent.media_class,
                provider_endpoint=parent.provider_endpoint,
                model=parent.model,
                status=JobStatus.COMPLETED,
                output_url=item.url,
                thumbnail_url=item.thumbnail_url,
                credits_reserved=0,
                title=item.title or f"{base_title} (Variation {item.variation_number})",
                prompt=parent.prompt,
                completed_at=parent.completed_at,
            )
            self.session.add(variation)
            variations.append(variation)

        if variations:
            await self.session.flush()
        return variations
