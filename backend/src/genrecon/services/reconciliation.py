"""Generation reconciliation service.

Brings stored generation jobs in line with what their providers report. A pass is
stateless and on-demand: it is triggered by a client poll or an external scheduler,
never by a background loop owned by this service.

Workflow per pass:
1. Load candidates in one short Unit of Work (snapshots, detached after close)
2. Poll providers concurrently, bounded by RECONCILE_CONCURRENCY, outside any transaction
3. For each job that needs a terminal write, open a dedicated Unit of Work,
   lock the row, re-check that its kind still matches the snapshot, then apply
   the transition together with its refund or fan-out
4. Aggregate per-job results into a summary

Errors for one job never abort the others: they are reported with new_status="error".
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncIterator, Callable
from uuid import UUID

import httpx
import structlog

from genrecon.core.config import Settings
from genrecon.core.timezone import utcnow
from genrecon.models.generation_job import ACTIVE_STATUSES, GenerationJob, JobKind
from genrecon.services.credits.refund_ledger import RefundLedger
from genrecon.services.exceptions import (
    JobNotFoundError,
    ProviderCheckError,
    ProviderConfigurationError,
)
from genrecon.services.providers.base import Completed, Failed, InProgress
from genrecon.services.providers.outputs import ExtractedOutputs, extract_outputs
from genrecon.services.providers.registry import AdapterRegistry
from genrecon.services.timeout_policy import is_timed_out, timeout_reason

logger = structlog.get_logger()

ERROR_STATUS = "error"
COMPLETED_NO_OUTPUT = "COMPLETED_NO_OUTPUT"
PASS_TIMEOUT_DETAIL = "reconciliation pass timed out"
LEGACY_TRANSLATE_MESSAGE = (
    "This was a legacy Translate job and cannot be recovered. Please re-run the translation."
)


@dataclass
class JobResult:
    """Outcome of reconciling one job (or one fan-out variation)."""

    job_id: UUID
    new_status: str
    changed: bool = False
    output_url: str | None = None
    thumbnail_url: str | None = None
    credits_refunded: int = 0
    error_detail: str | None = None
    provider_status: str | None = None
    is_variation: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {
            "job_id": str(self.job_id),
            "new_status": self.new_status,
            "changed": self.changed,
            "output_url": self.output_url,
            "thumbnail_url": self.thumbnail_url,
            "credits_refunded": self.credits_refunded,
            "error_detail": self.error_detail,
            "provider_status": self.provider_status,
            "is_variation": self.is_variation,
        }


@dataclass
class ReconciliationSummary:
    results: list[JobResult] = field(default_factory=list)

    @property
    def pending_count(self) -> int:
        active = {status.value for status in ACTIVE_STATUSES}
        return sum(1 for result in self.results if result.new_status in active)

    def as_dict(self) -> dict[str, Any]:
        return {
            "results": [result.as_dict() for result in self.results],
            "pending_count": self.pending_count,
        }


def unchanged_result(
    job: GenerationJob,
    error_detail: str | None = None,
    provider_status: str | None = None,
) -> JobResult:
    return JobResult(
        job_id=job.id,
        new_status=job.status.value,
        changed=False,
        output_url=job.output_url,
        thumbnail_url=job.thumbnail_url,
        error_detail=error_detail,
        provider_status=provider_status,
    )


class GenerationReconciler:
    """Reconciles an owner's generation jobs with their providers.

    Example:
        reconciler = GenerationReconciler(uow_factory, settings)
        summary = await reconciler.reconcile_all(owner_id)
        print(summary.pending_count)
    """

    def __init__(
        self,
        uow_factory: Callable,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize reconciler.

        Args:
            uow_factory: Factory from create_uow_factory()
            settings: Application settings (provider credentials, concurrency, pass timeout)
            http_client: Shared HTTP client; a client is created per pass when None
            clock: Current time provider (aware UTC)
        """
        self.uow_factory = uow_factory
        self.settings = settings
        self.http_client = http_client
        self.clock = clock

    async def reconcile_one(self, owner_id: UUID, job_id: UUID) -> ReconciliationSummary:
        """Reconcile a single job belonging to owner.

        Raises:
            JobNotFoundError: If the job does not exist or belongs to another owner
        """
        async with await self.uow_factory() as uow:
            job = await uow.generation_jobs.get_for_owner(job_id, owner_id)

        if job is None:
            raise JobNotFoundError(f"Generation {job_id} not found")

        return await self._run_pass(owner_id, [job])

    async def reconcile_all(self, owner_id: UUID) -> ReconciliationSummary:
        """Reconcile every active or recoverable job of owner, newest first."""
        async with await self.uow_factory() as uow:
            jobs = await uow.generation_jobs.list_reconcile_candidates(owner_id)

        return await self._run_pass(owner_id, jobs)

    @asynccontextmanager
    async def _client_scope(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.http_client is not None:
            yield self.http_client
            return
        async with httpx.AsyncClient(timeout=self.settings.provider_timeout_seconds) as client:
            yield client

    async def _run_pass(self, owner_id: UUID, jobs: list[GenerationJob]) -> ReconciliationSummary:
        """Process jobs concurrently within the pass deadline.

        Jobs still running at the deadline are cancelled; their Unit of Work rolls
        back, so they are left exactly as they were before the pass.
        """
        summary = ReconciliationSummary()
        if not jobs:
            logger.info("reconciliation.pass.completed", owner_id=str(owner_id), job_count=0)
            return summary

        async with self._client_scope() as client:
            registry = AdapterRegistry(self.settings, client)
            semaphore = asyncio.Semaphore(self.settings.reconcile_concurrency)
            tasks = [
                asyncio.create_task(self._reconcile_guarded(job, registry, semaphore))
                for job in jobs
            ]

            _, unfinished = await asyncio.wait(
                tasks, timeout=self.settings.reconcile_pass_timeout_seconds
            )
            for task in unfinished:
                task.cancel()
            if unfinished:
                await asyncio.gather(*unfinished, return_exceptions=True)

        timed_out = 0
        for job, task in zip(jobs, tasks):
            if task.cancelled():
                timed_out += 1
                summary.results.append(
                    JobResult(job_id=job.id, new_status=ERROR_STATUS, error_detail=PASS_TIMEOUT_DETAIL)
                )
            else:
                summary.results.extend(task.result())

        logger.info(
            "reconciliation.pass.completed",
            owner_id=str(owner_id),
            job_count=len(jobs),
            pending_count=summary.pending_count,
            timed_out_count=timed_out,
        )
        return summary

    async def _reconcile_guarded(
        self,
        job: GenerationJob,
        registry: AdapterRegistry,
        semaphore: asyncio.Semaphore,
    ) -> list[JobResult]:
        """Reconcile one job, converting any failure into an error result."""
        async with semaphore:
            try:
                return await self._reconcile_job(job, registry)
            except ProviderCheckError as e:
                logger.warning(
                    "generation.check_error",
                    job_id=str(job.id),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return [JobResult(job_id=job.id, new_status=ERROR_STATUS, error_detail=str(e))]
            except Exception as e:
                logger.error(
                    "generation.check_error",
                    job_id=str(job.id),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return [JobResult(job_id=job.id, new_status=ERROR_STATUS, error_detail=str(e))]

    async def _reconcile_job(self, snapshot: GenerationJob, registry: AdapterRegistry) -> list[JobResult]:
        kind = snapshot.kind
        logger.info(
            "generation.check.started",
            job_id=str(snapshot.id),
            kind=kind.value,
            provider_endpoint=snapshot.provider_endpoint,
        )

        if kind == JobKind.LEGACY_TRANSLATE:
            return await self._fail(snapshot, LEGACY_TRANSLATE_MESSAGE, event="generation.failed")

        if kind in (JobKind.TERMINAL, JobKind.UNPROCESSABLE):
            return [unchanged_result(snapshot)]

        family = snapshot.provider_family
        if family is None:
            return [
                unchanged_result(
                    snapshot,
                    error_detail=f"Unsupported provider: {snapshot.provider_endpoint}",
                )
            ]

        try:
            adapter = registry.get(family)
        except ProviderConfigurationError as e:
            logger.warning("generation.provider_not_configured", job_id=str(snapshot.id), error=str(e))
            return [unchanged_result(snapshot, error_detail=str(e))]

        outcome = await adapter.poll_status(snapshot)

        if isinstance(outcome, Completed):
            outputs = extract_outputs(outcome.raw_payload, snapshot.media_class, family)
            if outputs.primary_url:
                return await self._complete(snapshot, outputs.primary_url, outputs)
            logger.warning("generation.output_missing", job_id=str(snapshot.id), provider=family.value)
            return [unchanged_result(snapshot, provider_status=COMPLETED_NO_OUTPUT)]

        # Late recovery only ever moves a failed job to completed
        if kind == JobKind.RECOVERABLE_FAILED:
            provider_status = outcome.provider_status if isinstance(outcome, InProgress) else "FAILED"
            return [unchanged_result(snapshot, provider_status=provider_status)]

        if isinstance(outcome, Failed):
            return await self._fail(snapshot, outcome.reason, event="generation.failed")

        if is_timed_out(snapshot, self.clock()):
            return await self._fail(
                snapshot,
                timeout_reason(snapshot.media_class),
                event="generation.timed_out",
                provider_status=outcome.provider_status,
            )

        return [unchanged_result(snapshot, provider_status=outcome.provider_status)]

    async def _fail(
        self,
        snapshot: GenerationJob,
        reason: str,
        event: str,
        provider_status: str | None = None,
    ) -> list[JobResult]:
        """Fail the job and refund its reserved credits in one transaction.

        The refund is only issued when this call is the one that applied the
        failure; a job already moved on by a concurrent pass is reported as-is.
        """
        async with await self.uow_factory() as uow:
            job = await uow.generation_jobs.get_for_update(snapshot.id)
            if job is None or job.kind != snapshot.kind:
                current = job or snapshot
                logger.info(
                    "generation.transition_skipped",
                    job_id=str(snapshot.id),
                    status=current.status.value,
                )
                return [unchanged_result(current)]

            await uow.generation_jobs.mark_failed(job, reason)
            refunded = await RefundLedger(uow.profiles).refund_if_eligible(
                job.owner_id, job.credits_reserved
            )

        logger.warning(
            event,
            job_id=str(job.id),
            owner_id=str(job.owner_id),
            reason=reason,
            credits_refunded=refunded,
        )
        return [
            JobResult(
                job_id=job.id,
                new_status=job.status.value,
                changed=True,
                credits_refunded=refunded,
                error_detail=reason,
                provider_status=provider_status,
            )
        ]

    async def _complete(
        self, snapshot: GenerationJob, output_url: str, outputs: ExtractedOutputs
    ) -> list[JobResult]:
        """Complete the job and persist fan-out variations in one transaction."""
        async with await self.uow_factory() as uow:
            job = await uow.generation_jobs.get_for_update(snapshot.id)
            if job is None or job.kind != snapshot.kind:
                current = job or snapshot
                logger.info(
                    "generation.transition_skipped",
                    job_id=str(snapshot.id),
                    status=current.status.value,
                )
                return [unchanged_result(current)]

            original_title = job.title
            changed = await uow.generation_jobs.mark_completed(
                job, output_url, outputs.thumbnail_url, title=outputs.title
            )
            variations: list[GenerationJob] = []
            if changed and outputs.additional_results:
                variations = await uow.generation_jobs.add_variations(
                    job, outputs.additional_results, original_title
                )

        logger.info(
            "generation.completed",
            job_id=str(job.id),
            owner_id=str(job.owner_id),
            output_url=job.output_url,
            recovered=snapshot.kind == JobKind.RECOVERABLE_FAILED,
        )
        if variations:
            logger.info(
                "generation.fanout.created",
                job_id=str(job.id),
                variation_count=len(variations),
                variation_ids=[str(v.id) for v in variations],
            )

        results = [
            JobResult(
                job_id=job.id,
                new_status=job.status.value,
                changed=changed,
                output_url=job.output_url,
                thumbnail_url=job.thumbnail_url,
            )
        ]
        results.extend(
            JobResult(
                job_id=variation.id,
                new_status=variation.status.value,
                changed=True,
                output_url=variation.output_url,
                thumbnail_url=variation.thumbnail_url,
                is_variation=True,
            )
            for variation in variations
        )
        return results
