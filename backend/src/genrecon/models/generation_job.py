"""GenerationJob entity - asynchronous provider job with lifecycle status tracking."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel

from genrecon.core.timezone import utcnow

LEGACY_TRANSLATE_ENDPOINT = "translate-video"


class JobStatus(str, Enum):
    """Generation job lifecycle status."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


ACTIVE_STATUSES = (JobStatus.PENDING, JobStatus.PROCESSING)


class MediaClass(str, Enum):
    """Kind of media a job produces. Drives the timeout policy."""

    IMAGE = "image"
    VIDEO = "video"
    MUSIC = "music"
    OTHER = "other"


class ProviderFamily(str, Enum):
    """External provider family, selected by the job's provider_endpoint tag."""

    KIE = "kie"
    FAL = "fal"

    @property
    def supports_late_recovery(self) -> bool:
        """Whether jobs failed by an earlier, stricter policy may still complete."""
        return self is ProviderFamily.KIE


class JobKind(str, Enum):
    """How the reconciler treats a job, derived from its stored fields."""

    ACTIVE = "active"
    RECOVERABLE_FAILED = "recoverable_failed"
    LEGACY_TRANSLATE = "legacy_translate"
    UNPROCESSABLE = "unprocessable"
    TERMINAL = "terminal"


class InvalidStateTransition(Exception):
    """Raised when attempting an invalid generation job state transition."""

    pass


def resolve_provider_family(provider_endpoint: str | None) -> ProviderFamily | None:
    """Map a provider_endpoint tag to its provider family.

    Accepts "kie:<model>", "fal:<endpoint>" and the historical bare "fal-ai/<endpoint>".
    """
    if not provider_endpoint:
        return None
    if provider_endpoint.startswith("kie:"):
        return ProviderFamily.KIE
    if provider_endpoint.startswith(("fal:", "fal-ai/")):
        return ProviderFamily.FAL
    return None


class GenerationJob(SQLModel, table=True):
    """GenerationJob tracks one request to an external generation provider."""

    __tablename__ = "generation_jobs"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    owner_id: UUID = Field(index=True)
    media_class: MediaClass = Field(default=MediaClass.OTHER)
    provider_endpoint: Optional[str] = Field(default=None, max_length=255)
    model: Optional[str] = Field(default=None, max_length=255)
    external_task_id: Optional[str] = Field(default=None, max_length=255)
    status: JobStatus = Field(default=JobStatus.PENDING, index=True)
    output_url: Optional[str] = Field(default=None)
    thumbnail_url: Optional[str] = Field(default=None)
    credits_reserved: int = Field(default=0, ge=0)
    failure_reason: Optional[str] = Field(default=None, max_length=1000)
    title: Optional[str] = Field(default=None)
    prompt: Optional[str] = Field(default=None)
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
    completed_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )

    @property
    def provider_family(self) -> ProviderFamily | None:
        return resolve_provider_family(self.provider_endpoint)

    @property
    def kind(self) -> JobKind:
        """Classify the job for reconciliation.

        Order matters: a published output always wins, then jobs without a
        provider task id, then the status-based cases.
        """
        if self.output_url or self.status == JobStatus.COMPLETED:
            return JobKind.TERMINAL

        if not self.external_task_id:
            if (
                self.provider_endpoint == LEGACY_TRANSLATE_ENDPOINT
                and self.status == JobStatus.PROCESSING
            ):
                return JobKind.LEGACY_TRANSLATE
            return JobKind.UNPROCESSABLE

        if self.status in ACTIVE_STATUSES:
            return JobKind.ACTIVE

        family = self.provider_family
        if self.status == JobStatus.FAILED and family is not None and family.supports_late_recovery:
            return JobKind.RECOVERABLE_FAILED

        return JobKind.TERMINAL

    def mark_completed(
        self,
        output_url: str,
        thumbnail_url: str | None = None,
        title: str | None = None,
    ) -> bool:
        """Transition into completed with the published output.

        Re-applying the same output to an already completed job is a no-op. A
        late recovery clears the failure reason left by the earlier failure.

        Args:
            output_url: Primary result URL
            thumbnail_url: Optional preview URL
            title: Optional title reported by the provider (keeps current title if None)

        Returns:
            True if the job changed, False if the identical completion was already stored

        Raises:
            InvalidStateTransition: If the job already holds a different output, or is
                failed without being eligible for late recovery
            ValueError: If output_url is empty
        """
        if not output_url:
            raise ValueError("output_url is required")

        if self.output_url:
            if self.output_url == output_url and self.status == JobStatus.COMPLETED:
                return False
            raise InvalidStateTransition(
                f"Cannot complete job {self.id}: output already published as {self.output_url}."
            )

        if self.status == JobStatus.FAILED and self.kind != JobKind.RECOVERABLE_FAILED:
            raise InvalidStateTransition(
                f"Cannot mark completed from {self.status.value}. "
                "Job is not eligible for late recovery."
            )

        self.status = JobStatus.COMPLETED
        self.output_url = output_url
        self.failure_reason = None
        self.thumbnail_url = thumbnail_url
        if title:
            self.title = title
        self.completed_at = utcnow()
        return True

    def mark_failed(self, reason: str) -> None:
        """Transition from pending/processing to failed.

        Args:
            reason: Failure description (truncated to 1000 characters)

        Raises:
            InvalidStateTransition: If the job is already terminal
        """
        if self.status not in ACTIVE_STATUSES:
            raise InvalidStateTransition(
                f"Cannot mark failed from terminal state {self.status.value}."
            )
        self.status = JobStatus.FAILED
        self.failure_reason = reason[:1000]
