"""Generation status API endpoints.

This module implements:
- POST /api/generations/check - Reconcile one generation or every active generation
  of the authenticated owner with its provider

Each call is a single reconciliation pass; clients poll this endpoint while they
have pending generations.
"""

from uuid import UUID

import structlog
from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import BaseModel, Field

from genrecon.api.dependencies import get_current_owner, get_reconciler
from genrecon.services.exceptions import JobNotFoundError
from genrecon.services.reconciliation import GenerationReconciler, JobResult

logger = structlog.get_logger()
router = APIRouter(prefix="/api/generations", tags=["generations"])


# Request/Response Models


class CheckGenerationsRequest(BaseModel):
    """Request model for a reconciliation pass. An empty body checks everything."""

    generation_id: UUID | None = Field(
        default=None,
        description="Reconcile only this generation (must belong to the caller)",
    )


class JobResultDTO(BaseModel):
    """Data Transfer Object for one reconciled job."""

    job_id: UUID = Field(..., description="Generation ID")
    new_status: str = Field(
        ...,
        description="Status after this pass (pending, processing, completed, failed, error)",
    )
    changed: bool = Field(..., description="True if this pass changed the stored job")
    output_url: str | None = Field(default=None, description="Published result URL")
    thumbnail_url: str | None = Field(default=None, description="Preview URL")
    credits_refunded: int = Field(default=0, description="Credits returned to the owner")
    error_detail: str | None = Field(default=None, description="Failure or check error detail")
    provider_status: str | None = Field(default=None, description="Raw provider status token")
    is_variation: bool = Field(
        default=False,
        description="True for records created from an additional provider result",
    )

    @classmethod
    def from_result(cls, result: JobResult) -> "JobResultDTO":
        return cls(
            job_id=result.job_id,
            new_status=result.new_status,
            changed=result.changed,
            output_url=result.output_url,
            thumbnail_url=result.thumbnail_url,
            credits_refunded=result.credits_refunded,
            error_detail=result.error_detail,
            provider_status=result.provider_status,
            is_variation=result.is_variation,
        )


class CheckGenerationsResponse(BaseModel):
    """Response model for a reconciliation pass."""

    results: list[JobResultDTO] = Field(..., description="Per-job outcomes, newest first")
    pending_count: int = Field(..., description="Jobs still pending or processing")


# API Endpoints


@router.post("/check", response_model=CheckGenerationsResponse, status_code=status.HTTP_200_OK)
async def check_generations(
    request: CheckGenerationsRequest | None = Body(default=None),
    owner_id: UUID = Depends(get_current_owner),
    reconciler: GenerationReconciler = Depends(get_reconciler),
) -> CheckGenerationsResponse:
    """Reconcile the caller's generations with their providers.

    Raises:
        HTTPException 401: Missing or invalid bearer token
        HTTPException 404: generation_id unknown for this owner
        HTTPException 500: Unexpected error

    Example:
        POST /api/generations/check
        {"generation_id": "6f1c..."}

        Response 200:
        {
            "results": [{"job_id": "6f1c...", "new_status": "completed", "changed": true, ...}],
            "pending_count": 0
        }
    """
    generation_id = request.generation_id if request else None

    try:
        if generation_id is not None:
            summary = await reconciler.reconcile_one(owner_id, generation_id)
        else:
            summary = await reconciler.reconcile_all(owner_id)

    except JobNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e

    except Exception as e:
        logger.error(
            "generation.check.unexpected_error",
            owner_id=str(owner_id),
            error=str(e),
            error_type=type(e).__name__,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to check generations",
        ) from e

    return CheckGenerationsResponse(
        results=[JobResultDTO.from_result(result) for result in summary.results],
        pending_count=summary.pending_count,
    )
