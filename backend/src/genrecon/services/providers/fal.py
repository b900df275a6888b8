"""Fal.ai queue adapter.

Jobs are submitted to versioned endpoints (e.g. "fal-ai/wan/v2.6/image-to-video"),
but queue polling and result retrieval only work on the two-segment base path
("fal-ai/wan"). The provider-supplied response_url is not used: it has been
observed to carry endpoint suffixes that 404.
"""

import structlog

from genrecon.models.generation_job import GenerationJob
from genrecon.services.providers.base import (
    Completed,
    Failed,
    InProgress,
    ProviderAdapter,
    ProviderOutcome,
    classify_status_payload,
    parse_json_object,
    require_task_id,
)

logger = structlog.get_logger()

FAL_TAG_PREFIX = "fal:"

# Result fetch errors that will never resolve by waiting
PERMANENT_RESULT_FAILURES = frozenset({400, 401, 403, 404, 422})


def fal_queue_path(provider_endpoint: str) -> str:
    """Reduce a provider_endpoint tag to the queue base path.

    Examples:
        "fal:fal-ai/kling-video/v2/master" -> "fal-ai/kling-video"
        "fal-ai/minimax/video-01" -> "fal-ai/minimax"
    """
    endpoint = provider_endpoint
    if endpoint.startswith(FAL_TAG_PREFIX):
        endpoint = endpoint[len(FAL_TAG_PREFIX) :]
    return "/".join(endpoint.split("/")[:2])


class FalAdapter(ProviderAdapter):
    """Status polling and result retrieval for Fal.ai queue requests (key auth)."""

    family = "fal"

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Key {self.api_key}"}

    async def poll_status(self, job: GenerationJob) -> ProviderOutcome:
        task_id = require_task_id(job)
        request_url = f"{self.base_url}/{fal_queue_path(job.provider_endpoint or '')}/requests/{task_id}"

        logger.debug("provider.fal.poll", job_id=str(job.id), url=request_url)
        response = await self._get(f"{request_url}/status")

        if not response.is_success:
            logger.warning(
                "provider.fal.status_error",
                job_id=str(job.id),
                status_code=response.status_code,
            )
            return Failed(reason=response.text or f"HTTP {response.status_code}")

        outcome = classify_status_payload(parse_json_object(response) or {})
        if not isinstance(outcome, Completed):
            return outcome

        return await self._fetch_result(job, request_url)

    async def _fetch_result(self, job: GenerationJob, request_url: str) -> ProviderOutcome:
        """Fetch the result document of a completed request.

        Returns:
            Completed(result) on success (empty payload when the body is not a JSON object),
            Failed for permanent HTTP errors, InProgress for anything else
        """
        response = await self._get(request_url)

        if response.is_success:
            return Completed(raw_payload=parse_json_object(response) or {})

        logger.warning(
            "provider.fal.result_fetch_failed",
            job_id=str(job.id),
            status_code=response.status_code,
        )
        if response.status_code in PERMANENT_RESULT_FAILURES:
            return Failed(reason=response.text or f"HTTP {response.status_code}")

        # Some endpoints report COMPLETED briefly before the result is available
        return InProgress(provider_status=f"RESULT_FETCH_FAILED_{response.status_code}")
