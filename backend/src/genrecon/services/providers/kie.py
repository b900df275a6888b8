"""Kie.ai adapter.

Kie exposes a different record-info endpoint per model family, so the status
path is looked up from the job's model identifier.
"""

from typing import Any

import structlog

from genrecon.models.generation_job import GenerationJob
from genrecon.services.providers.base import (
    Failed,
    ProviderAdapter,
    ProviderOutcome,
    classify_status_payload,
    normalized_status,
    parse_json_object,
    require_task_id,
)

logger = structlog.get_logger()

KIE_TAG_PREFIX = "kie:"
DEFAULT_KIE_STATUS_PATH = "/api/v1/jobs/recordInfo"

KIE_STATUS_PATHS: dict[str, str] = {
    # Image models
    "kie-4o-image": "/api/v1/gpt4o-image/record-info",
    "kie-flux-kontext-pro": "/api/v1/flux/kontext/record-info",
    "kie-flux-kontext-max": "/api/v1/flux/kontext/record-info",
    "kie-grok-imagine": "/api/v1/grok/imagine/record-info",
    "kie-seedream-4": "/api/v1/seedream/record-info",
    "kie-imagen-4": "/api/v1/google/imagen4/record-info",
    "kie-ideogram-v3": "/api/v1/ideogram/v3/record-info",
    "kie-flux2-pro": "/api/v1/flux2/pro/record-info",
    "kie-qwen-image": "/api/v1/qwen/record-info",
    "kie-midjourney": "/api/v1/midjourney/record-info",
    "kie-kling-image": "/api/v1/kling/image/record-info",
    "kie-flux-pro": "/api/v1/flux/pro/record-info",
    "kie-flux-dev": "/api/v1/flux/dev/record-info",
    "kie-flux-schnell": "/api/v1/flux/schnell/record-info",
    "kie-nano-banana": "/api/v1/jobs/recordInfo",
    # Video models (marketplace models share the jobs endpoint)
    "kie-runway": "/api/v1/runway/record-info",
    "kie-runway-i2v": "/api/v1/runway/record-info",
    "kie-runway-cinema": "/api/v1/runway/record-info",
    "kie-sora2": "/api/v1/jobs/recordInfo",
    "kie-sora2-pro": "/api/v1/jobs/recordInfo",
    "kie-veo31": "/api/v1/veo/record-info",
    "kie-veo31-fast": "/api/v1/veo/record-info",
    "kie-kling": "/api/v1/jobs/recordInfo",
    "kie-hailuo": "/api/v1/jobs/recordInfo",
    "kie-luma": "/api/v1/jobs/recordInfo",
    "kie-wan": "/api/v1/jobs/recordInfo",
    "kie-grok-video": "/api/v1/jobs/recordInfo",
    # Music models
    "kie-music-v4": "/api/v1/generate/record-info",
    "kie-music-v3.5": "/api/v1/generate/record-info",
}


def kie_model_for(job: GenerationJob) -> str:
    """Model identifier used for the status-path lookup.

    Falls back to the endpoint tag without its "kie:" prefix.
    """
    if job.model:
        return job.model
    endpoint = job.provider_endpoint or ""
    return endpoint[len(KIE_TAG_PREFIX) :] if endpoint.startswith(KIE_TAG_PREFIX) else endpoint


def kie_status_path(model: str) -> str:
    return KIE_STATUS_PATHS.get(model, DEFAULT_KIE_STATUS_PATH)


class KieAdapter(ProviderAdapter):
    """Status polling for Kie.ai tasks (bearer auth)."""

    family = "kie"

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    async def poll_status(self, job: GenerationJob) -> ProviderOutcome:
        task_id = require_task_id(job)
        model = kie_model_for(job)
        url = f"{self.base_url}{kie_status_path(model)}"

        logger.debug("provider.kie.poll", job_id=str(job.id), model=model, task_id=task_id)
        response = await self._get(url, params={"taskId": task_id})

        if not response.is_success:
            logger.warning(
                "provider.kie.status_error",
                job_id=str(job.id),
                status_code=response.status_code,
            )
            return Failed(reason=response.text or f"HTTP {response.status_code}")

        body = parse_json_object(response) or {}
        payload: dict[str, Any] = body.get("data") if isinstance(body.get("data"), dict) else body  # type: ignore[assignment]

        return classify_status_payload(payload, normalized_status(payload, fallback=body))
