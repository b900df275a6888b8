"""Provider adapter contract and shared status classification.

Every provider family answers the same question ("what happened to this task?")
with differently shaped payloads. Adapters normalize the answer into one of three
outcomes:

- InProgress: provider is still working (or has not published output yet)
- Completed: provider reports success; raw_payload is handed to the output extractor
- Failed: provider confirmed failure (or answered with a non-retryable HTTP error)

Transport problems are never an outcome: they raise ProviderCheckError so the
reconciler can leave the job untouched instead of refunding it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Union

import httpx
import structlog

from genrecon.models.generation_job import GenerationJob
from genrecon.services.exceptions import ProviderCheckError

logger = structlog.get_logger()

DEFAULT_FAILURE_REASON = "Generation failed"

FAILURE_STATUS_TOKENS = frozenset(
    {
        "failed",
        "fail",
        "error",
        "create_task_failed",
        "generate_failed",
        "generate_audio_failed",
        "callback_exception",
        "sensitive_word_error",
    }
)
SUCCESS_STATUS_TOKENS = frozenset({"completed", "success"})


@dataclass(frozen=True)
class InProgress:
    provider_status: str | None = None


@dataclass(frozen=True)
class Completed:
    raw_payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Failed:
    reason: str = DEFAULT_FAILURE_REASON


ProviderOutcome = Union[InProgress, Completed, Failed]


def normalized_status(payload: dict[str, Any], fallback: dict[str, Any] | None = None) -> str:
    """Read the status token from `status`, then `state`, lower-cased."""
    for source in (payload, fallback or {}):
        for key in ("status", "state"):
            value = source.get(key)
            if isinstance(value, str) and value:
                return value.lower()
    return ""


# Error signals, checked first. Each returns the failure reason or None.
FAILURE_SIGNALS: list[Callable[[dict[str, Any], str], str | None]] = [
    lambda p, s: str(p["errorMessage"]) if p.get("errorMessage") else None,
    lambda p, s: str(p["errorCode"]) if p.get("errorCode") else None,
    lambda p, s: str(p["error"]) if p.get("error") else None,
    lambda p, s: DEFAULT_FAILURE_REASON if s in FAILURE_STATUS_TOKENS else None,
]

# Success signals, checked only when no error signal fired.
SUCCESS_SIGNALS: list[Callable[[dict[str, Any], str], bool]] = [
    lambda p, s: p.get("successFlag") == 1,
    lambda p, s: bool(p.get("completeTime")),
    lambda p, s: s in SUCCESS_STATUS_TOKENS,
]


def classify_status_payload(payload: dict[str, Any], status: str | None = None) -> ProviderOutcome:
    """Reduce a provider status payload to an outcome.

    Any error signal wins over any success signal. Without either, the task is
    considered in progress.

    Args:
        payload: Provider payload (already unwrapped from any envelope)
        status: Pre-normalized status token (read from payload when None)

    Returns:
        InProgress, Completed(payload) or Failed(reason)
    """
    if status is None:
        status = normalized_status(payload)

    for failure_signal in FAILURE_SIGNALS:
        reason = failure_signal(payload, status)
        if reason:
            return Failed(reason=reason)

    for success_signal in SUCCESS_SIGNALS:
        if success_signal(payload, status):
            return Completed(raw_payload=payload)

    return InProgress(provider_status=status.upper() if status else "IN_PROGRESS")


def require_task_id(job: GenerationJob) -> str:
    if not job.external_task_id:
        raise ValueError(f"Job {job.id} has no external task id")
    return job.external_task_id


def is_transient_status(status_code: int) -> bool:
    """429 and 5xx are worth retrying on the next pass."""
    return status_code == 429 or status_code >= 500


class ProviderAdapter(ABC):
    """Polls one provider family for the status of a submitted task."""

    family: str = ""

    def __init__(self, client: httpx.AsyncClient, api_key: str, base_url: str):
        """Initialize adapter.

        Args:
            client: Shared HTTP client (owned by the caller)
            api_key: Provider credential
            base_url: Provider API base URL (no trailing slash)
        """
        self.client = client
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    @property
    @abstractmethod
    def headers(self) -> dict[str, str]:
        """Authentication headers for this provider."""

    @abstractmethod
    async def poll_status(self, job: GenerationJob) -> ProviderOutcome:
        """Ask the provider about the job's task.

        Raises:
            ValueError: If the job has no external task id
            ProviderCheckError: Network failure, timeout, 429 or 5xx
        """

    async def _get(self, url: str, params: dict[str, str] | None = None) -> httpx.Response:
        """GET with transient-error classification.

        Returns the response for every non-transient status code, successful or not.

        Raises:
            ProviderCheckError: Network failure, timeout, rate limit (429), server error (5xx)
        """
        try:
            response = await self.client.get(url, params=params, headers=self.headers)
        except httpx.TimeoutException as e:
            raise ProviderCheckError(f"{self.family} request timed out: {e}") from e
        except httpx.TransportError as e:
            raise ProviderCheckError(f"{self.family} network error: {e}") from e

        if is_transient_status(response.status_code):
            logger.warning(
                "provider.transient_status",
                provider=self.family,
                status_code=response.status_code,
            )
            raise ProviderCheckError(
                f"{self.family} unavailable ({response.status_code}): {response.text}"
            )

        return response


def parse_json_object(response: httpx.Response) -> dict[str, Any] | None:
    """Decode a JSON object body, or None when the body is not a JSON object."""
    try:
        data = response.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None
