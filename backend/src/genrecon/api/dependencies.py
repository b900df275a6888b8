"""FastAPI dependencies for request validation and common operations.

This module provides reusable FastAPI dependencies for:
- Settings and Unit of Work access from app.state
- Bearer token authentication (owner id resolution)
- Reconciler construction with the shared HTTP client
"""

from typing import Callable
from uuid import UUID

import httpx
import structlog
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from genrecon.core.config import Settings
from genrecon.services.auth_tokens import decode_access_token
from genrecon.services.exceptions import AuthenticationError
from genrecon.services.reconciliation import GenerationReconciler
from genrecon.uow import UnitOfWork

logger = structlog.get_logger()

bearer_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    """Get application settings loaded during lifespan startup.

    Args:
        request: FastAPI Request object (contains app.state)

    Returns:
        Settings instance stored in app.state
    """
    return request.app.state.settings


def get_uow_factory(request: Request) -> Callable[[], UnitOfWork]:
    """Get UnitOfWork factory from app state.

    Example:
        >>> @router.post("/endpoint")
        >>> async def endpoint(uow_factory=Depends(get_uow_factory)):
        ...     async with await uow_factory() as uow:
        ...         await uow.generation_jobs.get_by_id(job_id)
    """
    return request.app.state.uow_factory


def get_http_client(request: Request) -> httpx.AsyncClient | None:
    """Get the shared provider HTTP client from app state (None before startup)."""
    return getattr(request.app.state, "http_client", None)


async def get_current_owner(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> UUID:
    """Resolve the calling owner from the Authorization: Bearer header.

    Runs before any job access, so unauthenticated requests never touch storage.

    Returns:
        Owner UUID from the token's "sub" claim

    Raises:
        HTTPException: 401 Unauthorized if the token is missing or invalid
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return decode_access_token(credentials.credentials, settings.auth_jwt_secret)
    except AuthenticationError as e:
        logger.warning("auth.token_rejected", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


def get_reconciler(
    uow_factory=Depends(get_uow_factory),
    settings: Settings = Depends(get_settings),
    http_client: httpx.AsyncClient | None = Depends(get_http_client),
) -> GenerationReconciler:
    return GenerationReconciler(uow_factory, settings, http_client=http_client)
