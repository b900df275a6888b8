"""Bearer token verification.

Callers authenticate with an HS256 JWT whose "sub" claim is their owner id.
"""

from datetime import UTC, datetime, timedelta
from uuid import UUID

import jwt

from genrecon.services.exceptions import AuthenticationError

ALGORITHM = "HS256"


def encode_access_token(owner_id: UUID, secret: str, expires_in: timedelta = timedelta(hours=1)) -> str:
    """Issue a token for owner_id (used by scripts and tests)."""
    now = datetime.now(UTC)
    payload = {"sub": str(owner_id), "iat": now, "exp": now + expires_in}
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_access_token(token: str, secret: str) -> UUID:
    """Verify a bearer token and return the owner id it was issued for.

    Args:
        token: Compact JWT from the Authorization header
        secret: Shared HS256 secret (AUTH_JWT_SECRET)

    Returns:
        Owner UUID from the "sub" claim

    Raises:
        AuthenticationError: Missing secret, bad signature, expired token or invalid subject
    """
    if not secret:
        raise AuthenticationError("Token verification is not configured")

    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise AuthenticationError("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise AuthenticationError(f"Invalid token: {e}") from e

    try:
        return UUID(str(payload["sub"]))
    except ValueError as e:
        raise AuthenticationError("Token subject is not a valid owner id") from e
