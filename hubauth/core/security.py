"""Security utilities and dependencies."""

import hmac
from typing import Annotated, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from hubauth.core.exceptions import UnauthorizedError

# HTTPBearer security scheme for extracting Bearer tokens
bearer_scheme = HTTPBearer(auto_error=False)


def secure_compare(a: str, b: str) -> bool:
    """Constant-time string comparison that tolerates non-ASCII input."""
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


async def get_optional_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> Optional[str]:
    """Bearer token from the Authorization header, or None when absent."""
    if not credentials or credentials.scheme.lower() != "bearer":
        return None
    return credentials.credentials or None


async def get_bearer_token(
    token: Annotated[Optional[str], Depends(get_optional_bearer_token)],
) -> str:
    """Extract and validate Bearer token from Authorization header.

    Raises:
        UnauthorizedError: If credentials are missing or use another scheme

    Example:
        @router.get("/protected")
        async def protected_endpoint(token: BearerToken):
            # Use token safely
            pass
    """
    if not token:
        raise UnauthorizedError("Authorization header is required")
    return token


# Type aliases for bearer token dependencies
BearerToken = Annotated[str, Depends(get_bearer_token)]
OptionalBearerToken = Annotated[Optional[str], Depends(get_optional_bearer_token)]
