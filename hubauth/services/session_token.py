"""Session token generation and parsing service."""

from datetime import datetime, timedelta, timezone

import jwt

from hubauth.core.exceptions import UnauthorizedError
from hubauth.models.domain import User
from hubauth.models.requests import SessionTokenPayload


class SessionTokenService:
    """Service for generating and parsing JWT session tokens (``x-auth-token``)."""

    def __init__(self, secret_key: str, expires_in: int = 86400):
        """Initialize session token service.

        Args:
            secret_key: Secret key for signing JWT tokens
            expires_in: Default token lifetime in seconds
        """
        self.secret_key = secret_key
        self.expires_in = expires_in

    def generate_session_token(self, user: User, expires_in: int | None = None) -> str:
        """Generate a JWT session token for a user.

        Args:
            user: The authenticated user
            expires_in: Token expiration time in seconds (defaults to the configured expiry)

        Returns:
            JWT token string
        """
        now = datetime.now(timezone.utc)
        payload = {
            "username": user.username,
            "is_admin": user.is_admin,
            "exp": now + timedelta(seconds=expires_in or self.expires_in),
            "iat": now,
        }

        return jwt.encode(payload, self.secret_key, algorithm="HS256")

    def parse_session_token(self, token: str) -> SessionTokenPayload:
        """Parse and validate a session token.

        Raises:
            UnauthorizedError: If token is expired or invalid
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=["HS256"])
            return SessionTokenPayload(
                username=payload["username"], is_admin=bool(payload.get("is_admin", False))
            )
        except jwt.ExpiredSignatureError:
            raise UnauthorizedError("Session token has expired")
        except jwt.InvalidTokenError as e:
            raise UnauthorizedError(f"Invalid session token: {str(e)}")
        except KeyError as e:
            raise UnauthorizedError(f"Missing required field in session token: {str(e)}")
