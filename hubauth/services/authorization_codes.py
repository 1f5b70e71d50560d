"""In-memory authorization code store."""

import asyncio
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from hubauth.core.logging import get_logger
from hubauth.models.domain import AuthorizationCode

logger = get_logger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuthorizationCodeStore:
    """Authorization codes live only in process memory and are consumed once.

    A restart invalidates every outstanding code.
    """

    def __init__(self, lifetime: int = 300, clock: Clock = utcnow):
        self.lifetime = lifetime
        self._clock = clock
        self._codes: Dict[str, AuthorizationCode] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._codes)

    async def create(
        self,
        client_id: str,
        username: str,
        redirect_uri: str,
        scope: Optional[str] = None,
        code_challenge: Optional[str] = None,
        code_challenge_method: Optional[str] = None,
    ) -> AuthorizationCode:
        code = AuthorizationCode(
            code=secrets.token_hex(32),
            expires_at=self._clock() + timedelta(seconds=self.lifetime),
            redirect_uri=redirect_uri,
            scope=scope,
            client_id=client_id,
            username=username,
            code_challenge=code_challenge,
            code_challenge_method=code_challenge_method,
        )
        async with self._lock:
            self._codes[code.code] = code
        logger.debug("authorization_code_created", client_id=client_id, username=username)
        return code

    async def get(self, code: str) -> Optional[AuthorizationCode]:
        """Peek at a live code without consuming it."""
        async with self._lock:
            data = self._codes.get(code)
            if data is None:
                return None
            if data.expires_at <= self._clock():
                del self._codes[code]
                return None
            return data

    async def consume(self, code: str) -> Optional[AuthorizationCode]:
        """Remove and return the code; None when absent, already used or expired."""
        async with self._lock:
            data = self._codes.pop(code, None)
        if data is None or data.expires_at <= self._clock():
            return None
        return data

    async def revoke(self, code: str) -> bool:
        async with self._lock:
            return self._codes.pop(code, None) is not None

    async def sweep(self) -> int:
        now = self._clock()
        async with self._lock:
            expired = [c for c, data in self._codes.items() if data.expires_at <= now]
            for c in expired:
                del self._codes[c]
        if expired:
            logger.info("expired_authorization_codes_removed", removed=len(expired))
        return len(expired)

    async def clear(self) -> None:
        async with self._lock:
            self._codes.clear()
