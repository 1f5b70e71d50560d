"""Token issuance, lookup and expiry sweeping."""

import asyncio
import contextlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from hubauth.core.logging import get_logger
from hubauth.dao.oauth_tokens import OAuthTokenDao
from hubauth.models.domain import OAuthToken
from hubauth.services.authorization_codes import AuthorizationCodeStore

logger = get_logger(__name__)

TokenGenerator = Callable[[], str]
Clock = Callable[[], datetime]


def generate_token() -> str:
    """256 bits of randomness, hex encoded."""
    return secrets.token_hex(32)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenManager:
    """Mirrors issued tokens into the token DAO and indexes them in memory.

    The index maps both access and refresh values to their record. It is
    filled lazily from the DAO on a miss and updated on every issue and
    revoke. Mutations run under one lock; the index is per process, so a
    token revoked by another process sharing the database stays valid here
    until it expires or this process restarts.
    """

    def __init__(
        self,
        token_dao: OAuthTokenDao,
        access_token_lifetime: float = 3600,
        refresh_token_lifetime: Optional[float] = 1209600,
        generator: TokenGenerator = generate_token,
        clock: Clock = utcnow,
        codes: Optional[AuthorizationCodeStore] = None,
    ):
        self.token_dao = token_dao
        self.codes = codes
        self.access_token_lifetime = access_token_lifetime
        self.refresh_token_lifetime = refresh_token_lifetime
        self._generate = generator
        self._clock = clock
        self._by_access: Dict[str, OAuthToken] = {}
        self._by_refresh: Dict[str, OAuthToken] = {}
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

    def now(self) -> datetime:
        return self._clock()

    # Index helpers; callers hold the lock

    def _index(self, token: OAuthToken) -> None:
        self._unindex(token.access_token)
        if token.refresh_token:
            self._unindex(token.refresh_token)
        self._by_access[token.access_token] = token
        if token.refresh_token:
            self._by_refresh[token.refresh_token] = token

    def _unindex(self, value: str) -> None:
        record = self._by_access.get(value) or self._by_refresh.get(value)
        if record is None:
            return
        self._by_access.pop(record.access_token, None)
        if record.refresh_token:
            self._by_refresh.pop(record.refresh_token, None)

    async def find(self, value: str) -> Optional[OAuthToken]:
        record = self._by_access.get(value) or self._by_refresh.get(value)
        if record is not None:
            return record

        async with self._lock:
            record = self._by_access.get(value) or self._by_refresh.get(value)
            if record is None:
                record = await self.token_dao.find_by_access_token(value)
                if record is None:
                    record = await self.token_dao.find_by_refresh_token(value)
                if record is not None:
                    self._index(record)
        return record

    # Operations

    async def issue(
        self,
        client_id: str,
        username: str,
        scope: Optional[str] = None,
        access_token_lifetime: Optional[float] = None,
        refresh_token_lifetime: Optional[float] = None,
        include_refresh_token: bool = True,
        refresh_token: Optional[str] = None,
        refresh_token_expires_at: Optional[datetime] = None,
    ) -> OAuthToken:
        """Create and persist a token; any record sharing a value is superseded.

        ``refresh_token``/``refresh_token_expires_at`` carry an existing
        refresh token over when refresh tokens are not rotated.
        """
        now = self._clock()
        access_lifetime = access_token_lifetime or self.access_token_lifetime
        refresh_lifetime = refresh_token_lifetime or self.refresh_token_lifetime

        if refresh_token is None and include_refresh_token:
            refresh_token = self._generate()
            refresh_token_expires_at = (
                now + timedelta(seconds=refresh_lifetime) if refresh_lifetime else None
            )

        token = OAuthToken(
            access_token=self._generate(),
            access_token_expires_at=now + timedelta(seconds=access_lifetime),
            refresh_token=refresh_token,
            refresh_token_expires_at=refresh_token_expires_at if refresh_token else None,
            scope=scope,
            client_id=client_id,
            username=username,
        )

        async with self._lock:
            await self.token_dao.create(token)
            self._index(token)

        logger.info("token_issued", client_id=client_id, username=username, scope=scope)
        return token

    async def lookup(self, value: str) -> Optional[OAuthToken]:
        """Resolve an access or refresh token; expired values resolve to None."""
        record = await self.find(value)
        if record is None:
            return None
        now = self._clock()
        if record.access_token == value and record.is_access_token_expired(now):
            return None
        if record.refresh_token == value and record.is_refresh_token_expired(now):
            return None
        return record

    async def lookup_access_token(self, value: str) -> Optional[OAuthToken]:
        record = await self.lookup(value)
        if record is None or record.access_token != value:
            return None
        return record

    async def lookup_refresh_token(self, value: str) -> Optional[OAuthToken]:
        record = await self.lookup(value)
        if record is None or record.refresh_token != value:
            return None
        return record

    async def revoke(self, value: str) -> bool:
        """Remove the record reachable by either of its token values."""
        async with self._lock:
            self._unindex(value)
            revoked = await self.token_dao.revoke_token(value)
        if revoked:
            logger.info("token_revoked")
        return revoked

    async def revoke_client_tokens(self, client_id: str) -> int:
        async with self._lock:
            for record in [r for r in self._by_access.values() if r.client_id == client_id]:
                self._unindex(record.access_token)
            removed = await self.token_dao.revoke_client_tokens(client_id)
        logger.info("client_tokens_revoked", client_id=client_id, removed=removed)
        return removed

    async def sweep(self) -> int:
        """Drop records whose access token and refresh token (if any) have both expired."""
        now = self._clock()
        async with self._lock:
            for record in [r for r in self._by_access.values() if r.is_fully_expired(now)]:
                self._unindex(record.access_token)
        removed = await self.token_dao.cleanup_expired(now)
        if removed:
            logger.info("expired_tokens_removed", removed=removed)
        return removed

    # Lifecycle

    def start(self, interval: float = 300) -> None:
        """Start the periodic sweep of tokens, and of authorization codes when a code store is attached."""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._run(interval))
        logger.info("token_sweep_started", interval=interval)

    async def _run(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.sweep()
                if self.codes is not None:
                    await self.codes.sweep()
            except Exception:
                logger.exception("token_sweep_failed")

    async def shutdown(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("token_sweep_stopped")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
