"""OAuth token repository for database operations."""

import time
from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, delete, or_, select

from hubauth.core.logging import get_logger
from hubauth.db.models import OAuthTokenRecord
from hubauth.db.repositories.base import EntityRepository
from hubauth.models.domain import OAuthToken

logger = get_logger(__name__)


class OAuthTokenRepository(EntityRepository[OAuthToken]):
    """Repository for oauth_tokens rows, keyed by access_token."""

    record_cls = OAuthTokenRecord
    key_column = "access_token"

    def to_domain(self, record: OAuthTokenRecord) -> OAuthToken:
        return OAuthToken(
            access_token=record.access_token,
            access_token_expires_at=record.access_token_expires_at,
            refresh_token=record.refresh_token,
            refresh_token_expires_at=record.refresh_token_expires_at,
            scope=record.scope,
            client_id=record.client_id,
            username=record.username,
        )

    def apply(self, record: OAuthTokenRecord, item: OAuthToken) -> None:
        record.access_token = item.access_token
        record.access_token_expires_at = item.access_token_expires_at
        record.refresh_token = item.refresh_token
        record.refresh_token_expires_at = item.refresh_token_expires_at
        record.scope = item.scope
        record.client_id = item.client_id
        record.username = item.username

    async def find_by_refresh_token(self, refresh_token: str) -> Optional[OAuthToken]:
        result = await self.session.execute(
            select(OAuthTokenRecord).where(OAuthTokenRecord.refresh_token == refresh_token)
        )
        record = result.scalar_one_or_none()
        return self.to_domain(record) if record else None

    async def find_by_client_id(self, client_id: str) -> List[OAuthToken]:
        result = await self.session.execute(
            select(OAuthTokenRecord).where(OAuthTokenRecord.client_id == client_id)
        )
        return [self.to_domain(r) for r in result.scalars().all()]

    async def find_by_username(self, username: str) -> List[OAuthToken]:
        result = await self.session.execute(
            select(OAuthTokenRecord).where(OAuthTokenRecord.username == username)
        )
        return [self.to_domain(r) for r in result.scalars().all()]

    async def remove_colliding(self, access_token: str, refresh_token: Optional[str]) -> int:
        """Delete rows sharing either token value; returns the number removed."""
        condition = OAuthTokenRecord.access_token == access_token
        if refresh_token:
            condition = or_(
                condition,
                OAuthTokenRecord.refresh_token == refresh_token,
                OAuthTokenRecord.access_token == refresh_token,
                OAuthTokenRecord.refresh_token == access_token,
            )
        result = await self.session.execute(delete(OAuthTokenRecord).where(condition))
        await self.session.flush()
        return result.rowcount

    async def remove_by_either(self, token: str) -> bool:
        result = await self.session.execute(
            delete(OAuthTokenRecord).where(
                or_(OAuthTokenRecord.access_token == token, OAuthTokenRecord.refresh_token == token)
            )
        )
        return result.rowcount > 0

    async def remove_by_username(self, username: str) -> int:
        result = await self.session.execute(
            delete(OAuthTokenRecord).where(OAuthTokenRecord.username == username)
        )
        return result.rowcount

    async def remove_by_client_id(self, client_id: str) -> int:
        result = await self.session.execute(
            delete(OAuthTokenRecord).where(OAuthTokenRecord.client_id == client_id)
        )
        return result.rowcount

    async def remove_expired(self, now: datetime) -> int:
        """Delete rows whose access token expired and whose refresh token is absent or expired."""
        start_time = time.time()
        logger.debug("db_query", operation="remove_expired")

        result = await self.session.execute(
            delete(OAuthTokenRecord).where(
                and_(
                    OAuthTokenRecord.access_token_expires_at <= now,
                    or_(
                        OAuthTokenRecord.refresh_token.is_(None),
                        and_(
                            OAuthTokenRecord.refresh_token_expires_at.is_not(None),
                            OAuthTokenRecord.refresh_token_expires_at <= now,
                        ),
                    ),
                )
            )
        )
        removed = result.rowcount

        duration_ms = (time.time() - start_time) * 1000
        logger.debug(
            "db_query_complete",
            operation="remove_expired",
            removed=removed,
            duration_ms=round(duration_ms, 2),
        )
        return removed
