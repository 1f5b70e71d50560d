"""OAuth client repository for database operations."""

from typing import List

from sqlalchemy import select

from hubauth.db.models import OAuthClientRecord
from hubauth.db.repositories.base import EntityRepository
from hubauth.models.domain import OAuthClient


class OAuthClientRepository(EntityRepository[OAuthClient]):
    """Repository for oauth_clients rows, keyed by client_id."""

    record_cls = OAuthClientRecord
    key_column = "client_id"

    def to_domain(self, record: OAuthClientRecord) -> OAuthClient:
        return OAuthClient(
            client_id=record.client_id,
            client_secret=record.client_secret,
            name=record.name,
            redirect_uris=record.redirect_uris or [],
            grants=record.grants or [],
            scopes=record.scopes,
            owner=record.owner,
            metadata=record.client_metadata,
        )

    def apply(self, record: OAuthClientRecord, item: OAuthClient) -> None:
        record.client_id = item.client_id
        record.client_secret = item.client_secret
        record.name = item.name
        record.redirect_uris = list(item.redirect_uris)
        record.grants = list(item.grants)
        record.scopes = list(item.scopes) if item.scopes is not None else None
        record.owner = item.owner
        record.client_metadata = item.metadata

    async def find_by_owner(self, owner: str) -> List[OAuthClient]:
        result = await self.session.execute(
            select(OAuthClientRecord).where(OAuthClientRecord.owner == owner)
        )
        return [self.to_domain(r) for r in result.scalars().all()]
