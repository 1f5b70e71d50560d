"""Bearer key repository for database operations."""

from typing import List

from sqlalchemy import select

from hubauth.db.models import BearerKeyRecord
from hubauth.db.repositories.base import EntityRepository
from hubauth.models.domain import AccessType, BearerKey


class BearerKeyRepository(EntityRepository[BearerKey]):
    """Repository for bearer_keys rows, keyed by id."""

    record_cls = BearerKeyRecord
    key_column = "id"

    def to_domain(self, record: BearerKeyRecord) -> BearerKey:
        return BearerKey(
            id=record.id,
            name=record.name,
            token=record.token,
            enabled=record.enabled,
            access_type=AccessType(record.access_type),
            allowed_groups=record.allowed_groups,
            allowed_servers=record.allowed_servers,
        )

    def apply(self, record: BearerKeyRecord, item: BearerKey) -> None:
        record.id = item.id
        record.name = item.name
        record.token = item.token
        record.enabled = item.enabled
        record.access_type = item.access_type.value
        record.allowed_groups = list(item.allowed_groups)
        record.allowed_servers = list(item.allowed_servers)

    async def find_enabled(self) -> List[BearerKey]:
        result = await self.session.execute(
            select(BearerKeyRecord).where(BearerKeyRecord.enabled.is_(True))
        )
        return [self.to_domain(r) for r in result.scalars().all()]

    async def find_by_token(self, token: str) -> List[BearerKey]:
        result = await self.session.execute(
            select(BearerKeyRecord).where(BearerKeyRecord.token == token)
        )
        return [self.to_domain(r) for r in result.scalars().all()]
