"""Key/value marker repository."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import func

from hubauth.db.models import MetadataRecord


class MetadataRepository:
    """Repository for hub_metadata markers."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, key: str) -> Optional[str]:
        result = await self.session.execute(select(MetadataRecord).where(MetadataRecord.key == key))
        record = result.scalar_one_or_none()
        return record.value if record else None

    async def set(self, key: str, value: str) -> None:
        result = await self.session.execute(select(MetadataRecord).where(MetadataRecord.key == key))
        record = result.scalar_one_or_none()
        if record is None:
            self.session.add(MetadataRecord(key=key, value=value))
        else:
            record.value = value
            record.updated_at = func.now()
        await self.session.flush()
