"""Shared repository plumbing."""

import time
from typing import Any, Generic, List, Optional, TypeVar

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hubauth.core.exceptions import AlreadyExistsError
from hubauth.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class EntityRepository(Generic[T]):
    """CRUD over one table keyed by a single column.

    Subclasses set ``record_cls``/``key_column`` and translate between
    records and domain models in ``to_domain``/``apply``.
    """

    record_cls: Any
    key_column: str

    def __init__(self, session: AsyncSession):
        self.session = session

    def to_domain(self, record) -> T:
        raise NotImplementedError

    def apply(self, record, item: T) -> None:
        raise NotImplementedError

    @property
    def _key(self):
        return getattr(self.record_cls, self.key_column)

    async def _get_record(self, key: Any):
        result = await self.session.execute(select(self.record_cls).where(self._key == key))
        return result.scalar_one_or_none()

    async def all(self) -> List[T]:
        result = await self.session.execute(select(self.record_cls))
        return [self.to_domain(r) for r in result.scalars().all()]

    async def get(self, key: Any) -> Optional[T]:
        start_time = time.time()
        logger.debug("db_query", operation="get", table=self.record_cls.__tablename__)

        record = await self._get_record(key)

        duration_ms = (time.time() - start_time) * 1000
        logger.debug(
            "db_query_complete",
            operation="get",
            table=self.record_cls.__tablename__,
            found=record is not None,
            duration_ms=round(duration_ms, 2),
        )
        return self.to_domain(record) if record else None

    async def insert(self, item: T) -> T:
        start_time = time.time()
        key = getattr(item, self.key_column)
        logger.debug("db_query", operation="insert", table=self.record_cls.__tablename__)

        if await self._get_record(key) is not None:
            raise AlreadyExistsError(f"Item with key {key} already exists")

        record = self.record_cls()
        self.apply(record, item)
        self.session.add(record)
        await self.session.flush()

        duration_ms = (time.time() - start_time) * 1000
        logger.debug(
            "db_query_complete",
            operation="insert",
            table=self.record_cls.__tablename__,
            duration_ms=round(duration_ms, 2),
        )
        return self.to_domain(record)

    async def replace(self, key: Any, item: T) -> Optional[T]:
        record = await self._get_record(key)
        if record is None:
            return None
        self.apply(record, item)
        await self.session.flush()
        return self.to_domain(record)

    async def remove(self, key: Any) -> bool:
        start_time = time.time()
        logger.debug("db_query", operation="remove", table=self.record_cls.__tablename__)

        result = await self.session.execute(delete(self.record_cls).where(self._key == key))
        deleted = result.rowcount > 0

        duration_ms = (time.time() - start_time) * 1000
        logger.debug(
            "db_query_complete",
            operation="remove",
            table=self.record_cls.__tablename__,
            deleted=deleted,
            duration_ms=round(duration_ms, 2),
        )
        return deleted

    async def count(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(self.record_cls))
        return result.scalar_one()
