"""Bearer key DAO: interface plus file and database implementations."""

import asyncio
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from hubauth.core.logging import get_logger
from hubauth.dao.base import merge_model
from hubauth.db.base import DatabaseSessionManager
from hubauth.db.repositories.bearer_key import BearerKeyRepository
from hubauth.models.domain import AccessType, BearerKey
from hubauth.store.settings_store import FileSettingsStore

logger = get_logger(__name__)

SECTION = "bearerKeys"
LEGACY_KEY_NAME = "default"


def legacy_bearer_keys(document: Dict[str, Any]) -> List[BearerKey]:
    """Translate ``systemConfig.routing`` bearer settings into keys.

    A non-empty ``bearerAuthKey`` yields one ``default`` key with full
    access, enabled according to ``enableBearerAuth``; otherwise no keys.
    """
    routing = (document.get("systemConfig") or {}).get("routing") or {}
    raw_key = (routing.get("bearerAuthKey") or "").strip()
    if not raw_key:
        return []
    return [
        BearerKey(
            id=str(uuid.uuid4()),
            name=LEGACY_KEY_NAME,
            token=raw_key,
            enabled=bool(routing.get("enableBearerAuth")),
            access_type=AccessType.ALL,
            allowed_groups=[],
            allowed_servers=[],
        )
    ]


def new_bearer_key(data: Dict[str, Any]) -> BearerKey:
    fields = {k: v for k, v in data.items() if k != "id"}
    return BearerKey(id=str(uuid.uuid4()), **fields)


class BearerKeyDao(ABC):
    """Bearer keys keyed by their generated, immutable id."""

    def __init__(self):
        # Held by callers that check the collection before writing
        self.write_lock = asyncio.Lock()

    @abstractmethod
    async def find_all(self) -> List[BearerKey]: ...

    @abstractmethod
    async def find_by_id(self, key_id: str) -> Optional[BearerKey]: ...

    @abstractmethod
    async def find_by_token(self, token: str) -> Optional[BearerKey]:
        """Exact match over enabled and disabled keys alike."""

    @abstractmethod
    async def create(self, data: Dict[str, Any]) -> BearerKey:
        """Create a key from field values; the id is always generated."""

    @abstractmethod
    async def update(self, key_id: str, changes: Dict[str, Any]) -> Optional[BearerKey]: ...

    @abstractmethod
    async def delete(self, key_id: str) -> bool: ...

    async def find_enabled(self) -> List[BearerKey]:
        return [key for key in await self.find_all() if key.enabled]

    async def find_all_by_token(self, token: str) -> List[BearerKey]:
        return [key for key in await self.find_all() if key.token == token]

    async def count(self) -> int:
        return len(await self.find_all())


class FileBearerKeyDao(BearerKeyDao):
    """Keys stored in the ``bearerKeys`` section of the settings document.

    A document without a ``bearerKeys`` section has never been migrated:
    the first access converts the legacy routing settings and persists the
    result, even when it is empty, so the migration runs once.
    """

    def __init__(self, store: FileSettingsStore):
        super().__init__()
        self.store = store

    @staticmethod
    def _parse(document: Dict[str, Any]) -> List[BearerKey]:
        return [BearerKey.model_validate(k) for k in document[SECTION]]

    @staticmethod
    def _write(document: Dict[str, Any], keys: List[BearerKey]) -> None:
        document[SECTION] = [k.to_document() for k in keys]

    async def _load_keys(self) -> List[BearerKey]:
        document = await self.store.load()
        if isinstance(document.get(SECTION), list):
            return self._parse(document)

        async with self.store.edit() as document:
            # Another caller may have migrated while we waited for the lock
            if isinstance(document.get(SECTION), list):
                return self._parse(document)
            migrated = legacy_bearer_keys(document)
            self._write(document, migrated)
        logger.info("bearer_keys_migrated", count=len(migrated))
        return migrated

    async def find_all(self) -> List[BearerKey]:
        return await self._load_keys()

    async def find_by_id(self, key_id: str) -> Optional[BearerKey]:
        for key in await self._load_keys():
            if key.id == key_id:
                return key
        return None

    async def find_by_token(self, token: str) -> Optional[BearerKey]:
        for key in await self._load_keys():
            if key.token == token:
                return key
        return None

    async def create(self, data: Dict[str, Any]) -> BearerKey:
        await self._load_keys()
        key = new_bearer_key(data)
        async with self.store.edit() as document:
            keys = self._parse(document)
            keys.append(key)
            self._write(document, keys)
        logger.info("bearer_key_created", key_id=key.id, name=key.name)
        return key

    async def update(self, key_id: str, changes: Dict[str, Any]) -> Optional[BearerKey]:
        await self._load_keys()
        async with self.store.edit() as document:
            keys = self._parse(document)
            for index, existing in enumerate(keys):
                if existing.id == key_id:
                    keys[index] = merge_model(existing, changes, "id")
                    self._write(document, keys)
                    return keys[index]
        return None

    async def delete(self, key_id: str) -> bool:
        await self._load_keys()
        async with self.store.edit() as document:
            keys = self._parse(document)
            remaining = [k for k in keys if k.id != key_id]
            if len(remaining) == len(keys):
                return False
            self._write(document, remaining)
        return True


class DatabaseBearerKeyDao(BearerKeyDao):
    """Keys stored in the bearer_keys table; legacy migration runs at bootstrap."""

    def __init__(self, db: DatabaseSessionManager):
        super().__init__()
        self.db = db

    async def find_all(self) -> List[BearerKey]:
        async with self.db.transaction() as session:
            return await BearerKeyRepository(session).all()

    async def find_enabled(self) -> List[BearerKey]:
        async with self.db.transaction() as session:
            return await BearerKeyRepository(session).find_enabled()

    async def find_by_id(self, key_id: str) -> Optional[BearerKey]:
        async with self.db.transaction() as session:
            return await BearerKeyRepository(session).get(key_id)

    async def find_by_token(self, token: str) -> Optional[BearerKey]:
        keys = await self.find_all_by_token(token)
        return keys[0] if keys else None

    async def find_all_by_token(self, token: str) -> List[BearerKey]:
        async with self.db.transaction() as session:
            return await BearerKeyRepository(session).find_by_token(token)

    async def create(self, data: Dict[str, Any]) -> BearerKey:
        key = new_bearer_key(data)
        async with self.db.transaction() as session:
            created = await BearerKeyRepository(session).insert(key)
        logger.info("bearer_key_created", key_id=key.id, name=key.name)
        return created

    async def update(self, key_id: str, changes: Dict[str, Any]) -> Optional[BearerKey]:
        async with self.db.transaction() as session:
            repository = BearerKeyRepository(session)
            existing = await repository.get(key_id)
            if existing is None:
                return None
            return await repository.replace(key_id, merge_model(existing, changes, "id"))

    async def delete(self, key_id: str) -> bool:
        async with self.db.transaction() as session:
            return await BearerKeyRepository(session).remove(key_id)

    async def count(self) -> int:
        async with self.db.transaction() as session:
            return await BearerKeyRepository(session).count()
