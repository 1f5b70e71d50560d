"""Permission-scoped entity DAOs and the stores they run over.

A ``PermissionedDao`` owns the access policy for one entity type; where the
entity lives is delegated to an ``EntityStore``:

- ``SettingsSectionStore`` keeps the entity in one section of the JSON
  settings document (a list, or a map keyed by the entity key).
- ``RepositoryStore`` opens a database transaction per operation and
  delegates to an ``EntityRepository``.

Both stores raise ``AlreadyExistsError`` on key collisions and
``StorageFailureError`` when persistence fails, so DAO behaviour is the same
whichever backend is configured.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, List, Literal, Optional, Type, TypeVar

from hubauth.core.exceptions import AlreadyExistsError, PermissionDeniedError
from hubauth.core.logging import get_logger
from hubauth.db.base import DatabaseSessionManager
from hubauth.db.repositories.base import EntityRepository
from hubauth.models.domain import ADMIN_OWNER, DocumentModel, User
from hubauth.store.settings_store import FileSettingsStore

logger = get_logger(__name__)

T = TypeVar("T", bound=DocumentModel)


class EntityStore(ABC, Generic[T]):
    """Persistence contract for one keyed entity collection."""

    @abstractmethod
    async def all(self) -> List[T]: ...

    @abstractmethod
    async def get(self, key: str) -> Optional[T]: ...

    @abstractmethod
    async def insert(self, item: T) -> T: ...

    @abstractmethod
    async def replace(self, key: str, item: T) -> Optional[T]: ...

    @abstractmethod
    async def remove(self, key: str) -> bool: ...


class SettingsSectionStore(EntityStore[T]):
    """Entity collection stored in one section of the settings document."""

    def __init__(
        self,
        store: FileSettingsStore,
        section: str,
        model: Type[T],
        key_field: str,
        shape: Literal["list", "map"] = "list",
    ):
        self.store = store
        self.section = section
        self.model = model
        self.key_field = key_field
        self.shape = shape
        self._key_alias = model.model_fields[key_field].alias or key_field

    def _items(self, document: Dict[str, Any]) -> Dict[str, T]:
        raw = document.get(self.section)
        items: Dict[str, T] = {}
        if self.shape == "map":
            for key, value in (raw or {}).items():
                items[key] = self.model.model_validate({**value, self._key_alias: key})
        else:
            for value in raw or []:
                item = self.model.model_validate(value)
                items[getattr(item, self.key_field)] = item
        return items

    def _write(self, document: Dict[str, Any], items: Dict[str, T]) -> None:
        if self.shape == "map":
            section = {}
            for key, item in items.items():
                value = item.to_document()
                value.pop(self._key_alias, None)
                section[key] = value
            document[self.section] = section
        else:
            document[self.section] = [item.to_document() for item in items.values()]

    async def all(self) -> List[T]:
        return list(self._items(await self.store.load()).values())

    async def get(self, key: str) -> Optional[T]:
        return self._items(await self.store.load()).get(key)

    async def insert(self, item: T) -> T:
        key = getattr(item, self.key_field)
        async with self.store.edit() as document:
            items = self._items(document)
            if key in items:
                raise AlreadyExistsError(f"Item with key {key} already exists")
            items[key] = item
            self._write(document, items)
        return item

    async def replace(self, key: str, item: T) -> Optional[T]:
        async with self.store.edit() as document:
            items = self._items(document)
            if key not in items:
                return None
            items[key] = item
            self._write(document, items)
        return item

    async def remove(self, key: str) -> bool:
        async with self.store.edit() as document:
            items = self._items(document)
            if key not in items:
                return False
            del items[key]
            self._write(document, items)
        return True


class RepositoryStore(EntityStore[T]):
    """Entity collection stored in a relational table."""

    def __init__(self, db: DatabaseSessionManager, repository_cls: Type[EntityRepository[T]]):
        self.db = db
        self.repository_cls = repository_cls

    async def all(self) -> List[T]:
        async with self.db.transaction() as session:
            return await self.repository_cls(session).all()

    async def get(self, key: str) -> Optional[T]:
        async with self.db.transaction() as session:
            return await self.repository_cls(session).get(key)

    async def insert(self, item: T) -> T:
        async with self.db.transaction() as session:
            return await self.repository_cls(session).insert(item)

    async def replace(self, key: str, item: T) -> Optional[T]:
        async with self.db.transaction() as session:
            return await self.repository_cls(session).replace(key, item)

    async def remove(self, key: str) -> bool:
        async with self.db.transaction() as session:
            return await self.repository_cls(session).remove(key)


def merge_model(existing: T, changes: Dict[str, Any], immutable: str) -> T:
    """Shallow-merge field-name ``changes`` into ``existing``, keeping ``immutable`` as is."""
    changes = {k: v for k, v in changes.items() if k != immutable}
    return type(existing).model_validate({**existing.model_dump(), **changes})


def is_admin(identity: Optional[User]) -> bool:
    return identity is not None and identity.is_admin


def owner_of(item: Any) -> str:
    return getattr(item, "owner", None) or ADMIN_OWNER


class PermissionedDao(Generic[T]):
    """CRUD filtered through a per-entity access policy.

    ``find_*`` never reveal entities the identity may not see; mutations
    raise ``PermissionDeniedError`` instead. Mutations are serialized so that
    collection-wide checks in ``before_*`` hold until the write lands.
    """

    key_field: str

    def __init__(self, store: EntityStore[T]):
        self.store = store
        self._lock = asyncio.Lock()

    # Policy hooks

    def can_view(self, item: T, identity: User) -> bool:
        return is_admin(identity) or owner_of(item) == identity.username

    def can_create(self, item: T, identity: Optional[User]) -> bool:
        if identity is None:
            return False
        return is_admin(identity) or owner_of(item) == identity.username

    def can_update(self, existing: T, changes: Dict[str, Any], identity: Optional[User]) -> bool:
        if identity is None:
            return False
        return is_admin(identity) or owner_of(existing) == identity.username

    def can_delete(self, existing: T, identity: Optional[User]) -> bool:
        return self.can_update(existing, {}, identity)

    # Operations

    async def find_all(self, identity: Optional[User] = None) -> List[T]:
        if identity is None:
            return []
        return [item for item in await self.store.all() if self.can_view(item, identity)]

    async def find_by_key(self, key: str, identity: Optional[User] = None) -> Optional[T]:
        if identity is None:
            return None
        item = await self.store.get(key)
        if item is None or not self.can_view(item, identity):
            return None
        return item

    async def create(self, item: T, identity: Optional[User] = None) -> T:
        if not self.can_create(item, identity):
            raise PermissionDeniedError("Permission denied: Cannot create item")
        created = await self.store.insert(item)
        logger.info(
            "entity_created",
            entity=type(item).__name__,
            key=getattr(item, self.key_field),
            actor=identity.username if identity else None,
        )
        return created

    async def update(
        self, key: str, changes: Dict[str, Any], identity: Optional[User] = None
    ) -> Optional[T]:
        """Merge ``changes`` (field names) into the stored entity; the key is immutable."""
        async with self._lock:
            existing = await self.store.get(key)
            if existing is None:
                if identity is None:
                    raise PermissionDeniedError("Permission denied: Cannot update item")
                return None
            if not self.can_update(existing, changes, identity):
                raise PermissionDeniedError("Permission denied: Cannot update item")
            await self.before_update(existing, changes)

            merged = merge_model(existing, changes, immutable=self.key_field)
            updated = await self.store.replace(key, merged)
        logger.info("entity_updated", entity=type(existing).__name__, key=key, fields=sorted(changes))
        return updated

    async def delete(self, key: str, identity: Optional[User] = None) -> bool:
        async with self._lock:
            existing = await self.store.get(key)
            if existing is None:
                if identity is None:
                    raise PermissionDeniedError("Permission denied: Cannot delete item")
                return False
            if not self.can_delete(existing, identity):
                raise PermissionDeniedError("Permission denied: Cannot delete item")
            await self.before_delete(existing)

            deleted = await self.store.remove(key)
        if deleted:
            logger.info("entity_deleted", entity=type(existing).__name__, key=key)
        return deleted

    async def exists(self, key: str, identity: Optional[User] = None) -> bool:
        return await self.find_by_key(key, identity) is not None

    async def before_update(self, existing: T, changes: Dict[str, Any]) -> None:
        """Hook for invariants that need the whole collection."""

    async def before_delete(self, existing: T) -> None:
        """Hook for invariants that need the whole collection."""
