"""OAuth client DAO: interface plus file and database implementations."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from hubauth.core.logging import get_logger
from hubauth.core.security import secure_compare
from hubauth.dao.base import SettingsSectionStore, merge_model
from hubauth.db.base import DatabaseSessionManager
from hubauth.db.repositories.oauth_client import OAuthClientRepository
from hubauth.models.domain import OAuthClient
from hubauth.store.settings_store import FileSettingsStore

logger = get_logger(__name__)


class OAuthClientDao(ABC):
    """Registered OAuth clients keyed by their immutable client_id."""

    @abstractmethod
    async def find_all(self) -> List[OAuthClient]: ...

    @abstractmethod
    async def find_by_client_id(self, client_id: str) -> Optional[OAuthClient]: ...

    @abstractmethod
    async def find_by_owner(self, owner: str) -> List[OAuthClient]: ...

    @abstractmethod
    async def create(self, client: OAuthClient) -> OAuthClient:
        """Raises AlreadyExistsError when client_id is taken."""

    @abstractmethod
    async def update(self, client_id: str, changes: Dict[str, Any]) -> Optional[OAuthClient]: ...

    @abstractmethod
    async def delete(self, client_id: str) -> bool: ...

    @abstractmethod
    async def count(self) -> int: ...

    async def exists(self, client_id: str) -> bool:
        return await self.find_by_client_id(client_id) is not None

    async def validate_credentials(self, client_id: str, client_secret: Optional[str] = None) -> bool:
        """Public clients accept only an absent secret; confidential ones an exact match."""
        client = await self.find_by_client_id(client_id)
        if client is None:
            return False
        if not client.client_secret:
            return not client_secret
        if not client_secret:
            return False
        return secure_compare(client.client_secret, client_secret)


class FileOAuthClientDao(OAuthClientDao):
    """Clients stored in the ``oauthClients`` section of the settings document."""

    def __init__(self, store: FileSettingsStore):
        self._section = SettingsSectionStore(store, "oauthClients", OAuthClient, "client_id")

    async def find_all(self) -> List[OAuthClient]:
        return await self._section.all()

    async def find_by_client_id(self, client_id: str) -> Optional[OAuthClient]:
        return await self._section.get(client_id)

    async def find_by_owner(self, owner: str) -> List[OAuthClient]:
        return [c for c in await self._section.all() if c.owner == owner]

    async def create(self, client: OAuthClient) -> OAuthClient:
        created = await self._section.insert(client)
        logger.info("oauth_client_created", client_id=client.client_id, owner=client.owner)
        return created

    async def update(self, client_id: str, changes: Dict[str, Any]) -> Optional[OAuthClient]:
        existing = await self._section.get(client_id)
        if existing is None:
            return None
        return await self._section.replace(client_id, merge_model(existing, changes, "client_id"))

    async def delete(self, client_id: str) -> bool:
        return await self._section.remove(client_id)

    async def count(self) -> int:
        return len(await self._section.all())


class DatabaseOAuthClientDao(OAuthClientDao):
    """Clients stored in the oauth_clients table."""

    def __init__(self, db: DatabaseSessionManager):
        self.db = db

    async def find_all(self) -> List[OAuthClient]:
        async with self.db.transaction() as session:
            return await OAuthClientRepository(session).all()

    async def find_by_client_id(self, client_id: str) -> Optional[OAuthClient]:
        async with self.db.transaction() as session:
            return await OAuthClientRepository(session).get(client_id)

    async def find_by_owner(self, owner: str) -> List[OAuthClient]:
        async with self.db.transaction() as session:
            return await OAuthClientRepository(session).find_by_owner(owner)

    async def create(self, client: OAuthClient) -> OAuthClient:
        async with self.db.transaction() as session:
            created = await OAuthClientRepository(session).insert(client)
        logger.info("oauth_client_created", client_id=client.client_id, owner=client.owner)
        return created

    async def update(self, client_id: str, changes: Dict[str, Any]) -> Optional[OAuthClient]:
        async with self.db.transaction() as session:
            repository = OAuthClientRepository(session)
            existing = await repository.get(client_id)
            if existing is None:
                return None
            return await repository.replace(client_id, merge_model(existing, changes, "client_id"))

    async def delete(self, client_id: str) -> bool:
        async with self.db.transaction() as session:
            return await OAuthClientRepository(session).remove(client_id)

    async def count(self) -> int:
        async with self.db.transaction() as session:
            return await OAuthClientRepository(session).count()
