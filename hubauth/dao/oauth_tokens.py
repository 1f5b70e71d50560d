"""OAuth token DAO: interface plus file and database implementations.

At most one record exists per access-token value and per refresh-token
value. ``create`` removes every record sharing either value before
inserting, so a colliding token supersedes the previous record.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from hubauth.core.logging import get_logger
from hubauth.dao.base import merge_model
from hubauth.db.base import DatabaseSessionManager
from hubauth.db.repositories.oauth_token import OAuthTokenRepository
from hubauth.models.domain import OAuthToken
from hubauth.store.settings_store import FileSettingsStore

logger = get_logger(__name__)

SECTION = "oauthTokens"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _token_values(token: OAuthToken) -> set:
    return {v for v in (token.access_token, token.refresh_token) if v}


class OAuthTokenDao(ABC):
    """Durable token records keyed by access token."""

    @abstractmethod
    async def find_all(self) -> List[OAuthToken]: ...

    @abstractmethod
    async def find_by_access_token(self, access_token: str) -> Optional[OAuthToken]: ...

    @abstractmethod
    async def find_by_refresh_token(self, refresh_token: str) -> Optional[OAuthToken]: ...

    @abstractmethod
    async def find_by_client_id(self, client_id: str) -> List[OAuthToken]: ...

    @abstractmethod
    async def find_by_username(self, username: str) -> List[OAuthToken]: ...

    @abstractmethod
    async def create(self, token: OAuthToken) -> OAuthToken: ...

    @abstractmethod
    async def update(self, access_token: str, changes: Dict[str, Any]) -> Optional[OAuthToken]: ...

    @abstractmethod
    async def delete(self, access_token: str) -> bool: ...

    @abstractmethod
    async def count(self) -> int: ...

    @abstractmethod
    async def revoke_token(self, token: str) -> bool:
        """Delete the record reachable by ``token`` as either its access or refresh value."""

    @abstractmethod
    async def revoke_user_tokens(self, username: str) -> int: ...

    @abstractmethod
    async def revoke_client_tokens(self, client_id: str) -> int: ...

    @abstractmethod
    async def cleanup_expired(self, now: Optional[datetime] = None) -> int:
        """Delete fully expired records; returns how many were removed."""

    async def exists(self, access_token: str) -> bool:
        return await self.find_by_access_token(access_token) is not None

    async def is_access_token_valid(self, access_token: str, now: Optional[datetime] = None) -> bool:
        token = await self.find_by_access_token(access_token)
        return token is not None and not token.is_access_token_expired(now or utcnow())

    async def is_refresh_token_valid(self, refresh_token: str, now: Optional[datetime] = None) -> bool:
        token = await self.find_by_refresh_token(refresh_token)
        return token is not None and not token.is_refresh_token_expired(now or utcnow())


class FileOAuthTokenDao(OAuthTokenDao):
    """Tokens stored in the ``oauthTokens`` section of the settings document."""

    def __init__(self, store: FileSettingsStore):
        self.store = store

    @staticmethod
    def _parse(document: Dict[str, Any]) -> List[OAuthToken]:
        return [OAuthToken.model_validate(t) for t in document.get(SECTION) or []]

    @staticmethod
    def _write(document: Dict[str, Any], tokens: List[OAuthToken]) -> None:
        document[SECTION] = [t.to_document() for t in tokens]

    async def find_all(self) -> List[OAuthToken]:
        return self._parse(await self.store.load())

    async def _find(self, predicate) -> List[OAuthToken]:
        return [t for t in await self.find_all() if predicate(t)]

    async def find_by_access_token(self, access_token: str) -> Optional[OAuthToken]:
        found = await self._find(lambda t: t.access_token == access_token)
        return found[0] if found else None

    async def find_by_refresh_token(self, refresh_token: str) -> Optional[OAuthToken]:
        found = await self._find(lambda t: t.refresh_token == refresh_token)
        return found[0] if found else None

    async def find_by_client_id(self, client_id: str) -> List[OAuthToken]:
        return await self._find(lambda t: t.client_id == client_id)

    async def find_by_username(self, username: str) -> List[OAuthToken]:
        return await self._find(lambda t: t.username == username)

    async def create(self, token: OAuthToken) -> OAuthToken:
        values = _token_values(token)
        async with self.store.edit() as document:
            tokens = [t for t in self._parse(document) if not (_token_values(t) & values)]
            tokens.append(token)
            self._write(document, tokens)
        return token

    async def update(self, access_token: str, changes: Dict[str, Any]) -> Optional[OAuthToken]:
        async with self.store.edit() as document:
            tokens = self._parse(document)
            for index, existing in enumerate(tokens):
                if existing.access_token == access_token:
                    tokens[index] = merge_model(existing, changes, "access_token")
                    self._write(document, tokens)
                    return tokens[index]
        return None

    async def _remove(self, predicate) -> int:
        async with self.store.edit() as document:
            tokens = self._parse(document)
            remaining = [t for t in tokens if not predicate(t)]
            removed = len(tokens) - len(remaining)
            if removed:
                self._write(document, remaining)
        return removed

    async def delete(self, access_token: str) -> bool:
        return await self._remove(lambda t: t.access_token == access_token) > 0

    async def count(self) -> int:
        return len(await self.find_all())

    async def revoke_token(self, token: str) -> bool:
        return await self._remove(lambda t: token in _token_values(t)) > 0

    async def revoke_user_tokens(self, username: str) -> int:
        return await self._remove(lambda t: t.username == username)

    async def revoke_client_tokens(self, client_id: str) -> int:
        return await self._remove(lambda t: t.client_id == client_id)

    async def cleanup_expired(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        return await self._remove(lambda t: t.is_fully_expired(now))


class DatabaseOAuthTokenDao(OAuthTokenDao):
    """Tokens stored in the oauth_tokens table."""

    def __init__(self, db: DatabaseSessionManager):
        self.db = db

    async def find_all(self) -> List[OAuthToken]:
        async with self.db.transaction() as session:
            return await OAuthTokenRepository(session).all()

    async def find_by_access_token(self, access_token: str) -> Optional[OAuthToken]:
        async with self.db.transaction() as session:
            return await OAuthTokenRepository(session).get(access_token)

    async def find_by_refresh_token(self, refresh_token: str) -> Optional[OAuthToken]:
        async with self.db.transaction() as session:
            return await OAuthTokenRepository(session).find_by_refresh_token(refresh_token)

    async def find_by_client_id(self, client_id: str) -> List[OAuthToken]:
        async with self.db.transaction() as session:
            return await OAuthTokenRepository(session).find_by_client_id(client_id)

    async def find_by_username(self, username: str) -> List[OAuthToken]:
        async with self.db.transaction() as session:
            return await OAuthTokenRepository(session).find_by_username(username)

    async def create(self, token: OAuthToken) -> OAuthToken:
        async with self.db.transaction() as session:
            repository = OAuthTokenRepository(session)
            await repository.remove_colliding(token.access_token, token.refresh_token)
            return await repository.insert(token)

    async def update(self, access_token: str, changes: Dict[str, Any]) -> Optional[OAuthToken]:
        async with self.db.transaction() as session:
            repository = OAuthTokenRepository(session)
            existing = await repository.get(access_token)
            if existing is None:
                return None
            return await repository.replace(access_token, merge_model(existing, changes, "access_token"))

    async def delete(self, access_token: str) -> bool:
        async with self.db.transaction() as session:
            return await OAuthTokenRepository(session).remove(access_token)

    async def count(self) -> int:
        async with self.db.transaction() as session:
            return await OAuthTokenRepository(session).count()

    async def revoke_token(self, token: str) -> bool:
        async with self.db.transaction() as session:
            return await OAuthTokenRepository(session).remove_by_either(token)

    async def revoke_user_tokens(self, username: str) -> int:
        async with self.db.transaction() as session:
            return await OAuthTokenRepository(session).remove_by_username(username)

    async def revoke_client_tokens(self, client_id: str) -> int:
        async with self.db.transaction() as session:
            return await OAuthTokenRepository(session).remove_by_client_id(client_id)

    async def cleanup_expired(self, now: Optional[datetime] = None) -> int:
        async with self.db.transaction() as session:
            return await OAuthTokenRepository(session).remove_expired(now or utcnow())
