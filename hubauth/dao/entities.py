"""DAOs for users, servers and groups."""

from typing import Any, Dict, List, Optional

from hubauth.core.exceptions import PermissionDeniedError
from hubauth.dao.base import PermissionedDao, is_admin, owner_of
from hubauth.models.domain import ADMIN_OWNER, Group, ServerConfig, User


class UserDao(PermissionedDao[User]):
    """Users: admins manage everyone, others only read and edit themselves.

    The last remaining admin can be neither deleted nor demoted.
    """

    key_field = "username"

    def can_view(self, item: User, identity: User) -> bool:
        return is_admin(identity) or item.username == identity.username

    def can_create(self, item: User, identity: Optional[User]) -> bool:
        return is_admin(identity)

    def can_update(self, existing: User, changes: Dict[str, Any], identity: Optional[User]) -> bool:
        if is_admin(identity):
            return True
        if identity is not None and identity.username == existing.username:
            return "is_admin" not in changes
        return False

    def can_delete(self, existing: User, identity: Optional[User]) -> bool:
        return is_admin(identity)

    async def _admin_count(self) -> int:
        return sum(1 for user in await self.store.all() if user.is_admin)

    async def before_update(self, existing: User, changes: Dict[str, Any]) -> None:
        if existing.is_admin and changes.get("is_admin") is False and await self._admin_count() <= 1:
            raise PermissionDeniedError("Cannot demote the last admin user")

    async def before_delete(self, existing: User) -> None:
        if existing.is_admin and await self._admin_count() <= 1:
            raise PermissionDeniedError("Cannot delete the last admin user")

    async def find_by_username(self, username: str, identity: Optional[User] = None) -> Optional[User]:
        return await self.find_by_key(username, identity)

    async def username_exists(self, username: str) -> bool:
        """Unfiltered existence check used by registration and bootstrap."""
        return await self.store.get(username) is not None

    async def resolve_identity(self, username: str) -> Optional[User]:
        """Unfiltered lookup that turns an authenticated username into an identity."""
        return await self.store.get(username)

    async def update_password(
        self, username: str, hashed_password: str, identity: Optional[User] = None
    ) -> Optional[User]:
        return await self.update(username, {"password": hashed_password}, identity)

    async def update_admin_status(
        self, username: str, admin: bool, identity: Optional[User] = None
    ) -> Optional[User]:
        return await self.update(username, {"is_admin": admin}, identity)


class ServerDao(PermissionedDao[ServerConfig]):
    """Servers: non-admins also read and update admin-owned servers."""

    key_field = "name"

    def _shared_or_own(self, item: ServerConfig, identity: Optional[User]) -> bool:
        if identity is None:
            return False
        return is_admin(identity) or owner_of(item) in (identity.username, ADMIN_OWNER)

    def can_view(self, item: ServerConfig, identity: User) -> bool:
        return self._shared_or_own(item, identity)

    def can_update(
        self, existing: ServerConfig, changes: Dict[str, Any], identity: Optional[User]
    ) -> bool:
        return self._shared_or_own(existing, identity)

    def can_delete(self, existing: ServerConfig, identity: Optional[User]) -> bool:
        if is_admin(identity):
            return True
        owner = owner_of(existing)
        return identity is not None and owner == identity.username and owner != ADMIN_OWNER

    def can_create(self, item: ServerConfig, identity: Optional[User]) -> bool:
        if is_admin(identity):
            return True
        owner = owner_of(item)
        return identity is not None and owner == identity.username and owner != ADMIN_OWNER

    async def find_by_owner(self, owner: str, identity: Optional[User] = None) -> List[ServerConfig]:
        return [s for s in await self.find_all(identity) if owner_of(s) == owner]


class GroupDao(PermissionedDao[Group]):
    """Groups: non-admins only see and manage groups they own."""

    key_field = "id"

    async def find_by_name(self, name: str, identity: Optional[User] = None) -> Optional[Group]:
        for group in await self.find_all(identity):
            if group.name == name:
                return group
        return None
