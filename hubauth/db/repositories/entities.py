"""Repositories for users, servers and groups."""

from hubauth.db.models import GroupRecord, ServerRecord, UserRecord
from hubauth.db.repositories.base import EntityRepository
from hubauth.models.domain import Group, ServerConfig, User


class UserRepository(EntityRepository[User]):
    record_cls = UserRecord
    key_column = "username"

    def to_domain(self, record: UserRecord) -> User:
        return User(username=record.username, password=record.password, is_admin=record.is_admin)

    def apply(self, record: UserRecord, item: User) -> None:
        record.username = item.username
        record.password = item.password
        record.is_admin = item.is_admin


class ServerRepository(EntityRepository[ServerConfig]):
    record_cls = ServerRecord
    key_column = "name"

    def to_domain(self, record: ServerRecord) -> ServerConfig:
        return ServerConfig(
            **(record.config or {}), name=record.name, owner=record.owner, enabled=record.enabled
        )

    def apply(self, record: ServerRecord, item: ServerConfig) -> None:
        document = item.to_document()
        record.name = document.pop("name")
        record.owner = document.pop("owner", None)
        record.enabled = document.pop("enabled", True)
        record.config = document


class GroupRepository(EntityRepository[Group]):
    record_cls = GroupRecord
    key_column = "id"

    def to_domain(self, record: GroupRecord) -> Group:
        return Group(
            id=record.id,
            name=record.name,
            description=record.description,
            servers=record.servers or [],
            owner=record.owner,
        )

    def apply(self, record: GroupRecord, item: Group) -> None:
        record.id = item.id
        record.name = item.name
        record.description = item.description
        record.servers = list(item.servers)
        record.owner = item.owner
