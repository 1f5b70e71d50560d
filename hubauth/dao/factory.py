"""DAO wiring for the configured storage backend."""

from dataclasses import dataclass

from hubauth.core.logging import get_logger
from hubauth.dao.base import RepositoryStore, SettingsSectionStore
from hubauth.dao.bearer_keys import BearerKeyDao, DatabaseBearerKeyDao, FileBearerKeyDao
from hubauth.dao.entities import GroupDao, ServerDao, UserDao
from hubauth.dao.oauth_clients import DatabaseOAuthClientDao, FileOAuthClientDao, OAuthClientDao
from hubauth.dao.oauth_tokens import DatabaseOAuthTokenDao, FileOAuthTokenDao, OAuthTokenDao
from hubauth.db.base import DatabaseSessionManager
from hubauth.db.repositories.entities import GroupRepository, ServerRepository, UserRepository
from hubauth.models.domain import Group, ServerConfig, User
from hubauth.store.settings_store import FileSettingsStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class DaoFactory:
    """The set of DAOs for one backend, chosen once at startup."""

    backend: str
    users: UserDao
    servers: ServerDao
    groups: GroupDao
    oauth_clients: OAuthClientDao
    oauth_tokens: OAuthTokenDao
    bearer_keys: BearerKeyDao

    @classmethod
    def for_files(cls, store: FileSettingsStore) -> "DaoFactory":
        return cls(
            backend="file",
            users=UserDao(SettingsSectionStore(store, "users", User, "username")),
            servers=ServerDao(
                SettingsSectionStore(store, "mcpServers", ServerConfig, "name", shape="map")
            ),
            groups=GroupDao(SettingsSectionStore(store, "groups", Group, "id")),
            oauth_clients=FileOAuthClientDao(store),
            oauth_tokens=FileOAuthTokenDao(store),
            bearer_keys=FileBearerKeyDao(store),
        )

    @classmethod
    def for_database(cls, db: DatabaseSessionManager) -> "DaoFactory":
        return cls(
            backend="database",
            users=UserDao(RepositoryStore(db, UserRepository)),
            servers=ServerDao(RepositoryStore(db, ServerRepository)),
            groups=GroupDao(RepositoryStore(db, GroupRepository)),
            oauth_clients=DatabaseOAuthClientDao(db),
            oauth_tokens=DatabaseOAuthTokenDao(db),
            bearer_keys=DatabaseBearerKeyDao(db),
        )


def create_dao_factory(
    use_database: bool, store: FileSettingsStore, db: DatabaseSessionManager
) -> DaoFactory:
    """Select the backend; the database manager must already be initialized when used."""
    factory = DaoFactory.for_database(db) if use_database else DaoFactory.for_files(store)
    logger.info("dao_factory_selected", backend=factory.backend)
    return factory
