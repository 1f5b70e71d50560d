"""Settings document to database migration."""

from typing import Dict

from hubauth.core.logging import get_logger
from hubauth.dao.bearer_keys import legacy_bearer_keys
from hubauth.db.base import DatabaseSessionManager
from hubauth.db.repositories.bearer_key import BearerKeyRepository
from hubauth.db.repositories.entities import GroupRepository, ServerRepository, UserRepository
from hubauth.db.repositories.metadata import MetadataRepository
from hubauth.db.repositories.oauth_client import OAuthClientRepository
from hubauth.db.repositories.oauth_token import OAuthTokenRepository
from hubauth.models.domain import BearerKey, Group, OAuthClient, OAuthToken, ServerConfig, User
from hubauth.store.settings_store import FileSettingsStore

logger = get_logger(__name__)

BEARER_KEYS_MIGRATED = "bearer_keys_migrated"


async def _copy_missing(repository, items) -> int:
    """Insert items whose key is not present yet."""
    created = 0
    for item in items:
        if await repository.get(getattr(item, repository.key_column)) is None:
            await repository.insert(item)
            created += 1
    return created


async def migrate_settings_to_database(
    store: FileSettingsStore, db: DatabaseSessionManager
) -> Dict[str, int]:
    """Copy every entity section of the settings document into the database.

    Rows that already exist are left untouched. Returns the number of rows
    created per table.
    """
    document = await store.load()
    logger.info("migration_started", path=str(store.path))

    users = [User.model_validate(u) for u in document.get("users") or []]
    servers = [
        ServerConfig.model_validate({**config, "name": name})
        for name, config in (document.get("mcpServers") or {}).items()
    ]
    groups = [Group.model_validate(g) for g in document.get("groups") or []]
    clients = [OAuthClient.model_validate(c) for c in document.get("oauthClients") or []]
    tokens = [OAuthToken.model_validate(t) for t in document.get("oauthTokens") or []]
    if isinstance(document.get("bearerKeys"), list):
        keys = [BearerKey.model_validate(k) for k in document["bearerKeys"]]
    else:
        keys = legacy_bearer_keys(document)

    async with db.transaction() as session:
        created = {
            "users": await _copy_missing(UserRepository(session), users),
            "servers": await _copy_missing(ServerRepository(session), servers),
            "groups": await _copy_missing(GroupRepository(session), groups),
            "oauth_clients": await _copy_missing(OAuthClientRepository(session), clients),
            "oauth_tokens": await _copy_missing(OAuthTokenRepository(session), tokens),
            "bearer_keys": await _copy_missing(BearerKeyRepository(session), keys),
        }
        await MetadataRepository(session).set(BEARER_KEYS_MIGRATED, "true")

    logger.info("migration_complete", **created)
    return created


async def migrate_legacy_bearer_keys(store: FileSettingsStore, db: DatabaseSessionManager) -> int:
    """One-time conversion of legacy routing bearer settings for a populated database."""
    async with db.transaction() as session:
        metadata = MetadataRepository(session)
        if await metadata.get(BEARER_KEYS_MIGRATED) is not None:
            return 0

        repository = BearerKeyRepository(session)
        created = 0
        if await repository.count() == 0:
            for key in legacy_bearer_keys(await store.load()):
                await repository.insert(key)
                created += 1
        await metadata.set(BEARER_KEYS_MIGRATED, "true")

    logger.info("legacy_bearer_keys_migrated", created=created)
    return created


async def initialize_database_mode(store: FileSettingsStore, db: DatabaseSessionManager) -> None:
    """Create the schema, then migrate the settings document into an empty database."""
    await db.create_all()

    async with db.transaction() as session:
        user_count = await UserRepository(session).count()

    if user_count == 0:
        logger.info("database_empty_running_migration")
        await migrate_settings_to_database(store, db)
    else:
        logger.info("database_populated_skipping_migration", users=user_count)
        await migrate_legacy_bearer_keys(store, db)
