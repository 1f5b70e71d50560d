"""Tests for bearer key storage, legacy migration and its bootstrap counterpart."""

import pytest

from conftest import read_document, write_document
from hubauth.dao.bearer_keys import DatabaseBearerKeyDao, FileBearerKeyDao, legacy_bearer_keys
from hubauth.db.migration import BEARER_KEYS_MIGRATED, migrate_legacy_bearer_keys
from hubauth.db.repositories.metadata import MetadataRepository
from hubauth.models.domain import AccessType
from hubauth.store.settings_store import FileSettingsStore


@pytest.fixture
def write_counter(monkeypatch):
    """Count atomic writes performed by any settings store."""
    writes = []
    original = FileSettingsStore._write_atomic

    def counting_write(self, document):
        writes.append(document)
        return original(self, document)

    monkeypatch.setattr(FileSettingsStore, "_write_atomic", counting_write)
    return writes


def legacy_document(key="tok", enabled=True):
    return {
        "mcpServers": {},
        "users": [],
        "systemConfig": {"routing": {"enableBearerAuth": enabled, "bearerAuthKey": key}},
    }


async def test_migration_runs_once(settings_path, write_counter):
    write_document(settings_path, legacy_document())
    dao = FileBearerKeyDao(FileSettingsStore(settings_path))

    enabled = await dao.find_enabled()

    assert len(enabled) == 1
    assert enabled[0].name == "default"
    assert enabled[0].token == "tok"
    assert enabled[0].enabled is True
    assert enabled[0].access_type == AccessType.ALL
    assert len(write_counter) == 1

    await dao.find_enabled()
    await dao.find_all()

    assert len(write_counter) == 1
    assert len(read_document(settings_path)["bearerKeys"]) == 1


async def test_migration_of_disabled_legacy_key(settings_path):
    write_document(settings_path, legacy_document(enabled=False))
    dao = FileBearerKeyDao(FileSettingsStore(settings_path))

    assert await dao.find_enabled() == []
    assert (await dao.find_by_token("tok")).enabled is False


async def test_migration_without_legacy_key_persists_empty_list(settings_path, write_counter):
    write_document(settings_path, legacy_document(key="   "))
    dao = FileBearerKeyDao(FileSettingsStore(settings_path))

    assert await dao.find_all() == []
    assert read_document(settings_path)["bearerKeys"] == []
    assert len(write_counter) == 1


async def test_empty_array_never_writes(settings_path, write_counter):
    write_document(settings_path, {**legacy_document(), "bearerKeys": []})
    dao = FileBearerKeyDao(FileSettingsStore(settings_path))

    for _ in range(3):
        assert await dao.find_enabled() == []
        assert await dao.find_all() == []
        assert await dao.find_by_token("tok") is None
        assert await dao.find_by_id("missing") is None

    assert write_counter == []


def test_legacy_key_is_trimmed():
    keys = legacy_bearer_keys(legacy_document(key="  tok  "))

    assert [k.token for k in keys] == ["tok"]
    assert legacy_bearer_keys({"mcpServers": {}, "users": []}) == []


# Both backends


async def test_bearer_key_crud(daos):
    keys = daos.bearer_keys
    created = await keys.create(
        {
            "name": "ci",
            "token": "secret-1",
            "access_type": AccessType.GROUPS,
            "allowed_groups": ["g1"],
        }
    )

    assert created.id
    assert await keys.find_by_id(created.id) == created
    assert await keys.count() == 1

    updated = await keys.update(created.id, {"id": "forged", "enabled": False, "name": "ci-2"})
    assert updated.id == created.id
    assert updated.enabled is False
    assert updated.name == "ci-2"

    assert await keys.find_enabled() == []
    assert (await keys.find_by_token("secret-1")).id == created.id
    assert await keys.find_by_token("secret") is None

    assert await keys.update("missing", {"enabled": True}) is None
    assert await keys.delete(created.id) is True
    assert await keys.delete(created.id) is False
    assert await keys.find_all() == []


async def test_create_ignores_supplied_id(daos):
    key = await daos.bearer_keys.create({"id": "chosen", "name": "k", "token": "t"})

    assert key.id != "chosen"


# Database bootstrap


async def test_database_legacy_migration_runs_once(store, db):
    async with store.edit() as document:
        document.update(legacy_document())

    assert await migrate_legacy_bearer_keys(store, db) == 1
    assert await migrate_legacy_bearer_keys(store, db) == 0

    async with db.transaction() as session:
        assert await MetadataRepository(session).get(BEARER_KEYS_MIGRATED) == "true"


async def test_database_legacy_migration_skips_populated_table(store, db):
    async with store.edit() as document:
        document.update(legacy_document())
    dao = DatabaseBearerKeyDao(db)
    await dao.create({"name": "existing", "token": "other"})

    assert await migrate_legacy_bearer_keys(store, db) == 0
    assert [k.name for k in await dao.find_all()] == ["existing"]
