"""Shared pytest fixtures: settings documents, SQLite databases and DAO factories."""

import json
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from hubauth.config import reset_settings
from hubauth.dao.factory import DaoFactory
from hubauth.db.base import DatabaseSessionManager
from hubauth.models.domain import User
from hubauth.store.settings_store import FileSettingsStore

ADMIN = User(username="admin", password="hashed", is_admin=True)
ALICE = User(username="alice", password="hashed", is_admin=False)


def write_document(path: Path, document: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(document), encoding="utf-8")


def read_document(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.fixture
def settings_path(tmp_path):
    return tmp_path / "mcp_settings.json"


@pytest.fixture
async def store(settings_path):
    settings_store = FileSettingsStore(settings_path)
    await settings_store.initialize()
    return settings_store


@pytest.fixture
async def db(tmp_path):
    manager = DatabaseSessionManager()
    manager.init(f"sqlite+aiosqlite:///{tmp_path / 'hub.db'}")
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture(params=["file", "database"])
async def daos(request, tmp_path):
    """The same DAO surface over each backend."""
    if request.param == "file":
        settings_store = FileSettingsStore(tmp_path / "mcp_settings.json")
        await settings_store.initialize()
        yield DaoFactory.for_files(settings_store)
    else:
        manager = DatabaseSessionManager()
        manager.init(f"sqlite+aiosqlite:///{tmp_path / 'hub.db'}")
        await manager.create_all()
        yield DaoFactory.for_database(manager)
        await manager.close()


@pytest.fixture
async def seeded_daos(daos):
    """DAOs holding one admin and one regular user."""
    await daos.users.create(ADMIN, ADMIN)
    await daos.users.create(ALICE, ADMIN)
    return daos


@pytest.fixture
def app_env(monkeypatch, tmp_path):
    """Environment for the FastAPI app: test mode, file backend, seeded users."""
    path = tmp_path / "mcp_settings.json"
    write_document(
        path,
        {
            "mcpServers": {},
            "users": [ADMIN.to_document(), ALICE.to_document()],
            "bearerKeys": [],
        },
    )
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("SETTINGS_PATH", str(path))
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_USE_DB", raising=False)
    monkeypatch.delenv("SKIP_AUTH", raising=False)
    reset_settings()
    yield path
    reset_settings()


@pytest.fixture
def client(app_env):
    from hubauth.main import app

    with TestClient(app) as test_client:
        yield test_client


def session_headers(test_client: TestClient, user: User) -> dict:
    token = test_client.app.state.session_tokens.generate_session_token(user)
    return {"x-auth-token": token}


@pytest.fixture
def admin_headers(client):
    return session_headers(client, ADMIN)


@pytest.fixture
def alice_headers(client):
    return session_headers(client, ALICE)
