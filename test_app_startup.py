"""Test application startup in file and database mode."""

import pytest
from fastapi.testclient import TestClient

from conftest import ADMIN, ALICE, read_document, session_headers, write_document
from hubauth.config import reset_settings
from hubauth.main import app


@pytest.fixture
def database_env(app_env, monkeypatch, tmp_path):
    """Database mode over SQLite, seeded from a settings document with a legacy bearer key."""
    write_document(
        app_env,
        {
            "mcpServers": {"files": {"command": "npx", "owner": "admin"}},
            "users": [ADMIN.to_document(), ALICE.to_document()],
            "systemConfig": {"routing": {"enableBearerAuth": True, "bearerAuthKey": "legacy"}},
        },
    )
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'hub.db'}")
    reset_settings()
    return app_env


def test_application_wiring(client):
    """Components are built once and stored on the application state."""
    state = client.app.state

    assert state.daos.backend == "file"
    assert state.oauth_server.tokens is state.token_manager
    assert state.oauth_server.codes is state.authorization_codes
    assert state.token_manager.codes is state.authorization_codes
    # No background sweep in test mode
    assert state.token_manager.running is False
    assert app.docs_url == "/docs"


def test_settings_document_is_created_when_missing(app_env):
    app_env.unlink()

    with TestClient(app):
        pass

    assert read_document(app_env) == {"mcpServers": {}, "users": []}


def test_database_mode_migrates_settings_document(database_env):
    with TestClient(app) as client:
        assert client.app.state.daos.backend == "database"

        ready = client.get("/health/ready").json()["data"]
        assert ready["backend"] == "database"
        assert ready["database"] == "connected"

        admin = session_headers(client, ADMIN)
        keys = client.get("/api/bearer-keys", headers=admin).json()["data"]
        assert [(k["name"], k["token"]) for k in keys] == [("default", "legacy")]

        allowed = client.get("/api/access/server/files", headers={"Authorization": "Bearer legacy"})
        assert allowed.status_code == 200


def test_database_mode_restart_keeps_rows(database_env):
    with TestClient(app) as client:
        admin = session_headers(client, ADMIN)
        created = client.post(
            "/api/oauth/clients",
            json={"name": "Web", "redirectUris": ["https://app.example/cb"]},
            headers=admin,
        )
        assert created.status_code == 201

    with TestClient(app) as client:
        admin = session_headers(client, ADMIN)
        clients = client.get("/api/oauth/clients", headers=admin).json()["data"]
        keys = client.get("/api/bearer-keys", headers=admin).json()["data"]

    assert [c["name"] for c in clients] == ["Web"]
    assert len(keys) == 1
