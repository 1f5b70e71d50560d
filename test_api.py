"""HTTP tests for health, OAuth, client administration and bearer key access."""

from hubauth.config import reset_settings
from hubauth.services.oauth_server import generate_code_challenge, generate_code_verifier

REDIRECT = "https://app.example/cb"


def register_client(client, headers, **overrides):
    body = {"name": "Web", "redirectUris": [REDIRECT], "scopes": ["read"]}
    body.update(overrides)
    response = client.post("/api/oauth/clients", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def authorize(client, headers, client_id, **params):
    body = {"client_id": client_id, "redirect_uri": REDIRECT, **params}
    response = client.post("/oauth/authorize", json=body, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


def obtain_tokens(client, headers, registered):
    verifier = generate_code_verifier()
    granted = authorize(
        client,
        headers,
        registered["clientId"],
        code_challenge=generate_code_challenge(verifier),
        code_challenge_method="S256",
    )
    response = client.post(
        "/oauth/token",
        data={"grant_type": "authorization_code", "code": granted["code"], "code_verifier": verifier},
        auth=(registered["clientId"], registered["clientSecret"]),
    )
    assert response.status_code == 200, response.text
    return response.json()


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


# Health


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "healthy"
    assert "X-Request-ID" in response.headers


def test_readiness_in_file_mode(client):
    response = client.get("/health/ready")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "ready"
    assert data["backend"] == "file"
    assert data["database"] == "not_configured"


def test_request_id_is_echoed(client):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"


# Discovery


def test_authorization_server_metadata(client):
    response = client.get("/.well-known/oauth-authorization-server")

    assert response.status_code == 200
    metadata = response.json()
    assert metadata["issuer"] == "http://testserver"
    assert metadata["token_endpoint"] == "http://testserver/oauth/token"
    assert "S256" in metadata["code_challenge_methods_supported"]


def test_protected_resource_metadata(client):
    response = client.get("/.well-known/oauth-protected-resource")

    assert response.json()["authorization_servers"] == ["http://testserver"]


def test_disabled_server(client, monkeypatch):
    monkeypatch.setenv("OAUTH_SERVER_ENABLED", "false")
    reset_settings()

    assert client.get("/.well-known/oauth-authorization-server").status_code == 404

    response = client.post("/oauth/token", data={"grant_type": "refresh_token"})
    assert response.status_code == 503
    assert response.json()["error"] == "temporarily_unavailable"


# Client administration


def test_admin_routes_require_authentication(client):
    response = client.get("/api/oauth/clients")

    assert response.status_code == 401
    assert response.json()["code"] == "unauthorized"
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_admin_routes_require_admin(client, alice_headers):
    response = client.get("/api/oauth/clients", headers=alice_headers)

    assert response.status_code == 403
    assert response.json()["code"] == "permission_denied"


def test_invalid_session_token_is_rejected(client):
    response = client.get("/api/oauth/clients", headers={"x-auth-token": "garbage"})

    assert response.status_code == 401


def test_skip_auth_opens_admin_routes(client, monkeypatch):
    monkeypatch.setenv("SKIP_AUTH", "true")
    reset_settings()

    response = client.get("/api/oauth/clients")

    assert response.status_code == 200
    assert response.json() == {"data": []}


def test_client_crud(client, admin_headers):
    created = register_client(client, admin_headers, clientId="web-app")

    assert created["clientId"] == "web-app"
    assert len(created["clientSecret"]) == 64
    assert created["warning"]
    assert created["grants"] == ["authorization_code", "refresh_token"]
    assert created["owner"] == "admin"
    assert created["public"] is False

    listed = client.get("/api/oauth/clients", headers=admin_headers).json()["data"]
    assert [c["clientId"] for c in listed] == ["web-app"]
    assert "clientSecret" not in listed[0]

    duplicate = client.post(
        "/api/oauth/clients",
        json={"name": "Again", "redirectUris": [REDIRECT], "clientId": "web-app"},
        headers=admin_headers,
    )
    assert duplicate.status_code == 409

    updated = client.put(
        "/api/oauth/clients/web-app", json={"name": "Renamed"}, headers=admin_headers
    )
    assert updated.json()["data"]["name"] == "Renamed"
    assert updated.json()["data"]["redirectUris"] == [REDIRECT]

    deleted = client.delete("/api/oauth/clients/web-app", headers=admin_headers)
    assert deleted.json() == {"data": {"deleted": True}}
    assert client.get("/api/oauth/clients/web-app", headers=admin_headers).status_code == 404


def test_public_client_has_no_secret(client, admin_headers):
    created = register_client(client, admin_headers, requireSecret=False)

    assert len(created["clientId"]) == 32
    assert created["clientSecret"] is None
    assert created["public"] is True


def test_client_validation(client, admin_headers):
    bad_uri = client.post(
        "/api/oauth/clients",
        json={"name": "x", "redirectUris": ["https://app.example/cb#frag"]},
        headers=admin_headers,
    )
    assert bad_uri.status_code == 400
    assert bad_uri.json()["code"] == "validation_error"
    assert "Invalid redirect URI" in bad_uri.json()["error"]

    bad_grant = client.post(
        "/api/oauth/clients",
        json={"name": "x", "redirectUris": [REDIRECT], "grants": ["password"]},
        headers=admin_headers,
    )
    assert bad_grant.status_code == 400

    missing_name = client.post(
        "/api/oauth/clients", json={"redirectUris": [REDIRECT]}, headers=admin_headers
    )
    assert missing_name.status_code == 400
    assert missing_name.json()["code"] == "validation_error"


def test_regenerate_secret(client, admin_headers):
    created = register_client(client, admin_headers)

    response = client.post(
        f"/api/oauth/clients/{created['clientId']}/regenerate-secret", headers=admin_headers
    )

    assert response.status_code == 200
    secret = response.json()["data"]["clientSecret"]
    assert secret and secret != created["clientSecret"]

    stale = client.post(
        "/oauth/token",
        data={"grant_type": "refresh_token", "refresh_token": "x"},
        auth=(created["clientId"], created["clientSecret"]),
    )
    assert stale.status_code == 401
    assert stale.json()["error"] == "invalid_client"


# OAuth flow


def test_full_authorization_code_flow(client, admin_headers, alice_headers):
    registered = register_client(client, admin_headers)

    tokens = obtain_tokens(client, alice_headers, registered)
    assert tokens["token_type"] == "Bearer"
    assert tokens["scope"] == "read"
    assert tokens["refresh_token"]

    userinfo = client.get("/oauth/userinfo", headers=bearer(tokens["access_token"]))
    assert userinfo.json() == {"sub": "alice", "username": "alice"}

    refreshed = client.post(
        "/oauth/token",
        data={
            "grant_type": "refresh_token",
            "refresh_token": tokens["refresh_token"],
            "client_id": registered["clientId"],
            "client_secret": registered["clientSecret"],
        },
    )
    assert refreshed.status_code == 200
    assert refreshed.headers["Cache-Control"] == "no-store"
    new_tokens = refreshed.json()
    assert new_tokens["refresh_token"] != tokens["refresh_token"]

    old = client.get("/oauth/userinfo", headers=bearer(tokens["access_token"]))
    assert old.status_code == 401
    assert old.json()["error"] == "invalid_token"
    assert old.headers["WWW-Authenticate"].startswith("Bearer")


def test_authorize_requires_user(client, admin_headers):
    registered = register_client(client, admin_headers)

    response = client.post(
        "/oauth/authorize", json={"client_id": registered["clientId"], "redirect_uri": REDIRECT}
    )

    assert response.status_code == 401


def test_authorize_redirect_uri_carries_state(client, admin_headers, alice_headers):
    registered = register_client(client, admin_headers)

    granted = authorize(client, alice_headers, registered["clientId"], state="s-1")

    assert granted["redirect_uri"] == f"{REDIRECT}?code={granted['code']}&state=s-1"


def test_code_replay_is_rejected(client, admin_headers, alice_headers):
    registered = register_client(client, admin_headers, requireSecret=False)
    granted = authorize(client, alice_headers, registered["clientId"])
    form = {"grant_type": "authorization_code", "code": granted["code"], "client_id": registered["clientId"]}

    assert client.post("/oauth/token", data=form).status_code == 200

    replay = client.post("/oauth/token", data=form)
    assert replay.status_code == 400
    assert replay.json()["error"] == "invalid_grant"
    assert replay.headers["Cache-Control"] == "no-store"


def test_malformed_exchange_still_consumes_code(client, admin_headers, alice_headers):
    registered = register_client(client, admin_headers)
    verifier = generate_code_verifier()
    granted = authorize(
        client,
        alice_headers,
        registered["clientId"],
        code_challenge=generate_code_challenge(verifier),
        code_challenge_method="S256",
    )
    credentials = (registered["clientId"], registered["clientSecret"])

    rejected = client.post(
        "/oauth/token",
        data={"grant_type": "authorization_code", "code": granted["code"], "code_verifier": "short"},
        auth=credentials,
    )
    assert rejected.status_code == 400
    assert rejected.json()["error"] == "invalid_request"

    retry = client.post(
        "/oauth/token",
        data={"grant_type": "authorization_code", "code": granted["code"], "code_verifier": verifier},
        auth=credentials,
    )
    assert retry.status_code == 400
    assert retry.json()["error"] == "invalid_grant"


def test_token_request_errors(client, admin_headers):
    registered = register_client(client, admin_headers)

    unsupported = client.post("/oauth/token", data={"grant_type": "password"})
    assert unsupported.json()["error"] == "unsupported_grant_type"

    short_verifier = client.post(
        "/oauth/token",
        data={"grant_type": "authorization_code", "code": "x", "code_verifier": "short"},
    )
    assert short_verifier.status_code == 400
    assert short_verifier.json()["error"] == "invalid_request"

    mismatch = client.post(
        "/oauth/token",
        data={"grant_type": "authorization_code", "code": "x", "client_id": "other"},
        auth=(registered["clientId"], registered["clientSecret"]),
    )
    assert mismatch.json()["error"] == "invalid_request"

    malformed = client.post(
        "/oauth/token",
        data={"grant_type": "authorization_code", "code": "x"},
        headers={"Authorization": "Basic !!!"},
    )
    assert malformed.status_code == 401
    assert malformed.json()["error"] == "invalid_client"


def test_bearer_access_token_identifies_user(client, admin_headers, alice_headers):
    registered = register_client(client, admin_headers)
    tokens = obtain_tokens(client, alice_headers, registered)

    response = client.get("/api/oauth/clients", headers=bearer(tokens["access_token"]))

    assert response.status_code == 403


def test_revoke_endpoint(client, admin_headers, alice_headers):
    registered = register_client(client, admin_headers)
    tokens = obtain_tokens(client, alice_headers, registered)
    credentials = (registered["clientId"], registered["clientSecret"])

    response = client.post("/oauth/revoke", data={"token": tokens["refresh_token"]}, auth=credentials)
    assert response.status_code == 200
    assert response.json() == {}

    assert client.get("/oauth/userinfo", headers=bearer(tokens["access_token"])).status_code == 401
    unknown = client.post("/oauth/revoke", data={"token": "unknown"}, auth=credentials)
    assert unknown.status_code == 200
    assert client.post("/oauth/revoke", data={}).status_code == 400


def test_introspect_endpoint(client, admin_headers, alice_headers):
    registered = register_client(client, admin_headers)
    caller = obtain_tokens(client, alice_headers, registered)
    subject = obtain_tokens(client, alice_headers, registered)

    response = client.post(
        "/oauth/introspect",
        data={"token": subject["access_token"]},
        headers=bearer(caller["access_token"]),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["active"] is True
    assert body["username"] == "alice"
    assert body["client_id"] == registered["clientId"]

    inactive = client.post(
        "/oauth/introspect", data={"token": "unknown"}, headers=bearer(caller["access_token"])
    )
    assert inactive.json() == {"active": False}

    anonymous = client.post("/oauth/introspect", data={"token": subject["access_token"]})
    assert anonymous.status_code == 401


def test_deleting_client_revokes_its_tokens(client, admin_headers, alice_headers):
    registered = register_client(client, admin_headers)
    tokens = obtain_tokens(client, alice_headers, registered)

    client.delete(f"/api/oauth/clients/{registered['clientId']}", headers=admin_headers)

    assert client.get("/oauth/userinfo", headers=bearer(tokens["access_token"])).status_code == 401
    refreshed = client.post(
        "/oauth/token",
        data={"grant_type": "refresh_token", "refresh_token": tokens["refresh_token"]},
    )
    assert refreshed.status_code == 401
    assert refreshed.json()["error"] == "invalid_client"


# Bearer keys


def test_bearer_key_admin_and_access_check(client, admin_headers):
    created = client.post(
        "/api/bearer-keys",
        json={"name": "ci", "token": "ci-token", "accessType": "groups", "allowedGroups": ["g1"]},
        headers=admin_headers,
    )
    assert created.status_code == 201
    key = created.json()["data"]
    assert key["accessType"] == "groups"

    allowed = client.get("/api/access/group/g1", headers=bearer("ci-token"))
    assert allowed.status_code == 200
    assert allowed.json()["data"]["key_id"] == key["id"]

    assert client.get("/api/access/group/g2", headers=bearer("ci-token")).status_code == 403
    assert client.get("/api/access/server/s1", headers=bearer("ci-token")).status_code == 403
    assert client.get("/api/access/group/g1", headers=bearer("wrong")).status_code == 401
    assert client.get("/api/access/group/g1").status_code == 401
    assert client.get("/api/access/tenant/g1", headers=bearer("ci-token")).status_code == 400

    duplicate = client.post(
        "/api/bearer-keys",
        json={"name": "dup", "token": "ci-token", "accessType": "all"},
        headers=admin_headers,
    )
    assert duplicate.status_code == 409

    disabled = client.put(
        f"/api/bearer-keys/{key['id']}", json={"enabled": False}, headers=admin_headers
    )
    assert disabled.json()["data"]["enabled"] is False
    assert client.get("/api/access/group/g1", headers=bearer("ci-token")).status_code == 401

    assert client.delete(f"/api/bearer-keys/{key['id']}", headers=admin_headers).status_code == 200
    assert client.get("/api/bearer-keys", headers=admin_headers).json() == {"data": []}


def test_bearer_keys_require_admin(client, alice_headers):
    assert client.get("/api/bearer-keys", headers=alice_headers).status_code == 403
