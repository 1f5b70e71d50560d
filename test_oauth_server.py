"""Tests for the authorization code and refresh token grants."""

import pytest

from hubauth.config import OAuthServerSettings
from hubauth.core.exceptions import (
    InvalidClientError,
    InvalidGrantError,
    InvalidRequestError,
    InvalidScopeError,
    InvalidTokenError,
    UnauthorizedClientError,
    UnsupportedGrantTypeError,
)
from hubauth.models.domain import OAuthClient, User
from hubauth.models.requests import AuthorizeRequest, TokenRequest
from hubauth.services.authorization_codes import AuthorizationCodeStore
from hubauth.services.oauth_server import (
    OAuthServer,
    generate_code_challenge,
    generate_code_verifier,
    verify_code_challenge,
)
from hubauth.services.token_manager import TokenManager

REDIRECT = "https://app.example/cb"
ALICE = User(username="alice")


def make_server(daos, **overrides) -> OAuthServer:
    settings = OAuthServerSettings(**overrides)
    tokens = TokenManager(
        daos.oauth_tokens,
        access_token_lifetime=settings.access_token_lifetime,
        refresh_token_lifetime=settings.refresh_token_lifetime,
    )
    codes = AuthorizationCodeStore(lifetime=settings.authorization_code_lifetime)
    return OAuthServer(daos.oauth_clients, tokens, codes, settings)


@pytest.fixture
async def server(daos):
    await daos.oauth_clients.create(
        OAuthClient(
            client_id="web",
            client_secret="s3cret",
            name="Web",
            redirect_uris=[REDIRECT],
            scopes=["read"],
        )
    )
    await daos.oauth_clients.create(
        OAuthClient(client_id="cli", name="CLI", redirect_uris=["http://localhost:8123/cb"])
    )
    return make_server(daos)


async def authorize(server, client_id="web", **params):
    redirect = params.pop("redirect_uri", REDIRECT if client_id == "web" else "http://localhost:8123/cb")
    request = AuthorizeRequest(client_id=client_id, redirect_uri=redirect, **params)
    return await server.authorize(request, ALICE)


async def exchange(server, code, client_id="web", **params):
    return await server.token(
        TokenRequest(grant_type="authorization_code", code=code, client_id=client_id, **params)
    )


def test_s256_challenge_matches_known_vector():
    # RFC 7636 appendix B
    verifier = "dBjftJeZ4CVP-mJ92K9DlbsmYkpvZrGnl1iJh9sC8Ig"

    assert generate_code_challenge(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"
    assert verify_code_challenge(verifier, "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM")
    assert not verify_code_challenge(verifier, "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM", "md5")


async def test_authorization_code_flow_with_pkce(server):
    verifier = generate_code_verifier()
    granted = await authorize(
        server,
        scope="read",
        state="xyz",
        code_challenge=generate_code_challenge(verifier),
        code_challenge_method="S256",
    )

    assert granted.state == "xyz"
    assert granted.redirect_uri.startswith(f"{REDIRECT}?code={granted.code}")
    assert granted.redirect_uri.endswith("&state=xyz")
    assert granted.expires_in == 300

    token = await exchange(server, granted.code, code_verifier=verifier, redirect_uri=REDIRECT)

    assert token.token_type == "Bearer"
    assert token.scope == "read"
    assert 3595 <= token.expires_in <= 3600
    assert token.refresh_token

    record = await server.authenticate(token.access_token, "read")
    assert record.username == "alice"
    assert record.client_id == "web"


async def test_wrong_verifier_is_rejected(server):
    granted = await authorize(
        server, code_challenge=generate_code_challenge(generate_code_verifier()), code_challenge_method="S256"
    )

    with pytest.raises(InvalidGrantError):
        await exchange(server, granted.code, code_verifier=generate_code_verifier())


async def test_missing_verifier_is_rejected_when_challenge_recorded(server):
    granted = await authorize(server, code_challenge=generate_code_challenge(generate_code_verifier()))

    with pytest.raises(InvalidGrantError):
        await exchange(server, granted.code)


async def test_plain_challenge(server):
    verifier = generate_code_verifier()
    granted = await authorize(server, code_challenge=verifier)

    token = await exchange(server, granted.code, code_verifier=verifier)

    assert token.access_token


async def test_verifier_without_challenge_is_ignored(server):
    granted = await authorize(server)

    token = await exchange(server, granted.code, code_verifier=generate_code_verifier())

    assert token.access_token


def test_short_verifier_fails_request_validation():
    with pytest.raises(ValueError):
        TokenRequest(grant_type="authorization_code", code="c", code_verifier="too-short")


async def test_code_is_single_use(server):
    granted = await authorize(server)
    await exchange(server, granted.code)

    with pytest.raises(InvalidGrantError):
        await exchange(server, granted.code)


async def test_failed_exchange_still_consumes_code(server):
    verifier = generate_code_verifier()
    granted = await authorize(server, code_challenge=generate_code_challenge(verifier), code_challenge_method="S256")

    with pytest.raises(InvalidGrantError):
        await exchange(server, granted.code, code_verifier=generate_code_verifier())
    with pytest.raises(InvalidGrantError):
        await exchange(server, granted.code, code_verifier=verifier)


async def test_code_bound_to_client_and_redirect(server):
    granted = await authorize(server)
    with pytest.raises(InvalidGrantError):
        await exchange(server, granted.code, client_id="cli")

    granted = await authorize(server)
    with pytest.raises(InvalidGrantError):
        await exchange(server, granted.code, redirect_uri="https://elsewhere.example/cb")


async def test_unregistered_redirect_uri_is_rejected(server):
    with pytest.raises(InvalidRequestError):
        await authorize(server, redirect_uri="https://evil.example/cb")


async def test_unknown_client_and_wrong_secret(server):
    with pytest.raises(InvalidClientError):
        await authorize(server, client_id="ghost", redirect_uri=REDIRECT)
    with pytest.raises(InvalidClientError):
        await authorize(server, client_secret="wrong")


async def test_secret_required_for_confidential_clients(daos, server):
    strict = make_server(daos, require_client_secret=True)

    with pytest.raises(InvalidClientError):
        await authorize(strict)

    granted = await authorize(strict, client_secret="s3cret")
    token = await exchange(strict, granted.code, client_secret="s3cret")
    assert token.access_token

    # Public clients never need one
    assert (await authorize(strict, client_id="cli")).code


def code_request(granted, client_id="web") -> TokenRequest:
    return TokenRequest(grant_type="authorization_code", code=granted.code, client_id=client_id)


async def test_scope_negotiation(server):
    assert (await server.token(code_request(await authorize(server)))).scope == "read"
    assert (await server.token(code_request(await authorize(server, scope="read write")))).scope == "read"

    with pytest.raises(InvalidScopeError):
        await authorize(server, scope="write")

    unrestricted = await authorize(server, client_id="cli")
    token = await server.token(code_request(unrestricted, client_id="cli"))
    assert token.scope == "read write"


async def test_client_without_grant_is_unauthorized(daos, server):
    await daos.oauth_clients.update("cli", {"grants": ["refresh_token"]})

    with pytest.raises(UnauthorizedClientError):
        await authorize(server, client_id="cli")


async def test_unsupported_grant_type(server):
    with pytest.raises(UnsupportedGrantTypeError):
        await server.token(TokenRequest(grant_type="password", client_id="web"))


async def test_missing_code_parameter(server):
    with pytest.raises(InvalidRequestError):
        await server.token(TokenRequest(grant_type="authorization_code", client_id="web"))


async def test_client_without_refresh_grant_gets_no_refresh_token(daos, server):
    await daos.oauth_clients.update("cli", {"grants": ["authorization_code"]})
    granted = await authorize(server, client_id="cli")

    token = await exchange(server, granted.code, client_id="cli")

    assert token.refresh_token is None


# Refresh


async def issue_pair(server):
    granted = await authorize(server)
    return await exchange(server, granted.code)


async def refresh(server, refresh_token, client_id="web", **params):
    return await server.token(
        TokenRequest(grant_type="refresh_token", refresh_token=refresh_token, client_id=client_id, **params)
    )


async def test_refresh_rotates_pair(server):
    first = await issue_pair(server)

    second = await refresh(server, first.refresh_token)

    assert second.refresh_token != first.refresh_token
    assert second.access_token != first.access_token
    assert second.scope == "read"
    await server.authenticate(second.access_token)

    with pytest.raises(InvalidGrantError):
        await refresh(server, first.refresh_token)
    with pytest.raises(InvalidTokenError):
        await server.authenticate(first.access_token)


async def test_refresh_without_rotation_keeps_refresh_token(daos, server):
    stable = make_server(daos, rotate_refresh_token=False)
    first = await issue_pair(stable)

    second = await refresh(stable, first.refresh_token)
    third = await refresh(stable, second.refresh_token)

    assert first.refresh_token == second.refresh_token == third.refresh_token
    assert len({first.access_token, second.access_token, third.access_token}) == 3


async def test_refresh_scope_may_only_narrow(daos, server):
    first = await issue_pair(server)

    with pytest.raises(InvalidScopeError):
        await refresh(server, first.refresh_token, scope="read write")

    narrowed = await refresh(server, first.refresh_token, scope="read")
    assert narrowed.scope == "read"


async def test_refresh_by_other_client_is_rejected(server):
    first = await issue_pair(server)

    with pytest.raises(InvalidGrantError):
        await refresh(server, first.refresh_token, client_id="cli")

    # The rightful owner can still use it
    assert (await refresh(server, first.refresh_token)).access_token


async def test_access_token_is_not_a_refresh_token(server):
    first = await issue_pair(server)

    with pytest.raises(InvalidGrantError):
        await refresh(server, first.access_token)


async def test_missing_refresh_token_parameter(server):
    with pytest.raises(InvalidRequestError):
        await server.token(TokenRequest(grant_type="refresh_token", client_id="web"))


# Revocation, introspection, authentication


async def test_revoke_either_half(server):
    first = await issue_pair(server)
    second = await issue_pair(server)

    assert await server.revoke(first.refresh_token) is True
    assert await server.revoke(second.access_token, "web") is True

    for token in (first, second):
        with pytest.raises(InvalidTokenError):
            await server.authenticate(token.access_token)
    assert await server.revoke("unknown") is False


async def test_revoke_by_other_client_is_ignored(server):
    first = await issue_pair(server)

    assert await server.revoke(first.access_token, "cli") is False
    assert (await server.authenticate(first.access_token)).client_id == "web"


async def test_introspect(server):
    pair = await issue_pair(server)

    access = await server.introspect(pair.access_token)
    assert access.active is True
    assert access.token_type == "access_token"
    assert access.username == "alice"
    assert access.client_id == "web"
    assert access.scope == "read"
    assert access.exp

    assert (await server.introspect(pair.refresh_token)).token_type == "refresh_token"
    assert (await server.introspect("unknown")).active is False


async def test_deleted_client_tokens_are_not_honoured(daos, server):
    pair = await issue_pair(server)

    await daos.oauth_clients.delete("web")

    with pytest.raises(InvalidTokenError):
        await server.authenticate(pair.access_token)
    assert (await server.introspect(pair.access_token)).active is False


async def test_authenticate_checks_scope(server):
    pair = await issue_pair(server)

    with pytest.raises(InvalidTokenError):
        await server.authenticate(pair.access_token, "write")
    with pytest.raises(InvalidTokenError):
        await server.authenticate(pair.refresh_token)


# Discovery


async def test_metadata_advertises_endpoints(daos):
    server = make_server(daos, allowed_scopes="read, write admin")

    metadata = server.metadata("https://hub.example/")

    assert metadata["issuer"] == "https://hub.example"
    assert metadata["token_endpoint"] == "https://hub.example/oauth/token"
    assert metadata["scopes_supported"] == ["read", "write", "admin"]
    assert metadata["code_challenge_methods_supported"] == ["S256", "plain"]
    assert metadata["grant_types_supported"] == ["authorization_code", "refresh_token"]

    resource = server.protected_resource_metadata("https://hub.example")
    assert resource["authorization_servers"] == ["https://hub.example"]
