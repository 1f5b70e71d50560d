"""Tests for token issuance, lookup, expiry and sweeping."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from hubauth.services.authorization_codes import AuthorizationCodeStore
from hubauth.services.token_manager import TokenManager, generate_token


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def scripted(*values):
    """Token generator that replays fixed values."""
    remaining = list(values)
    return lambda: remaining.pop(0)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 1, tzinfo=timezone.utc))


def test_generated_tokens_have_256_bits():
    token = generate_token()

    assert len(token) == 64
    assert token != generate_token()


async def test_colliding_access_token_replaces_first_record(daos, clock):
    # Refresh values are generated before access values
    manager = TokenManager(daos.oauth_tokens, generator=scripted("R1", "A", "R2", "A"), clock=clock)

    await manager.issue("web", "alice", "read")
    second = await manager.issue("web", "bob", "read")

    stored = await daos.oauth_tokens.find_all()
    assert len(stored) == 1
    assert stored[0].refresh_token == "R2"
    assert stored[0].username == "bob"
    assert (await manager.lookup("A")) == second
    assert await manager.lookup("R1") is None


async def test_access_token_expiry_boundary(daos, clock):
    manager = TokenManager(daos.oauth_tokens, access_token_lifetime=1, clock=clock)
    token = await manager.issue("web", "alice", "read")

    clock.advance(milliseconds=1)
    assert await manager.lookup_access_token(token.access_token) is not None

    clock.advance(milliseconds=998)
    assert await manager.lookup_access_token(token.access_token) is not None

    clock.advance(milliseconds=2)
    assert await manager.lookup_access_token(token.access_token) is None
    # The refresh token outlives the access token
    assert await manager.lookup_refresh_token(token.refresh_token) is not None


async def test_token_already_past_expiry_is_invalid(daos, clock):
    manager = TokenManager(daos.oauth_tokens, access_token_lifetime=1, clock=clock)
    token = await manager.issue("web", "alice")

    clock.advance(seconds=1)

    assert await manager.lookup(token.access_token) is None


async def test_refresh_token_without_expiry_never_expires(daos, clock):
    manager = TokenManager(daos.oauth_tokens, refresh_token_lifetime=None, clock=clock)
    token = await manager.issue("web", "alice")

    clock.advance(days=3650)

    assert token.refresh_token_expires_at is None
    assert await manager.lookup_refresh_token(token.refresh_token) is not None


async def test_issue_without_refresh_token(daos, clock):
    manager = TokenManager(daos.oauth_tokens, clock=clock)

    token = await manager.issue("web", "alice", include_refresh_token=False)

    assert token.refresh_token is None
    assert token.refresh_token_expires_at is None


async def test_revoke_removes_both_halves(daos, clock):
    manager = TokenManager(daos.oauth_tokens, clock=clock)
    token = await manager.issue("web", "alice")

    assert await manager.revoke(token.refresh_token) is True

    assert await manager.lookup(token.access_token) is None
    assert await manager.lookup(token.refresh_token) is None
    assert await daos.oauth_tokens.count() == 0
    assert await manager.revoke(token.access_token) is False


async def test_index_is_filled_lazily_from_storage(daos, clock):
    issued = await TokenManager(daos.oauth_tokens, clock=clock).issue("web", "alice")

    fresh = TokenManager(daos.oauth_tokens, clock=clock)

    assert (await fresh.lookup(issued.refresh_token)).access_token == issued.access_token
    assert await fresh.lookup("unknown") is None


async def test_revoke_client_tokens(daos, clock):
    manager = TokenManager(daos.oauth_tokens, clock=clock)
    web = await manager.issue("web", "alice")
    await manager.issue("web", "bob")
    cli = await manager.issue("cli", "alice")

    assert await manager.revoke_client_tokens("web") == 2

    assert await manager.lookup(web.access_token) is None
    assert await manager.lookup(cli.access_token) is not None


async def test_sweep_removes_fully_expired_records(daos, clock):
    manager = TokenManager(
        daos.oauth_tokens, access_token_lifetime=10, refresh_token_lifetime=100, clock=clock
    )
    short = await manager.issue("web", "alice", include_refresh_token=False)
    paired = await manager.issue("web", "bob")

    clock.advance(seconds=11)
    assert await manager.sweep() == 1
    assert await manager.lookup_refresh_token(paired.refresh_token) is not None
    assert await daos.oauth_tokens.find_by_access_token(short.access_token) is None

    clock.advance(seconds=100)
    assert await manager.sweep() == 1
    assert await daos.oauth_tokens.count() == 0


async def test_sweep_task_starts_and_stops(daos, clock):
    manager = TokenManager(daos.oauth_tokens, access_token_lifetime=1, clock=clock)
    await manager.issue("web", "alice", include_refresh_token=False)
    clock.advance(seconds=5)

    manager.start(interval=0.01)
    assert manager.running
    for _ in range(100):
        if await daos.oauth_tokens.count() == 0:
            break
        await asyncio.sleep(0.01)

    await manager.shutdown()

    assert not manager.running
    assert await daos.oauth_tokens.count() == 0


async def test_sweep_task_removes_expired_authorization_codes(daos, clock):
    codes = AuthorizationCodeStore(lifetime=60, clock=clock)
    manager = TokenManager(daos.oauth_tokens, clock=clock, codes=codes)
    await codes.create(client_id="web", username="alice", redirect_uri="https://a/cb")
    clock.advance(seconds=61)
    live = await codes.create(client_id="web", username="bob", redirect_uri="https://a/cb")

    manager.start(interval=0.01)
    for _ in range(100):
        if len(codes) == 1:
            break
        await asyncio.sleep(0.01)
    await manager.shutdown()

    assert len(codes) == 1
    assert await codes.get(live.code) is not None


async def test_concurrent_issues_keep_distinct_records(daos, clock):
    manager = TokenManager(daos.oauth_tokens, clock=clock)

    tokens = await asyncio.gather(*(manager.issue("web", f"user{i}") for i in range(10)))

    assert len({t.access_token for t in tokens}) == 10
    assert await daos.oauth_tokens.count() == 10


# Authorization codes


async def test_authorization_code_is_consumed_once(clock):
    codes = AuthorizationCodeStore(lifetime=300, clock=clock)
    code = await codes.create(
        client_id="web", username="alice", redirect_uri="https://app.example/cb", scope="read"
    )

    results = await asyncio.gather(codes.consume(code.code), codes.consume(code.code))

    assert sum(r is not None for r in results) == 1
    assert await codes.get(code.code) is None


async def test_authorization_code_expires(clock):
    codes = AuthorizationCodeStore(lifetime=300, clock=clock)
    code = await codes.create(client_id="web", username="alice", redirect_uri="https://a/cb")
    other = await codes.create(client_id="web", username="bob", redirect_uri="https://a/cb")

    clock.advance(seconds=299)
    assert await codes.get(code.code) is not None

    clock.advance(seconds=1)
    assert await codes.consume(code.code) is None
    assert await codes.sweep() == 1
    assert len(codes) == 0
    assert await codes.revoke(other.code) is False
