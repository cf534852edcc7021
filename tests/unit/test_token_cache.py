"""
Tests for TokenCache and the catalog token grant
================================================
"""

import asyncio

import pytest

from contentsync.config.settings import CatalogSettings
from contentsync.ingestion.catalog_adapter import CatalogAdapter
from contentsync.ingestion.token_cache import TokenCache
from contentsync.utils.exceptions import ConfigurationError, UpstreamFetchError
from tests.conftest import FakeResponse

T = 1_700_000_000.0


class FakeClock:
    def __init__(self, now: float = T):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestTokenCache:
    """Refresh decisions around the 60 second margin."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def cache(self, clock):
        return TokenCache("test", margin_seconds=60, clock=clock)

    async def test_refreshes_when_inside_margin(self, cache):
        """Token expiring in 30s is refreshed."""
        cache.store("old-token", T + 30)
        calls = []

        async def fetcher():
            calls.append(1)
            return "new-token", 3600

        token = await cache.get_token(fetcher)

        assert token == "new-token"
        assert len(calls) == 1
        assert cache.refresh_count == 1

    async def test_reuses_token_outside_margin(self, cache):
        """Token expiring in 120s is reused without calling the fetcher."""
        cache.store("cached-token", T + 120)

        async def fetcher():
            raise AssertionError("fetcher must not be called")

        assert await cache.get_token(fetcher) == "cached-token"
        assert cache.refresh_count == 0

    async def test_expiry_computed_from_clock(self, cache, clock):
        async def fetcher():
            return "tok", 3600

        await cache.get_token(fetcher)
        assert cache.token.expires_at == T + 3600

        clock.now = T + 3600 - 61
        assert cache.is_fresh()
        clock.now = T + 3600 - 59
        assert not cache.is_fresh()

    async def test_concurrent_callers_share_one_refresh(self, cache):
        calls = []

        async def fetcher():
            calls.append(1)
            await asyncio.sleep(0.01)
            return "shared", 3600

        tokens = await asyncio.gather(*(cache.get_token(fetcher) for _ in range(5)))

        assert tokens == ["shared"] * 5
        assert len(calls) == 1

    def test_invalidate(self, cache):
        cache.store("tok", T + 600)
        assert cache.is_fresh()
        cache.invalidate()
        assert not cache.is_fresh()
        assert cache.token is None


class TestCatalogToken:
    """Client-credentials grant through the catalog adapter."""

    async def test_token_granted_once_and_reused(self, fake_session):
        fake_session.add(
            "POST", "https://id.twitch.tv/oauth2/token",
            FakeResponse(200, {"access_token": "grant-1", "expires_in": 5000}),
        )
        cache = TokenCache("igdb", margin_seconds=60, clock=FakeClock())
        adapter = CatalogAdapter(fake_session, "client-id", "client-secret", cache, CatalogSettings())

        assert await adapter.get_access_token() == "grant-1"
        assert await adapter.get_access_token() == "grant-1"

        grants = fake_session.calls_to("https://id.twitch.tv/oauth2/token")
        assert len(grants) == 1
        assert grants[0]["params"] == {
            "client_id": "client-id",
            "client_secret": "client-secret",
            "grant_type": "client_credentials",
        }

    async def test_missing_credentials_is_configuration_error(self, fake_session):
        adapter = CatalogAdapter(fake_session, None, None, TokenCache("igdb"))

        with pytest.raises(ConfigurationError) as exc_info:
            await adapter.get_access_token()

        assert exc_info.value.config_key == "IGDB_CLIENT_ID"
        assert fake_session.calls == []

    async def test_rejected_grant_is_upstream_error(self, fake_session):
        fake_session.add("POST", "https://id.twitch.tv/oauth2/token", FakeResponse(400, text="invalid client"))
        adapter = CatalogAdapter(fake_session, "id", "bad-secret", TokenCache("igdb"))

        with pytest.raises(UpstreamFetchError) as exc_info:
            await adapter.get_access_token()

        assert exc_info.value.status == 400
        assert "invalid client" in exc_info.value.body
