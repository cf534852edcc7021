"""
PyTest Configuration and Fixtures
=================================

Shared fixtures for ContentSync tests:

- temporary SQLite database with the schema applied
- settings built without reading the developer's .env
- a fake aiohttp session that answers from registered routes
- an application context wired to the fakes
"""

import json
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Tuple

import pytest

# Plain-name credentials from the shell must not leak into tests
for _name in (
    "CRON_SECRET",
    "ALLOWED_ORIGINS",
    "IGDB_CLIENT_ID",
    "IGDB_CLIENT_SECRET",
    "TWITCH_CLIENT_ID",
    "TWITCH_CLIENT_SECRET",
    "RAWG_API_KEY",
    "IDENTITY_URL",
    "IDENTITY_API_KEY",
):
    os.environ.pop(_name, None)

CRON_SECRET = "cron-test-secret"
ADMIN_TOKEN = "admin-token"
INACTIVE_TOKEN = "inactive-token"
STRANGER_TOKEN = "stranger-token"
ALLOWED_ORIGIN = "http://localhost:5173"
PLAYSTATION_FEED = "https://feeds.test/playstation"
XBOX_FEED = "https://feeds.test/xbox"


# ============================================================================
# Fake HTTP
# ============================================================================


class FakeResponse:
    """Minimal stand-in for an aiohttp response used as an async context manager."""

    def __init__(self, status: int = 200, json_data: Any = None, text: Optional[str] = None):
        self.status = status
        self._json = json_data
        self._text = text if text is not None else json.dumps(json_data)

    async def text(self) -> str:
        return self._text

    async def json(self, content_type=None) -> Any:
        if self._json is None:
            return json.loads(self._text)
        return self._json

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        return False


class FakeSession:
    """Answers requests from routes registered by URL prefix.

    A route value may be a FakeResponse, an exception instance (raised when
    the request is made) or a list of those served in order, the last one
    repeating.
    """

    def __init__(self):
        self.routes: List[Tuple[str, str, Any]] = []
        self.calls: List[Dict[str, Any]] = []

    def add(self, method: str, url_prefix: str, response: Any) -> None:
        self.routes.append((method.upper(), url_prefix, response))

    def calls_to(self, url_prefix: str) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["url"].startswith(url_prefix)]

    def _respond(self, method: str, url: str, **kwargs) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        for route_method, prefix, response in self.routes:
            if route_method == method and url.startswith(prefix):
                if isinstance(response, list):
                    response = response.pop(0) if len(response) > 1 else response[0]
                if isinstance(response, BaseException):
                    raise response
                return response
        return FakeResponse(404, text="not found")

    def get(self, url: str, **kwargs) -> FakeResponse:
        return self._respond("GET", url, **kwargs)

    def post(self, url: str, **kwargs) -> FakeResponse:
        return self._respond("POST", url, **kwargs)

    @asynccontextmanager
    async def factory(self):
        yield self


def rss_feed(items: List[Dict[str, str]], title: str = "Test Feed") -> str:
    """Build an RSS 2.0 document from dicts with optional title/link/description."""
    entries = []
    for item in items:
        parts = []
        if item.get("title"):
            parts.append(f"<title>{item['title']}</title>")
        if item.get("link"):
            parts.append(f"<link>{item['link']}</link>")
        if item.get("description"):
            parts.append(f"<description><![CDATA[{item['description']}]]></description>")
        parts.append(f"<pubDate>{item.get('pubDate', 'Mon, 06 Jan 2025 10:00:00 GMT')}</pubDate>")
        entries.append(f"<item>{''.join(parts)}</item>")
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<rss version="2.0"><channel>'
        f"<title>{title}</title><link>https://example.com</link><description>test</description>"
        f"{''.join(entries)}"
        "</channel></rss>"
    )


# ============================================================================
# Settings, database and context
# ============================================================================


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def db_path(tmp_path):
    from contentsync.database.schema import DatabaseSchema

    path = tmp_path / "contentsync_test.db"
    DatabaseSchema(str(path)).create_tables()
    return str(path)


@pytest.fixture
def db_connection(db_path):
    from contentsync.database.connection import DatabaseConnection

    connection = DatabaseConnection(db_path, pool_size=2)
    yield connection
    connection.close_all_connections()


@pytest.fixture
def test_settings(db_path):
    from contentsync.config.settings import ContentSyncSettings, DatabaseSettings, FeedSettings, LoggingSettings

    return ContentSyncSettings(
        _env_file=None,
        database=DatabaseSettings(path=db_path, pool_size=2),
        logging=LoggingSettings(file_path=None, console_logging=False),
        feeds=FeedSettings(playstation=PLAYSTATION_FEED, xbox=XBOX_FEED, nintendo=None),
        cron_secret=CRON_SECRET,
        allowed_origins=f"{ALLOWED_ORIGIN},https://firestargamingnetwork.com",
    )


@pytest.fixture
def identity_provider():
    from contentsync.auth.identity import IdentityUser, StaticIdentityProvider

    return StaticIdentityProvider(
        {
            ADMIN_TOKEN: IdentityUser(id="admin-1", email="admin@example.com"),
            INACTIVE_TOKEN: IdentityUser(id="admin-2", email="former@example.com"),
            STRANGER_TOKEN: IdentityUser(id="user-9", email="reader@example.com"),
        }
    )


@pytest.fixture
def app_context(test_settings, identity_provider, fake_session):
    from contentsync.context import AppContext
    from contentsync.database.models import AdminIdentity

    context = AppContext.create(
        test_settings,
        identity_provider=identity_provider,
        session_factory=fake_session.factory,
    )
    context.admins.save(AdminIdentity(id="admin-1", email="admin@example.com", role="editor"))
    context.admins.save(
        AdminIdentity(id="admin-2", email="former@example.com", role="editor", is_active=False)
    )
    yield context
    context.close()


@pytest.fixture
def admin_actor():
    from contentsync.database.models import Actor

    return Actor(user_id="admin-1", email="admin@example.com", ip_address="203.0.113.7", user_agent="pytest")


@pytest.fixture
def make_item():
    """Factory for ContentItem with sensible defaults."""
    from contentsync.database.models import ContentItem, ContentSource, ContentType

    def _make(**overrides):
        data = {
            "content_type": ContentType.NEWS,
            "title": "PS5 System Update Adds Features",
            "slug": "ps5-system-update-adds-features",
            "excerpt": "A new system update is rolling out.",
            "source": ContentSource.PLAYSTATION,
            "source_url": "https://blog.playstation.com/2025/01/06/update/",
        }
        data.update(overrides)
        return ContentItem(**data)

    return _make
