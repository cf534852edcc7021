"""
HTTP API integration tests
==========================

Drives the FastAPI app end to end with the fake upstream session and a
temporary database.
"""

import pytest
from fastapi.testclient import TestClient

from contentsync.api.app import create_app
from contentsync.database.models import AuditAction, ContentType
from tests.conftest import (
    ADMIN_TOKEN,
    ALLOWED_ORIGIN,
    CRON_SECRET,
    INACTIVE_TOKEN,
    PLAYSTATION_FEED,
    XBOX_FEED,
    FakeResponse,
    rss_feed,
)

pytestmark = pytest.mark.integration

ADMIN = {"Authorization": f"Bearer {ADMIN_TOKEN}"}
CRON = {"X-Cron-Secret": CRON_SECRET}


@pytest.fixture
def client(app_context):
    return TestClient(create_app(app_context))


@pytest.fixture
def feeds(fake_session):
    playstation = rss_feed(
        [
            {"title": "PS Plus January lineup", "link": "https://blog.test/ps-plus"},
            {"title": "PS5 firmware 25.01", "link": "https://blog.test/firmware"},
            {"title": "State of Play recap", "link": "https://blog.test/state-of-play"},
        ]
    )
    fake_session.add("GET", PLAYSTATION_FEED, FakeResponse(200, text=playstation))
    fake_session.add("GET", XBOX_FEED, FakeResponse(200, text=rss_feed([])))
    return fake_session


class TestAuthorization:

    def test_health_is_open(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_no_credentials(self, client):
        response = client.post("/sync/platform-news")
        assert response.status_code == 403
        assert response.json() == {"success": False, "error": "Unauthorized"}

    def test_inactive_admin(self, client):
        response = client.get("/review/drafts", headers={"Authorization": f"Bearer {INACTIVE_TOKEN}"})
        assert response.status_code == 403
        assert response.json()["error"] == "Unauthorized"

    def test_wrong_secret(self, client):
        response = client.get("/monitoring/executions", headers={"X-Cron-Secret": "nope"})
        assert response.status_code == 403

    def test_catalog_query_needs_admin(self, client):
        response = client.post("/catalog/query", json={"query": "fields name;"}, headers=CRON)
        assert response.status_code == 403


class TestCors:

    def test_preflight_from_allowed_origin(self, client):
        response = client.options(
            "/sync/releases",
            headers={"Origin": ALLOWED_ORIGIN, "Access-Control-Request-Method": "POST"},
        )
        assert response.status_code == 204
        assert response.headers["access-control-allow-origin"] == ALLOWED_ORIGIN

    def test_preflight_from_unknown_origin(self, client):
        response = client.options(
            "/sync/releases",
            headers={"Origin": "https://evil.example", "Access-Control-Request-Method": "POST"},
        )
        assert response.status_code == 403
        assert response.json()["success"] is False
        assert "access-control-allow-origin" not in response.headers

    def test_simple_response_echoes_allowed_origin_only(self, client):
        allowed = client.get("/health", headers={"Origin": ALLOWED_ORIGIN})
        other = client.get("/health", headers={"Origin": "https://evil.example"})

        assert allowed.headers["access-control-allow-origin"] == ALLOWED_ORIGIN
        assert "access-control-allow-origin" not in other.headers


class TestSyncEndpoints:

    def test_feed_sync_counts_existing_as_skipped(self, client, app_context, feeds, make_item):
        app_context.content.reconcile(
            make_item(source_url="https://blog.test/state-of-play", slug="state-of-play-recap")
        )

        response = client.post("/sync/platform-news", headers=CRON)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["sources"][0]["source"] == "playstation"
        assert body["sources"][0]["inserted"] == 2
        assert body["sources"][0]["skipped"] == 1
        assert body["execution_id"]

    def test_release_sync_reports_fallback_chain(self, client):
        response = client.post("/sync/releases", headers=CRON)

        assert response.status_code == 200
        body = response.json()
        assert [a["source"] for a in body["attempted"]] == ["igdb", "rawg", "seed"]

    def test_all_sources_failed_is_502(self, client, fake_session):
        fake_session.add("GET", PLAYSTATION_FEED, FakeResponse(500, text="down"))
        fake_session.add("GET", XBOX_FEED, FakeResponse(500, text="down"))

        response = client.post("/sync/platform-news", headers=CRON)

        assert response.status_code == 502
        assert response.json()["success"] is False

    def test_unconfigured_clip_source_is_503(self, client):
        response = client.post("/sync/clips", headers=CRON)

        assert response.status_code == 503
        assert response.json()["missing"] == "TWITCH_CLIENT_ID"

    def test_admin_sync_is_audited(self, client, app_context):
        response = client.post(
            "/sync/releases", headers={**ADMIN, "X-Forwarded-For": "198.51.100.4, 10.0.0.1"}
        )

        execution_id = response.json()["execution_id"]
        entries = app_context.audit.for_entity("sync-releases", execution_id)
        assert len(entries) == 1
        assert entries[0].action == AuditAction.SYNC
        assert entries[0].ip_address == "198.51.100.4"

    def test_monitoring_after_runs(self, client, feeds):
        client.post("/sync/platform-news", headers=CRON)

        response = client.get("/monitoring/executions", headers=CRON)

        assert response.status_code == 200
        stats = response.json()["stats"]
        assert stats[0]["job_name"] == "sync-platform-news"
        assert stats[0]["total"] == 1


class TestReviewEndpoints:

    def test_publish_flow(self, client, app_context, make_item):
        app_context.content.reconcile(make_item())
        drafts = client.get("/review/drafts", headers=ADMIN).json()["items"]
        item_id = drafts[0]["id"]

        first = client.post(f"/review/news/{item_id}/publish", headers=ADMIN)
        second = client.post(f"/review/news/{item_id}/publish", headers=ADMIN)

        assert first.status_code == 200
        assert first.json()["item"]["status"] == "published"
        assert second.status_code == 409
        assert len(app_context.audit.for_entity("news", item_id)) == 1

    def test_publish_missing_item(self, client):
        response = client.post("/review/news/424242/publish", headers=ADMIN)
        assert response.status_code == 404

    def test_unknown_content_type(self, client):
        response = client.post("/review/podcast/1/publish", headers=ADMIN)
        assert response.status_code == 400

    def test_automation_secret_cannot_publish_or_delete(self, client, app_context, make_item):
        app_context.content.reconcile(make_item())
        item_id = app_context.content.list_drafts()[0].id

        publish = client.post(f"/review/news/{item_id}/publish", headers=CRON)
        delete = client.delete(f"/review/news/{item_id}", headers=CRON)

        assert publish.status_code == 403
        assert delete.status_code == 403
        assert publish.json() == {"success": False, "error": "Unauthorized"}
        assert app_context.content.get(ContentType.NEWS, item_id).status.value == "draft"
        assert app_context.audit.for_entity("news", item_id) == []

    def test_automation_secret_can_read_queue(self, client, app_context, make_item):
        app_context.content.reconcile(make_item())
        response = client.get("/review/drafts", headers=CRON)
        assert response.status_code == 200
        assert len(response.json()["items"]) == 1

    def test_create_manual_item_and_history(self, client, app_context):
        created = client.post(
            "/review/items",
            json={"content_type": "review", "title": "Star Voyager Review", "excerpt": "Worth the trip."},
            headers={**ADMIN, "User-Agent": "dashboard"},
        )

        assert created.status_code == 201
        item = created.json()["item"]
        assert item["status"] == "draft"
        assert item["source"] == "manual"
        assert item["slug"] == "star-voyager-review"

        history = client.get(f"/review/review/{item['id']}/history", headers=ADMIN)
        entries = history.json()["entries"]
        assert [e["action"] for e in entries] == ["create"]
        assert entries[0]["actor_user_id"] == "admin-1"
        assert entries[0]["user_agent"] == "dashboard"

    def test_create_and_history_need_admin(self, client):
        created = client.post("/review/items", json={"title": "Sneaky"}, headers=CRON)
        history = client.get("/review/news/1/history", headers=CRON)
        assert created.status_code == 403
        assert history.status_code == 403

    def test_delete(self, client, app_context, make_item):
        app_context.content.reconcile(make_item())
        item_id = app_context.content.list_drafts()[0].id

        response = client.delete(f"/review/news/{item_id}", headers=ADMIN)

        assert response.status_code == 200
        assert app_context.content.get(ContentType.NEWS, item_id) is None


class TestCatalogQuery:

    def test_proxies_query(self, client, app_context, fake_session):
        app_context.settings.igdb_client_id = "igdb-id"
        app_context.settings.igdb_client_secret = "igdb-secret"
        fake_session.add(
            "POST", "https://id.twitch.tv/oauth2/token",
            FakeResponse(200, {"access_token": "tok", "expires_in": 3600}),
        )
        fake_session.add("POST", "https://api.igdb.com/v4/games", FakeResponse(200, [{"id": 1, "name": "Halo"}]))

        response = client.post(
            "/catalog/query", json={"endpoint": "games", "query": "fields name; limit 1;"}, headers=ADMIN
        )

        assert response.status_code == 200
        assert response.json()["data"] == [{"id": 1, "name": "Halo"}]
        call = fake_session.calls_to("https://api.igdb.com/v4/games")[0]
        assert call["data"] == "fields name; limit 1;"
        assert call["headers"]["Client-ID"] == "igdb-id"

    def test_rejects_bad_endpoint(self, client):
        response = client.post("/catalog/query", json={"endpoint": "../x", "query": "q"}, headers=ADMIN)
        assert response.status_code == 422
