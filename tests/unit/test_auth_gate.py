"""
Tests for the authorization gate, CORS policy and identity providers
====================================================================
"""

import pytest

from contentsync.auth.gate import AuthorizationGate, CorsPolicy
from contentsync.auth.identity import HTTPIdentityProvider
from contentsync.utils.exceptions import AuthorizationError, UpstreamFetchError
from tests.conftest import ADMIN_TOKEN, CRON_SECRET, INACTIVE_TOKEN, STRANGER_TOKEN, FakeResponse


@pytest.fixture
def gate(app_context):
    return app_context.gate


class TestAuthorizationGate:

    async def test_active_admin_token(self, gate):
        principal = await gate.authorize(f"Bearer {ADMIN_TOKEN}", None)
        assert principal.is_admin
        assert principal.admin.id == "admin-1"

    async def test_cron_secret(self, gate):
        principal = await gate.authorize(None, CRON_SECRET)
        assert principal.kind == "cron"
        assert not principal.is_admin

    async def test_cron_principal_has_no_audit_identity(self, gate):
        principal = await gate.authorize(None, CRON_SECRET)
        with pytest.raises(AuthorizationError):
            principal.actor("10.0.0.1")

    async def test_admin_actor_carries_request_details(self, gate):
        principal = await gate.authorize(f"Bearer {ADMIN_TOKEN}", None)

        actor = principal.actor("10.0.0.1", "dashboard")

        assert actor.user_id == "admin-1"
        assert actor.email == "admin@example.com"
        assert actor.ip_address == "10.0.0.1"

    async def test_either_path_suffices(self, gate):
        principal = await gate.authorize("Bearer not-a-token", CRON_SECRET)
        assert principal.kind == "cron"

    @pytest.mark.parametrize(
        "authorization, secret",
        [
            (None, None),
            (f"Bearer {INACTIVE_TOKEN}", None),
            (f"Bearer {STRANGER_TOKEN}", None),
            ("Bearer unknown", None),
            (ADMIN_TOKEN, None),
            (None, "wrong-secret"),
            (f"Bearer {STRANGER_TOKEN}", "wrong-secret"),
        ],
    )
    async def test_rejections_share_one_message(self, gate, authorization, secret):
        with pytest.raises(AuthorizationError) as exc_info:
            await gate.authorize(authorization, secret)
        assert exc_info.value.user_message == "Unauthorized"

    async def test_unconfigured_secret_never_matches(self, app_context):
        gate = AuthorizationGate(app_context.identity_provider, app_context.admins, cron_secret=None)

        assert not gate.check_cron_secret("")
        assert not gate.check_cron_secret("anything")
        with pytest.raises(AuthorizationError) as exc_info:
            await gate.authorize(None, "anything")
        assert "none configured" in exc_info.value.reason

    async def test_identity_outage_falls_back_to_secret(self, app_context):
        class BrokenProvider:
            async def resolve(self, token):
                raise UpstreamFetchError("identity down", source="identity", status=503)

        gate = AuthorizationGate(BrokenProvider(), app_context.admins, CRON_SECRET)

        principal = await gate.authorize(f"Bearer {ADMIN_TOKEN}", CRON_SECRET)
        assert principal.kind == "cron"
        with pytest.raises(AuthorizationError):
            await gate.authorize(f"Bearer {ADMIN_TOKEN}", None)


class TestCorsPolicy:

    def test_allow_list(self):
        policy = CorsPolicy(["http://localhost:5173", "*", ""])

        assert policy.allowed_origins == ["http://localhost:5173"]
        assert policy.is_allowed("http://localhost:5173")
        assert not policy.is_allowed("https://evil.example")
        assert not policy.is_allowed(None)

    def test_headers_echo_origin_never_wildcard(self):
        policy = CorsPolicy(["http://localhost:5173"])

        headers = policy.preflight_headers("http://localhost:5173")

        assert headers["Access-Control-Allow-Origin"] == "http://localhost:5173"
        assert "x-cron-secret" in headers["Access-Control-Allow-Headers"]
        assert policy.preflight_headers("https://evil.example") == {}


class TestHTTPIdentityProvider:

    @pytest.fixture
    def provider(self, fake_session):
        return HTTPIdentityProvider("https://auth.test/", "anon-key", fake_session.factory)

    async def test_resolves_user(self, provider, fake_session):
        fake_session.add("GET", "https://auth.test/auth/v1/user", FakeResponse(200, {"id": "u1", "email": "a@x.test"}))

        user = await provider.resolve("tok")

        assert user.id == "u1"
        call = fake_session.calls[0]
        assert call["headers"]["Authorization"] == "Bearer tok"
        assert call["headers"]["apikey"] == "anon-key"

    async def test_invalid_token_is_none(self, provider, fake_session):
        fake_session.add("GET", "https://auth.test/auth/v1/user", FakeResponse(401, text="bad jwt"))
        assert await provider.resolve("tok") is None

    async def test_server_error_raises(self, provider, fake_session):
        fake_session.add("GET", "https://auth.test/auth/v1/user", FakeResponse(500, text="oops"))
        with pytest.raises(UpstreamFetchError):
            await provider.resolve("tok")

    async def test_non_json_success_raises_upstream_error(self, provider, fake_session):
        fake_session.add("GET", "https://auth.test/auth/v1/user", FakeResponse(200, text="<html>login</html>"))

        with pytest.raises(UpstreamFetchError) as exc_info:
            await provider.resolve("tok")

        assert exc_info.value.source == "identity"

    async def test_gate_treats_non_json_identity_as_unresolved(self, provider, fake_session, app_context):
        fake_session.add("GET", "https://auth.test/auth/v1/user", FakeResponse(200, text="<html>login</html>"))
        gate = AuthorizationGate(provider, app_context.admins, CRON_SECRET)

        with pytest.raises(AuthorizationError):
            await gate.authorize(f"Bearer {ADMIN_TOKEN}", None)
        principal = await gate.authorize(f"Bearer {ADMIN_TOKEN}", CRON_SECRET)
        assert principal.kind == "cron"
