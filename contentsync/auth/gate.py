"""
Authorization Gate & CORS Policy
================================

A request is authorized by either an active admin's bearer token or the
shared automation secret in ``X-Cron-Secret``. Rejections carry one
generic message; the specific reason is only logged.
"""

import hmac
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..database.models import Actor, AdminIdentity
from ..storage.admin_repository import AdminRepository
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import AuthorizationError, UpstreamFetchError
from .identity import IdentityProvider

CRON_SECRET_HEADER = "X-Cron-Secret"
ALLOWED_METHODS = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
ALLOWED_HEADERS = "authorization, content-type, x-cron-secret, x-client-info, apikey, x-request-id"


@dataclass
class Principal:
    """Who passed the gate: an admin, or the automation secret holder."""

    kind: str
    admin: Optional[AdminIdentity] = None

    @property
    def is_admin(self) -> bool:
        return self.admin is not None

    def actor(self, ip_address: Optional[str] = None, user_agent: Optional[str] = None) -> Actor:
        """Audit identity of the admin behind this request.

        Raises:
            AuthorizationError: The automation secret never acts as an admin
        """
        if self.admin is None:
            raise AuthorizationError("automation principal has no admin identity")
        return Actor.from_admin(self.admin, ip_address, user_agent)


class AuthorizationGate:

    def __init__(
        self,
        identity_provider: Optional[IdentityProvider],
        admin_repository: AdminRepository,
        cron_secret: Optional[str],
    ):
        self.identity_provider = identity_provider
        self.admin_repository = admin_repository
        self.cron_secret = cron_secret or None
        self.logger = get_logger_for_component("auth.gate")

    def check_cron_secret(self, supplied: Optional[str]) -> bool:
        # no configured secret means this path is closed
        if not self.cron_secret or not supplied:
            return False
        return hmac.compare_digest(supplied.encode("utf-8"), self.cron_secret.encode("utf-8"))

    async def resolve_admin(self, authorization: Optional[str]) -> Optional[AdminIdentity]:
        if not authorization or not authorization.startswith("Bearer "):
            return None
        token = authorization[len("Bearer "):].strip()
        if not token or self.identity_provider is None:
            return None

        try:
            user = await self.identity_provider.resolve(token)
        except UpstreamFetchError as e:
            self.logger.warning(f"Identity provider unavailable: {e}")
            return None
        if user is None:
            self.logger.info("Bearer token did not resolve to a user")
            return None

        admin = self.admin_repository.get_active(user.id)
        if admin is None:
            self.logger.info(f"User {user.id} is not an active admin")
        return admin

    async def authorize(self, authorization: Optional[str], cron_secret: Optional[str]) -> Principal:
        """Check both paths; either one suffices.

        Raises:
            AuthorizationError: Neither path succeeded
        """
        admin = await self.resolve_admin(authorization)
        if admin is not None:
            return Principal(kind="admin", admin=admin)

        if self.check_cron_secret(cron_secret):
            return Principal(kind="cron")

        if cron_secret and not self.cron_secret:
            reason = "cron secret supplied but none configured"
        elif cron_secret:
            reason = "cron secret mismatch"
        elif authorization:
            reason = "bearer token not an active admin"
        else:
            reason = "no credentials"
        self.logger.warning(f"Rejected request: {reason}")
        raise AuthorizationError(reason)


class CorsPolicy:
    """Origin allow-list. Never answers with a wildcard origin."""

    def __init__(self, allowed_origins: List[str]):
        self.allowed_origins = [o for o in allowed_origins if o and o != "*"]

    def is_allowed(self, origin: Optional[str]) -> bool:
        return bool(origin) and origin in self.allowed_origins

    def response_headers(self, origin: Optional[str]) -> Dict[str, str]:
        if not self.is_allowed(origin):
            return {}
        return {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Credentials": "true",
            "Vary": "Origin",
        }

    def preflight_headers(self, origin: Optional[str]) -> Dict[str, str]:
        headers = self.response_headers(origin)
        if headers:
            headers["Access-Control-Allow-Methods"] = ALLOWED_METHODS
            headers["Access-Control-Allow-Headers"] = ALLOWED_HEADERS
            headers["Access-Control-Max-Age"] = "600"
        return headers
