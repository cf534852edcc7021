"""
Identity Providers
==================

Resolve a bearer token to a user identity. The HTTP provider asks the
hosted auth service; the static provider serves fixed tokens for local
development and tests.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from ..utils.logging import get_logger_for_component
from ..utils.exceptions import ErrorCode, UpstreamFetchError
from ..ingestion.http_client import TRANSPORT_ERRORS, network_error


@dataclass(frozen=True)
class IdentityUser:
    id: str
    email: Optional[str] = None


class IdentityProvider:
    """Base class: ``resolve`` returns the user for a token or None."""

    async def resolve(self, token: str) -> Optional[IdentityUser]:
        raise NotImplementedError


class StaticIdentityProvider(IdentityProvider):

    def __init__(self, tokens: Optional[Dict[str, IdentityUser]] = None):
        self.tokens = dict(tokens or {})

    async def resolve(self, token: str) -> Optional[IdentityUser]:
        return self.tokens.get(token)


class HTTPIdentityProvider(IdentityProvider):
    """Looks the token up at ``{base_url}/auth/v1/user``."""

    def __init__(self, base_url: str, api_key: Optional[str] = None, session_factory=None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.session_factory = session_factory
        self.logger = get_logger_for_component("auth.identity")

    async def resolve(self, token: str) -> Optional[IdentityUser]:
        if self.session_factory is None:
            from ..ingestion.http_client import create_session
            factory = create_session
        else:
            factory = self.session_factory

        headers = {"Authorization": f"Bearer {token}"}
        if self.api_key:
            headers["apikey"] = self.api_key
        url = f"{self.base_url}/auth/v1/user"

        try:
            async with factory() as session:
                async with session.get(url, headers=headers) as response:
                    if response.status in (401, 403, 404):
                        return None
                    if not 200 <= response.status < 300:
                        body = await response.text()
                        raise UpstreamFetchError(
                            f"Identity provider returned {response.status}",
                            source="identity",
                            status=response.status,
                            body=body,
                            error_code=ErrorCode.AUTH_IDENTITY_UNAVAILABLE,
                        )
                    try:
                        data = await response.json(content_type=None)
                    except ValueError as e:
                        raise UpstreamFetchError(
                            "Identity provider returned a non-JSON body",
                            source="identity",
                            status=response.status,
                            error_code=ErrorCode.AUTH_IDENTITY_UNAVAILABLE,
                        ) from e
        except TRANSPORT_ERRORS as e:
            raise network_error("identity", e, url) from e

        if not isinstance(data, dict) or not data.get("id"):
            return None
        return IdentityUser(id=str(data["id"]), email=data.get("email"))
