"""
Catalog Adapter
===============

Client for the OAuth-protected game catalog (IGDB). Tokens come from a
client-credentials grant and are held in a TokenCache owned by the
application context, so one process performs one refresh per token
lifetime.
"""

import time
from typing import Any, Dict, List, Optional, Tuple

from ..config.settings import CatalogSettings
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import ConfigurationError, ErrorCode, UpstreamFetchError
from .http_client import TRANSPORT_ERRORS, network_error
from .token_cache import TokenCache

DEFAULT_IMAGE_SIZE = "t_cover_big"


async def fetch_client_credentials_token(
    session, token_url: str, client_id: str, client_secret: str, source: str
) -> Tuple[str, float]:
    """Run a client-credentials grant and return ``(access_token, expires_in)``."""
    params = {
        "client_id": client_id,
        "client_secret": client_secret,
        "grant_type": "client_credentials",
    }
    try:
        async with session.post(token_url, params=params) as response:
            if not 200 <= response.status < 300:
                body = await response.text()
                raise UpstreamFetchError(
                    f"Failed to get {source} token: {response.status} {body[:200]}",
                    source=source,
                    status=response.status,
                    body=body,
                    error_code=ErrorCode.UPSTREAM_AUTH_FAILED,
                )
            data = await response.json(content_type=None)
    except TRANSPORT_ERRORS as e:
        raise network_error(source, e, token_url) from e

    try:
        return data["access_token"], float(data["expires_in"])
    except (KeyError, TypeError, ValueError) as e:
        raise UpstreamFetchError(
            f"{source} token response missing access_token/expires_in",
            source=source,
            error_code=ErrorCode.UPSTREAM_PARSE_ERROR,
        ) from e


def build_image_url(
    image_id: Optional[str],
    size: str = DEFAULT_IMAGE_SIZE,
    settings: Optional[CatalogSettings] = None,
) -> str:
    """Build a CDN image URL from an image identifier without any network call.

    Returns the default image URL when ``image_id`` is empty.
    """
    settings = settings or CatalogSettings()
    if not image_id:
        return settings.default_image_url
    return settings.image_url_template.format(size=size, image_id=image_id)


class CatalogAdapter:
    """Text-query client for the catalog API."""

    source = "igdb"

    def __init__(
        self,
        session,
        client_id: Optional[str],
        client_secret: Optional[str],
        token_cache: TokenCache,
        settings: Optional[CatalogSettings] = None,
    ):
        self.session = session
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_cache = token_cache
        self.settings = settings or CatalogSettings()
        self.logger = get_logger_for_component("ingestion.catalog", source=self.source)

    def _require_credentials(self) -> None:
        if not self.client_id:
            raise ConfigurationError(
                "Catalog source is not configured: set IGDB_CLIENT_ID", config_key="IGDB_CLIENT_ID"
            )
        if not self.client_secret:
            raise ConfigurationError(
                "Catalog source is not configured: set IGDB_CLIENT_SECRET",
                config_key="IGDB_CLIENT_SECRET",
            )

    async def _fetch_token(self) -> Tuple[str, float]:
        return await fetch_client_credentials_token(
            self.session, self.settings.token_url, self.client_id, self.client_secret, self.source
        )

    async def get_access_token(self) -> str:
        """Return a cached or freshly granted bearer token.

        Raises:
            ConfigurationError: Credentials are not set
            UpstreamFetchError: Token endpoint failed
        """
        self._require_credentials()
        return await self.token_cache.get_token(self._fetch_token)

    async def query(self, endpoint: str, body: str) -> Any:
        """POST a text query to a catalog endpoint and return the decoded JSON.

        Args:
            endpoint: Endpoint name (``games``, ``release_dates``) or absolute URL
            body: Query text

        Raises:
            ConfigurationError: Credentials are not set
            UpstreamFetchError: Non-2xx response or transport failure
        """
        token = await self.get_access_token()
        if endpoint.startswith("http"):
            url = endpoint
        else:
            url = f"{self.settings.api_url.rstrip('/')}/{endpoint.lstrip('/')}"

        headers = {
            "Client-ID": self.client_id,
            "Authorization": f"Bearer {token}",
            "Content-Type": "text/plain",
        }
        try:
            async with self.session.post(url, data=body, headers=headers) as response:
                if not 200 <= response.status < 300:
                    text = await response.text()
                    raise UpstreamFetchError(
                        f"Catalog request failed: {response.status} {text[:200]}",
                        source=self.source,
                        status=response.status,
                        body=text,
                    )
                return await response.json(content_type=None)
        except TRANSPORT_ERRORS as e:
            raise network_error(self.source, e, url) from e

    @staticmethod
    def upcoming_releases_query(limit: int, days_ahead: int, now: Optional[float] = None) -> str:
        start = int(now if now is not None else time.time())
        end = start + days_ahead * 24 * 60 * 60
        return (
            "fields id, date, platform.name, region, "
            "game.id, game.name, game.slug, game.summary, game.cover.image_id; "
            f"where date >= {start} & date < {end} & game != null & platform != null; "
            "sort date asc; "
            f"limit {limit};"
        )

    async def fetch_upcoming_releases(self, limit: int = 50, days_ahead: int = 90) -> List[Dict[str, Any]]:
        releases = await self.query("release_dates", self.upcoming_releases_query(limit, days_ahead))
        if not isinstance(releases, list):
            raise UpstreamFetchError(
                "Catalog returned a non-list release payload",
                source=self.source,
                error_code=ErrorCode.UPSTREAM_PARSE_ERROR,
            )
        self.logger.info(f"Fetched {len(releases)} upcoming releases")
        return releases

    def image_url(self, image_id: Optional[str], size: str = DEFAULT_IMAGE_SIZE) -> str:
        return build_image_url(image_id, size, self.settings)
