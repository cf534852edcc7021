"""
Secondary catalog adapter (RAWG), used when the primary catalog fails.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from ..config.settings import CatalogSettings
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import ConfigurationError
from .http_client import TRANSPORT_ERRORS, network_error, read_json


class RawgAdapter:

    source = "rawg"

    def __init__(self, session, api_key: Optional[str], settings: Optional[CatalogSettings] = None,
                 page_size: int = 40):
        self.session = session
        self.api_key = api_key
        self.settings = settings or CatalogSettings()
        self.page_size = page_size
        self.logger = get_logger_for_component("ingestion.rawg", source=self.source)

    async def fetch_upcoming_releases(self, days_ahead: int = 90,
                                      today: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Games releasing between today and ``days_ahead`` days from now.

        Raises:
            ConfigurationError: RAWG_API_KEY is not set
            UpstreamFetchError: Non-2xx response or transport failure
        """
        if not self.api_key:
            raise ConfigurationError(
                "Secondary catalog is not configured: set RAWG_API_KEY", config_key="RAWG_API_KEY"
            )

        start = today or datetime.now(timezone.utc)
        end = start + timedelta(days=days_ahead)
        params = {
            "key": self.api_key,
            "dates": f"{start.date().isoformat()},{end.date().isoformat()}",
            "ordering": "released",
            "page_size": str(self.page_size),
        }
        url = f"{self.settings.secondary_api_url.rstrip('/')}/games"
        try:
            async with self.session.get(url, params=params) as response:
                data = await read_json(response, self.source)
        except TRANSPORT_ERRORS as e:
            raise network_error(self.source, e, url) from e

        results = (data.get("results") or []) if isinstance(data, dict) else []
        self.logger.info(f"Fetched {len(results)} upcoming games")
        return results
