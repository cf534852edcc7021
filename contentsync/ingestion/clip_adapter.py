"""
Clip Adapter
============

Client for the clip/video API (Twitch Helix): top games, then recent clips
and archived broadcasts per game.
"""

from typing import Any, Dict, List, Optional

from ..config.settings import CatalogSettings
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import ConfigurationError, UpstreamFetchError
from .catalog_adapter import fetch_client_credentials_token
from .http_client import TRANSPORT_ERRORS, network_error, read_json
from .token_cache import TokenCache


class ClipAdapter:

    source = "twitch"

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
        self.logger = get_logger_for_component("ingestion.clips", source=self.source)

    async def _fetch_token(self):
        return await fetch_client_credentials_token(
            self.session, self.settings.token_url, self.client_id, self.client_secret, self.source
        )

    async def _get(self, path: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        if not self.client_id or not self.client_secret:
            raise ConfigurationError(
                "Clip source is not configured: set TWITCH_CLIENT_ID and TWITCH_CLIENT_SECRET",
                config_key="TWITCH_CLIENT_ID" if not self.client_id else "TWITCH_CLIENT_SECRET",
            )
        token = await self.token_cache.get_token(self._fetch_token)
        url = f"{self.settings.clips_api_url.rstrip('/')}/{path}"
        headers = {"Client-ID": self.client_id, "Authorization": f"Bearer {token}"}
        try:
            async with self.session.get(url, params=params, headers=headers) as response:
                data = await read_json(response, self.source)
        except TRANSPORT_ERRORS as e:
            raise network_error(self.source, e, url) from e
        return (data.get("data") or []) if isinstance(data, dict) else []

    async def top_games(self, first: int = 20) -> List[Dict[str, Any]]:
        return await self._get("games/top", {"first": str(first)})

    async def clips_for_game(self, game_id: str, first: int = 10) -> List[Dict[str, Any]]:
        return await self._get("clips", {"game_id": game_id, "first": str(first)})

    async def videos_for_game(self, game_id: str, first: int = 5) -> List[Dict[str, Any]]:
        return await self._get("videos", {"game_id": game_id, "type": "archive", "first": str(first)})

    async def fetch_game_media(self, game: Dict[str, Any], clips: int, videos: int) -> Dict[str, list]:
        """Clips and videos for one game.

        A failure fetching one list is logged and yields an empty list so
        the other list and the other games still go through.
        """
        result: Dict[str, list] = {"clips": [], "videos": [], "errors": []}
        for kind, fetch, count in (
            ("clips", self.clips_for_game, clips),
            ("videos", self.videos_for_game, videos),
        ):
            if count <= 0:
                continue
            try:
                result[kind] = await fetch(game["id"], count)
            except UpstreamFetchError as e:
                self.logger.warning(f"Failed to fetch {kind} for game {game.get('name')}: {e}")
                result["errors"].append(f"{kind} for {game.get('name')}: {e.message}")
        return result
