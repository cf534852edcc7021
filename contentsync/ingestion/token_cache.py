"""
Token Cache
===========

Process-local cache for an OAuth bearer token. The token is reused while it
is more than ``margin_seconds`` away from expiry and refreshed lazily on the
first request after that. Concurrent callers share a single refresh.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple

from ..utils.logging import get_logger_for_component

TokenFetcher = Callable[[], Awaitable[Tuple[str, float]]]


@dataclass
class CachedToken:
    value: str
    expires_at: float


class TokenCache:

    def __init__(self, name: str = "oauth", margin_seconds: float = 60, clock: Callable[[], float] = time.time):
        self.name = name
        self.margin_seconds = margin_seconds
        self.clock = clock
        self._token: Optional[CachedToken] = None
        self._lock = asyncio.Lock()
        self.refresh_count = 0
        self.logger = get_logger_for_component("ingestion.token_cache", source=name)

    @property
    def token(self) -> Optional[CachedToken]:
        return self._token

    def is_fresh(self, now: Optional[float] = None) -> bool:
        if self._token is None:
            return False
        now = self.clock() if now is None else now
        return now < self._token.expires_at - self.margin_seconds

    def store(self, value: str, expires_at: float) -> None:
        self._token = CachedToken(value=value, expires_at=expires_at)

    def invalidate(self) -> None:
        self._token = None

    async def get_token(self, fetcher: TokenFetcher) -> str:
        """Return a valid token, awaiting ``fetcher`` only when stale.

        Args:
            fetcher: Coroutine function returning ``(token, expires_in_seconds)``
        """
        if self.is_fresh():
            return self._token.value

        async with self._lock:
            # another caller may have refreshed while we waited
            if self.is_fresh():
                return self._token.value

            value, expires_in = await fetcher()
            self.store(value, self.clock() + float(expires_in))
            self.refresh_count += 1
            self.logger.info(f"Refreshed {self.name} token, expires in {int(expires_in)}s")
            return value
