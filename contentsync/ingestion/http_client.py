"""
HTTP Session Helpers
====================

aiohttp session factory plus the response checks shared by every adapter.
"""

import asyncio
import ssl
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import aiohttp
import certifi

from ..utils.exceptions import ErrorCode, UpstreamFetchError

USER_AGENT = "ContentSync/1.0"


@asynccontextmanager
async def create_session(timeout: int = 30, max_concurrent: int = 5) -> AsyncIterator[aiohttp.ClientSession]:
    """Open a client session with certifi SSL, a connection cap and a total timeout."""
    ssl_context = ssl.create_default_context(cafile=certifi.where())
    connector = aiohttp.TCPConnector(
        ssl=ssl_context,
        limit=max_concurrent * 2,
        limit_per_host=5,
    )
    client_timeout = aiohttp.ClientTimeout(total=timeout)

    async with aiohttp.ClientSession(
        connector=connector,
        timeout=client_timeout,
        headers={"User-Agent": USER_AGENT},
    ) as session:
        yield session


async def read_json(response, source: str) -> Any:
    """Return the JSON body of a 2xx response or raise UpstreamFetchError."""
    if not 200 <= response.status < 300:
        body = await response.text()
        raise UpstreamFetchError(
            f"{source} request failed: {response.status} {body[:200]}",
            source=source,
            status=response.status,
            body=body,
        )
    return await response.json(content_type=None)


async def read_text(response, source: str) -> str:
    if not 200 <= response.status < 300:
        body = await response.text()
        raise UpstreamFetchError(
            f"{source} request failed: HTTP {response.status}",
            source=source,
            status=response.status,
            body=body,
        )
    return await response.text()


def network_error(source: str, exc: BaseException, url: Optional[str] = None) -> UpstreamFetchError:
    """Wrap an aiohttp/asyncio transport error as an upstream failure."""
    if isinstance(exc, asyncio.TimeoutError):
        return UpstreamFetchError(
            f"{source} request timed out",
            source=source,
            error_code=ErrorCode.UPSTREAM_TIMEOUT,
            context={"url": url} if url else {},
        )
    return UpstreamFetchError(
        f"{source} network error: {exc}",
        source=source,
        error_code=ErrorCode.UPSTREAM_NETWORK_ERROR,
        context={"url": url} if url else {},
    )


TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError)
