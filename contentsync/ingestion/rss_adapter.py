"""
RSS Adapter
===========

Fetches one RSS/Atom feed with aiohttp and parses it with feedparser into a
lazy sequence of RawItem records. Normalization (required fields,
classification, excerpts) happens later in the processing layer.
"""

import calendar
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

import feedparser

from ..database.models import RawItem
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import ErrorCode, UpstreamFetchError
from .http_client import TRANSPORT_ERRORS, network_error, read_text

FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml, */*"


class RSSAdapter:
    """Adapter for a single named feed."""

    def __init__(self, session, source: str, feed_url: str):
        self.session = session
        self.source = source
        self.feed_url = feed_url
        self.logger = get_logger_for_component("ingestion.rss", source=source)

    async def fetch(self) -> Iterator[RawItem]:
        """Download and parse the feed.

        Returns:
            Generator of RawItem, one per feed entry

        Raises:
            UpstreamFetchError: Network failure, non-2xx or unparseable feed
        """
        try:
            async with self.session.get(self.feed_url, headers={"Accept": FEED_ACCEPT}) as response:
                content = await read_text(response, self.source)
        except TRANSPORT_ERRORS as e:
            raise network_error(self.source, e, self.feed_url) from e

        parsed = feedparser.parse(content)
        if parsed.bozo and not parsed.entries:
            raise UpstreamFetchError(
                f"{self.source} feed could not be parsed: {parsed.get('bozo_exception')}",
                source=self.source,
                error_code=ErrorCode.UPSTREAM_PARSE_ERROR,
            )
        if parsed.bozo:
            self.logger.info(f"Feed has parse warnings but contains entries: {self.feed_url}")

        self.logger.debug(f"Parsed {len(parsed.entries)} entries from {self.feed_url}")
        return self._iter_entries(parsed.entries)

    def _iter_entries(self, entries) -> Iterator[RawItem]:
        for entry in entries:
            yield self.entry_to_raw(entry)

    @classmethod
    def entry_to_raw(cls, entry: Any) -> RawItem:
        return RawItem(
            title=(entry.get("title") or "").strip() or None,
            link=(entry.get("link") or "").strip() or None,
            published=cls._parse_date(entry),
            body=cls._extract_body(entry),
            summary=entry.get("summary") or None,
            image_url=cls._extract_image(entry),
        )

    @staticmethod
    def _extract_body(entry: Any) -> Optional[str]:
        # feedparser exposes content:encoded and Atom <content> as entry.content
        content = entry.get("content")
        if isinstance(content, list) and content:
            value = content[0].get("value")
            if value:
                return value
        return None

    @staticmethod
    def _extract_image(entry: Any) -> Optional[str]:
        for enclosure in entry.get("enclosures") or []:
            href = enclosure.get("href") or enclosure.get("url")
            if href:
                return href
        for media in entry.get("media_content") or []:
            if media.get("url"):
                return media["url"]
        for thumb in entry.get("media_thumbnail") or []:
            if thumb.get("url"):
                return thumb["url"]
        return None

    @staticmethod
    def _parse_date(entry: Any) -> Optional[datetime]:
        for field in ("published_parsed", "updated_parsed", "created_parsed"):
            date_tuple = entry.get(field)
            if date_tuple:
                try:
                    return datetime.fromtimestamp(calendar.timegm(date_tuple), tz=timezone.utc)
                except (ValueError, OverflowError):
                    continue
        return None
