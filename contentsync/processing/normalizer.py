"""
Normalizer
==========

Maps provider records onto ContentItem. Each source has one mapping
function; records that lack mandatory fields map to ``None`` and are
counted as skipped by the caller.
"""

import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from ..database.models import (
    ContentItem,
    ContentSource,
    ContentStatus,
    ContentType,
    NewsCategory,
    RawItem,
    utc_now,
)
from ..ingestion.content_cleaner import ContentCleaner
from ..ingestion.catalog_adapter import build_image_url

UPDATE_KEYWORDS = ("patch", "update", "hotfix", "version")

REGION_MAP = {
    1: "Europe",
    2: "North America",
    3: "Australia",
    4: "New Zealand",
    5: "Japan",
    6: "China",
    7: "Asia",
    8: "Worldwide",
}

PLATFORM_NAMES = {
    "playstation": "PlayStation",
    "xbox": "Xbox",
    "nintendo": "Nintendo",
}

THUMBNAIL_WIDTH = "1280"
THUMBNAIL_HEIGHT = "720"

_cleaner = ContentCleaner()


def _status(auto_publish: bool) -> ContentStatus:
    return ContentStatus.PUBLISHED if auto_publish else ContentStatus.DRAFT


def _slug(text: str, max_length: int = 100) -> str:
    return ContentCleaner.slugify(text)[:max_length].strip("-") or ContentCleaner.slugify(None)


def classify_title(title: str) -> NewsCategory:
    """News category from title keywords."""
    lowered = title.lower()
    if any(keyword in lowered for keyword in UPDATE_KEYWORDS):
        return NewsCategory.GAME_UPDATE
    return NewsCategory.STUDIO_ANNOUNCEMENT


def normalize_feed_entry(
    raw: RawItem,
    source: str,
    auto_publish: bool = False,
    cleaner: ContentCleaner = _cleaner,
) -> Optional[ContentItem]:
    """Platform news post from a feed entry, or None when title/link are missing."""
    if not raw.title or not raw.link:
        return None

    body = raw.body or raw.summary or ""
    return ContentItem(
        content_type=ContentType.NEWS,
        title=raw.title,
        slug=_slug(raw.title),
        excerpt=cleaner.excerpt_from_html(body),
        body=body,
        image_url=raw.image_url or cleaner.first_image(body),
        source=ContentSource(source),
        source_url=raw.link,
        category=classify_title(raw.title).value,
        platform=PLATFORM_NAMES.get(source, source),
        status=_status(auto_publish),
        published_at=raw.published or utc_now(),
    )


def release_slug(title: str, platform: Optional[str] = None) -> str:
    base = ContentCleaner.SLUG_PATTERN.sub("-", title.lower()).strip("-")[:80]
    if platform:
        platform_slug = ContentCleaner.SLUG_PATTERN.sub("-", platform.lower())[:20]
        return f"{base}-{platform_slug}"
    return base


def normalize_catalog_release(
    record: Dict[str, Any],
    auto_publish: bool = False,
    image_url: Callable[[Optional[str]], str] = build_image_url,
) -> Optional[ContentItem]:
    """Release from a primary catalog release_date record."""
    game = record.get("game")
    if not isinstance(game, dict) or not game.get("name") or record.get("date") is None:
        return None

    platform = (record.get("platform") or {}).get("name") or "Unknown"
    region = REGION_MAP.get(record.get("region"), "Unknown")
    release_date = datetime.fromtimestamp(int(record["date"]), tz=timezone.utc).date().isoformat()
    cover = (game.get("cover") or {}).get("image_id")

    return ContentItem(
        content_type=ContentType.RELEASE,
        title=game["name"],
        slug=release_slug(game["name"], platform),
        excerpt=_cleaner.make_excerpt(game.get("summary") or ""),
        body=game.get("summary"),
        image_url=image_url(cover),
        source=ContentSource.IGDB,
        source_url=f"https://www.igdb.com/games/{game.get('slug') or release_slug(game['name'])}",
        platform=platform,
        status=_status(auto_publish),
        metadata={
            "release_date": release_date,
            "region": region,
            "source_id": str(record.get("id", "")),
        },
    )


def normalize_secondary_release(
    game: Dict[str, Any], auto_publish: bool = False, default_image: Optional[str] = None
) -> Optional[ContentItem]:
    """Release from a secondary catalog game record; None without name or date."""
    if not game.get("name") or not game.get("released"):
        return None

    platforms = ", ".join(
        p["platform"]["name"]
        for p in game.get("platforms") or []
        if isinstance(p, dict) and (p.get("platform") or {}).get("name")
    ) or "PC"
    genres = [g["name"] for g in game.get("genres") or [] if isinstance(g, dict) and g.get("name")]
    description = game.get("description_raw") or f"{game['name']} is an upcoming game releasing soon."

    return ContentItem(
        content_type=ContentType.RELEASE,
        title=game["name"],
        slug=_slug(game["name"]),
        excerpt=_cleaner.make_excerpt(description),
        body=description,
        image_url=game.get("background_image") or default_image or build_image_url(None),
        source=ContentSource.RAWG,
        source_url=game.get("website") or None,
        platform=platforms,
        status=_status(auto_publish),
        metadata={
            "release_date": game["released"],
            "genre": ", ".join(genres) or "Action",
            "source_id": str(game.get("id", "")),
        },
    )


def normalize_seed_release(demo: Dict[str, Any], auto_publish: bool = False) -> ContentItem:
    return ContentItem(
        content_type=ContentType.RELEASE,
        title=demo["title"],
        slug=demo["slug"],
        excerpt=_cleaner.make_excerpt(demo.get("summary") or ""),
        body=demo.get("summary"),
        image_url=build_image_url(demo.get("image_id")),
        source=ContentSource.SEED,
        platform=demo.get("platform"),
        status=_status(auto_publish),
        metadata={"release_date": demo["release_date"], "demo": True},
    )


def format_duration(seconds: float) -> str:
    """Seconds to ``m:ss`` or ``h:mm:ss``."""
    total = int(seconds)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


_HMS = re.compile(r"(\d+)h(\d+)m(\d+)s")
_MS = re.compile(r"(\d+)m(\d+)s")


def parse_duration(duration: str) -> str:
    """Helix duration strings (``1h2m3s``) to ``h:mm:ss``; unknown formats pass through."""
    match = _HMS.search(duration or "")
    if match:
        hours, minutes, seconds = match.groups()
        return f"{hours}:{int(minutes):02d}:{int(seconds):02d}"
    match = _MS.search(duration or "")
    if match:
        minutes, seconds = match.groups()
        return f"{minutes}:{int(seconds):02d}"
    return duration


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def normalize_clip(clip: Dict[str, Any], game: Dict[str, Any], auto_publish: bool = False) -> Optional[ContentItem]:
    if not clip.get("title") or not clip.get("id") or not clip.get("url"):
        return None
    creator = clip.get("creator_name") or "unknown"
    return ContentItem(
        content_type=ContentType.VIDEO,
        title=clip["title"],
        slug=_slug(f"{clip['title']}-{clip['id']}"),
        excerpt=f"{game.get('name', 'Game')} clip by {creator}",
        image_url=clip.get("thumbnail_url"),
        source=ContentSource.TWITCH,
        source_url=clip["url"],
        category="Clips",
        status=_status(auto_publish),
        published_at=_parse_timestamp(clip.get("created_at")) or utc_now(),
        metadata={
            "duration": format_duration(clip.get("duration") or 0),
            "creator": creator,
            "game": game.get("name"),
            "embed_url": clip.get("embed_url"),
        },
    )


def normalize_video(video: Dict[str, Any], game: Dict[str, Any], auto_publish: bool = False) -> Optional[ContentItem]:
    if not video.get("title") or not video.get("id") or not video.get("url"):
        return None
    creator = video.get("user_name") or "unknown"
    thumbnail = (video.get("thumbnail_url") or "").replace("%{width}", THUMBNAIL_WIDTH).replace(
        "%{height}", THUMBNAIL_HEIGHT
    )
    return ContentItem(
        content_type=ContentType.VIDEO,
        title=video["title"],
        slug=_slug(f"{video['title']}-{video['id']}"),
        excerpt=_cleaner.make_excerpt(
            video.get("description") or f"{game.get('name', 'Game')} gameplay by {creator}"
        ),
        image_url=thumbnail or None,
        source=ContentSource.TWITCH,
        source_url=video["url"],
        category="Gameplay",
        status=_status(auto_publish),
        published_at=_parse_timestamp(video.get("published_at")) or utc_now(),
        metadata={
            "duration": parse_duration(video.get("duration") or ""),
            "creator": creator,
            "game": game.get("name"),
        },
    )
