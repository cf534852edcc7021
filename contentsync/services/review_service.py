"""
Review Service
==============

Draft/publish workflow shared by the CLI and the HTTP API. State changes
go through the content repository, which appends the audit entry in the
same transaction as the change.
"""

from typing import Any, Dict, List, Optional

from ..database.models import (
    Actor,
    AuditLogEntry,
    ContentItem,
    ContentSource,
    ContentStatus,
    ContentType,
)
from ..storage.audit_repository import AuditRepository
from ..storage.content_repository import ContentRepository
from ..ingestion.content_cleaner import slugify
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import ValidationError


class ReviewService:

    def __init__(self, content: ContentRepository, audit: AuditRepository):
        self.content = content
        self.audit = audit
        self.logger = get_logger_for_component("services.review")

    @staticmethod
    def parse_content_type(value: str) -> ContentType:
        try:
            return ContentType(value)
        except ValueError:
            raise ValidationError(
                f"Unknown content type '{value}'",
                field_name="content_type",
                user_message=f"Unknown content type '{value}'",
            ) from None

    def list_drafts(self, content_type: Optional[str] = None, limit: int = 100) -> List[ContentItem]:
        """Review queue, newest first; optionally one content type only."""
        if content_type:
            return self.content.list_items(
                self.parse_content_type(content_type), ContentStatus.DRAFT, limit
            )
        return self.content.list_drafts(limit)

    def publish(self, content_type: str, item_id: int, actor: Actor) -> ContentItem:
        item = self.content.publish(self.parse_content_type(content_type), item_id, actor)
        self.logger.info(f"{actor.user_id} published {content_type} {item_id}")
        return item

    def delete(self, content_type: str, item_id: int, actor: Actor) -> None:
        self.content.delete(self.parse_content_type(content_type), item_id, actor)
        self.logger.info(f"{actor.user_id} deleted {content_type} {item_id}")

    def create_manual(self, data: Dict[str, Any], actor: Actor) -> ContentItem:
        """Create a hand-written item as a draft.

        Raises:
            ValidationError: Missing title or unknown content type
        """
        title = (data.get("title") or "").strip()
        if not title:
            raise ValidationError("Title is required", field_name="title")

        item = ContentItem(
            content_type=self.parse_content_type(data.get("content_type", "news")),
            title=title,
            slug=data.get("slug") or slugify(title)[:100],
            excerpt=data.get("excerpt"),
            body=data.get("body"),
            image_url=data.get("image_url"),
            source=ContentSource.MANUAL,
            source_url=data.get("source_url"),
            category=data.get("category"),
            platform=data.get("platform"),
            status=ContentStatus.DRAFT,
        )
        return self.content.create(item, actor)

    def history(self, content_type: str, item_id: int) -> List[AuditLogEntry]:
        return self.audit.for_entity(self.parse_content_type(content_type).value, item_id)
