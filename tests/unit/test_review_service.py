"""
Tests for ReviewService
=======================
"""

import pytest

from contentsync.database.models import AuditAction, ContentSource, ContentStatus, ContentType
from contentsync.services.review_service import ReviewService
from contentsync.utils.exceptions import ValidationError


@pytest.fixture
def review(app_context):
    return ReviewService(app_context.content, app_context.audit)


class TestReviewService:

    def test_unknown_content_type(self, review, admin_actor):
        with pytest.raises(ValidationError) as exc_info:
            review.publish("podcast", 1, admin_actor)
        assert exc_info.value.context["field_name"] == "content_type"

    def test_filter_drafts_by_type(self, review, app_context, make_item):
        app_context.content.reconcile(make_item())
        app_context.content.reconcile(make_item(content_type=ContentType.VIDEO, slug="clip", source=ContentSource.TWITCH))

        assert [d.content_type for d in review.list_drafts("video")] == [ContentType.VIDEO]
        assert len(review.list_drafts()) == 2

    def test_publish_then_history(self, review, app_context, make_item, admin_actor):
        app_context.content.reconcile(make_item())
        item_id = review.list_drafts()[0].id

        item = review.publish("news", item_id, admin_actor)

        assert item.status == ContentStatus.PUBLISHED
        assert [e.action for e in review.history("news", item_id)] == [AuditAction.PUBLISH]

    def test_create_manual_draft(self, review, admin_actor):
        item = review.create_manual({"title": "Editor's Pick: Top 10 Indies", "content_type": "review"}, admin_actor)

        assert item.id is not None
        assert item.status == ContentStatus.DRAFT
        assert item.source == ContentSource.MANUAL
        assert item.slug == "editor-s-pick-top-10-indies"
        assert [e.action for e in review.history("review", item.id)] == [AuditAction.CREATE]

    def test_create_manual_requires_title(self, review, admin_actor):
        with pytest.raises(ValidationError):
            review.create_manual({"title": "  "}, admin_actor)
