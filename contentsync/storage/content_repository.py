"""
Content Repository
==================

Dedup-aware persistence for the unified content store. Every write goes
through ``reconcile`` (sync jobs) or one of the admin transitions, which
append their audit entry inside the same transaction.
"""

import sqlite3
from datetime import datetime
from typing import List, Optional, Tuple

from ..database.models import (
    Actor,
    AuditAction,
    AuditLogEntry,
    ContentItem,
    ContentStatus,
    ContentType,
    ReconcileOutcome,
    ReconcilePolicy,
    policy_for,
    utc_now,
)
from ..database.connection import DatabaseConnection
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import (
    ErrorCode,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
)
from .audit_repository import AuditRepository

_COLUMNS = (
    "content_type, dedup_key, title, slug, excerpt, body, image_url, source, "
    "source_url, category, platform, status, published_at, metadata, "
    "created_at, updated_at"
)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class ContentRepository:
    """Repository for content items with per-type dedup policies."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.logger = get_logger_for_component("content_repository")

    def _row_values(self, item: ContentItem, now: datetime) -> tuple:
        return (
            item.content_type.value,
            item.dedup_key,
            item.title,
            item.slug,
            item.excerpt,
            item.body,
            item.image_url,
            item.source.value,
            item.source_url,
            item.category,
            item.platform,
            item.status.value,
            _iso(item.published_at),
            item.metadata_json(),
            _iso(item.created_at or now),
            _iso(now),
        )

    def reconcile(
        self, item: ContentItem, policy: Optional[ReconcilePolicy] = None
    ) -> ReconcileOutcome:
        """Store an item according to its dedup policy.

        Args:
            item: Normalized item
            policy: Override for the content type's declared policy

        Returns:
            Whether the item was inserted, updated or skipped

        Raises:
            PersistenceError: If the write fails
            ValueError: If the item has no value for its dedup field
        """
        policy = policy or policy_for(item.content_type).reconcile
        try:
            if policy == ReconcilePolicy.SKIP_IF_EXISTS:
                return self._insert_or_skip(item)
            return self._upsert(item)
        except sqlite3.Error as e:
            raise PersistenceError(
                f"Failed to store {item.content_type.value} '{item.slug}': {e}",
                error_code=ErrorCode.DATABASE_ERROR,
                context={"content_type": item.content_type.value, "slug": item.slug},
            ) from e

    def _insert_or_skip(self, item: ContentItem) -> ReconcileOutcome:
        now = utc_now()
        with self.db.transaction() as conn:
            cursor = conn.execute(
                f"""
                INSERT INTO content_items ({_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(content_type, dedup_key) DO NOTHING
                """,
                self._row_values(item, now),
            )
            inserted = cursor.rowcount == 1

        if inserted:
            self.logger.debug(f"Inserted {item}")
            return ReconcileOutcome.INSERTED
        self.logger.debug(f"Skipped existing {item}")
        return ReconcileOutcome.SKIPPED

    def _upsert(self, item: ContentItem) -> ReconcileOutcome:
        now = utc_now()
        with self.db.transaction() as conn:
            existing = conn.execute(
                "SELECT id FROM content_items WHERE content_type = ? AND dedup_key = ?",
                (item.content_type.value, item.dedup_key),
            ).fetchone()

            if existing is None:
                conn.execute(
                    f"""
                    INSERT INTO content_items ({_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    self._row_values(item, now),
                )
                outcome = ReconcileOutcome.INSERTED
            else:
                # status and created_at belong to the review workflow
                conn.execute(
                    """
                    UPDATE content_items
                    SET title = ?, slug = ?, excerpt = ?, body = ?, image_url = ?,
                        source = ?, source_url = ?, category = ?, platform = ?,
                        metadata = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (
                        item.title,
                        item.slug,
                        item.excerpt,
                        item.body,
                        item.image_url,
                        item.source.value,
                        item.source_url,
                        item.category,
                        item.platform,
                        item.metadata_json(),
                        _iso(now),
                        existing["id"],
                    ),
                )
                outcome = ReconcileOutcome.UPDATED

        self.logger.debug(f"{outcome.value.capitalize()} {item}")
        return outcome

    def create(self, item: ContentItem, actor: Actor) -> ContentItem:
        """Manually create an item on behalf of an admin, with audit entry."""
        now = utc_now()
        try:
            with self.db.transaction() as conn:
                cursor = conn.execute(
                    f"""
                    INSERT INTO content_items ({_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    self._row_values(item, now),
                )
                item_id = cursor.lastrowid
                AuditRepository.append_in(
                    conn,
                    AuditLogEntry.for_actor(
                        actor, AuditAction.CREATE, item.content_type.value, item_id,
                        {"slug": item.slug},
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise PersistenceError(
                f"Item with key '{item.dedup_key}' already exists",
                error_code=ErrorCode.DATABASE_CONSTRAINT,
            ) from e
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to create item: {e}") from e

        return self.get(item.content_type, item_id)

    def get(self, content_type: ContentType, item_id: int) -> Optional[ContentItem]:
        try:
            row = self.db.execute_one(
                "SELECT * FROM content_items WHERE content_type = ? AND id = ?",
                (ContentType(content_type).value, item_id),
            )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read item {item_id}: {e}") from e
        return ContentItem.from_db_row(row) if row else None

    def get_by_dedup_key(self, content_type: ContentType, key: str) -> Optional[ContentItem]:
        try:
            row = self.db.execute_one(
                "SELECT * FROM content_items WHERE content_type = ? AND dedup_key = ?",
                (ContentType(content_type).value, key),
            )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read item '{key}': {e}") from e
        return ContentItem.from_db_row(row) if row else None

    def list_items(
        self,
        content_type: Optional[ContentType] = None,
        status: Optional[ContentStatus] = None,
        limit: int = 100,
    ) -> List[ContentItem]:
        """List items newest first, optionally filtered by type and status."""
        clauses = []
        params: list = []
        if content_type is not None:
            clauses.append("content_type = ?")
            params.append(ContentType(content_type).value)
        if status is not None:
            clauses.append("status = ?")
            params.append(ContentStatus(status).value)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        params.append(limit)

        try:
            rows = self.db.execute_query(
                f"SELECT * FROM content_items {where} ORDER BY created_at DESC, id DESC LIMIT ?",
                tuple(params),
            )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to list items: {e}") from e
        return [ContentItem.from_db_row(row) for row in rows]

    def list_drafts(self, limit: int = 100) -> List[ContentItem]:
        """Review queue: drafts of every content type, newest first."""
        return self.list_items(status=ContentStatus.DRAFT, limit=limit)

    def count_by_status(self) -> List[Tuple[str, str, int]]:
        rows = self.db.execute_query(
            """
            SELECT content_type, status, COUNT(*) AS total
            FROM content_items GROUP BY content_type, status
            ORDER BY content_type, status
            """
        )
        return [(row["content_type"], row["status"], row["total"]) for row in rows]

    def publish(self, content_type: ContentType, item_id: int, actor: Actor) -> ContentItem:
        """Promote a draft to published and audit it.

        Raises:
            NotFoundError: No such item
            InvalidTransitionError: Item is already published
        """
        content_type = ContentType(content_type)
        now = utc_now()
        try:
            with self.db.transaction() as conn:
                row = conn.execute(
                    "SELECT id, status, slug FROM content_items WHERE content_type = ? AND id = ?",
                    (content_type.value, item_id),
                ).fetchone()
                if row is None:
                    raise NotFoundError(content_type.value, item_id)
                if row["status"] != ContentStatus.DRAFT.value:
                    raise InvalidTransitionError(item_id, row["status"], ContentStatus.PUBLISHED.value)

                conn.execute(
                    "UPDATE content_items SET status = ?, published_at = ?, updated_at = ? WHERE id = ?",
                    (ContentStatus.PUBLISHED.value, _iso(now), _iso(now), item_id),
                )
                AuditRepository.append_in(
                    conn,
                    AuditLogEntry.for_actor(
                        actor, AuditAction.PUBLISH, content_type.value, item_id,
                        {"slug": row["slug"]},
                    ),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to publish item {item_id}: {e}") from e

        self.logger.info(f"Published {content_type.value} {item_id}", extra={"actor": actor.user_id})
        return self.get(content_type, item_id)

    def delete(self, content_type: ContentType, item_id: int, actor: Actor) -> None:
        """Remove an item (draft or published) and audit it.

        Raises:
            NotFoundError: No such item
        """
        content_type = ContentType(content_type)
        try:
            with self.db.transaction() as conn:
                row = conn.execute(
                    "SELECT id, status, slug FROM content_items WHERE content_type = ? AND id = ?",
                    (content_type.value, item_id),
                ).fetchone()
                if row is None:
                    raise NotFoundError(content_type.value, item_id)

                conn.execute("DELETE FROM content_items WHERE id = ?", (item_id,))
                AuditRepository.append_in(
                    conn,
                    AuditLogEntry.for_actor(
                        actor, AuditAction.DELETE, content_type.value, item_id,
                        {"slug": row["slug"], "previous_status": row["status"]},
                    ),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to delete item {item_id}: {e}") from e

        self.logger.info(f"Deleted {content_type.value} {item_id}", extra={"actor": actor.user_id})
