"""
Audit Repository
================

Append-only access to the admin audit log.
"""

import json
import sqlite3
from typing import List, Optional

from ..database.models import AuditLogEntry
from ..database.connection import DatabaseConnection
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import PersistenceError


class AuditRepository:
    """Writes and reads audit entries. There is no update or delete."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.logger = get_logger_for_component("audit_repository")

    @staticmethod
    def append_in(conn: sqlite3.Connection, entry: AuditLogEntry) -> int:
        """Append an entry using a connection that is already in a transaction."""
        cursor = conn.execute(
            """
            INSERT INTO admin_audit_log (actor_user_id, actor_email, action, entity,
                                         entity_id, metadata, ip_address, user_agent, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.actor_user_id,
                entry.actor_email,
                entry.action.value,
                entry.entity,
                entry.entity_id,
                json.dumps(entry.metadata, default=str),
                entry.ip_address,
                entry.user_agent,
                entry.created_at.isoformat(),
            ),
        )
        return cursor.lastrowid

    def append(self, entry: AuditLogEntry) -> int:
        """Append an entry in its own transaction.

        Raises:
            PersistenceError: If the write fails
        """
        try:
            with self.db.transaction() as conn:
                entry_id = self.append_in(conn, entry)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to write audit entry: {e}") from e

        self.logger.info(
            f"Audit: {entry.actor_user_id} {entry.action.value} {entry.entity}",
            extra={"entity_id": entry.entity_id},
        )
        return entry_id

    def list_recent(self, limit: int = 50, entity: Optional[str] = None) -> List[AuditLogEntry]:
        if entity:
            rows = self.db.execute_query(
                "SELECT * FROM admin_audit_log WHERE entity = ? ORDER BY id DESC LIMIT ?",
                (entity, limit),
            )
        else:
            rows = self.db.execute_query(
                "SELECT * FROM admin_audit_log ORDER BY id DESC LIMIT ?", (limit,)
            )
        return [AuditLogEntry.from_db_row(row) for row in rows]

    def for_entity(self, entity: str, entity_id) -> List[AuditLogEntry]:
        rows = self.db.execute_query(
            "SELECT * FROM admin_audit_log WHERE entity = ? AND entity_id = ? ORDER BY id",
            (entity, str(entity_id)),
        )
        return [AuditLogEntry.from_db_row(row) for row in rows]
