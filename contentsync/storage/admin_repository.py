"""
Admin Repository
================

Lookup of admin identities for the authorization gate.
"""

import sqlite3
from typing import List, Optional

from ..database.models import AdminIdentity
from ..database.connection import DatabaseConnection
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import PersistenceError


class AdminRepository:

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.logger = get_logger_for_component("admin_repository")

    def get(self, user_id: str) -> Optional[AdminIdentity]:
        try:
            row = self.db.execute_one(
                "SELECT id, email, role, is_active FROM admin_identity WHERE id = ?",
                (user_id,),
            )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to look up admin {user_id}: {e}") from e
        if row is None:
            return None
        return AdminIdentity(
            id=row["id"], email=row["email"], role=row["role"], is_active=bool(row["is_active"])
        )

    def get_active(self, user_id: str) -> Optional[AdminIdentity]:
        """Return the admin only if the row exists and is active."""
        admin = self.get(user_id)
        if admin is None or not admin.is_active:
            return None
        return admin

    def save(self, admin: AdminIdentity) -> None:
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO admin_identity (id, email, role, is_active)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    email = excluded.email, role = excluded.role, is_active = excluded.is_active
                """,
                (admin.id, admin.email, admin.role, admin.is_active),
            )
        self.logger.info(f"Saved admin {admin.email} (active={admin.is_active})")

    def list_all(self) -> List[AdminIdentity]:
        rows = self.db.execute_query("SELECT id, email, role, is_active FROM admin_identity ORDER BY email")
        return [
            AdminIdentity(id=r["id"], email=r["email"], role=r["role"], is_active=bool(r["is_active"]))
            for r in rows
        ]
