"""
ContentSync Database Schema
===========================

SQLite schema for the sync service:
- content_items: unified content store, one row per (content_type, dedup_key)
- sync_execution_log: one immutable row per sync invocation
- admin_audit_log: append-only record of admin actions
- admin_identity: known admins and whether they are active
"""

import sqlite3
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

EXPECTED_TABLES = {
    "content_items",
    "sync_execution_log",
    "admin_audit_log",
    "admin_identity",
}


class DatabaseSchema:
    """Schema manager for the ContentSync SQLite database."""

    def __init__(self, db_path: str = "data/contentsync.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all tables and indexes if they do not exist."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("PRAGMA foreign_keys = ON")

            self._create_content_items_table(conn)
            self._create_execution_log_table(conn)
            self._create_audit_log_table(conn)
            self._create_admin_identity_table(conn)
            self._create_indexes(conn)

            conn.commit()
            logger.info("Database schema created successfully")

    def _create_content_items_table(self, conn: sqlite3.Connection) -> None:
        # dedup_key holds the slug or, for feed-derived posts, the source URL
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS content_items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                content_type TEXT NOT NULL CHECK (content_type IN ('news', 'review', 'video', 'gallery', 'release')),
                dedup_key TEXT NOT NULL,
                title TEXT NOT NULL,
                slug TEXT NOT NULL,
                excerpt TEXT,
                body TEXT,
                image_url TEXT,
                source TEXT NOT NULL,
                source_url TEXT,
                category TEXT,
                platform TEXT,
                status TEXT NOT NULL DEFAULT 'draft' CHECK (status IN ('draft', 'published')),
                published_at TIMESTAMP,
                metadata TEXT DEFAULT '{}',
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP NOT NULL,
                UNIQUE(content_type, dedup_key)
            )
        """
        )

    def _create_execution_log_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS sync_execution_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                execution_id TEXT UNIQUE NOT NULL,
                job_name TEXT NOT NULL,
                status TEXT NOT NULL CHECK (status IN ('success', 'failure', 'timeout')),
                started_at TIMESTAMP NOT NULL,
                completed_at TIMESTAMP NOT NULL,
                duration_ms INTEGER NOT NULL CHECK (duration_ms >= 0),
                records_processed INTEGER DEFAULT 0,
                error_message TEXT,
                error_details TEXT,
                metadata TEXT DEFAULT '{}'
            )
        """
        )

    def _create_audit_log_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS admin_audit_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                actor_user_id TEXT NOT NULL,
                actor_email TEXT,
                action TEXT NOT NULL,
                entity TEXT NOT NULL,
                entity_id TEXT,
                metadata TEXT DEFAULT '{}',
                ip_address TEXT,
                user_agent TEXT,
                created_at TIMESTAMP NOT NULL
            )
        """
        )

    def _create_admin_identity_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS admin_identity (
                id TEXT PRIMARY KEY,
                email TEXT NOT NULL,
                role TEXT NOT NULL DEFAULT 'editor',
                is_active BOOLEAN NOT NULL DEFAULT TRUE,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

    def _create_indexes(self, conn: sqlite3.Connection) -> None:
        indexes = [
            "CREATE INDEX IF NOT EXISTS idx_content_status_created ON content_items(status, created_at)",
            "CREATE INDEX IF NOT EXISTS idx_content_type_slug ON content_items(content_type, slug)",
            "CREATE INDEX IF NOT EXISTS idx_content_source ON content_items(source)",
            "CREATE INDEX IF NOT EXISTS idx_exec_job_started ON sync_execution_log(job_name, started_at)",
            "CREATE INDEX IF NOT EXISTS idx_exec_status_started ON sync_execution_log(status, started_at)",
            "CREATE INDEX IF NOT EXISTS idx_audit_entity ON admin_audit_log(entity, entity_id)",
            "CREATE INDEX IF NOT EXISTS idx_audit_created ON admin_audit_log(created_at)",
        ]
        for index_sql in indexes:
            conn.execute(index_sql)

    def drop_tables(self) -> None:
        """Drop all tables (for testing/reset purposes)."""
        with sqlite3.connect(self.db_path) as conn:
            for table in sorted(EXPECTED_TABLES):
                conn.execute(f"DROP TABLE IF EXISTS {table}")
            conn.commit()
            logger.info("All database tables dropped")

    def verify_schema(self) -> bool:
        """Check that every expected table exists."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.execute(
                    """
                    SELECT name FROM sqlite_master
                    WHERE type='table' AND name NOT LIKE 'sqlite_%'
                """
                )
                tables = {row[0] for row in cursor.fetchall()}
        except sqlite3.Error as e:
            logger.error(f"Schema verification failed: {e}")
            return False

        missing = EXPECTED_TABLES - tables
        if missing:
            logger.error(f"Missing tables: {sorted(missing)}")
            return False

        logger.info("Database schema verification passed")
        return True


def create_tables(db_path: str = "data/contentsync.db") -> None:
    """Convenience function to create database tables."""
    DatabaseSchema(db_path).create_tables()
