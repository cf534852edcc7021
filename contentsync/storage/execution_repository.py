"""
Execution Repository
====================

Persistence and aggregate queries for the sync execution log.
"""

import json
import sqlite3
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from ..database.models import ExecutionStatus, SyncExecution, utc_now
from ..database.connection import DatabaseConnection
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import ErrorCode, PersistenceError


class ExecutionRepository:
    """Repository for SyncExecution rows. Rows are never updated."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.logger = get_logger_for_component("execution_repository")

    def insert(self, execution: SyncExecution) -> None:
        """Write one execution row.

        Raises:
            PersistenceError: If the write fails
        """
        try:
            with self.db.transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO sync_execution_log (execution_id, job_name, status, started_at,
                        completed_at, duration_ms, records_processed, error_message,
                        error_details, metadata)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        execution.execution_id,
                        execution.job_name,
                        execution.status.value,
                        execution.started_at.isoformat(),
                        execution.completed_at.isoformat(),
                        execution.duration_ms,
                        execution.records_processed,
                        execution.error_message,
                        json.dumps(execution.error_details, default=str)
                        if execution.error_details is not None else None,
                        json.dumps(execution.metadata, default=str),
                    ),
                )
        except sqlite3.Error as e:
            raise PersistenceError(
                f"Failed to record execution {execution.execution_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def get(self, execution_id: str) -> Optional[SyncExecution]:
        row = self.db.execute_one(
            "SELECT * FROM sync_execution_log WHERE execution_id = ?", (execution_id,)
        )
        return SyncExecution.from_db_row(row) if row else None

    def list_recent(self, job_name: Optional[str] = None, limit: int = 50) -> List[SyncExecution]:
        if job_name:
            rows = self.db.execute_query(
                "SELECT * FROM sync_execution_log WHERE job_name = ? ORDER BY started_at DESC LIMIT ?",
                (job_name, limit),
            )
        else:
            rows = self.db.execute_query(
                "SELECT * FROM sync_execution_log ORDER BY started_at DESC LIMIT ?", (limit,)
            )
        return [SyncExecution.from_db_row(row) for row in rows]

    def job_stats(self) -> List[Dict[str, Any]]:
        """Per-job totals ordered by job name."""
        rows = self.db.execute_query(
            """
            SELECT job_name,
                   COUNT(*) AS total,
                   SUM(CASE WHEN status = 'success' THEN 1 ELSE 0 END) AS successful,
                   SUM(CASE WHEN status = 'failure' THEN 1 ELSE 0 END) AS failed,
                   SUM(CASE WHEN status = 'timeout' THEN 1 ELSE 0 END) AS timeouts,
                   AVG(duration_ms) AS avg_duration_ms,
                   MAX(started_at) AS last_execution
            FROM sync_execution_log
            GROUP BY job_name
            ORDER BY job_name
            """
        )
        return [dict(row) for row in rows]

    def failures_since(self, since: datetime, limit: int = 50) -> List[SyncExecution]:
        rows = self.db.execute_query(
            """
            SELECT * FROM sync_execution_log
            WHERE status = ? AND started_at >= ?
            ORDER BY started_at DESC LIMIT ?
            """,
            (ExecutionStatus.FAILURE.value, since.isoformat(), limit),
        )
        return [SyncExecution.from_db_row(row) for row in rows]

    def latest_per_job(self) -> List[SyncExecution]:
        rows = self.db.execute_query(
            """
            SELECT e.* FROM sync_execution_log e
            JOIN (
                SELECT job_name, MAX(started_at) AS started_at
                FROM sync_execution_log GROUP BY job_name
            ) latest ON latest.job_name = e.job_name AND latest.started_at = e.started_at
            ORDER BY e.job_name
            """
        )
        return [SyncExecution.from_db_row(row) for row in rows]

    def prune_older_than(self, days: int) -> int:
        cutoff = utc_now() - timedelta(days=days)
        deleted = self.db.execute_update(
            "DELETE FROM sync_execution_log WHERE started_at < ?", (cutoff.isoformat(),)
        )
        self.logger.info(f"Pruned {deleted} execution rows older than {days} days")
        return deleted
