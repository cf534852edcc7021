"""
Sync Monitor
============

Read-only aggregation over the execution log for the monitoring dashboard.
"""

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List

from ..database.models import SyncExecution, utc_now
from ..storage.execution_repository import ExecutionRepository

DASHBOARD_REFRESH_SECONDS = 60


class SyncMonitor:

    def __init__(self, repository: ExecutionRepository, clock: Callable[[], datetime] = utc_now):
        self.repository = repository
        self.clock = clock

    def job_stats(self) -> List[Dict[str, Any]]:
        """Per job: totals, success rate, average duration, last execution."""
        stats = []
        for row in self.repository.job_stats():
            total = row["total"] or 0
            successful = row["successful"] or 0
            stats.append(
                {
                    "job_name": row["job_name"],
                    "total": total,
                    "successful": successful,
                    "failed": row["failed"] or 0,
                    "timeouts": row["timeouts"] or 0,
                    "success_rate": round(successful / total, 4) if total else 0.0,
                    "avg_duration_ms": int(round(row["avg_duration_ms"] or 0)),
                    "last_execution": row["last_execution"],
                }
            )
        return stats

    def recent_failures(self, hours: int = 24, limit: int = 50) -> List[SyncExecution]:
        since = self.clock() - timedelta(hours=hours)
        return self.repository.failures_since(since, limit)

    def latest_status(self) -> List[SyncExecution]:
        return self.repository.latest_per_job()

    def snapshot(self, hours: int = 24) -> Dict[str, Any]:
        """Everything the dashboard shows in one poll."""
        return {
            "stats": self.job_stats(),
            "latest": [e.model_dump(mode="json") for e in self.latest_status()],
            "recent_failures": [e.model_dump(mode="json") for e in self.recent_failures(hours)],
            "refresh_interval_seconds": DASHBOARD_REFRESH_SECONDS,
            "generated_at": self.clock().isoformat(),
        }
