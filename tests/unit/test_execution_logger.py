"""
Tests for ExecutionLogger and SyncMonitor
=========================================
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from contentsync.database.models import ExecutionStatus
from contentsync.monitoring.execution_logger import ExecutionLogger
from contentsync.monitoring.sync_monitor import SyncMonitor
from contentsync.storage.execution_repository import ExecutionRepository
from contentsync.utils.exceptions import PersistenceError, UpstreamFetchError

START = datetime(2025, 1, 6, 12, 0, 0, tzinfo=timezone.utc)


class SteppingClock:
    """Returns the queued instants in order, then repeats the last."""

    def __init__(self, *instants: datetime):
        self.instants = list(instants)

    def __call__(self) -> datetime:
        if len(self.instants) > 1:
            return self.instants.pop(0)
        return self.instants[0]


@pytest.fixture
def repo(db_connection):
    return ExecutionRepository(db_connection)


class TestExecutionLogger:

    def test_success_writes_one_row_with_duration(self, repo):
        clock = SteppingClock(START, START + timedelta(milliseconds=1500))
        execution = ExecutionLogger(repo, "sync-platform-news", clock=clock)
        execution.set_records_processed(7)

        execution.log_success()

        rows = repo.list_recent("sync-platform-news")
        assert len(rows) == 1
        row = rows[0]
        assert row.status == ExecutionStatus.SUCCESS
        assert row.duration_ms == 1500
        assert row.duration_ms == int((row.completed_at - row.started_at).total_seconds() * 1000)
        assert row.records_processed == 7

    def test_clock_going_backwards_gives_zero_duration(self, repo):
        clock = SteppingClock(START, START - timedelta(seconds=2))
        execution = ExecutionLogger(repo, "sync-releases", clock=clock)

        logged = execution.log_success()

        assert logged.duration_ms == 0
        assert logged.completed_at == logged.started_at

    def test_second_terminal_call_is_ignored(self, repo):
        execution = ExecutionLogger(repo, "sync-clips")

        execution.log_success()
        execution.log_failure(RuntimeError("late failure"))
        execution.log_timeout()

        rows = repo.list_recent("sync-clips")
        assert len(rows) == 1
        assert rows[0].status == ExecutionStatus.SUCCESS

    def test_failure_records_error_details(self, repo):
        execution = ExecutionLogger(repo, "sync-releases")

        execution.log_failure(UpstreamFetchError("catalog down", source="igdb", status=503))

        row = repo.get(execution.execution_id)
        assert row.status == ExecutionStatus.FAILURE
        assert row.error_message == "catalog down"
        assert row.error_details["failure_kind"] == "upstream"
        assert row.error_details["context"]["status"] == 503

    def test_timeout_status(self, repo):
        execution = ExecutionLogger(repo, "sync-releases")
        execution.log_timeout()
        assert repo.get(execution.execution_id).status == ExecutionStatus.TIMEOUT

    def test_persistence_failure_does_not_raise(self):
        repo = Mock()
        repo.insert.side_effect = PersistenceError("disk full")
        execution = ExecutionLogger(repo, "sync-clips")

        logged = execution.log_success()

        assert logged.status == ExecutionStatus.SUCCESS
        repo.insert.assert_called_once()

    async def test_context_manager_logs_failure(self, repo):
        with pytest.raises(ValueError):
            async with ExecutionLogger(repo, "sync-clips") as execution:
                raise ValueError("boom")

        row = repo.get(execution.execution_id)
        assert row.status == ExecutionStatus.FAILURE
        assert row.error_details["failure_kind"] == "unknown"

    async def test_context_manager_logs_success(self, repo):
        async with ExecutionLogger(repo, "sync-clips") as execution:
            execution.increment_records_processed(3)

        assert repo.get(execution.execution_id).records_processed == 3


class TestSyncMonitor:

    def test_stats_and_recent_failures(self, repo):
        now = datetime.now(timezone.utc)
        ticks = [now - timedelta(hours=3), now - timedelta(hours=3) + timedelta(milliseconds=250)]
        ExecutionLogger(repo, "sync-releases", clock=SteppingClock(*ticks)).log_success()
        ticks = [now - timedelta(hours=1), now - timedelta(hours=1) + timedelta(milliseconds=750)]
        ExecutionLogger(repo, "sync-releases", clock=SteppingClock(*ticks)).log_failure(RuntimeError("x"))

        monitor = SyncMonitor(repo, clock=lambda: now)
        stats = monitor.job_stats()

        assert stats == [
            {
                "job_name": "sync-releases",
                "total": 2,
                "successful": 1,
                "failed": 1,
                "timeouts": 0,
                "success_rate": 0.5,
                "avg_duration_ms": 500,
                "last_execution": (now - timedelta(hours=1)).isoformat(),
            }
        ]
        failures = monitor.recent_failures(hours=24)
        assert [f.error_message for f in failures] == ["x"]
        assert monitor.recent_failures(hours=0) == []

    def test_empty_log(self, repo):
        snapshot = SyncMonitor(repo).snapshot()
        assert snapshot["stats"] == []
        assert snapshot["recent_failures"] == []
        assert snapshot["refresh_interval_seconds"] == 60
