"""
Execution Logger
================

Wraps one sync invocation and writes exactly one SyncExecution row for it.
Writing the row never raises: a failed write is reported on the local
logger only, so the caller always gets the real pipeline result back.
"""

import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..database.models import ExecutionStatus, SyncExecution, utc_now
from ..storage.execution_repository import ExecutionRepository
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import ContentSyncError, classify_error


class ExecutionLogger:
    """Per-invocation recorder of a job's terminal state."""

    def __init__(
        self,
        repository: ExecutionRepository,
        job_name: str,
        execution_id: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.job_name = job_name
        self.execution_id = execution_id or str(uuid.uuid4())
        self.clock = clock
        self.started_at = clock()
        self.records_processed = 0
        self.metadata: Dict[str, Any] = {}
        self.execution: Optional[SyncExecution] = None
        self.logger = get_logger_for_component(
            "monitoring.execution", job_name=job_name, execution_id=self.execution_id
        )

    @property
    def finished(self) -> bool:
        return self.execution is not None

    def set_records_processed(self, count: int) -> None:
        self.records_processed = max(0, int(count))

    def increment_records_processed(self, count: int = 1) -> None:
        self.records_processed += max(0, int(count))

    def set_metadata(self, **values: Any) -> None:
        self.metadata.update(values)

    def log_success(self) -> Optional[SyncExecution]:
        return self._finish(ExecutionStatus.SUCCESS)

    def log_failure(self, error: BaseException) -> Optional[SyncExecution]:
        if isinstance(error, ContentSyncError):
            details = error.to_dict()
            message = error.message
        else:
            details = {
                "error_type": type(error).__name__,
                "failure_kind": classify_error(error).value,
            }
            message = str(error) or type(error).__name__
        return self._finish(ExecutionStatus.FAILURE, message, details)

    def log_timeout(self, message: str = "Execution exceeded its time limit") -> Optional[SyncExecution]:
        return self._finish(ExecutionStatus.TIMEOUT, message)

    def _finish(
        self,
        status: ExecutionStatus,
        error_message: Optional[str] = None,
        error_details: Optional[Dict[str, Any]] = None,
    ) -> Optional[SyncExecution]:
        if self.execution is not None:
            self.logger.warning(
                f"Ignoring {status.value}: execution already logged as {self.execution.status.value}"
            )
            return self.execution

        completed_at = self.clock()
        if completed_at < self.started_at:
            completed_at = self.started_at
        duration_ms = int((completed_at - self.started_at).total_seconds() * 1000)

        self.execution = SyncExecution(
            execution_id=self.execution_id,
            job_name=self.job_name,
            status=status,
            started_at=self.started_at,
            completed_at=completed_at,
            duration_ms=duration_ms,
            records_processed=self.records_processed,
            error_message=error_message,
            error_details=error_details,
            metadata=dict(self.metadata),
        )

        try:
            self.repository.insert(self.execution)
        except Exception as e:
            # the execution log is diagnostics only; never replace the job result
            self.logger.error(f"Failed to persist execution log: {e}", exc_info=True)
        else:
            self.logger.info(
                f"Execution {status.value} in {duration_ms}ms, {self.records_processed} records"
            )
        return self.execution

    async def __aenter__(self) -> "ExecutionLogger":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        if not self.finished:
            if exc_val is not None:
                self.log_failure(exc_val)
            else:
                self.log_success()
        return False
