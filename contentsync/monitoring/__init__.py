"""
Execution Monitoring Module
===========================

Per-invocation execution logging and the read model behind the monitoring dashboard.
"""

from .execution_logger import ExecutionLogger
from .sync_monitor import SyncMonitor

__all__ = ['ExecutionLogger', 'SyncMonitor']
