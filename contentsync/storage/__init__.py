"""
ContentSync Storage Layer
=========================

Repository pattern implementations for data access abstraction.

This module provides:
- Content repository with per-type dedup and reconcile policies
- Execution log and audit log repositories
- Admin identity repository
"""

from .content_repository import ContentRepository
from .execution_repository import ExecutionRepository
from .audit_repository import AuditRepository
from .admin_repository import AdminRepository

__all__ = [
    "ContentRepository",
    "ExecutionRepository",
    "AuditRepository",
    "AdminRepository",
]
