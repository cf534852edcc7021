"""
ContentSync Processing Module
=============================

Normalization of raw source records and the sync pipeline that stores them.
"""

from .pipeline import SyncPipeline, JOB_PLATFORM_NEWS, JOB_RELEASES, JOB_CLIPS

__all__ = [
    'SyncPipeline',
    'JOB_PLATFORM_NEWS',
    'JOB_RELEASES',
    'JOB_CLIPS',
]
