"""
ContentSync Services
====================

Shared service layer for business logic used by the CLI and the HTTP API.
"""

from .review_service import ReviewService

__all__ = [
    'ReviewService',
]
