"""
ContentSync - Gaming Content Sync Service
=========================================

Pulls platform news, upcoming releases and clips from external sources into
one deduplicated content store, with a draft/publish review workflow.

Main Components:
- Database: SQLite with connection pooling and schema management
- Configuration: environment variables and .env with Pydantic validation
- Ingestion: RSS feeds, OAuth catalog APIs, token caching
- Processing: normalization, dedup/upsert, release fallback chain
- Monitoring: one execution row per sync invocation
- API: FastAPI with authorization gate and CORS allow-list
"""

__version__ = "1.0.0"
__author__ = "ContentSync Development Team"
__description__ = "Gaming content sync service"

from .config.settings import get_settings
from .database.schema import DatabaseSchema
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import ContentSyncError

__all__ = [
    "get_settings",
    "DatabaseSchema",
    "configure_application_logging",
    "get_logger_for_component",
    "ContentSyncError",
]
