"""
Application Context
===================

Everything a process needs, built once and passed explicitly: settings,
the database pool, repositories, token caches, the identity provider, the
authorization gate and the HTTP session factory.
"""

from functools import partial
from typing import Callable, Optional

from .auth.gate import AuthorizationGate, CorsPolicy
from .auth.identity import HTTPIdentityProvider, IdentityProvider
from .config.settings import ContentSyncSettings, get_settings
from .database.connection import DatabaseConnection
from .database.schema import DatabaseSchema
from .ingestion.catalog_adapter import CatalogAdapter
from .ingestion.clip_adapter import ClipAdapter
from .ingestion.http_client import create_session
from .ingestion.rawg_adapter import RawgAdapter
from .ingestion.token_cache import TokenCache
from .storage.admin_repository import AdminRepository
from .storage.audit_repository import AuditRepository
from .storage.content_repository import ContentRepository
from .storage.execution_repository import ExecutionRepository
from .utils.logging import get_logger_for_component


class AppContext:

    def __init__(
        self,
        settings: ContentSyncSettings,
        db: Optional[DatabaseConnection] = None,
        identity_provider: Optional[IdentityProvider] = None,
        session_factory: Optional[Callable] = None,
    ):
        self.settings = settings
        self.logger = get_logger_for_component("context")

        self.db = db or DatabaseConnection(settings.database.path, settings.database.pool_size)
        self.content = ContentRepository(self.db)
        self.executions = ExecutionRepository(self.db)
        self.audit = AuditRepository(self.db)
        self.admins = AdminRepository(self.db)

        margin = settings.catalog.token_refresh_margin_seconds
        self.catalog_tokens = TokenCache("igdb", margin_seconds=margin)
        self.clip_tokens = TokenCache("twitch", margin_seconds=margin)

        self.session_factory = session_factory or partial(
            create_session,
            timeout=settings.limits.request_timeout,
            max_concurrent=settings.processing.parallel_sources,
        )

        if identity_provider is None and settings.identity_url:
            identity_provider = HTTPIdentityProvider(
                settings.identity_url, settings.identity_api_key, self.session_factory
            )
        self.identity_provider = identity_provider

        self.gate = AuthorizationGate(self.identity_provider, self.admins, settings.cron_secret)
        self.cors = CorsPolicy(settings.allowed_origin_list)

    @classmethod
    def create(cls, settings: Optional[ContentSyncSettings] = None, **kwargs) -> "AppContext":
        """Build a context and make sure the schema exists."""
        settings = settings or get_settings()
        DatabaseSchema(settings.database.path).create_tables()
        return cls(settings, **kwargs)

    def catalog_adapter(self, session) -> CatalogAdapter:
        return CatalogAdapter(
            session,
            self.settings.igdb_client_id,
            self.settings.igdb_client_secret,
            self.catalog_tokens,
            self.settings.catalog,
        )

    def secondary_catalog_adapter(self, session) -> RawgAdapter:
        return RawgAdapter(
            session,
            self.settings.rawg_api_key,
            self.settings.catalog,
            page_size=self.settings.limits.secondary_page_size,
        )

    def clip_adapter(self, session) -> ClipAdapter:
        return ClipAdapter(
            session,
            self.settings.twitch_client_id,
            self.settings.twitch_client_secret,
            self.clip_tokens,
            self.settings.catalog,
        )

    def close(self) -> None:
        self.db.close_all_connections()
