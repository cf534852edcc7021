"""
ContentSync Configuration System
================================

Configuration management with environment variables and Pydantic models.
Nested sections use the ``CONTENTSYNC_`` prefix with ``__`` as delimiter
(``CONTENTSYNC_DATABASE__PATH``); credentials and the deployment-level
secrets are also read from their plain names (``CRON_SECRET``,
``IGDB_CLIENT_ID`` ...).
"""

from pathlib import Path
from typing import List, Optional
from enum import Enum

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..utils.exceptions import ConfigurationError, ErrorCode

DEFAULT_ALLOWED_ORIGINS = (
    "http://localhost:3000,"
    "http://localhost:5173,"
    "http://127.0.0.1:5173,"
    "http://localhost:4173,"
    "https://firestargamingnetwork.com"
)


class LogLevel(str, Enum):
    """Available log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ProcessingSettings(BaseModel):
    """Sync pipeline configuration."""
    parallel_sources: int = Field(default=5, ge=1, le=20, description="Concurrent source fetches per sync")
    excerpt_length: int = Field(default=260, ge=20, le=2000, description="Maximum excerpt length in characters")


class LimitsSettings(BaseModel):
    """Request limits and upstream query sizes."""
    request_timeout: int = Field(default=30, ge=5, le=300, description="Upstream request timeout in seconds")
    release_limit: int = Field(default=50, ge=1, le=500, description="Releases requested per catalog sync")
    release_days_ahead: int = Field(default=90, ge=1, le=365, description="Release window in days from now")
    secondary_page_size: int = Field(default=40, ge=1, le=40, description="Page size for the secondary catalog")
    top_games: int = Field(default=20, ge=1, le=100, description="Top games queried for clips")
    clip_games: int = Field(default=5, ge=1, le=100, description="Top games whose clips are imported")
    clips_per_game: int = Field(default=10, ge=1, le=100, description="Clips fetched per game")
    videos_per_game: int = Field(default=5, ge=0, le=100, description="Archived videos fetched per game")
    recent_failure_hours: int = Field(default=24, ge=1, le=720, description="Window for recent failure view")


class DatabaseSettings(BaseModel):
    """Database configuration."""
    path: str = Field(default="data/contentsync.db", description="SQLite database file path")
    pool_size: int = Field(default=5, ge=1, le=20, description="Connection pool size")


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Global log level")
    file_path: Optional[str] = Field(default="logs/contentsync.log", description="Log file path")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Max log file size in MB")
    backup_count: int = Field(default=5, ge=1, le=20, description="Number of log backup files")
    structured_logging: bool = Field(default=False, description="Use structured JSON logging")
    console_logging: bool = Field(default=True, description="Enable console logging")


class AutoPublishSettings(BaseModel):
    """Per content type: whether automated sync publishes directly.

    Anything not listed here always lands as a draft.
    """
    news: bool = Field(default=False, description="Publish platform news without review")
    release: bool = Field(default=False, description="Publish catalog releases without review")
    video: bool = Field(default=False, description="Publish clips and videos without review")

    def for_type(self, content_type) -> bool:
        key = getattr(content_type, "value", content_type)
        return bool(getattr(self, key, False))


class FeedSettings(BaseModel):
    """Platform news feeds."""
    playstation: Optional[str] = Field(default="https://blog.playstation.com/feed", description="PlayStation blog feed")
    xbox: Optional[str] = Field(default="https://news.xbox.com/en-us/feed/", description="Xbox Wire feed")
    nintendo: Optional[str] = Field(default=None, description="Nintendo feed (optional)")


class CatalogSettings(BaseModel):
    """Endpoints for the OAuth catalog and the clip API."""
    token_url: str = Field(default="https://id.twitch.tv/oauth2/token")
    api_url: str = Field(default="https://api.igdb.com/v4")
    image_url_template: str = Field(
        default="https://images.igdb.com/igdb/image/upload/{size}/{image_id}.jpg"
    )
    default_image_url: str = Field(
        default="https://images.pexels.com/photos/442576/pexels-photo-442576.jpeg"
    )
    secondary_api_url: str = Field(default="https://api.rawg.io/api")
    clips_api_url: str = Field(default="https://api.twitch.tv/helix")
    token_refresh_margin_seconds: int = Field(default=60, ge=0, le=3600)


class ContentSyncSettings(BaseSettings):
    """Main application settings."""

    processing: ProcessingSettings = Field(default_factory=ProcessingSettings)
    limits: LimitsSettings = Field(default_factory=LimitsSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    auto_publish: AutoPublishSettings = Field(default_factory=AutoPublishSettings)
    feeds: FeedSettings = Field(default_factory=FeedSettings)
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)

    # Deployment secrets and credentials
    cron_secret: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("CRON_SECRET", "cron_secret")
    )
    allowed_origins: str = Field(
        default=DEFAULT_ALLOWED_ORIGINS,
        validation_alias=AliasChoices("ALLOWED_ORIGINS", "allowed_origins"),
    )
    igdb_client_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("IGDB_CLIENT_ID", "igdb_client_id")
    )
    igdb_client_secret: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("IGDB_CLIENT_SECRET", "igdb_client_secret"),
    )
    twitch_client_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("TWITCH_CLIENT_ID", "twitch_client_id")
    )
    twitch_client_secret: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("TWITCH_CLIENT_SECRET", "twitch_client_secret"),
    )
    rawg_api_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("RAWG_API_KEY", "rawg_api_key")
    )
    identity_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("IDENTITY_URL", "identity_url")
    )
    identity_api_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("IDENTITY_API_KEY", "identity_api_key")
    )
    use_seed_fallback: bool = Field(
        default=True, description="Insert demo releases when every catalog source fails"
    )

    app_name: str = Field(default="ContentSync", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        env_prefix="CONTENTSYNC_",
        populate_by_name=True,
        extra="ignore",
    )

    @field_validator("cron_secret", "igdb_client_id", "igdb_client_secret",
                     "twitch_client_id", "twitch_client_secret", "rawg_api_key")
    @classmethod
    def blank_to_none(cls, v):
        """Treat empty strings from .env files as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def allowed_origin_list(self) -> List[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    def feed_sources(self) -> List[tuple]:
        """Configured (source, url) pairs for platform news."""
        pairs = [
            ("playstation", self.feeds.playstation),
            ("xbox", self.feeds.xbox),
            ("nintendo", self.feeds.nintendo),
        ]
        return [(name, url) for name, url in pairs if url]

    def validate_configuration(self) -> None:
        """Validate paths. Missing source credentials are not an error here;
        the affected source reports itself as not configured at sync time."""
        errors = []

        try:
            Path(self.database.path).parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            errors.append(f"Invalid database path: {e}")

        if self.logging.file_path:
            try:
                Path(self.logging.file_path).parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                errors.append(f"Invalid log file path: {e}")

        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}",
                error_code=ErrorCode.CONFIG_INVALID,
            )

    def missing_credentials(self) -> List[str]:
        """Names of unset credentials, for the check-config command."""
        names = {
            "CRON_SECRET": self.cron_secret,
            "IGDB_CLIENT_ID": self.igdb_client_id,
            "IGDB_CLIENT_SECRET": self.igdb_client_secret,
            "TWITCH_CLIENT_ID": self.twitch_client_id,
            "TWITCH_CLIENT_SECRET": self.twitch_client_secret,
            "RAWG_API_KEY": self.rawg_api_key,
            "IDENTITY_URL": self.identity_url,
        }
        return [name for name, value in names.items() if not value]

    def get_effective_log_level(self) -> str:
        if self.debug:
            return "DEBUG"
        return self.logging.level.value


def load_settings() -> ContentSyncSettings:
    """Load settings from environment variables, .env and defaults.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    from dotenv import load_dotenv
    load_dotenv()

    try:
        settings = ContentSyncSettings()
        settings.validate_configuration()
        return settings
    except ConfigurationError:
        raise
    except ValueError as e:
        raise ConfigurationError(
            f"Failed to initialize settings: {e}",
            error_code=ErrorCode.CONFIG_INVALID,
        ) from e


_settings: Optional[ContentSyncSettings] = None


def get_settings(reload: bool = False) -> ContentSyncSettings:
    """Get the process settings instance.

    Args:
        reload: Force reload of settings

    Returns:
        Settings instance
    """
    global _settings

    if _settings is None or reload:
        _settings = load_settings()

    return _settings
