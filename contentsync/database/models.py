"""
ContentSync Data Models
=======================

Pydantic models for the content store, execution log, audit trail and the
results returned by sync jobs. These mirror the database schema and handle
JSON (de)serialization of metadata columns.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Dict, Any
from dataclasses import dataclass, field
from pydantic import BaseModel, Field, field_validator
import json
import uuid


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ContentType(str, Enum):
    """Kinds of content held in the unified store."""
    NEWS = "news"
    REVIEW = "review"
    VIDEO = "video"
    GALLERY = "gallery"
    RELEASE = "release"


class ContentStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class ContentSource(str, Enum):
    """Upstream providers, one value per adapter."""
    PLAYSTATION = "playstation"
    XBOX = "xbox"
    NINTENDO = "nintendo"
    IGDB = "igdb"
    RAWG = "rawg"
    SEED = "seed"
    TWITCH = "twitch"
    MANUAL = "manual"


class NewsCategory(str, Enum):
    GAME_UPDATE = "game-update"
    STUDIO_ANNOUNCEMENT = "studio-announcement"


class ReconcilePolicy(str, Enum):
    """How a sync treats an item whose dedup key already exists."""
    SKIP_IF_EXISTS = "skip_if_exists"
    UPSERT_ON_CONFLICT = "upsert_on_conflict"


class ReconcileOutcome(str, Enum):
    INSERTED = "inserted"
    UPDATED = "updated"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class ContentPolicy:
    """Declared handling for one content type."""
    reconcile: ReconcilePolicy
    dedup_field: str


CONTENT_POLICIES: Dict[ContentType, ContentPolicy] = {
    ContentType.NEWS: ContentPolicy(ReconcilePolicy.SKIP_IF_EXISTS, "source_url"),
    ContentType.REVIEW: ContentPolicy(ReconcilePolicy.SKIP_IF_EXISTS, "slug"),
    ContentType.VIDEO: ContentPolicy(ReconcilePolicy.SKIP_IF_EXISTS, "slug"),
    ContentType.GALLERY: ContentPolicy(ReconcilePolicy.SKIP_IF_EXISTS, "slug"),
    ContentType.RELEASE: ContentPolicy(ReconcilePolicy.UPSERT_ON_CONFLICT, "slug"),
}


def policy_for(content_type: ContentType) -> ContentPolicy:
    return CONTENT_POLICIES[ContentType(content_type)]


class ContentItem(BaseModel):
    """Canonical content record shared by every source."""
    id: Optional[int] = Field(default=None, description="Database primary key")
    content_type: ContentType
    title: str = Field(..., min_length=1, max_length=1000)
    slug: str = Field(..., min_length=1, max_length=300)
    excerpt: Optional[str] = None
    body: Optional[str] = None
    image_url: Optional[str] = None
    source: ContentSource
    source_url: Optional[str] = None
    category: Optional[str] = None
    platform: Optional[str] = None
    status: ContentStatus = ContentStatus.DRAFT
    published_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be empty")
        return v

    @property
    def dedup_key(self) -> str:
        """Value of the field the content type deduplicates on."""
        field_name = policy_for(self.content_type).dedup_field
        value = getattr(self, field_name)
        if not value:
            raise ValueError(f"{self.content_type.value} item is missing {field_name}")
        return value

    def metadata_json(self) -> str:
        return json.dumps(self.metadata, default=str)

    @classmethod
    def from_db_row(cls, row) -> "ContentItem":
        data = dict(row)
        data.pop("dedup_key", None)
        if isinstance(data.get("metadata"), str):
            data["metadata"] = json.loads(data["metadata"] or "{}")
        return cls(**data)

    def __str__(self) -> str:
        return f"ContentItem({self.content_type.value}:{self.slug})"


@dataclass
class RawItem:
    """Provider-neutral record produced by an adapter before normalization."""
    title: Optional[str] = None
    link: Optional[str] = None
    published: Optional[datetime] = None
    body: Optional[str] = None
    summary: Optional[str] = None
    image_url: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


class ExecutionStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"


class SyncExecution(BaseModel):
    """One immutable row of the execution log."""
    execution_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    job_name: str
    status: ExecutionStatus
    started_at: datetime
    completed_at: datetime
    duration_ms: int = Field(..., ge=0)
    records_processed: int = Field(default=0, ge=0)
    error_message: Optional[str] = None
    error_details: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_db_row(cls, row) -> "SyncExecution":
        data = dict(row)
        data.pop("id", None)
        for key in ("metadata", "error_details"):
            if isinstance(data.get(key), str):
                data[key] = json.loads(data[key])
        if data.get("metadata") is None:
            data["metadata"] = {}
        return cls(**data)


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    PUBLISH = "publish"
    UNPUBLISH = "unpublish"
    APPROVE = "approve"
    REJECT = "reject"
    SYNC = "sync"
    AI_GENERATE = "ai_generate"


class AdminIdentity(BaseModel):
    id: str
    email: str
    role: str = "editor"
    is_active: bool = True


class Actor(BaseModel):
    """Who is performing an admin action, plus request details for the audit row."""
    user_id: str
    email: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @classmethod
    def from_admin(cls, admin: AdminIdentity, ip_address: Optional[str] = None,
                   user_agent: Optional[str] = None) -> "Actor":
        return cls(user_id=admin.id, email=admin.email,
                   ip_address=ip_address, user_agent=user_agent)


class AuditLogEntry(BaseModel):
    id: Optional[int] = None
    actor_user_id: str
    actor_email: Optional[str] = None
    action: AuditAction
    entity: str
    entity_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def for_actor(cls, actor: Actor, action: AuditAction, entity: str,
                  entity_id: Optional[Any] = None,
                  metadata: Optional[Dict[str, Any]] = None) -> "AuditLogEntry":
        return cls(
            actor_user_id=actor.user_id,
            actor_email=actor.email,
            action=action,
            entity=entity,
            entity_id=str(entity_id) if entity_id is not None else None,
            metadata=metadata or {},
            ip_address=actor.ip_address,
            user_agent=actor.user_agent,
        )

    @classmethod
    def from_db_row(cls, row) -> "AuditLogEntry":
        data = dict(row)
        if isinstance(data.get("metadata"), str):
            data["metadata"] = json.loads(data["metadata"] or "{}")
        return cls(**data)


class SourceResult(BaseModel):
    """Outcome of one source within a sync run."""
    source: str
    fetched: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    errors: List[str] = Field(default_factory=list)
    failure_kind: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.failure_kind is not None

    def record(self, outcome: ReconcileOutcome) -> None:
        if outcome == ReconcileOutcome.INSERTED:
            self.inserted += 1
        elif outcome == ReconcileOutcome.UPDATED:
            self.updated += 1
        else:
            self.skipped += 1


class SyncResult(BaseModel):
    """Aggregated response of a sync job."""
    success: bool = True
    fetched: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    errors: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    sources: List[SourceResult] = Field(default_factory=list)
    attempted: List[Dict[str, Any]] = Field(default_factory=list)
    execution_id: Optional[str] = None

    def add_source(self, result: SourceResult) -> None:
        self.sources.append(result)
        self.fetched += result.fetched
        self.inserted += result.inserted
        self.updated += result.updated
        self.skipped += result.skipped
        self.errors.extend(result.errors)

    @property
    def records_processed(self) -> int:
        return self.inserted + self.updated

    def to_response(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json")
        if not data["attempted"]:
            data.pop("attempted")
        if data["error"] is None:
            data.pop("error")
        return data
