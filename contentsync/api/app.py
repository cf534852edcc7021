"""
ContentSync HTTP API
====================

Sync triggers, monitoring, the review queue and a raw catalog query, all
behind the authorization gate (admin bearer token or ``X-Cron-Secret``).
Review mutations, history and the catalog query need an admin session.
``/health`` is open.
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..auth.gate import CRON_SECRET_HEADER, Principal
from ..context import AppContext
from ..monitoring.sync_monitor import SyncMonitor
from ..processing.pipeline import JOB_CLIPS, JOB_PLATFORM_NEWS, JOB_RELEASES, SyncPipeline
from ..services.review_service import ReviewService
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import AuthorizationError
from .errors import setup_error_handlers
from .middleware import CorsAllowListMiddleware, client_ip

logger = get_logger_for_component("api")


class CatalogQuery(BaseModel):
    endpoint: str = Field(default="games", pattern=r"^[a-z_/]+$")
    query: str = Field(..., min_length=1, max_length=4000)


class ManualItem(BaseModel):
    content_type: str = "news"
    title: str = Field(..., min_length=1, max_length=1000)
    slug: Optional[str] = Field(default=None, max_length=300)
    excerpt: Optional[str] = None
    body: Optional[str] = None
    image_url: Optional[str] = None
    source_url: Optional[str] = None
    category: Optional[str] = None
    platform: Optional[str] = None


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """Build the ASGI app around one AppContext."""
    context = context or AppContext.create()
    pipeline = SyncPipeline(context)
    monitor = SyncMonitor(context.executions)
    review = ReviewService(context.content, context.audit)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        context.close()

    app = FastAPI(title=context.settings.app_name, version=context.settings.version, lifespan=lifespan)
    app.state.context = context
    app.add_middleware(CorsAllowListMiddleware, policy=context.cors)
    setup_error_handlers(app)

    async def require_principal(request: Request) -> Principal:
        return await context.gate.authorize(
            request.headers.get("authorization"),
            request.headers.get(CRON_SECRET_HEADER),
        )

    async def require_admin(principal: Principal = Depends(require_principal)) -> Principal:
        if not principal.is_admin:
            raise AuthorizationError("admin session required")
        return principal

    def actor_for(principal: Principal, request: Request):
        return principal.actor(client_ip(request), request.headers.get("user-agent"))

    async def run_sync(job_name: str, principal: Principal, request: Request) -> JSONResponse:
        actor = actor_for(principal, request) if principal.is_admin else None
        result = await pipeline.run(job_name, actor)
        return JSONResponse(status_code=200 if result.success else 502, content=result.to_response())

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {"status": "ok", "service": context.settings.app_name, "version": context.settings.version}

    @app.post("/sync/platform-news")
    async def sync_platform_news(request: Request, principal: Principal = Depends(require_principal)):
        return await run_sync(JOB_PLATFORM_NEWS, principal, request)

    @app.post("/sync/releases")
    async def sync_releases(request: Request, principal: Principal = Depends(require_principal)):
        return await run_sync(JOB_RELEASES, principal, request)

    @app.post("/sync/clips")
    async def sync_clips(request: Request, principal: Principal = Depends(require_principal)):
        return await run_sync(JOB_CLIPS, principal, request)

    @app.get("/monitoring/executions")
    async def executions(hours: int = 24, principal: Principal = Depends(require_principal)):
        return {"success": True, **monitor.snapshot(hours)}

    @app.get("/review/drafts")
    async def drafts(
        content_type: Optional[str] = None,
        limit: int = 100,
        principal: Principal = Depends(require_principal),
    ):
        items = review.list_drafts(content_type, limit)
        return {"success": True, "items": [item.model_dump(mode="json") for item in items]}

    @app.post("/review/items", status_code=201)
    async def create_item(body: ManualItem, request: Request,
                          principal: Principal = Depends(require_admin)):
        item = review.create_manual(body.model_dump(exclude_none=True), actor_for(principal, request))
        return {"success": True, "item": item.model_dump(mode="json")}

    @app.post("/review/{content_type}/{item_id}/publish")
    async def publish(content_type: str, item_id: int, request: Request,
                      principal: Principal = Depends(require_admin)):
        item = review.publish(content_type, item_id, actor_for(principal, request))
        return {"success": True, "item": item.model_dump(mode="json")}

    @app.delete("/review/{content_type}/{item_id}")
    async def delete(content_type: str, item_id: int, request: Request,
                     principal: Principal = Depends(require_admin)):
        review.delete(content_type, item_id, actor_for(principal, request))
        return {"success": True}

    @app.get("/review/{content_type}/{item_id}/history")
    async def history(content_type: str, item_id: int, principal: Principal = Depends(require_admin)):
        entries = review.history(content_type, item_id)
        return {"success": True, "entries": [e.model_dump(mode="json") for e in entries]}

    @app.post("/catalog/query")
    async def catalog_query(body: CatalogQuery, principal: Principal = Depends(require_admin)):
        async with context.session_factory() as session:
            data = await context.catalog_adapter(session).query(body.endpoint, body.query)
        return {"success": True, "data": data}

    logger.info(f"API ready with {len(context.cors.allowed_origins)} allowed origins")
    return app
