from __future__ import annotations

from contextlib import asynccontextmanager
import hmac
import ipaddress
import logging
import os
from typing import Any, Literal, Optional, Union

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import func, select
from starlette.middleware.base import BaseHTTPMiddleware

from .cache import CacheInvalidator, build_invalidator
from .codec import decompress
from .config import load_config
from .db import session_scope
from .errors import NotFoundError, PipelineError
from .jobs import recent_jobs, serialize_job
from .metrics import collect_metrics
from .models import GeneratedPage
from .pages import parse_uuid, serialize_page
from .rendering.intents import render
from .resilience import GuardedObjectStore, build_breaker, guard_store
from .resolver import resolve
from .storage import ObjectStore, build_object_store
from .workers.expire_pages import run_expiration
from .workers.generate_pages import generate_for_update
from .workers.publish_pages import delete_pages, publish_pages
from .workers.sitemap import rebuild_sitemap

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 5000
MAX_BATCH_SIZE = 500


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if request.url.path.startswith("/api/"):
            response.headers["Content-Security-Policy"] = "default-src 'self'"
        return response


def _parse_origins() -> list[str]:
    raw = os.getenv(
        "FRONTEND_ORIGINS",
        ",".join(
            [
                "http://localhost:3000",
                "http://127.0.0.1:3000",
                "http://localhost:8000",
                "http://127.0.0.1:8000",
            ]
        ),
    )
    return [entry.strip() for entry in raw.split(",") if entry.strip()]


def _is_loopback_host(host: Optional[str]) -> bool:
    if not host:
        return False
    candidate = host.strip()
    if not candidate:
        return False
    if candidate == "localhost":
        return True
    try:
        return ipaddress.ip_address(candidate).is_loopback
    except ValueError:
        return False


def require_mutation_auth(
    request: Request,
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
    authorization: Optional[str] = Header(default=None),
) -> None:
    config = load_config()
    client_host = request.client.host if request.client else None
    if config.mutation_localhost_bypass and _is_loopback_host(client_host):
        return

    token = x_api_key
    if not token and authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()

    expected = config.mutation_api_key
    if not expected:
        raise HTTPException(status_code=401, detail="Mutation API key is required")
    if not token or not hmac.compare_digest(token, expected):
        raise HTTPException(status_code=401, detail="Invalid mutation API key")


class TemporalInfo(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)
    deal_terms: Optional[str] = Field(None, alias="dealTerms", max_length=1000)
    expires_at: Optional[str] = Field(None, alias="expiresAt", max_length=64)
    update_category: Optional[str] = Field(None, alias="updateCategory", max_length=32)

    def as_trigger(self) -> dict:
        return self.model_dump(by_alias=True, exclude_unset=True)


class GenerateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)
    update_id: str = Field(..., alias="updateId", max_length=64)
    business_id: Optional[str] = Field(None, alias="businessId", max_length=64)
    content_text: Optional[str] = Field(None, alias="contentText", max_length=MAX_CONTENT_LENGTH)
    temporal_info: Optional[TemporalInfo] = Field(None, alias="temporalInfo")
    special_hours: Optional[Union[str, dict[str, Any]]] = Field(None, alias="specialHours")
    intents: Optional[list[str]] = Field(None, max_length=6)


class PagesRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)
    page_ids: list[str] = Field(default_factory=list, alias="pageIds", max_length=MAX_BATCH_SIZE)
    batch_id: Optional[str] = Field(None, alias="batchId", max_length=64)


class ExpireRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)
    action: Literal[
        "expire-all", "expire-single", "extend", "check-upcoming", "expire_all", "expire_single", "check_upcoming"
    ]
    page_id: Optional[str] = Field(None, alias="pageId", max_length=64)
    hours: Optional[float] = None


def _batch_response(result: dict) -> JSONResponse:
    status_code = 207 if result.get("errors") else 200
    return JSONResponse(status_code=status_code, content=result)


def create_app(
    store: Optional[ObjectStore] = None,
    invalidator: Optional[CacheInvalidator] = None,
) -> FastAPI:
    config = load_config()
    breaker = build_breaker(config)
    if store is None:
        store = guard_store(build_object_store(config), config, breaker)
    elif isinstance(store, GuardedObjectStore):
        breaker = store.breaker
    invalidator = invalidator or build_invalidator(config)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        try:
            yield
        finally:
            if isinstance(store, GuardedObjectStore):
                store.close()

    app = FastAPI(title="Page Pipeline API", version="0.1.0", lifespan=lifespan)
    app.state.store = store
    app.state.breaker = breaker
    app.state.invalidator = invalidator

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_parse_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-API-Key"],
    )

    @app.exception_handler(PipelineError)
    async def pipeline_error_handler(_: Request, exc: PipelineError) -> JSONResponse:
        if exc.http_status >= 500:
            logger.warning("Request failed with %s: %s", exc.kind, exc.message)
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.get("/api/metrics")
    def api_metrics() -> dict:
        metrics = collect_metrics()
        metrics["store_breaker"] = breaker.get_state()
        return metrics

    @app.get("/api/jobs")
    def api_jobs(
        limit: int = Query(default=50, ge=1, le=500),
        job_name: Optional[str] = Query(default=None, max_length=64),
    ) -> list[dict]:
        with session_scope() as session:
            return [serialize_job(run) for run in recent_jobs(session, limit=limit, job_name=job_name)]

    @app.post("/api/pages/generate", dependencies=[Depends(require_mutation_auth)])
    def api_generate_pages(payload: GenerateRequest) -> dict:
        result = generate_for_update(
            payload.update_id,
            business_id=payload.business_id,
            content_text=payload.content_text,
            temporal_info=payload.temporal_info.as_trigger() if payload.temporal_info else None,
            special_hours=payload.special_hours,
            intents=payload.intents,
        )
        return {"success": True, **result}

    @app.post("/api/pages/publish", dependencies=[Depends(require_mutation_auth)])
    def api_publish_pages(payload: PagesRequest) -> JSONResponse:
        result = publish_pages(
            payload.page_ids,
            payload.batch_id,
            store=app.state.store,
            invalidator=app.state.invalidator,
        )
        return _batch_response(result)

    @app.post("/api/pages/delete", dependencies=[Depends(require_mutation_auth)])
    def api_delete_pages(payload: PagesRequest) -> JSONResponse:
        result = delete_pages(
            payload.page_ids,
            payload.batch_id,
            store=app.state.store,
            invalidator=app.state.invalidator,
        )
        return _batch_response(result)

    @app.post("/api/pages/expire", dependencies=[Depends(require_mutation_auth)])
    def api_expire_pages(payload: ExpireRequest) -> dict:
        return run_expiration(payload.action, payload.page_id, payload.hours, store=app.state.store)

    @app.post("/api/sitemap/rebuild", dependencies=[Depends(require_mutation_auth)])
    def api_rebuild_sitemap() -> dict:
        return rebuild_sitemap(store=app.state.store)

    @app.get("/api/pages")
    def api_list_pages(
        batch_id: Optional[str] = Query(default=None, max_length=64),
        update_id: Optional[str] = Query(default=None, max_length=64),
        published: Optional[bool] = Query(default=None),
        limit: int = Query(default=100, ge=1, le=1000),
        offset: int = Query(default=0, ge=0),
    ) -> dict:
        filters = []
        if batch_id:
            filters.append(GeneratedPage.generation_batch_id == parse_uuid(batch_id, "batch_id"))
        if update_id:
            filters.append(GeneratedPage.update_id == parse_uuid(update_id, "update_id"))
        if published is not None:
            filters.append(GeneratedPage.published.is_(published))

        with session_scope() as session:
            count_stmt = select(func.count(GeneratedPage.id))
            stmt = (
                select(GeneratedPage)
                .order_by(GeneratedPage.created_at.desc(), GeneratedPage.intent_type)
                .limit(limit)
                .offset(offset)
            )
            for expression in filters:
                count_stmt = count_stmt.where(expression)
                stmt = stmt.where(expression)
            total = int(session.execute(count_stmt).scalar() or 0)
            items = [serialize_page(page) for page in session.execute(stmt).scalars().all()]
        return {"total": total, "returned": len(items), "items": items}

    @app.get("/api/pages/{page_id}")
    def api_get_page(page_id: str) -> dict:
        page_uuid = parse_uuid(page_id, "page_id")
        with session_scope() as session:
            page = session.get(GeneratedPage, page_uuid)
            if page is None:
                raise NotFoundError(f"Page {page_uuid} not found")
            return serialize_page(page, include_data=True)

    @app.get("/api/pages/{page_id}/preview", response_class=HTMLResponse)
    def api_preview_page(page_id: str) -> HTMLResponse:
        page_uuid = parse_uuid(page_id, "page_id")
        with session_scope() as session:
            page = session.get(GeneratedPage, page_uuid)
            if page is None:
                raise NotFoundError(f"Page {page_uuid} not found")
            intent_type, compact = page.intent_type, page.page_data
        html = render(intent_type, decompress(compact), site_url=config.site_base_url)
        return HTMLResponse(content=html, headers={"Cache-Control": "no-store", "X-Robots-Tag": "noindex"})

    # Registered last so every /api route above wins.
    @app.get("/{path:path}", include_in_schema=False)
    def serve_page(path: str) -> Response:
        resolution = resolve(path, store=app.state.store, config=config)
        headers = dict(resolution.headers)
        headers["X-Page-Source"] = resolution.source
        return Response(content=resolution.html, status_code=resolution.status_code, headers=headers)

    return app


app = create_app()
