"""FastAPI route definitions for the shortlink service.

API Endpoint Overview
=====================
::
    GET  /health
        └─ "OK" (200)

    GET  /health/ready
        └─ ReadinessResponse (200 / 503)

    POST /create
        ├─ CreateRequest (request body)
        └─ CreateResponse (200) or 400/409/500

    GET  /api/stats/:short_code
        └─ URLStats (200) or 404/500

    GET  /:short_code
        └─ 302 Redirect or 404/500

Request Flow Diagram
====================
::
    ┌─────────────┐
    │  HTTP       │
    │  Request    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Inject      │
    │ Context +   │
    │ Resolver    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Resolver    │
    │ create /    │
    │ resolve     │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Map domain  │
    │ errors to   │
    │ HTTP status │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ HTTP        │
    │ Response    │
    └─────────────┘

Key Behaviours
===============
- Error bodies carry only a generic message.
- The redirect is returned before click counting, cache TTL refresh and
  Kafka publishing have run.
- /health is a liveness probe and touches no backend.
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse

from shortlink.dependencies import RequestContext, get_request_context, get_resolver
from shortlink.enums import HealthStatus
from shortlink.exceptions import (
    AliasConflictError,
    InvalidInputError,
    ShortCodeNotFoundError,
    StorageError,
)
from shortlink.resolver import RedirectResolver
from shortlink.schemas import CreateRequest, CreateResponse, ReadinessResponse, URLStats

__all__ = ["router"]

router = APIRouter()


@router.get("/health", response_class=PlainTextResponse, tags=["health"])
async def health_check() -> str:
    return "OK"


@router.get("/health/ready", response_model=ReadinessResponse, tags=["health"])
async def readiness_check(ctx: RequestContext = Depends(get_request_context)) -> JSONResponse:
    database = HealthStatus.from_bool(await ctx.services.store.ping())
    cache = HealthStatus.from_bool(await ctx.services.cache.ping())
    healthy = database is HealthStatus.HEALTHY and cache is HealthStatus.HEALTHY
    body = ReadinessResponse(status=HealthStatus.from_bool(healthy), database=database, cache=cache)
    if not healthy:
        ctx.logger.warning(f"Readiness check failed: database={database} cache={cache}")
    return JSONResponse(status_code=200 if healthy else 503, content=body.model_dump(mode="json"))


@router.post("/create", response_model=CreateResponse, tags=["urls"])
async def create_short_url(
    payload: CreateRequest,
    ctx: RequestContext = Depends(get_request_context),
    resolver: RedirectResolver = Depends(get_resolver),
) -> CreateResponse:
    ctx.logger.info(f"Short URL requested for {payload.long_url!r} (alias={payload.custom_alias!r})")
    try:
        short_code = await resolver.create(payload.long_url, payload.custom_alias)
    except InvalidInputError as exc:
        ctx.logger.info(f"Create rejected: {exc}")
        raise HTTPException(status_code=400, detail=exc.detail) from exc
    except AliasConflictError as exc:
        ctx.logger.info(f"Create rejected: {exc}")
        raise HTTPException(status_code=409, detail=exc.detail) from exc
    except StorageError as exc:
        ctx.logger.error(f"Create failed after {ctx.get_duration():.1f}ms: {exc}")
        raise HTTPException(status_code=500, detail=exc.detail) from exc

    return CreateResponse(short_url=f"{ctx.settings.BASE_URL.rstrip('/')}/{short_code}")


@router.get("/api/stats/{short_code}", response_model=URLStats, tags=["urls"])
async def get_stats(
    short_code: str,
    ctx: RequestContext = Depends(get_request_context),
    resolver: RedirectResolver = Depends(get_resolver),
) -> URLStats:
    try:
        record = await resolver.get_stats(short_code)
    except ShortCodeNotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.detail) from exc
    except StorageError as exc:
        ctx.logger.error(f"Stats lookup failed for {short_code}: {exc}")
        raise HTTPException(status_code=500, detail=exc.detail) from exc

    return URLStats.model_validate(record)


@router.get("/{short_code}", tags=["redirect"])
async def redirect_to_url(
    short_code: str,
    ctx: RequestContext = Depends(get_request_context),
    resolver: RedirectResolver = Depends(get_resolver),
) -> RedirectResponse:
    try:
        long_url = await resolver.resolve(short_code, ctx.click_metadata())
    except ShortCodeNotFoundError as exc:
        ctx.logger.info(f"Redirect failed - short code not found: {short_code}")
        raise HTTPException(status_code=404, detail=exc.detail) from exc
    except StorageError as exc:
        ctx.logger.error(f"Redirect failed for {short_code} after {ctx.get_duration():.1f}ms: {exc}")
        raise HTTPException(status_code=500, detail=exc.detail) from exc

    ctx.logger.debug(f"Redirect {short_code} -> {long_url} in {ctx.get_duration():.1f}ms")
    return RedirectResponse(url=long_url, status_code=302)
