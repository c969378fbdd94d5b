"""FastAPI application entry point for the shortlink service.

Application Lifecycle Diagram
=============================
::
    ┌─────────────┐
    │  uvicorn    │
    │  startup    │
    └──────┬──────┘
           ▼
    ┌─────────────────┐
    │ lifespan()      │
    │ ServiceContainer│
    │ .initialize():  │
    │ engine, tables, │
    │ Redis, Kafka    │
    └──────┬──────────┘
           ▼
    ┌─────────────┐
    │ Serve HTTP  │
    │ requests    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lifespan()  │
    │ shutdown:   │
    │ drain tasks │
    │ close pools │
    └─────────────┘

How to Use
===========
**Step 1: Run with uvicorn**::
    uvicorn shortlink.main:app --host 0.0.0.0 --port 8080
    # or
    python -m shortlink

**Step 2: Make API calls**::
    curl -X POST http://localhost:8080/create \
         -H "Content-Type: application/json" \
         -d '{"long_url": "https://example.com/a"}'

    curl -i http://localhost:8080/<code>

Key Behaviours
===============
- Connection pools are created once in the lifespan and shared.
- Malformed request bodies are answered with 400 "Invalid input".
- Shutdown waits (bounded) for pending background side effects.
- Prometheus metrics are exposed at /metrics.
"""

__all__ = ["app", "create_app"]

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from shortlink.config import Settings, get_settings
from shortlink.dependencies import ServiceContainer
from shortlink.exceptions import InvalidInputError
from shortlink.routes import router


async def invalid_body_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": InvalidInputError.detail})


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # Startup
        app.state.services = await ServiceContainer.initialize(settings)
        yield
        # Shutdown
        await app.state.services.cleanup()

    app = FastAPI(
        title=settings.APP_NAME,
        version="1.0.0",
        description="Short alias redirect service with asynchronous click telemetry",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, invalid_body_handler)

    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=False,
        should_respect_env_var=False,
        excluded_handlers=["/metrics", "/health"],
    ).instrument(app).expose(app, include_in_schema=False)

    app.include_router(router)
    return app


app = create_app()
