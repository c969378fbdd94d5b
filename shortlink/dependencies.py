"""Dependency injection for shared resources and per-request context.

Connection pools are built exactly once by ``ServiceContainer.initialize``
during application startup and shared by reference with every request.
Routes reach them through FastAPI ``Depends``; tests swap the whole
container with ``app.dependency_overrides[get_services]``.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncEngine

from shortlink.background import BackgroundDispatcher
from shortlink.cache import RedirectCache
from shortlink.config import Settings
from shortlink.database import close_db, create_engine, init_db
from shortlink.kafka import EventPublisher
from shortlink.resolver import RedirectResolver
from shortlink.schemas import ClickMetadata
from shortlink.store import URLStore

__all__ = [
    "ServiceContainer",
    "RequestContext",
    "setup_logging",
    "get_services",
    "get_request_context",
    "get_resolver",
]

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(settings: Settings) -> logging.Logger:
    """Install one stream handler on the ``shortlink`` logger tree."""
    logger = logging.getLogger("shortlink")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(settings.LOG_LEVEL.upper())
    return logger


# ============================================================================
# SHARED SERVICES
# ============================================================================


@dataclass
class ServiceContainer:
    """Shared resources for the lifetime of the process.

    Attributes:
        settings: Frozen configuration every component was built from
        store: URLStore over the shared SQLAlchemy engine
        cache: RedirectCache over the shared Redis client
        publisher: EventPublisher over the shared Kafka producer
        dispatcher: Background task dispatcher for redirect side effects
        resolver: RedirectResolver wired to all of the above
    """

    settings: Settings
    store: URLStore
    cache: RedirectCache
    publisher: EventPublisher
    dispatcher: BackgroundDispatcher
    resolver: RedirectResolver = field(init=False)
    logger: logging.Logger = field(init=False)

    def __post_init__(self) -> None:
        self.logger = setup_logging(self.settings)
        self.resolver = RedirectResolver(
            self.settings,
            self.store,
            self.cache,
            self.publisher,
            self.dispatcher,
        )

    @property
    def engine(self) -> AsyncEngine:
        return self.store.engine

    @classmethod
    async def initialize(cls, settings: Settings) -> "ServiceContainer":
        """Open pools, create tables and start the Kafka producer."""
        engine = create_engine(settings)
        try:
            await init_db(engine)
            publisher = EventPublisher(settings)
            await publisher.start()
        except Exception:
            await close_db(engine)
            raise
        container = cls(
            settings=settings,
            store=URLStore(engine, settings),
            cache=RedirectCache.from_settings(settings),
            publisher=publisher,
            dispatcher=BackgroundDispatcher(settings),
        )
        container.logger.info(f"{settings.APP_NAME} services initialized ({settings.APP_ENV})")
        return container

    async def cleanup(self) -> None:
        """Let in-flight side effects finish, then close every pool."""
        await self.dispatcher.drain(timeout=self.settings.BACKGROUND_TASK_TIMEOUT_SECONDS)
        await self.publisher.stop()
        await self.cache.close()
        await close_db(self.engine)
        self.logger.info("Services shut down")


# ============================================================================
# LIGHTWEIGHT REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request tracking data.

    Attributes:
        services: Shared service container
        request_id: Unique identifier for this request
        client_ip: Client IP address
        user_agent: Client user agent string
        referrer: Referer header, if any
        start_time: Request start timestamp
    """

    services: ServiceContainer
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None
    start_time: float = field(default_factory=time.perf_counter)

    @property
    def logger(self) -> logging.LoggerAdapter:
        """Shared logger with request context attached to every record."""
        return logging.LoggerAdapter(
            self.services.logger,
            {
                "request_id": self.request_id,
                "client_ip": self.client_ip,
                "user_agent": self.user_agent,
            },
        )

    @property
    def settings(self) -> Settings:
        return self.services.settings

    def click_metadata(self) -> ClickMetadata:
        return ClickMetadata(
            ip_address=self.client_ip,
            user_agent=self.user_agent,
            referrer=self.referrer,
        )

    def get_duration(self) -> float:
        """Request duration in milliseconds."""
        return (time.perf_counter() - self.start_time) * 1000


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_request_context(
    request: Request,
    services: ServiceContainer = Depends(get_services),
) -> RequestContext:
    return RequestContext(
        services=services,
        request_id=request.headers.get("x-request-id") or str(uuid.uuid4()),
        client_ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        referrer=request.headers.get("referer"),
    )


def get_resolver(services: ServiceContainer = Depends(get_services)) -> RedirectResolver:
    return services.resolver
