"""Shared pytest fixtures: SQLite-backed store, in-memory Redis and Kafka doubles."""

from collections.abc import AsyncGenerator
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
import redis.asyncio as redis
from aiokafka import AIOKafkaProducer
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.ext.asyncio import AsyncEngine

from shortlink.background import BackgroundDispatcher
from shortlink.cache import RedirectCache
from shortlink.config import Settings
from shortlink.database import close_db, create_engine, init_db
from shortlink.dependencies import ServiceContainer, get_services
from shortlink.kafka import EventPublisher
from shortlink.main import app
from shortlink.store import URLStore


def make_redis_double() -> AsyncMock:
    """Redis client double keeping values and TTLs in plain dicts.

    ``client.values`` and ``client.ttls`` expose the state to assertions.
    """
    client = AsyncMock(spec=redis.Redis)
    values: dict[str, str] = {}
    ttls: dict[str, int | None] = {}

    def _get(key):
        return values.get(key)

    def _set(key, value, ex=None):
        values[key] = value
        ttls[key] = ex
        return True

    def _expire(key, seconds):
        if key not in values:
            return False
        ttls[key] = seconds
        return True

    client.get = AsyncMock(side_effect=_get)
    client.set = AsyncMock(side_effect=_set)
    client.expire = AsyncMock(side_effect=_expire)
    client.ping = AsyncMock(return_value=True)
    client.aclose = AsyncMock(return_value=None)
    client.values = values
    client.ttls = ttls
    return client


def make_broken_redis_double() -> AsyncMock:
    """Redis client double failing every call like an unreachable server."""
    client = AsyncMock(spec=redis.Redis)
    for name in ("get", "set", "expire", "ping"):
        setattr(client, name, AsyncMock(side_effect=RedisConnectionError("Connection refused")))
    client.aclose = AsyncMock(return_value=None)
    return client


def make_producer_double() -> AsyncMock:
    producer = AsyncMock(spec=AIOKafkaProducer)
    producer.send_and_wait = AsyncMock(return_value=None)
    producer.start = AsyncMock(return_value=None)
    producer.stop = AsyncMock(return_value=None)
    return producer


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'shortlink.db'}",
        BASE_URL="https://sho.rt",
        BACKGROUND_TASK_TIMEOUT_SECONDS=2.0,
    )


@pytest_asyncio.fixture
async def engine(settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_engine(settings)
    await init_db(engine)
    yield engine
    await close_db(engine)


@pytest.fixture
def store(engine: AsyncEngine, settings: Settings) -> URLStore:
    return URLStore(engine, settings)


@pytest.fixture
def redis_client() -> AsyncMock:
    return make_redis_double()


@pytest.fixture
def cache(redis_client: AsyncMock, settings: Settings) -> RedirectCache:
    return RedirectCache(redis_client, settings)


@pytest.fixture
def producer() -> AsyncMock:
    return make_producer_double()


@pytest.fixture
def publisher(settings: Settings, producer: AsyncMock) -> EventPublisher:
    return EventPublisher(settings, producer=producer)


@pytest.fixture
def dispatcher(settings: Settings) -> BackgroundDispatcher:
    return BackgroundDispatcher(settings)


@pytest.fixture
def services(
    settings: Settings,
    store: URLStore,
    cache: RedirectCache,
    publisher: EventPublisher,
    dispatcher: BackgroundDispatcher,
) -> ServiceContainer:
    return ServiceContainer(
        settings=settings,
        store=store,
        cache=cache,
        publisher=publisher,
        dispatcher=dispatcher,
    )


@pytest.fixture
def resolver(services: ServiceContainer):
    return services.resolver


@pytest_asyncio.fixture
async def client(services: ServiceContainer) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_services] = lambda: services

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await services.dispatcher.drain()
    app.dependency_overrides.clear()


@pytest.fixture
def broken_cache(settings: Settings) -> RedirectCache:
    return RedirectCache(make_broken_redis_double(), settings)
