"""Redis-backed redirect cache: short code -> long URL with expiry.

The cache is a disposable view of the ``urls`` table. A miss is never
authoritative, and an unreachable Redis is reported to the read path as a
miss so redirects fall back to the database.

Flow Diagram: Cache Operations
===============================
::
    ┌─────────────┐
    │  resolve()   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ get()        │──── RedisError ───▶ None (miss)
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ set_with│  │ refresh_│
│ _expiry │  │ expiry  │
│ (bg)    │  │ (bg)    │
└─────────┘  └─────────┘

How to Use
===========
**Step 1: Build once at startup**::
    cache = RedirectCache.from_settings(settings)

**Step 2: Read path**::
    long_url = await cache.get("abc123")

**Step 3: Background writes**::
    await cache.set_with_expiry("abc123", "https://example.com", 3600)
    await cache.refresh_expiry("abc123", 3600)

**Step 4: Cleanup on shutdown**::
    await cache.close()

Key Behaviours
===============
- Keys are ``{CACHE_KEY_PREFIX}:{short_code}``, values are the raw long URL.
- Socket timeouts bound every call with ``CACHE_TIMEOUT_SECONDS``.
- Reads swallow backend errors, writes raise CacheUnavailableError.
- UTF-8 encoding with decode_responses for string operations.

Classes:
    RedirectCache:  Thin wrapper over one shared ``redis.asyncio`` client.
"""

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from shortlink.config import Settings
from shortlink.exceptions import CacheUnavailableError
from shortlink.metrics import CACHE_ERRORS_TOTAL

__all__ = ["RedirectCache"]

logger = logging.getLogger(__name__)

# Socket-level failures can surface as builtin OSError subclasses.
_BACKEND_ERRORS = (RedisError, OSError)


class RedirectCache:
    def __init__(self, client: redis.Redis, settings: Settings):
        self._client = client
        self._prefix = settings.CACHE_KEY_PREFIX

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedirectCache":
        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_timeout=settings.CACHE_TIMEOUT_SECONDS,
            socket_connect_timeout=settings.CACHE_TIMEOUT_SECONDS,
        )
        return cls(client, settings)

    @property
    def client(self) -> redis.Redis:
        return self._client

    def key_for(self, short_code: str) -> str:
        return f"{self._prefix}:{short_code}"

    async def get(self, short_code: str) -> str | None:
        try:
            return await self._client.get(self.key_for(short_code))
        except _BACKEND_ERRORS as exc:
            CACHE_ERRORS_TOTAL.labels(operation="get").inc()
            logger.warning(f"Cache get failed for {short_code}, treating as miss: {exc!r}")
            return None

    async def set_with_expiry(self, short_code: str, long_url: str, ttl_seconds: int) -> None:
        try:
            await self._client.set(self.key_for(short_code), long_url, ex=ttl_seconds)
        except _BACKEND_ERRORS as exc:
            CACHE_ERRORS_TOTAL.labels(operation="set").inc()
            raise CacheUnavailableError("set_with_expiry", exc) from exc

    async def refresh_expiry(self, short_code: str, ttl_seconds: int) -> bool:
        """Reset the TTL of an existing entry without touching its value.

        Returns False when the key has already expired or was evicted.
        """
        try:
            return bool(await self._client.expire(self.key_for(short_code), ttl_seconds))
        except _BACKEND_ERRORS as exc:
            CACHE_ERRORS_TOTAL.labels(operation="expire").inc()
            raise CacheUnavailableError("refresh_expiry", exc) from exc

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except _BACKEND_ERRORS as exc:
            logger.error(f"Cache health check failed: {exc!r}")
            return False

    async def close(self) -> None:
        await self._client.aclose()
