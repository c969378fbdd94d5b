"""Redirect resolution pipeline - create and resolve flows.

This module is the only place with business logic. It orchestrates the
codec, the store, the cache and the event publisher, and decides what runs
on the request path and what is pushed to background tasks.

Architecture Overview
=====================
::
    ┌─────────────────────────────────────────────────────────────┐
    │                    RedirectResolver                         │
    │  ┌─────────────────┐  ┌─────────────────┐  ┌──────────────┐ │
    │  │   create()      │  │   resolve()     │  │ Background   │ │
    │  │ • validate      │  │ • cache-aside   │  │ Dispatcher   │ │
    │  │ • derive/alias  │  │ • storage       │  │ • increment  │ │
    │  │ • idempotent    │  │   fallback      │  │ • TTL        │ │
    │  │   insert        │  │ • fan-out       │  │ • publish    │ │
    │  └─────────────────┘  └─────────────────┘  └──────────────┘ │
    └─────────────────────────────────────────────────────────────┘
                │                    │                    │
                ▼                    ▼                    ▼
    ┌─────────────────┐  ┌─────────────────┐  ┌─────────────────┐
    │   PostgreSQL    │  │     Redis       │  │     Kafka       │
    │   (URLStore)    │  │ (RedirectCache) │  │ (EventPublisher)│
    └─────────────────┘  └─────────────────┘  └─────────────────┘

Create Flow
-----------
::
    ┌─────────────┐
    │ POST /create│
    └──────┬──────┘
           ▼
    ┌─────────────┐   empty URL      ┌───────────────┐
    │ trim URL,   │─────────────────▶│ Invalid input │
    │ check alias │   bad alias      │ Invalid alias │
    └──────┬──────┘─────────────────▶└───────────────┘
    ALIAS? │
    ┌──────┴──────┐
    │ NO          │ YES
    ▼             ▼
┌─────────┐  ┌──────────────┐  taken / check failed  ┌──────────┐
│ derive_ │  │ is_alias_    │──────────────────────▶│ Conflict │
│ code()  │  │ available()  │                       └──────────┘
└────┬────┘  └──────┬───────┘
     └──────┬───────┘
            ▼
    ┌─────────────┐
    │ insert      │  ON CONFLICT DO NOTHING
    │ (awaited)   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ warm cache  │  background, only if a row was written
    └─────────────┘

Resolve Flow
------------
::
    ┌─────────────┐
    │ GET /:code  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ cache.get() │  (errors count as a miss)
    └──────┬──────┘
    HIT?   │
    ┌──────┴──────┐
    │ NO          │ YES
    ▼             │
┌─────────┐       │
│ lookup  │─ None ──▶ NotFound
│ (store) │─ error ─▶ StorageError (500)
└────┬────┘       │
     ▼            │
  backfill (bg)   │
     └──────┬─────┘
            ▼
    ┌─────────────┐       background, not awaited:
    │ return URL  │──────▶ increment_click_count
    │ (302)       │        refresh_expiry (hits only)
    └─────────────┘        publish ClickEvent

Key Behaviours
==============
- The response never waits for click counting, TTL refresh or Kafka.
- A cache outage degrades every read to a storage lookup.
- Alias availability is fail-closed: a failed check is a conflict.
- Aliases naming a fixed top-level path (/health, /metrics, /docs,
  /redoc) are conflicts; they could never be resolved.
- The availability check and the insert are separate statements; two
  concurrent creates of one alias may both succeed, the second insert
  being a no-op.
"""

import logging
import time

from shortlink.background import BackgroundDispatcher
from shortlink.cache import RedirectCache
from shortlink.codec import RESERVED_ALIASES, derive_code, validate_alias
from shortlink.config import Settings
from shortlink.enums import CacheStatus, RequestStatus
from shortlink.exceptions import (
    AliasConflictError,
    InvalidAliasError,
    InvalidInputError,
    ShortCodeNotFoundError,
    StorageError,
)
from shortlink.kafka import EventPublisher
from shortlink.metrics import (
    CACHE_HITS_TOTAL,
    CACHE_MISSES_TOTAL,
    CREATE_REQUESTS_TOTAL,
    RESOLVE_REQUESTS_TOTAL,
)
from shortlink.models import ShortURL
from shortlink.schemas import ClickEvent, ClickMetadata
from shortlink.store import URLStore

__all__ = ["RedirectResolver"]

logger = logging.getLogger(__name__)


class RedirectResolver:
    """Create and resolve short codes.

    One instance is built at startup and shared by every request; it holds
    references to the shared store, cache, publisher and dispatcher and no
    per-request state.

    Example:
        >>> resolver = RedirectResolver(settings, store, cache, publisher, dispatcher)
        >>> code = await resolver.create("https://example.com/a")
        >>> await resolver.resolve(code, ClickMetadata())
        'https://example.com/a'
    """

    def __init__(
        self,
        settings: Settings,
        store: URLStore,
        cache: RedirectCache,
        publisher: EventPublisher,
        dispatcher: BackgroundDispatcher,
    ):
        self._settings = settings
        self._store = store
        self._cache = cache
        self._publisher = publisher
        self._dispatcher = dispatcher
        self._ttl = settings.CACHE_TTL_SECONDS

    # ========================================================================
    # CREATE
    # ========================================================================

    async def create(self, long_url: str, custom_alias: str | None = None) -> str:
        """Persist a mapping and return its short code.

        Args:
            long_url: Redirect target; surrounding whitespace is ignored.
            custom_alias: Requested code. None or "" means "generate one".

        Returns:
            str: The alias, or the 8-character code derived from the URL.

        Raises:
            InvalidInputError: ``long_url`` is blank.
            InvalidAliasError: alias longer than 16 chars or not alphanumeric.
            AliasConflictError: alias taken, or availability unknown.
            StorageError: the insert itself failed.
        """
        start_time = time.perf_counter()
        try:
            short_code = await self._create(long_url, custom_alias)
        except InvalidInputError:
            CREATE_REQUESTS_TOTAL.labels(status=RequestStatus.INVALID).inc()
            raise
        except AliasConflictError:
            CREATE_REQUESTS_TOTAL.labels(status=RequestStatus.CONFLICT).inc()
            raise
        except StorageError:
            CREATE_REQUESTS_TOTAL.labels(status=RequestStatus.ERROR).inc()
            raise

        CREATE_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
        duration = time.perf_counter() - start_time
        logger.info(f"Short code {short_code} ready in {duration:.3f}s")
        return short_code

    async def _create(self, long_url: str, custom_alias: str | None) -> str:
        target = long_url.strip()
        alias = custom_alias or ""
        if not target:
            raise InvalidInputError("long_url is empty")
        if alias and not validate_alias(alias):
            raise InvalidAliasError(alias)

        if not alias:
            short_code = derive_code(target)
        else:
            await self._ensure_alias_available(alias)
            short_code = alias

        created = await self._store.insert(target, short_code)
        if created and self._settings.WARM_CACHE_ON_CREATE:
            self._dispatcher.dispatch(
                "warm_cache",
                self._cache.set_with_expiry(short_code, target, self._ttl),
            )
        return short_code

    async def _ensure_alias_available(self, alias: str) -> None:
        if alias in RESERVED_ALIASES:
            raise AliasConflictError(alias)
        try:
            available = await self._store.is_alias_available(alias)
        except StorageError as exc:
            logger.warning(f"Availability check for alias {alias} failed, rejecting: {exc}")
            raise AliasConflictError(alias, unverified=True) from exc
        if not available:
            raise AliasConflictError(alias)

    # ========================================================================
    # RESOLVE
    # ========================================================================

    async def resolve(self, short_code: str, metadata: ClickMetadata | None = None) -> str:
        """Return the long URL for ``short_code`` and schedule side effects.

        Raises:
            ShortCodeNotFoundError: no record for the code.
            StorageError: cache missed and the database lookup failed.
        """
        metadata = metadata or ClickMetadata()

        long_url = await self._cache.get(short_code)
        if long_url is not None:
            CACHE_HITS_TOTAL.inc()
            cache_status = CacheStatus.HIT
        else:
            CACHE_MISSES_TOTAL.inc()
            cache_status = CacheStatus.MISS
            long_url = await self._lookup_and_backfill(short_code)

        RESOLVE_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
        logger.debug(f"Resolved {short_code} ({cache_status})")
        self._fan_out(short_code, cache_status, metadata)
        return long_url

    async def _lookup_and_backfill(self, short_code: str) -> str:
        try:
            long_url = await self._store.lookup(short_code)
        except StorageError:
            RESOLVE_REQUESTS_TOTAL.labels(status=RequestStatus.ERROR).inc()
            raise
        if long_url is None:
            RESOLVE_REQUESTS_TOTAL.labels(status=RequestStatus.NOT_FOUND).inc()
            raise ShortCodeNotFoundError(short_code)

        self._dispatcher.dispatch(
            "backfill_cache",
            self._cache.set_with_expiry(short_code, long_url, self._ttl),
        )
        return long_url

    def _fan_out(self, short_code: str, cache_status: CacheStatus, metadata: ClickMetadata) -> None:
        self._dispatcher.dispatch(
            "increment_click_count",
            self._store.increment_click_count(short_code),
        )
        if cache_status is CacheStatus.HIT:
            self._dispatcher.dispatch(
                "refresh_expiry",
                self._cache.refresh_expiry(short_code, self._ttl),
            )
        self._dispatcher.dispatch(
            "publish_click_event",
            self._publisher.publish(ClickEvent.from_metadata(short_code, metadata)),
        )

    # ========================================================================
    # STATS
    # ========================================================================

    async def get_stats(self, short_code: str) -> ShortURL:
        """Read the stored record, click count included, bypassing the cache."""
        record = await self._store.get_record(short_code)
        if record is None:
            raise ShortCodeNotFoundError(short_code)
        return record
