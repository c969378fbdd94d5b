"""Durable short code -> long URL mapping backed by the ``urls`` table.

All atomicity lives in the database: the idempotent insert is a single
``INSERT ... ON CONFLICT DO NOTHING`` and the click counter is a single
``UPDATE ... SET click_count = click_count + 1``. No application locks.

Every public method opens its own session, is bounded by
``STORAGE_TIMEOUT_SECONDS`` and reports failures as ``StorageError``.
"Not found" is a normal result, never an error.

Usage::

    store = URLStore(engine, settings)
    created = await store.insert("https://example.com/a", "abc123")
    long_url = await store.lookup("abc123")
    await store.increment_click_count("abc123")
"""

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

from sqlalchemy import exists, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from shortlink.config import Settings
from shortlink.database import create_session_factory
from shortlink.exceptions import StorageError
from shortlink.metrics import STORAGE_ERRORS_TOTAL
from shortlink.models import ShortURL

__all__ = ["URLStore"]

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class URLStore:
    def __init__(self, engine: AsyncEngine, settings: Settings):
        dialect = engine.dialect.name
        if dialect not in _UPSERT_INSERTS:
            raise ValueError(f"Unsupported database dialect for urls table: {dialect}")
        self._engine = engine
        self._session_factory = create_session_factory(engine)
        self._insert = _UPSERT_INSERTS[dialect]
        self._timeout = settings.STORAGE_TIMEOUT_SECONDS

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def insert(self, long_url: str, short_code: str) -> bool:
        """Insert a record unless ``short_code`` already exists.

        Returns:
            bool: True if a row was written, False if the code was already
            present (the existing row is left untouched).

        Raises:
            StorageError: On connectivity failures, timeouts, or constraint
            violations other than the primary-key conflict.
        """
        urls = ShortURL.__table__
        stmt = (
            self._insert(urls)
            .values(short_url=short_code, long_url=long_url)
            .on_conflict_do_nothing(index_elements=[urls.c.short_url])
            .returning(urls.c.short_url)
        )

        async def _run() -> bool:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()
                return result.scalar_one_or_none() is not None

        created = await self._bounded("insert", _run())
        if not created:
            logger.debug(f"Insert of existing short code {short_code} was a no-op")
        return created

    async def is_alias_available(self, alias: str) -> bool:
        async def _run() -> bool:
            async with self._session_factory() as session:
                taken = await session.scalar(select(exists().where(ShortURL.short_code == alias)))
                return not taken

        return await self._bounded("is_alias_available", _run())

    async def lookup(self, short_code: str) -> str | None:
        async def _run() -> str | None:
            async with self._session_factory() as session:
                return await session.scalar(select(ShortURL.long_url).where(ShortURL.short_code == short_code))

        return await self._bounded("lookup", _run())

    async def get_record(self, short_code: str) -> ShortURL | None:
        async def _run() -> ShortURL | None:
            async with self._session_factory() as session:
                return await session.get(ShortURL, short_code)

        return await self._bounded("get_record", _run())

    async def increment_click_count(self, short_code: str) -> None:
        """Add one click. Missing rows are ignored."""
        stmt = (
            update(ShortURL)
            .where(ShortURL.short_code == short_code)
            .values(click_count=ShortURL.click_count + 1)
            .execution_options(synchronize_session=False)
        )

        async def _run() -> None:
            async with self._session_factory() as session:
                await session.execute(stmt)
                await session.commit()

        await self._bounded("increment_click_count", _run())

    async def ping(self) -> bool:
        async def _run() -> None:
            async with self._engine.connect() as conn:
                await conn.execute(select(1))

        try:
            await self._bounded("ping", _run())
        except StorageError:
            return False
        return True

    async def _bounded(self, operation: str, call: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self._timeout)
        except (SQLAlchemyError, asyncio.TimeoutError, OSError) as exc:
            STORAGE_ERRORS_TOTAL.labels(operation=operation).inc()
            logger.error(f"Storage {operation} failed: {exc!r}")
            raise StorageError(operation, exc) from exc
