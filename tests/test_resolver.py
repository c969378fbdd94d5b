"""RedirectResolver tests: create and resolve flows with their side effects."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from shortlink.background import BackgroundDispatcher
from shortlink.cache import RedirectCache
from shortlink.codec import RESERVED_ALIASES, derive_code
from shortlink.config import Settings
from shortlink.exceptions import (
    AliasConflictError,
    InvalidAliasError,
    InvalidInputError,
    ShortCodeNotFoundError,
    StorageError,
)
from shortlink.kafka import EventPublisher
from shortlink.resolver import RedirectResolver
from shortlink.schemas import ClickEvent, ClickMetadata
from shortlink.store import URLStore


@pytest.fixture
def outage_resolver(
    settings: Settings,
    store: URLStore,
    broken_cache: RedirectCache,
    publisher: EventPublisher,
    dispatcher: BackgroundDispatcher,
) -> RedirectResolver:
    return RedirectResolver(settings, store, broken_cache, publisher, dispatcher)


# ============================================================================
# CREATE
# ============================================================================


class TestCreate:
    @pytest.mark.asyncio
    async def test_generated_code_is_deterministic(self, resolver: RedirectResolver, dispatcher) -> None:
        first = await resolver.create("https://example.com/a")
        second = await resolver.create("https://example.com/a")

        assert first == second == derive_code("https://example.com/a")
        await dispatcher.drain()

    @pytest.mark.asyncio
    async def test_empty_alias_means_generated(self, resolver: RedirectResolver, dispatcher) -> None:
        code = await resolver.create("https://example.com/a", "")
        assert len(code) == 8
        await dispatcher.drain()

    @pytest.mark.asyncio
    async def test_long_url_is_trimmed(self, resolver: RedirectResolver, store: URLStore, dispatcher) -> None:
        code = await resolver.create("   https://example.com/a  ")
        assert await store.lookup(code) == "https://example.com/a"
        await dispatcher.drain()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("long_url", ["", "   ", "\n\t"])
    async def test_blank_long_url_rejected(self, resolver: RedirectResolver, long_url: str) -> None:
        with pytest.raises(InvalidInputError) as exc_info:
            await resolver.create(long_url)
        assert not isinstance(exc_info.value, InvalidAliasError)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("alias", ["a" * 17, "my-code!", "has space", "ünïcode"])
    async def test_invalid_alias_rejected(self, resolver: RedirectResolver, store: URLStore, alias: str) -> None:
        with pytest.raises(InvalidAliasError):
            await resolver.create("https://example.com", alias)
        assert await store.lookup(alias) is None

    @pytest.mark.asyncio
    async def test_alias_created_once_then_conflicts(self, resolver: RedirectResolver, dispatcher) -> None:
        assert await resolver.create("https://example.com/a", "abc123") == "abc123"

        with pytest.raises(AliasConflictError):
            await resolver.create("https://example.com/a", "abc123")
        with pytest.raises(AliasConflictError):
            await resolver.create("https://example.com/other", "abc123")
        await dispatcher.drain()

    @pytest.mark.asyncio
    async def test_alias_check_failure_is_conflict(self, resolver: RedirectResolver, store: URLStore) -> None:
        store.is_alias_available = AsyncMock(side_effect=StorageError("is_alias_available"))
        store.insert = AsyncMock()

        with pytest.raises(AliasConflictError) as exc_info:
            await resolver.create("https://example.com", "mine")

        assert exc_info.value.unverified is True
        store.insert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_insert_failure_propagates(self, resolver: RedirectResolver, store: URLStore) -> None:
        store.insert = AsyncMock(side_effect=StorageError("insert"))

        with pytest.raises(StorageError):
            await resolver.create("https://example.com")

    @pytest.mark.asyncio
    async def test_create_warms_cache_in_background(self, resolver: RedirectResolver, redis_client, dispatcher) -> None:
        code = await resolver.create("https://example.com/a")
        await dispatcher.drain()

        assert redis_client.values[f"url:{code}"] == "https://example.com/a"
        assert redis_client.ttls[f"url:{code}"] == 3600

    @pytest.mark.asyncio
    async def test_noop_insert_does_not_warm_cache(
        self, resolver: RedirectResolver, store: URLStore, redis_client, dispatcher
    ) -> None:
        code = derive_code("https://example.com/a")
        # Simulate a truncated-hash collision: the code already maps elsewhere.
        await store.insert("https://somewhere.else", code)

        assert await resolver.create("https://example.com/a") == code
        await dispatcher.drain()
        assert f"url:{code}" not in redis_client.values

    @pytest.mark.asyncio
    async def test_create_during_cache_outage(
        self, outage_resolver: RedirectResolver, store: URLStore, dispatcher
    ) -> None:
        code = await outage_resolver.create("https://example.com/a")
        await dispatcher.drain()
        assert await store.lookup(code) == "https://example.com/a"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("alias", sorted(RESERVED_ALIASES))
    async def test_reserved_alias_is_conflict(self, resolver: RedirectResolver, store: URLStore, alias: str) -> None:
        store.is_alias_available = AsyncMock(return_value=True)

        with pytest.raises(AliasConflictError):
            await resolver.create("https://example.com", alias)

        store.is_alias_available.assert_not_awaited()
        assert await store.lookup(alias) is None

    @pytest.mark.asyncio
    async def test_alias_race_first_writer_wins(self, resolver: RedirectResolver, store: URLStore, dispatcher) -> None:
        # Both creates pass the availability check, as when they interleave.
        store.is_alias_available = AsyncMock(return_value=True)

        assert await resolver.create("https://first.example", "race") == "race"
        assert await resolver.create("https://second.example", "race") == "race"
        await dispatcher.drain()

        assert await store.lookup("race") == "https://first.example"


# ============================================================================
# RESOLVE
# ============================================================================


class TestResolve:
    @pytest.mark.asyncio
    async def test_unknown_code(self, resolver: RedirectResolver, dispatcher) -> None:
        with pytest.raises(ShortCodeNotFoundError):
            await resolver.resolve("nope")
        await dispatcher.drain()
        assert dispatcher.pending == 0

    @pytest.mark.asyncio
    async def test_miss_falls_back_and_backfills(
        self, resolver: RedirectResolver, store: URLStore, redis_client, dispatcher
    ) -> None:
        await store.insert("https://example.com/a", "abc123")

        assert await resolver.resolve("abc123") == "https://example.com/a"
        await dispatcher.drain()

        assert redis_client.values["url:abc123"] == "https://example.com/a"
        assert redis_client.ttls["url:abc123"] == 3600
        record = await store.get_record("abc123")
        assert record.click_count == 1
        redis_client.expire.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_hit_skips_storage_and_refreshes_ttl(
        self, resolver: RedirectResolver, store: URLStore, redis_client, dispatcher
    ) -> None:
        await store.insert("https://example.com/a", "abc123")
        redis_client.values["url:abc123"] = "https://example.com/a"
        redis_client.ttls["url:abc123"] = 12
        store.lookup = AsyncMock(side_effect=AssertionError("storage must not be read on a hit"))

        assert await resolver.resolve("abc123") == "https://example.com/a"
        await dispatcher.drain()

        assert redis_client.ttls["url:abc123"] == 3600
        redis_client.set.assert_not_awaited()
        record = await store.get_record("abc123")
        assert record.click_count == 1

    @pytest.mark.asyncio
    async def test_repeated_resolution_is_monotonic(
        self, resolver: RedirectResolver, store: URLStore, dispatcher
    ) -> None:
        await store.insert("https://example.com/a", "abc123")

        seen_counts = []
        for _ in range(4):
            assert await resolver.resolve("abc123") == "https://example.com/a"
            await dispatcher.drain()
            seen_counts.append((await store.get_record("abc123")).click_count)

        assert seen_counts == sorted(seen_counts)
        assert seen_counts[-1] == 4

    @pytest.mark.asyncio
    async def test_click_event_published_with_metadata(
        self, resolver: RedirectResolver, store: URLStore, producer, dispatcher
    ) -> None:
        await store.insert("https://example.com/a", "abc123")
        metadata = ClickMetadata(ip_address="192.0.2.7", user_agent="pytest", referrer="https://ref.example")

        await resolver.resolve("abc123", metadata)
        await dispatcher.drain()

        producer.send_and_wait.assert_awaited_once()
        args, kwargs = producer.send_and_wait.call_args
        event = ClickEvent.model_validate_json(args[1])
        assert kwargs["key"] == b"abc123"
        assert event.short_code == "abc123"
        assert event.ip_address == "192.0.2.7"
        assert event.user_agent == "pytest"
        assert event.referrer == "https://ref.example"

    @pytest.mark.asyncio
    async def test_storage_error_on_miss(self, resolver: RedirectResolver, store: URLStore) -> None:
        store.lookup = AsyncMock(side_effect=StorageError("lookup"))

        with pytest.raises(StorageError):
            await resolver.resolve("abc123")

    @pytest.mark.asyncio
    async def test_background_failures_do_not_affect_response(
        self, resolver: RedirectResolver, store: URLStore, producer, dispatcher
    ) -> None:
        await store.insert("https://example.com/a", "abc123")
        store.increment_click_count = AsyncMock(side_effect=StorageError("increment_click_count"))
        producer.send_and_wait.side_effect = OSError("broker gone")

        assert await resolver.resolve("abc123") == "https://example.com/a"
        await dispatcher.drain()

    @pytest.mark.asyncio
    async def test_resolve_during_cache_outage(
        self, outage_resolver: RedirectResolver, store: URLStore, dispatcher
    ) -> None:
        await store.insert("https://example.com/a", "abc123")

        assert await outage_resolver.resolve("abc123") == "https://example.com/a"
        assert await outage_resolver.resolve("abc123") == "https://example.com/a"
        await dispatcher.drain()

        record = await store.get_record("abc123")
        assert record.click_count == 2

    @pytest.mark.asyncio
    async def test_resolve_does_not_wait_for_side_effects(
        self, resolver: RedirectResolver, store: URLStore, producer, dispatcher
    ) -> None:
        await store.insert("https://example.com/a", "abc123")
        release = asyncio.Event()

        async def blocked(*args, **kwargs):
            await release.wait()

        store.increment_click_count = AsyncMock(side_effect=blocked)
        producer.send_and_wait = AsyncMock(side_effect=blocked)

        long_url = await asyncio.wait_for(resolver.resolve("abc123"), timeout=1.0)

        assert long_url == "https://example.com/a"
        assert dispatcher.pending > 0
        release.set()
        await dispatcher.drain()
        assert dispatcher.pending == 0
        store.increment_click_count.assert_awaited_once_with("abc123")

    @pytest.mark.asyncio
    async def test_stats(self, resolver: RedirectResolver, store: URLStore) -> None:
        await store.insert("https://example.com/a", "abc123")
        record = await resolver.get_stats("abc123")
        assert record.long_url == "https://example.com/a"

        with pytest.raises(ShortCodeNotFoundError):
            await resolver.get_stats("nope")
