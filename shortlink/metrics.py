"""Prometheus metrics for the redirect pipeline.

HTTP-level metrics come from prometheus-fastapi-instrumentator in main.py;
these counters cover what happens behind the endpoints.
"""

from prometheus_client import Counter

__all__ = [
    "CREATE_REQUESTS_TOTAL",
    "RESOLVE_REQUESTS_TOTAL",
    "CACHE_HITS_TOTAL",
    "CACHE_MISSES_TOTAL",
    "CACHE_ERRORS_TOTAL",
    "STORAGE_ERRORS_TOTAL",
    "BACKGROUND_TASKS_TOTAL",
    "CLICK_EVENTS_PUBLISHED_TOTAL",
    "CLICK_EVENTS_DROPPED_TOTAL",
]

# Request metrics
CREATE_REQUESTS_TOTAL = Counter(
    "shortlink_create_requests_total",
    "Alias creation requests by outcome",
    ["status"],
)
RESOLVE_REQUESTS_TOTAL = Counter(
    "shortlink_resolve_requests_total",
    "Short code resolutions by outcome",
    ["status"],
)

# Cache metrics
CACHE_HITS_TOTAL = Counter(
    "shortlink_cache_hits_total",
    "Redirect cache hits",
)
CACHE_MISSES_TOTAL = Counter(
    "shortlink_cache_misses_total",
    "Redirect cache misses, including misses caused by cache errors",
)
CACHE_ERRORS_TOTAL = Counter(
    "shortlink_cache_errors_total",
    "Redis operations that failed or timed out",
    ["operation"],
)

# Database metrics
STORAGE_ERRORS_TOTAL = Counter(
    "shortlink_storage_errors_total",
    "Database operations that failed or timed out",
    ["operation"],
)

# Background side effects
BACKGROUND_TASKS_TOTAL = Counter(
    "shortlink_background_tasks_total",
    "Background side-effect tasks by outcome",
    ["name", "status"],
)

# Event streaming metrics
CLICK_EVENTS_PUBLISHED_TOTAL = Counter(
    "shortlink_click_events_published_total",
    "Click events handed to Kafka",
)
CLICK_EVENTS_DROPPED_TOTAL = Counter(
    "shortlink_click_events_dropped_total",
    "Click events dropped because the producer was unavailable or failed",
)
