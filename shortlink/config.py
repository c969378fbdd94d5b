"""Configuration management for the shortlink redirect service.

Every component receives the same immutable ``Settings`` instance in its
constructor. Nothing reads the environment after startup.

Flow Diagram: get_settings()
=============================
::
    ┌─────────────┐
    │  Call get_  │
    │  settings() │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Check cache  │
    │ (lru_cache)  │
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Read env│  │ Return  │
│ + .env, │  │ cached  │
│ freeze  │  │ value   │
└─────────┘  └─────────┘

How to Use
===========
**Step 1: Build once at startup**::
    from shortlink.config import get_settings
    settings = get_settings()

**Step 2: Hand it to components**::
    store = URLStore(create_engine(settings), settings)
    cache = RedirectCache.from_settings(settings)

**Step 3: Override in tests**::
    settings = Settings(DATABASE_URL="sqlite+aiosqlite:///./test.db")

Key Behaviours
===============
- Settings are frozen; assigning to a field raises ValidationError.
- Environment variables override defaults automatically.
- Unknown environment variables are ignored.

Classes:
    Settings:  Pydantic model for all configuration values.

"""

__all__ = ["Settings", "get_settings"]

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "shortlink"
    APP_ENV: str = "development"
    BASE_URL: str = "http://localhost:8080"
    HOST: str = "0.0.0.0"
    PORT: int = 8080
    LOG_LEVEL: str = "INFO"

    # PostgreSQL (sqlite+aiosqlite URLs are accepted for local runs)
    DATABASE_URL: str = "postgresql+asyncpg://shortlink:shortlink@db:5432/shortlink"
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    STORAGE_TIMEOUT_SECONDS: float = 2.0

    # Redis redirect cache
    REDIS_URL: str = "redis://redis:6379/0"
    CACHE_KEY_PREFIX: str = "url"
    CACHE_TTL_SECONDS: int = 3600
    CACHE_TIMEOUT_SECONDS: float = 0.5
    WARM_CACHE_ON_CREATE: bool = True

    # Kafka click events
    KAFKA_BOOTSTRAP_SERVERS: str = "kafka:9092"
    KAFKA_CLICK_TOPIC: str = "click_events"
    KAFKA_CLIENT_ID: str = "shortlink-redirector"

    # Fire-and-forget side effects of a redirect
    BACKGROUND_TASK_TIMEOUT_SECONDS: float = 5.0
    MAX_PENDING_BACKGROUND_TASKS: int = 10000

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
