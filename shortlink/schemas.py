"""Pydantic schemas for request/response validation and click events.

Schema Hierarchy
=================
::
    CreateRequest (Input)
    ├─ long_url: str
    └─ custom_alias: str | None

    CreateResponse (Output)
    └─ short_url: str (BASE_URL + "/" + code)

    URLStats (Output)
    ├─ short_code: str
    ├─ long_url: str
    ├─ click_count: int
    └─ created_at: datetime

    ReadinessResponse (Output)
    ├─ status: HealthStatus
    ├─ database: HealthStatus
    └─ cache: HealthStatus

    ClickEvent (Kafka payload)
    ├─ short_code: str (also the message key)
    ├─ ip_address / user_agent / referrer: str | None
    └─ timestamp: datetime (UTC, set at construction)

Key Behaviours
===============
- CreateRequest only checks types; trimming and alias rules belong to the
  resolver so the client sees "Invalid input" / "Invalid alias" instead of
  a schema error.
- All datetime fields are timezone-aware.
- ClickEvent serializes with ``model_dump_json()``.

Classes:
    CreateRequest:  Input schema for POST /create.
    CreateResponse:  Output schema for POST /create.
    URLStats:  Output schema for GET /api/stats/{short_code}.
    ReadinessResponse:  Output schema for GET /health/ready.
    ClickMetadata:  Request metadata captured for a redirect.
    ClickEvent:  Click telemetry published to Kafka.
"""

import datetime

from pydantic import BaseModel, ConfigDict, Field

from shortlink.enums import HealthStatus

__all__ = [
    "CreateRequest",
    "CreateResponse",
    "URLStats",
    "ReadinessResponse",
    "ClickMetadata",
    "ClickEvent",
]


class CreateRequest(BaseModel):
    long_url: str
    custom_alias: str | None = None


class CreateResponse(BaseModel):
    short_url: str


class URLStats(BaseModel):
    short_code: str
    long_url: str
    click_count: int
    created_at: datetime.datetime

    model_config = ConfigDict(from_attributes=True)


class ReadinessResponse(BaseModel):
    status: HealthStatus
    database: HealthStatus
    cache: HealthStatus


class ClickMetadata(BaseModel):
    """Who followed a redirect, as far as the request headers tell."""

    ip_address: str | None = None
    user_agent: str | None = None
    referrer: str | None = None

    model_config = ConfigDict(frozen=True)


class ClickEvent(BaseModel):
    """Kafka click event payload, keyed by short_code for partition affinity."""

    short_code: str = Field(..., description="Short code being clicked, e.g. 'abc123'")
    ip_address: str | None = Field(None, description="Client address as seen by the service")
    user_agent: str | None = Field(None, description="User-Agent request header")
    referrer: str | None = Field(None, description="Referer request header")
    timestamp: datetime.datetime = Field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc),
        description="When the redirect was served",
    )

    @classmethod
    def from_metadata(cls, short_code: str, metadata: ClickMetadata) -> "ClickEvent":
        return cls(short_code=short_code, **metadata.model_dump())
