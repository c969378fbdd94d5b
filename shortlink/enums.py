"""Shared enums for the shortlink service.

This module defines all status and state enums used across the codebase.
Using enums instead of string literals provides type safety and prevents typos.
"""

from enum import StrEnum

__all__ = ["HealthStatus", "CacheStatus", "RequestStatus", "TaskStatus"]


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"

    @classmethod
    def from_bool(cls, ok: bool) -> "HealthStatus":
        return cls.HEALTHY if ok else cls.UNHEALTHY


class CacheStatus(StrEnum):
    """Outcome of a redirect cache lookup."""

    HIT = "hit"
    MISS = "miss"


class RequestStatus(StrEnum):
    """Metric label values for create and resolve outcomes."""

    SUCCESS = "success"
    INVALID = "invalid"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    ERROR = "error"


class TaskStatus(StrEnum):
    """Metric label values for background side effects."""

    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    REJECTED = "rejected"
