"""Domain exceptions for the redirect pipeline.

Routes translate these into HTTP responses; the message of each class is
the generic text the client sees.

::
    ShortLinkError
    ├─ InvalidInputError        400 "Invalid input"
    │   └─ InvalidAliasError    400 "Invalid alias"
    ├─ AliasConflictError       409 "Alias already exists"
    ├─ ShortCodeNotFoundError   404 "Short URL not found"
    ├─ StorageError             500
    └─ CacheUnavailableError    never surfaced, logged by background tasks
"""

__all__ = [
    "ShortLinkError",
    "InvalidInputError",
    "InvalidAliasError",
    "AliasConflictError",
    "ShortCodeNotFoundError",
    "StorageError",
    "CacheUnavailableError",
]


class ShortLinkError(Exception):
    """Base exception for the shortlink service."""

    detail = "Internal server error"


class InvalidInputError(ShortLinkError):
    detail = "Invalid input"

    def __init__(self, reason: str = "Invalid input"):
        self.reason = reason
        super().__init__(reason)


class InvalidAliasError(InvalidInputError):
    detail = "Invalid alias"

    def __init__(self, alias: str):
        self.alias = alias
        super().__init__(f"Invalid alias: {alias!r}")


class AliasConflictError(ShortLinkError):
    detail = "Alias already exists"

    def __init__(self, alias: str, unverified: bool = False):
        self.alias = alias
        self.unverified = unverified
        reason = "could not be verified" if unverified else "is already taken"
        super().__init__(f"Alias '{alias}' {reason}")


class ShortCodeNotFoundError(ShortLinkError):
    detail = "Short URL not found"

    def __init__(self, short_code: str):
        self.short_code = short_code
        super().__init__(f"Short code '{short_code}' not found")


class StorageError(ShortLinkError):
    """Raised when a database query fails or times out."""

    def __init__(self, operation: str, original_error: Exception | None = None):
        self.operation = operation
        self.original_error = original_error
        super().__init__(f"Storage error during {operation}: {original_error!r}")


class CacheUnavailableError(ShortLinkError):
    """Raised by cache writes when Redis is unreachable."""

    def __init__(self, operation: str, original_error: Exception | None = None):
        self.operation = operation
        self.original_error = original_error
        super().__init__(f"Cache unavailable during {operation}: {original_error!r}")
