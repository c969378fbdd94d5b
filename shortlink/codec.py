"""Short-code derivation and alias syntax rules.

Pure functions, no I/O. A generated code is the first eight characters of
the URL-safe, unpadded base64 encoding of SHA-256(long_url), so the same
long URL always maps to the same code. Two different URLs can collide on
the truncated prefix; nothing here detects that.

Example::

    >>> derive_code("https://example.com/a") == derive_code("  https://example.com/a ")
    True
    >>> validate_alias("abc123")
    True
    >>> validate_alias("my-code!")
    False

Functions:
    derive_code():  Deterministic 8-character code for a long URL.
    validate_alias():  Length and charset check for user aliases.
"""

import base64
import hashlib
import string

__all__ = ["GENERATED_CODE_LENGTH", "MAX_ALIAS_LENGTH", "RESERVED_ALIASES", "derive_code", "validate_alias"]

GENERATED_CODE_LENGTH = 8
MAX_ALIAS_LENGTH = 16
ALIAS_ALPHABET = frozenset(string.ascii_letters + string.digits)
# Top-level GET paths matched before /{short_code}; an alias with one of
# these names could be stored but never resolved.
RESERVED_ALIASES = frozenset({"health", "metrics", "docs", "redoc"})


def derive_code(long_url: str) -> str:
    assert isinstance(long_url, str), f"long_url must be str, got {type(long_url).__name__}"
    digest = hashlib.sha256(long_url.strip().encode("utf-8")).digest()
    encoded = base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")
    return encoded[:GENERATED_CODE_LENGTH]


def validate_alias(alias: str) -> bool:
    """Return True if ``alias`` is at most 16 ASCII letters or digits.

    The empty string passes; callers treat it as "no alias requested".
    """
    if len(alias) > MAX_ALIAS_LENGTH:
        return False
    return all(char in ALIAS_ALPHABET for char in alias)
