"""Utility functions for RecipeShare.

This module provides common helpers for datetime handling, identifier
generation and small text normalizations used by the domain modules.
"""

import re
import uuid
from datetime import UTC, datetime
from typing import Any

from dateutil import parser as dateutil_parser  # type: ignore[import-untyped]

DEFAULT_USERNAME = "User"

_USERNAME_INVALID = re.compile(r"[^\w.\- ]+")


def parse_datetime(value: str | datetime | None) -> datetime | None:
    """Parse ISO8601 timestamp string into timezone-aware UTC datetime.

    Args:
        value: ISO8601 timestamp string, datetime object, or None

    Returns:
        Parsed timezone-aware datetime in UTC, or None if input is None

    Raises:
        ValueError: If timestamp format is invalid

    Example:
        >>> dt = parse_datetime("2024-01-15T10:30:00Z")
        >>> dt.tzinfo
        datetime.timezone.utc
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    dt = dateutil_parser.isoparse(value)

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)


def utc_now() -> datetime:
    """Get current UTC timestamp as timezone-aware datetime."""
    return datetime.now(UTC)


def utc_now_iso() -> str:
    """Get current UTC timestamp as ISO8601 string with 'Z' suffix.

    Microseconds are always included so stored timestamps sort lexically.

    Example:
        >>> utc_now_iso().endswith('Z')
        True
    """
    return utc_now().isoformat(timespec="microseconds").replace("+00:00", "Z")


def new_id() -> str:
    """Generate an opaque, globally unique entity identifier."""
    return uuid.uuid4().hex


def default_username(name: str | None, email: str | None) -> str:
    """Derive a display username for a freshly created profile.

    The identity provider's display name wins, then the local part of the
    email address, then a literal fallback.

    Args:
        name: Display name from the identity provider
        email: Email address from the identity provider

    Returns:
        Non-empty username candidate

    Example:
        >>> default_username(None, "ada@example.com")
        'ada'
        >>> default_username(None, None)
        'User'
    """
    for candidate in (name, email.split("@")[0] if email else None):
        if candidate:
            cleaned = _USERNAME_INVALID.sub("", candidate).strip()
            if cleaned:
                return cleaned[:64]
    return DEFAULT_USERNAME


def suffixed_username(base: str, attempt: int) -> str:
    """Return the n-th alternative for a username that is already taken.

    Example:
        >>> suffixed_username("ada", 1)
        'ada'
        >>> suffixed_username("ada", 3)
        'ada-3'
    """
    if attempt <= 1:
        return base
    return f"{base}-{attempt}"


def normalize_tags(tags: list[str] | None) -> list[str]:
    """Lowercase, strip and de-duplicate tags while keeping their order.

    Example:
        >>> normalize_tags([" Quick", "quick", "Healthy ", ""])
        ['quick', 'healthy']
    """
    seen: list[str] = []
    for tag in tags or []:
        cleaned = tag.strip().lower()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen


def mean(values: list[int] | list[float]) -> float:
    """Arithmetic mean, 0.0 for an empty sequence.

    Example:
        >>> mean([5, 3])
        4.0
        >>> mean([])
        0.0
    """
    if not values:
        return 0.0
    return sum(values) / len(values)


def ensure_list(value: Any) -> list[Any]:
    """Ensure value is a list, wrapping if necessary.

    Example:
        >>> ensure_list(None)
        []
        >>> ensure_list("a")
        ['a']
    """
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]
