"""Small helpers shared across the package."""

from __future__ import annotations

from datetime import timezone, tzinfo
from typing import TypeVar
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

T = TypeVar("T")

BUSINESS_TIME_ZONE = "Asia/Tashkent"


def remove_element(items: list[T], element: T) -> list[T]:
    """Return a list without the first occurrence of ``element``."""
    try:
        position = items.index(element)
    except ValueError:
        return items
    return items[:position] + items[position + 1:]


def replace_element(items: list[T], element: T, new_element: T) -> list[T]:
    """Replace the first occurrence of ``element`` in place and return the list."""
    try:
        position = items.index(element)
    except ValueError:
        return items
    items[position] = new_element
    return items


def get_time_zone() -> tzinfo:
    """Return the business time zone, falling back to UTC when it is unavailable."""
    try:
        return ZoneInfo(BUSINESS_TIME_ZONE)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return timezone.utc