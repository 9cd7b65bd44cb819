from __future__ import annotations

from typing import Any, TypeVar


T = TypeVar("T")


def push_newest_first(items: list[T], entry: T, limit: int) -> list[T]:
    """Prepend `entry` and drop the oldest items beyond `limit`."""
    updated = [entry, *items]
    return updated[:limit]


def remember_unique(items: list[Any], value: Any, limit: int) -> list[Any]:
    """Append `value` if unseen, evicting from the front once over `limit`."""
    if value in items:
        return list(items)
    updated = [*items, value]
    if len(updated) > limit:
        updated = updated[-limit:]
    return updated


def redact_identifier(value: str, visible: int = 8) -> str:
    return f"{value[:visible]}..."
