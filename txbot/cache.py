"""An in-memory cache whose entries expire after a fixed time."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any


@dataclass
class CacheEntry:
    """A cached value and when it was stored."""

    value: Any
    stored_at: datetime


@dataclass
class Cache:
    """Key-value store; entries older than store_time are treated as missing."""

    store_time: timedelta = timedelta(minutes=10)
    entries: dict[str, CacheEntry] = field(default_factory=dict)

    def get(self, key: str) -> tuple[Any, bool]:
        """Return (value, True) for a fresh entry, else (None, False)."""
        entry = self.entries.get(key)
        if entry is None or entry.stored_at + self.store_time < datetime.now(timezone.utc):
            return None, False
        return entry.value, True

    def set(self, key: str, value: Any) -> None:
        """Store value under key."""
        self.entries[key] = CacheEntry(value, datetime.now(timezone.utc))