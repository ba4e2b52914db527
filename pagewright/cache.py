"""
Structure cache for Pagewright.

Keeps derived schema trees in process memory so repeated prompt builds for the
same, unchanged object do not walk the content model again.
"""

import logging
import re
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, Field


class CacheEntry(BaseModel):
    """A cached value with its expiry."""

    value: Any = Field(
        ...,
        description="The cached value"
    )

    created_at: datetime = Field(
        default_factory=datetime.now,
        description="When the entry was stored"
    )

    expires_at: Optional[datetime] = Field(
        default=None,
        description="When the entry stops being valid; None never expires"
    )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.now()) >= self.expires_at


class StructureCache:
    """
    In-memory key/value cache with optional per-entry TTL.
    """

    def __init__(self, default_ttl: Optional[int] = 3600, prefix: str = "structure"):
        """
        Initialize the cache.

        Args:
            default_ttl: TTL in seconds for entries stored without one (None or 0 disables expiry)
            prefix: Default key prefix used by generate_cache_key
        """
        self.default_ttl = default_ttl
        self.prefix = prefix
        self._entries: Dict[str, CacheEntry] = {}

    @staticmethod
    def sanitize_key(key: str) -> str:
        """Strip every character outside [A-Za-z0-9_.]."""
        return re.sub(r"[^A-Za-z0-9_.]", "", key)

    def generate_cache_key(self, content_object: Any, prefix: Optional[str] = None) -> str:
        """
        Build the cache key for a content object.

        The key changes whenever the object is persisted again, so stale
        structures are never served for a modified object.

        Args:
            content_object: Object exposing get_type, identity and last_modified_marker
            prefix: Key prefix (defaults to the cache prefix)

        Returns:
            Key of the form '<prefix>_<type>_<identity>_<timestamp>'
        """
        marker = content_object.last_modified_marker()
        version = int(marker.timestamp()) if marker else 0
        identity = content_object.identity() or 0
        key = f"{prefix or self.prefix}_{content_object.get_type()}_{identity}_{version}"
        return self.sanitize_key(key)

    def get(self, key: str) -> Any:
        """
        Get a cached value.

        Args:
            key: Cache key

        Returns:
            The value, or None if missing or expired
        """
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired():
            del self._entries[key]
            logging.debug(f"Cache entry expired: {key}")
            return None
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """
        Store a value.

        Args:
            key: Cache key
            value: Value to store
            ttl: TTL in seconds (defaults to the cache default)
        """
        self.purge_expired()
        ttl = self.default_ttl if ttl is None else ttl
        expires_at = datetime.now() + timedelta(seconds=ttl) if ttl else None
        self._entries[key] = CacheEntry(value=value, expires_at=expires_at)

    def has(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        if entry.is_expired():
            del self._entries[key]
            return False
        return True

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def purge_expired(self) -> int:
        """
        Drop every expired entry.

        Returns:
            Number of entries removed
        """
        now = datetime.now()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logging.debug(f"Purged {len(expired)} expired cache entries")
        return len(expired)

    def delete_other_versions(self, key: str) -> int:
        """
        Drop entries for earlier versions of the object a generated key names.

        Keys from generate_cache_key differ only in their trailing timestamp
        between saves of the same object.

        Args:
            key: The current key of the object

        Returns:
            Number of entries removed
        """
        stem = key.rsplit("_", 1)[0] + "_"
        stale = [
            other for other in self._entries
            if other != key and other.startswith(stem) and "_" not in other[len(stem):]
        ]
        for other in stale:
            del self._entries[other]
        return len(stale)

    def get_or_create(self, key: str, producer: Callable[[], Any], ttl: Optional[int] = None) -> Any:
        """
        Get a cached value, producing and storing it on a miss.

        A producer result of None is returned but not stored.

        Args:
            key: Cache key
            producer: Zero-argument callable computing the value
            ttl: TTL in seconds for a newly stored value

        Returns:
            The cached or newly produced value
        """
        if self.has(key):
            logging.debug(f"Cache hit: {key}")
            return self._entries[key].value

        value = producer()
        if value is not None:
            self.set(key, value, ttl)
        return value

    def clear(self) -> int:
        """
        Remove every entry.

        Returns:
            Number of entries removed
        """
        count = len(self._entries)
        self._entries.clear()
        logging.info(f"Cleared {count} cached structures")
        return count

    def __len__(self) -> int:
        return len(self._entries)
