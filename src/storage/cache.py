"""
In-Memory Cache Module.

Provides a bounded, time-expiring key-value store used in front of expensive
provider calls. Entries are keyed by a deterministic string built from a
parameter mapping, expire lazily on read, and are evicted least-recently-used
first when the store is full.

The store is process-local and not synchronized: concurrent writers of the
same key race and the last write wins.
"""

import time
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Generic, Mapping, Optional, TypeVar

from config import logger

T = TypeVar("T")

KEY_SEPARATOR = "|"

# Percent-escapes for characters that delimit the encoded key; "%" first
VALUE_ESCAPES = (("%", "%25"), ("|", "%7C"), (":", "%3A"))


def _encode_value(value: Any) -> str:
    if value is None:
        return ""
    text = str(value.value) if isinstance(value, Enum) else str(value)
    for char, escaped in VALUE_ESCAPES:
        text = text.replace(char, escaped)
    return text


def _encode_params(params: Mapping[str, Any]) -> str:
    return KEY_SEPARATOR.join(
        f"{name}:{_encode_value(params[name])}" for name in sorted(params)
    )


def build_cache_key(prefix: str, params: Mapping[str, Any]) -> str:
    """
    Build a deterministic cache key from a parameter mapping.

    Parameter names are sorted so the key does not depend on mapping order:
    ``build_cache_key("commits", {"toRef": "v2", "repoId": "abc"})`` gives
    ``"commits:repoId:abc|toRef:v2"``. None encodes as an empty value, and
    ``%``, ``|`` and ``:`` inside values are percent-escaped so a value can
    never forge another parameter.

    Args:
        prefix (str): Cache name prepended to the key.
        params (Mapping[str, Any]): Parameters identifying the cached value.

    Returns:
        str: Encoded key.
    """
    return f"{prefix}:{_encode_params(params)}"


@dataclass
class CacheEntry(Generic[T]):
    """A cached value and its absolute expiry on the cache clock."""

    key: str
    value: T
    expires_at: float


class TTLCache(Generic[T]):
    """
    Bounded least-recently-used cache with per-entry time-to-live.

    Attributes:
        name (str): Cache name, also the key prefix.
        ttl (float): Entry lifetime in seconds.
        max_entries (int): Capacity before least-recently-used eviction.
    """

    def __init__(
        self,
        name: str,
        ttl: float,
        max_entries: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize an empty cache.

        Args:
            name (str): Cache name, also the key prefix.
            ttl (float): Entry lifetime in seconds.
            max_entries (int): Maximum number of entries held.
            clock (Callable[[], float]): Monotonic clock in seconds.
        """
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")

        self.name = name
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry[T]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def key_for(self, params: Mapping[str, Any]) -> str:
        return build_cache_key(self.name, params)

    def get(self, params: Mapping[str, Any]) -> Optional[T]:
        """
        Look up a value. Never raises.

        Args:
            params (Mapping[str, Any]): Parameters identifying the value.

        Returns:
            Optional[T]: The cached value, or None on a miss or expired entry.
        """
        key = self.key_for(params)
        entry = self._entries.get(key)

        if entry is None:
            logger.debug({"message": f"Cache miss: {self.name}", "key": key})
            return None

        if self._clock() >= entry.expires_at:
            del self._entries[key]
            logger.debug({"message": f"Cache expired: {self.name}", "key": key})
            return None

        self._entries.move_to_end(key)
        logger.debug({"message": f"Cache hit: {self.name}", "key": key})
        return entry.value

    def set(self, params: Mapping[str, Any], value: T) -> None:
        """
        Store a value with ``now + ttl`` as its expiry.

        Args:
            params (Mapping[str, Any]): Parameters identifying the value.
            value (T): Value to cache.
        """
        key = self.key_for(params)

        if key in self._entries:
            self._entries.move_to_end(key)
        elif len(self._entries) >= self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug({"message": f"Cache evicted: {self.name}", "key": evicted})

        self._entries[key] = CacheEntry(key=key, value=value, expires_at=self._clock() + self.ttl)
        logger.debug({"message": f"Cache set: {self.name}", "key": key})

    def invalidate(self, partial_params: Mapping[str, Any]) -> int:
        """
        Remove every entry whose key contains all given ``name:value`` fragments.

        Fragments match whole parameters, so ``{"repoId": "ab"}`` does not
        remove entries for ``repoId:abc``. An empty mapping removes everything.

        Args:
            partial_params (Mapping[str, Any]): Subset of parameters to match.

        Returns:
            int: Number of entries removed.
        """
        prefix = f"{self.name}:"
        fragments = [
            f"{KEY_SEPARATOR}{name}:{_encode_value(value)}{KEY_SEPARATOR}"
            for name, value in partial_params.items()
        ]

        doomed = [
            key
            for key in self._entries
            if all(
                fragment in f"{KEY_SEPARATOR}{key[len(prefix):]}{KEY_SEPARATOR}"
                for fragment in fragments
            )
        ]
        for key in doomed:
            del self._entries[key]

        logger.info(
            {
                "message": f"Cache invalidated: {self.name}",
                "params": dict(partial_params),
                "keys_cleared": len(doomed),
            }
        )
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> Dict[str, int]:
        return {"size": len(self._entries), "max": self.max_entries}
