"""
In-memory backend for the key-value store.

Suitable for local development and tests. Data is lost on restart and is not
shared between processes.
"""

import time
from typing import Callable, Dict, Optional, Tuple

from .base import KeyValueStore


class InMemoryStore(KeyValueStore):
    """Dictionary-backed store honouring per-key expiry."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        # key -> (value, expires_at or None)
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}

    async def ping(self) -> bool:
        return True

    def _live(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    async def get(self, key: str) -> Optional[str]:
        return self._live(key)

    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds > 0 else None
        self._data[key] = (value, expires_at)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def exists(self, key: str) -> bool:
        return self._live(key) is not None
