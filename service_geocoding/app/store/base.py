"""
Key-value store contract.
"""

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueStore(ABC):
    """Network-accessible key-value store with per-key TTLs.

    Authoritative for cached geocoding results, API keys and usage records.
    Implementations raise on infrastructure failure; callers decide whether
    to degrade.
    """

    async def start(self) -> None:
        """Open connections."""

    async def stop(self) -> None:
        """Close connections."""

    @abstractmethod
    async def ping(self) -> bool:
        """Return True when the store answers."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the raw value, or None when the key is absent."""

    @abstractmethod
    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value. ``ttl_seconds <= 0`` stores it without expiry."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key; missing keys are ignored."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return True when the key is present."""
