"""
Key-value store backends.
"""

from .base import KeyValueStore
from .memory_store import InMemoryStore
from .redis_store import RedisStore


def create_store(config) -> KeyValueStore:
    """Build the store backend selected by ``config.store_backend``."""
    if config.store_backend == "memory":
        return InMemoryStore()
    return RedisStore(
        config.redis_url,
        connect_timeout=config.redis_connect_timeout,
        socket_timeout=config.redis_socket_timeout,
    )


__all__ = ["KeyValueStore", "InMemoryStore", "RedisStore", "create_store"]
