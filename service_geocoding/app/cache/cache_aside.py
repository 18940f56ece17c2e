"""
Cache-aside wrapper over the key-value store.
"""

import time
from typing import Any, Callable, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from shared.logging import get_logger
from ..store.base import KeyValueStore

ModelT = TypeVar("ModelT", bound=BaseModel)


class CacheEnvelope(BaseModel):
    """Stored wrapper: payload plus write time and logical TTL.

    ``ttl_seconds == 0`` marks a persistent record with no logical expiry.
    """

    data: Any
    written_at_millis: int
    ttl_seconds: int

    def is_expired(self, now_millis: int) -> bool:
        if self.ttl_seconds <= 0:
            return False
        return now_millis >= self.written_at_millis + self.ttl_seconds * 1000


class CacheAside:
    """Envelope-enforcing cache over a :class:`KeyValueStore`.

    Store failures never propagate: reads degrade to misses and writes to
    no-ops. The envelope's own expiry check runs independently of the store's
    native TTL, which is set to the same value.
    """

    def __init__(self, store: KeyValueStore, default_ttl: int = 86400,
                 clock: Callable[[], float] = time.time):
        self.store = store
        self.default_ttl = default_ttl
        self._clock = clock
        self.logger = get_logger("geocoding.cache")

    def _now_millis(self) -> int:
        return int(self._clock() * 1000)

    async def get(self, key: str, model: Optional[Type[ModelT]] = None) -> Any:
        """Return the cached value, or None on miss, expiry or store failure."""
        try:
            raw = await self.store.get(key)
        except Exception as e:
            self.logger.error("Cache get error", key=key, error=str(e))
            return None

        if raw is None:
            return None

        try:
            envelope = CacheEnvelope.model_validate_json(raw)
        except ValidationError as e:
            self.logger.warning("Discarding malformed cache entry", key=key, error=str(e))
            await self.delete(key)
            return None

        if envelope.is_expired(self._now_millis()):
            self.logger.debug("Cache entry expired", key=key)
            await self.delete(key)
            return None

        if model is None:
            return envelope.data

        try:
            return model.model_validate(envelope.data)
        except ValidationError as e:
            self.logger.warning("Cached payload does not match model", key=key,
                                model=model.__name__, error=str(e))
            await self.delete(key)
            return None

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        """Write ``value`` under ``key``.

        ``ttl_seconds=None`` uses the default TTL; ``0`` stores the value
        without expiry. Returns False when the store rejected the write.
        """
        ttl = self.default_ttl if ttl_seconds is None else ttl_seconds
        if isinstance(value, BaseModel):
            value = value.model_dump(mode="json")

        envelope = CacheEnvelope(
            data=value,
            written_at_millis=self._now_millis(),
            ttl_seconds=ttl,
        )

        try:
            await self.store.set_with_ttl(key, envelope.model_dump_json(), ttl)
            return True
        except Exception as e:
            self.logger.error("Cache set error", key=key, error=str(e))
            return False

    async def delete(self, key: str) -> None:
        """Best-effort delete."""
        try:
            await self.store.delete(key)
        except Exception as e:
            self.logger.error("Cache delete error", key=key, error=str(e))

    async def exists(self, key: str) -> bool:
        try:
            return await self.store.exists(key)
        except Exception as e:
            self.logger.error("Cache exists error", key=key, error=str(e))
            return False

    @staticmethod
    def generate_key(prefix: str, *parts: str) -> str:
        return f"{prefix}:{':'.join(parts)}"

