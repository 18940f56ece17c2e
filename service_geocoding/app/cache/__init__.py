from .cache_aside import CacheAside, CacheEnvelope

__all__ = ["CacheAside", "CacheEnvelope"]
