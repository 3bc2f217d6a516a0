from .memory_cache_backend import MemoryCacheBackend
from .tiered_cache_backend import TieredCacheBackend

__all__ = ["MemoryCacheBackend", "TieredCacheBackend"]
