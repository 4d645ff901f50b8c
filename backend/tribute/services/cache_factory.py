import logging

from tribute.core.config import settings
from tribute.services.cache_interface import CacheBackend
from tribute.services.cache_providers.memory_cache import MemoryCache
from tribute.services.cache_providers.redis_cache import RedisCache

logger = logging.getLogger(__name__)

_cache_instances = {}


def get_cache_backend(backend: str = None) -> CacheBackend:
    """
    Get tagged cache instance.
    If backend is not specified, uses the default from settings.
    """
    if not backend:
        backend = settings.CACHE_BACKEND.lower()

    if backend in _cache_instances:
        return _cache_instances[backend]

    logger.info(f"Initializing cache backend: {backend}")

    if backend == "redis":
        instance = RedisCache()
    elif backend == "memory":
        instance = MemoryCache()
    else:
        raise ValueError(f"Unknown cache backend '{backend}'")

    _cache_instances[backend] = instance
    return instance


async def close_cache_backends() -> None:
    """Close every cache backend created by this process."""
    for instance in list(_cache_instances.values()):
        await instance.close()
    _cache_instances.clear()
