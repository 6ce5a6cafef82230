import logging
from dataclasses import dataclass
from enum import Enum
from functools import wraps
from typing import Any, Callable

logger = logging.getLogger(__name__)


class Source(str, Enum):
    CACHE = "cache"
    DATABASE = "database"


@dataclass
class CachedResult:
    data: Any
    source: Source


def cache_aside(key_builder: Callable[..., str], ttl: Callable[[Any], int]):
    """
    Decorator for async service methods reading through self.cache.

    key_builder receives the method's args/kwargs (without self); ttl
    receives the service instance so TTLs can come from its settings.
    On a hit the key's expiry slides to ttl; on a miss the wrapped method
    loads from the store and the result is cached. Returns CachedResult.
    Example:
      @cache_aside(lambda *_, **__: "products:list", ttl=lambda s: s.settings.cache_list_ttl)
      async def list_products(self): ...
    """

    def decorator(fn: Callable):
        @wraps(fn)
        async def wrapper(self, *args, **kwargs):
            key = key_builder(*args, **kwargs)
            seconds = ttl(self)

            cached = await self.cache.get_with_refresh(key, seconds)
            if cached is not None:
                logger.debug(f"Cache hit for {key}")
                return CachedResult(data=cached, source=Source.CACHE)

            value = await fn(self, *args, **kwargs)
            if not await self.cache.set(key, value, seconds):
                logger.debug(f"Could not populate cache for {key}")
            return CachedResult(data=value, source=Source.DATABASE)

        return wrapper

    return decorator


def invalidates(*key_builders: Callable[..., str]):
    """
    Decorator for async write methods: delete the given keys after the
    wrapped method has persisted. Cache failures never undo or abort the write.
    """

    def decorator(fn: Callable):
        @wraps(fn)
        async def wrapper(self, *args, **kwargs):
            result = await fn(self, *args, **kwargs)
            for key_builder in key_builders:
                key = key_builder(*args, **kwargs)
                if await self.cache.delete(key):
                    logger.info(f"Invalidated cache key {key}")
                else:
                    logger.warning(f"Could not invalidate cache key {key}")
            return result

        return wrapper

    return decorator
