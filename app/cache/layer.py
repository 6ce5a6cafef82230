import asyncio
import json
import logging
from typing import Any, Optional

from redis.asyncio import Redis, RedisError
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from app.cache.retry import command_retry, reconnect_delays
from app.core.config import Settings
from app.core.errors import ServiceUnavailable

logger = logging.getLogger(__name__)


class CacheLayer:
    """
    Best-effort Redis cache with JSON values.

    Features:
    - get/set/delete with TTL, plus get_with_refresh to slide expiry on hit
    - Graceful degradation when Redis is unavailable: reads report absent,
      writes report failure, nothing raises
    - Commands never retry; after a connection failure the layer goes
      unavailable and a background task reconnects on the reconnect_delay
      schedule, stopping for good once the schedule gives up
    - Automatic key namespacing
    """

    def __init__(self, settings: Settings, redis: Redis | None = None):
        self._settings = settings
        self._client: Redis | None = redis
        # Set only while the connection is believed healthy
        self._redis: Redis | None = redis
        self._reconnect_task: asyncio.Task | None = None
        self._initialized = False

        # Stats tracking
        self.stats = {
            "hits": 0,
            "misses": 0,
            "errors": 0,
        }

    @property
    def available(self) -> bool:
        return self._redis is not None

    @property
    def reconnecting(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    def _build_client(self) -> Redis:
        settings = self._settings
        client = Redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=settings.redis_pool_size,
            socket_connect_timeout=settings.redis_connect_timeout,
            socket_timeout=settings.redis_command_timeout,
            socket_keepalive=settings.redis_keep_alive,
            retry=command_retry(),
            health_check_interval=30,
        )
        # from_url lets the URL's db and password win over keyword arguments
        overrides = {}
        if settings.redis_password:
            overrides["password"] = settings.redis_password
        if settings.redis_db is not None:
            overrides["db"] = settings.redis_db
        client.connection_pool.connection_kwargs.update(overrides)
        return client

    async def init_cache(self):
        """Create the Redis client and verify the connection."""
        if self._initialized:
            return

        try:
            if self._client is None:
                self._client = self._build_client()

            # Verify connection
            await self._client.ping()
            self._redis = self._client
            logger.info("Redis connection established")
        except (RedisError, OSError) as e:
            logger.error(f"Redis initialization failed, running without cache: {e}")
            # Allow degraded operation (store only)
            self._redis = None
            if self._client is not None:
                self._start_reconnect()

        self._initialized = True

    def _start_reconnect(self):
        if self.reconnecting:
            return
        self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect())

    async def _reconnect(self):
        settings = self._settings
        attempts = 0
        for delay in reconnect_delays(settings.redis_retry_max, settings.redis_retry_interval):
            await asyncio.sleep(delay)
            attempts += 1
            try:
                await self._client.ping()
            except (RedisError, OSError) as e:
                logger.warning(f"Redis reconnect attempt {attempts} failed: {e}")
                continue
            self._redis = self._client
            logger.info(f"Redis connection re-established after {attempts} attempts")
            return
        logger.error(f"Giving up on Redis after {attempts} reconnect attempts")

    def _record_error(self, action: str, key: str, e: RedisError):
        logger.error(f"Redis {action} error for {key}: {e}")
        self.stats["errors"] += 1
        if isinstance(e, (RedisConnectionError, RedisTimeoutError)) and self._redis is not None:
            logger.warning("Redis connection lost, serving without cache")
            self._redis = None
            self._start_reconnect()

    def _key(self, key: str) -> str:
        """Build namespaced cache key."""
        return f"{self._settings.cache_namespace}{key}"

    def _serialize(self, value: Any) -> str:
        return json.dumps(value, default=str)

    def _deserialize(self, raw: str) -> Any:
        return json.loads(raw)

    def _decode(self, key: str, raw: Optional[str]) -> Any:
        if raw is None:
            self.stats["misses"] += 1
            return None
        try:
            value = self._deserialize(raw)
        except ValueError as e:
            logger.warning(f"Discarding undecodable cache entry {key}: {e}")
            self.stats["misses"] += 1
            return None
        self.stats["hits"] += 1
        return value

    async def get(self, key: str) -> Any:
        """Return the cached value for key, or None when absent or on error."""
        if not self._redis:
            return None
        try:
            raw = await self._redis.get(self._key(key))
        except RedisError as e:
            self._record_error("GET", key, e)
            return None
        return self._decode(key, raw)

    async def get_with_refresh(self, key: str, refresh_ttl: Optional[int] = None) -> Any:
        """
        Like get, but on a hit reset the key's expiry to refresh_ttl seconds.

        A miss has no side effects.
        """
        if not self._redis:
            return None
        full_key = self._key(key)
        try:
            raw = await self._redis.get(full_key)
            if raw is not None and refresh_ttl:
                await self._redis.expire(full_key, refresh_ttl)
        except RedisError as e:
            self._record_error("GET/EXPIRE", key, e)
            return None
        return self._decode(key, raw)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """
        Store value as JSON, with an optional TTL in seconds.

        Returns False when the value cannot be serialized or Redis fails.
        """
        if not self._redis:
            return False
        try:
            data = self._serialize(value)
        except (TypeError, ValueError) as e:
            logger.error(f"Serialization failed for {key}: {e}")
            return False
        try:
            await self._redis.set(self._key(key), data, ex=ttl or None)
            logger.debug(f"Stored {key} (ttl={ttl})")
            return True
        except RedisError as e:
            self._record_error("SET", key, e)
            return False

    async def delete(self, key: str) -> bool:
        if not self._redis:
            return False
        try:
            await self._redis.delete(self._key(key))
            logger.debug(f"Deleted {key}")
            return True
        except RedisError as e:
            self._record_error("DELETE", key, e)
            return False

    async def raw_get(self, key: str) -> Optional[str]:
        """Plain string read for debugging. Errors propagate."""
        if not self._redis:
            raise ServiceUnavailable("cache unavailable")
        return await self._redis.get(self._key(key))

    async def raw_set(self, key: str, value: str, expire: Optional[int] = None) -> None:
        """Plain string write for debugging. Errors propagate."""
        if not self._redis:
            raise ServiceUnavailable("cache unavailable")
        await self._redis.set(self._key(key), value, ex=expire or None)

    async def ping(self) -> bool:
        if not self._redis:
            return False
        try:
            return bool(await self._redis.ping())
        except RedisError as e:
            self._record_error("PING", "-", e)
            return False

    async def close(self):
        """Graceful shutdown of cache connections."""
        if self._reconnect_task is not None:
            self._reconnect_task.cancel()
            try:
                await self._reconnect_task
            except asyncio.CancelledError:
                pass
            self._reconnect_task = None
        if self._client:
            try:
                await self._client.aclose()
                logger.info("Redis connection closed")
            except (RedisError, OSError) as e:
                logger.error(f"Error closing Redis: {e}")
        self._client = None
        self._redis = None
        self._initialized = False

    def get_stats(self) -> dict:
        total = self.stats["hits"] + self.stats["misses"]
        return {
            **self.stats,
            "available": self.available,
            "reconnecting": self.reconnecting,
            "hit_rate": self.stats["hits"] / total if total > 0 else 0,
        }
