import logging

from fastapi import APIRouter, Query
from redis.asyncio import RedisError

from app.core import responses
from app.core.errors import ServiceUnavailable
from app.dependencies import CacheDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/redis", tags=["redis"])


@router.get("/set")
async def set_value(
    cache: CacheDep,
    key: str = Query(min_length=1),
    value: str = Query(min_length=1),
    expire: int | None = Query(default=None, ge=1),
):
    """Store a raw string, optionally expiring after `expire` seconds"""
    try:
        await cache.raw_set(key, value, expire)
    except RedisError as e:
        logger.error(f"Failed to set Redis key {key}: {e}")
        raise ServiceUnavailable("failed to set redis value")
    return responses.success(
        {"key": key, "value": value, "expire": expire}, "redis value set"
    )


@router.get("/get")
async def get_value(cache: CacheDep, key: str = Query(min_length=1)):
    try:
        value = await cache.raw_get(key)
    except RedisError as e:
        logger.error(f"Failed to get Redis key {key}: {e}")
        raise ServiceUnavailable("failed to get redis value")
    if value is None:
        return responses.success(None, "key not found")
    return responses.success({"key": key, "value": value}, "redis value fetched")
