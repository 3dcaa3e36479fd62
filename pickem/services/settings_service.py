"""
Runtime configuration with stored overrides.

A setting is read from system settings first, then from the Redis cache,
then from an environment variable, then the default. Stored values are
cached in Redis for CACHE_TTL_SECONDS so other instances see them without
hitting storage. When Redis is unreachable caching is skipped with a warning.
"""

import logging
import os
from typing import Optional

from dotenv import load_dotenv
from redis.asyncio import Redis
from redis.exceptions import RedisError

from pickem.services.interfaces import SystemSettingsService

load_dotenv()

logger = logging.getLogger(__name__)

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB = int(os.getenv("REDIS_DB", "0"))
CACHE_TTL_SECONDS = 60
REDIS_KEY_PREFIX = "settings:"

_redis_client: Optional[Redis] = None


async def get_redis_client() -> Optional[Redis]:
    """
    Get or create the Redis client.

    Returns:
        Redis client or None if the connection fails
    """
    global _redis_client

    if _redis_client is not None:
        try:
            await _redis_client.ping()
            return _redis_client
        except (RedisError, OSError) as e:
            logger.warning(f"Redis connection test failed, recreating client: {e}")
            await close_redis_connection()

    client = Redis(
        host=REDIS_HOST,
        port=REDIS_PORT,
        db=REDIS_DB,
        decode_responses=True,
        socket_connect_timeout=2,
        socket_timeout=2,
        retry_on_timeout=True,
    )
    try:
        await client.ping()
    except (RedisError, OSError) as e:
        logger.warning(f"Failed to connect to Redis at {REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}: {e}")
        return None
    _redis_client = client
    logger.info(f"Connected to Redis at {REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}")
    return _redis_client


def _cache_key(category: str, key: str) -> str:
    return f"{REDIS_KEY_PREFIX}{category}:{key}"


async def _get_cached_setting(category: str, key: str) -> Optional[str]:
    try:
        redis_client = await get_redis_client()
        if redis_client is None:
            return None
        return await redis_client.get(_cache_key(category, key))
    except (RedisError, OSError) as e:
        logger.warning(f"Error getting cached setting {category}.{key} from Redis: {e}")
        return None


async def _set_cached_setting(category: str, key: str, value: Optional[str]):
    try:
        redis_client = await get_redis_client()
        if redis_client is None:
            return
        if value is not None:
            await redis_client.setex(_cache_key(category, key), CACHE_TTL_SECONDS, value)
        else:
            await redis_client.delete(_cache_key(category, key))
    except (RedisError, OSError) as e:
        logger.warning(f"Error caching setting {category}.{key} in Redis: {e}")


async def get_setting_with_fallback(
    settings_service: Optional[SystemSettingsService],
    category: str,
    key: str,
    env_var: Optional[str] = None,
    default: Optional[str] = None,
    fallback_to_cache: bool = True,
) -> Optional[str]:
    """
    Get a setting from storage first, then cache, then env var, then default.

    Args:
        settings_service: SystemSettingsService (optional)
        category: Setting category
        key: Setting key within the category
        env_var: Environment variable name to fall back to
        default: Default value if nothing else is set
        fallback_to_cache: Consult Redis when storage has no value

    Returns:
        Setting value as string, or None
    """
    if settings_service is not None:
        setting = await settings_service.get_setting(category, key)
        if setting and setting.get("value") is not None:
            await _set_cached_setting(category, key, setting["value"])
            return setting["value"]

    if fallback_to_cache:
        cached = await _get_cached_setting(category, key)
        if cached is not None:
            return cached

    if env_var:
        value = os.getenv(env_var)
        if value is not None:
            return value

    return default


async def get_bool_setting(
    settings_service: Optional[SystemSettingsService],
    category: str,
    key: str,
    env_var: Optional[str] = None,
    default: bool = False,
    fallback_to_cache: bool = True,
) -> bool:
    value = await get_setting_with_fallback(
        settings_service, category, key, env_var, None, fallback_to_cache
    )
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes")


async def get_int_setting(
    settings_service: Optional[SystemSettingsService],
    category: str,
    key: str,
    env_var: Optional[str] = None,
    default: Optional[int] = None,
    fallback_to_cache: bool = True,
) -> Optional[int]:
    value = await get_setting_with_fallback(
        settings_service, category, key, env_var, None, fallback_to_cache
    )
    if value is None:
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        logger.warning(f"Invalid integer value for setting {category}.{key}: {value}")
        return default


async def update_setting(
    settings_service: SystemSettingsService,
    category: str,
    key: str,
    value: Optional[str],
    encrypted: bool = False,
    description: Optional[str] = None,
):
    """Store a setting and drop its cache entry."""
    setting = await settings_service.update_setting(category, key, value, encrypted, description)
    await invalidate_setting(category, key)
    return setting


async def invalidate_setting(category: str, key: str):
    await _set_cached_setting(category, key, None)


async def close_redis_connection():
    """Close the Redis connection (call on application shutdown)."""
    global _redis_client
    if _redis_client is not None:
        try:
            await _redis_client.aclose()
            logger.info("Closed Redis connection")
        except (RedisError, OSError) as e:
            logger.warning(f"Error closing Redis connection: {e}")
        finally:
            _redis_client = None
