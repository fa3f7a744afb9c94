"""
Redis read-through cache for hot lookups (endpoint resolution)
"""

import logging
from typing import Optional, Dict, Any

import orjson
import redis.asyncio as redis
from redis.exceptions import RedisError, ConnectionError

from .config import get_redis_config, RedisConfig

logger = logging.getLogger(__name__)

KEY_PREFIX = "scis"


class CacheManager:
    """
    Redis-backed JSON cache

    Values are stored as orjson bytes. A disabled, unreachable or failing
    Redis turns every read into a miss and every write into a no-op, so
    callers always fall back to MongoDB.
    """

    def __init__(self, config: Optional[RedisConfig] = None):
        self.config = config or get_redis_config()
        self._client: Optional[redis.Redis] = None

    async def initialize(self) -> None:
        if self._client is not None or not self.config.enabled:
            return

        logger.info(f"Connecting to Redis at {self.config.host}:{self.config.port} (db {self.config.db})")
        client = redis.Redis(
            host=self.config.host,
            port=self.config.port,
            db=self.config.db,
            password=self.config.password or None,
            max_connections=self.config.max_connections,
            socket_timeout=self.config.socket_timeout,
            socket_connect_timeout=self.config.socket_connect_timeout,
            decode_responses=self.config.decode_responses,
            retry_on_timeout=True,
            retry_on_error=[ConnectionError],
        )
        try:
            await client.ping()
        except RedisError as e:
            logger.error(f"Redis unreachable, endpoint cache stays cold: {e}")
            await client.aclose()
            raise

        self._client = client
        logger.info("Redis cache ready")

    async def cleanup(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Redis cache closed")

    async def health_check(self) -> Dict[str, Any]:
        if not self.config.enabled:
            return {"status": "disabled"}
        if self._client is None:
            return {"status": "error", "message": "Redis not initialized"}

        try:
            await self._client.ping()
            info = await self._client.info("server")
            return {"status": "healthy", "version": info.get("redis_version")}
        except RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            return {"status": "unhealthy", "error": str(e)}

    async def get(self, key: str) -> Optional[Any]:
        if self._client is None:
            return None
        try:
            raw = await self._client.get(key)
        except RedisError as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None
        if not raw:
            return None
        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError:
            logger.warning(f"Discarding undecodable cache entry {key}")
            await self.delete(key)
            return None

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        if self._client is None:
            return False
        try:
            await self._client.setex(key, ttl_seconds or self.config.default_ttl_seconds, orjson.dumps(value))
            return True
        except RedisError as e:
            logger.warning(f"Cache write failed for {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        if self._client is None:
            return False
        try:
            return await self._client.delete(key) > 0
        except RedisError as e:
            logger.warning(f"Cache delete failed for {key}: {e}")
            return False


class CacheKeyBuilder:
    """Cache key layout"""

    @staticmethod
    def endpoint_key(hospital_id: str, data_type: str) -> str:
        """Resolved endpoint of a (hospital, data type) pair"""
        return f"{KEY_PREFIX}:endpoint:{hospital_id}:{data_type}"
