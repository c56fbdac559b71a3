"""
Async Redis client wrapper with connection pooling and error translation.
"""
import redis.asyncio as redis
from typing import Any, Awaitable, Callable, List, Optional
from redis.exceptions import RedisError

from storefront.config import Config
from storefront.exceptions import StorageError


class RedisClient:
    """Redis client with connection pooling.

    Every call translates redis-py errors into StorageError. Nothing is
    retried here; the caller decides whether to try again.
    """

    def __init__(self, client: Optional[redis.Redis] = None):
        self.pool: Optional[redis.ConnectionPool] = None
        self.client: Optional[redis.Redis] = client
        if self.client is None:
            self._connect()

    def _connect(self):
        """Initialize Redis connection pool"""
        Config.validate()
        self.pool = redis.ConnectionPool.from_url(
            Config.redis_url(),
            max_connections=Config.REDIS_MAX_CONNECTIONS,
            socket_connect_timeout=Config.REDIS_SOCKET_CONNECT_TIMEOUT,
            socket_timeout=Config.REDIS_SOCKET_TIMEOUT,
            decode_responses=True,
        )
        self.client = redis.Redis(connection_pool=self.pool)

    async def _execute(self, func: Callable[[], Awaitable[Any]]) -> Any:
        try:
            return await func()
        except RedisError as e:
            raise StorageError(f"Redis error: {e}") from e

    async def get(self, key: str) -> Optional[str]:
        """Get value from Redis"""
        return await self._execute(lambda: self.client.get(key))

    async def set(self, key: str, value: Any, ex: Optional[int] = None) -> bool:
        """Set value in Redis with optional TTL"""
        return await self._execute(lambda: self.client.set(key, value, ex=ex))

    async def delete(self, *keys: str) -> int:
        """Delete one or more keys"""
        return await self._execute(lambda: self.client.delete(*keys))

    async def exists(self, *keys: str) -> int:
        """Check if keys exist"""
        return await self._execute(lambda: self.client.exists(*keys))

    async def zadd(self, key: str, mapping: dict) -> int:
        """Add members to a sorted set"""
        return await self._execute(lambda: self.client.zadd(key, mapping))

    async def zrem(self, key: str, *members: str) -> int:
        """Remove members from a sorted set"""
        return await self._execute(lambda: self.client.zrem(key, *members))

    async def zrevrange(self, key: str, start: int, end: int) -> List[str]:
        """Sorted set members, highest score first"""
        return await self._execute(lambda: self.client.zrevrange(key, start, end))

    async def mget(self, keys: List[str]) -> List[Optional[str]]:
        """Get several values at once"""
        if not keys:
            return []
        return await self._execute(lambda: self.client.mget(keys))

    async def ping(self) -> bool:
        """Test Redis connection"""
        try:
            return await self.client.ping()
        except RedisError:
            return False

    async def close(self):
        """Close client and connection pool"""
        if self.client is not None:
            await self.client.aclose()
        if self.pool is not None:
            await self.pool.disconnect()


# Global Redis client instance
_redis_client: Optional[RedisClient] = None


def get_redis_client() -> RedisClient:
    """Get or create Redis client instance (singleton)"""
    global _redis_client
    if _redis_client is None:
        _redis_client = RedisClient()
    return _redis_client


def set_redis_client(client: Optional[RedisClient]) -> None:
    """Replace the shared client (None resets it)"""
    global _redis_client
    _redis_client = client
