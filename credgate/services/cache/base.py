from abc import ABC

from loguru import logger
from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from credgate.core.config import settings

# One pool per worker process, created on first use
_pool: ConnectionPool | None = None


def get_redis_pool() -> ConnectionPool:
    global _pool

    if _pool is None:
        _pool = ConnectionPool.from_url(
            settings.redis_url.human_repr(),
            max_connections=settings.redis_max_pool_connections,
            socket_connect_timeout=settings.redis_socket_connect_timeout,
            socket_timeout=settings.redis_socket_timeout,
            retry_on_timeout=True,
        )
        logger.info(f"Redis pool ready ({settings.redis_max_pool_connections} connections max)")

    return _pool


class BaseRedisClient(ABC):
    """
    Lazily connected Redis client for services backed by Redis.

    Constructing a subclass does no I/O; the shared pool is only touched the
    first time `redis_client` is read. Tests inject their own client.
    """

    def __init__(self, redis_client: Redis | None = None):
        self._redis_client = redis_client

    @property
    def redis_client(self) -> Redis:
        if self._redis_client is None:
            self._redis_client = Redis(connection_pool=get_redis_pool())
            logger.debug(f"{type(self).__name__} attached to the shared Redis pool")

        return self._redis_client

    async def health_check(self) -> bool:
        try:
            await self.redis_client.ping()
        except (RedisError, OSError) as e:
            logger.error(f"{type(self).__name__}: Redis ping failed: {e}")
            return False

        return True

    async def close(self) -> None:
        client, self._redis_client = self._redis_client, None
        if client is None:
            return

        try:
            await client.aclose()
        except (RedisError, OSError) as e:
            logger.warning(f"{type(self).__name__}: error while closing Redis client: {e}")
        else:
            logger.info(f"{type(self).__name__}: Redis client closed")
