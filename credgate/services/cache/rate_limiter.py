import math
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable

from loguru import logger
from redis.asyncio import Redis

from credgate.core.config import Settings, settings
from credgate.core.constants import EndpointClass, RateLimitPrefix
from credgate.core.exceptions.rate_limiter import (
    RateLimitConfigurationError,
    UnknownEndpointClassError,
)
from credgate.core.types import RateLimitInfoDict
from credgate.services.cache.base import BaseRedisClient


@dataclass(frozen=True, slots=True)
class WindowLimit:
    """At most `limit` requests per `window` seconds."""

    limit: int
    window: int


@dataclass(frozen=True, slots=True)
class Admission:
    """
    Outcome of RateLimiter.admit. Denied admissions carry retry_after seconds.
    """

    allowed: bool
    info: RateLimitInfoDict

    @property
    def retry_after(self) -> int | None:
        if self.allowed:
            return None

        return self.info["retry_after"]


class BucketStore(ABC):
    """Fixed-window counters keyed by rate limit key."""

    @abstractmethod
    async def hit(self, key: str, window: int, now: float) -> tuple[int, float]:
        """
        Count one request against the bucket for `key`.

        Returns:
            (count in the current window including this request, window start)
        """

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        return None


@dataclass
class _Bucket:
    count: int
    window_start: float
    window: int
    lock: threading.Lock = field(default_factory=threading.Lock)


class MemoryBucketStore(BucketStore):
    """
    Process-local bucket table.

    Each bucket's increment-and-check runs under its own lock; the table lock
    only guards bucket creation and sweeping. Buckets whose window has elapsed
    are swept at most once per `sweep_interval` seconds.
    """

    def __init__(self, sweep_interval: float = 60.0):
        self._buckets: dict[str, _Bucket] = {}
        self._table_lock = threading.Lock()
        self._sweep_interval = sweep_interval
        self._last_sweep = 0.0

    def __len__(self) -> int:
        return len(self._buckets)

    def _get_bucket(self, key: str, window: int, now: float) -> _Bucket:
        with self._table_lock:
            if now - self._last_sweep >= self._sweep_interval:
                self._sweep(now)

            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = _Bucket(count=0, window_start=now, window=window)
                self._buckets[key] = bucket

            return bucket

    def _sweep(self, now: float) -> None:
        expired = [
            key
            for key, bucket in self._buckets.items()
            if now - bucket.window_start >= bucket.window
        ]
        for key in expired:
            del self._buckets[key]

        self._last_sweep = now
        if expired:
            logger.debug(f"Swept {len(expired)} expired rate limit buckets")

    async def hit(self, key: str, window: int, now: float) -> tuple[int, float]:
        bucket = self._get_bucket(key, window, now)

        with bucket.lock:
            if now - bucket.window_start >= window:
                bucket.count = 0
                bucket.window_start = now

            bucket.window = window
            bucket.count += 1

            return bucket.count, bucket.window_start


class RedisBucketStore(BaseRedisClient, BucketStore):
    """
    Bucket table shared by every worker process.

    One MULTI/EXEC transaction creates the key with the window as TTL if
    missing, increments it, and reads the remaining TTL.
    """

    def __init__(self, redis_client: Redis | None = None):
        super().__init__(redis_client)

    async def hit(self, key: str, window: int, now: float) -> tuple[int, float]:
        pipe = self.redis_client.pipeline(transaction=True)
        pipe.set(key, 0, ex=window, nx=True)
        pipe.incr(key)
        pipe.ttl(key)
        _, count, ttl = await pipe.execute()

        if ttl is None or ttl < 0:
            await self.redis_client.expire(key, window)
            ttl = window

        return int(count), now - (window - int(ttl))


class RateLimiter:
    """
    Fixed-window admission control per (client identity, endpoint class).

    Denial is immediate: nothing is queued or delayed, the caller gets
    retry_after and decides what to do.

    Example:
        ```python
        admission = await rate_limiter.admit("192.168.1.1", EndpointClass.AUTH)

        if not admission.allowed:
            raise RateLimitedError(retry_after=admission.retry_after)
        ```
    """

    def __init__(
        self,
        store: BucketStore,
        limits: dict[EndpointClass, WindowLimit],
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        for endpoint_class, window_limit in limits.items():
            self._validate(window_limit.limit, window_limit.window, endpoint_class)

        self.store = store
        self.limits = limits
        self.enabled = enabled
        self._clock = clock

    @staticmethod
    def _validate(limit: int, window: int, name: str = "custom") -> None:
        if limit <= 0:
            raise RateLimitConfigurationError(f"Rate limit must be positive, got {limit} ({name})")
        if window <= 0:
            raise RateLimitConfigurationError(
                f"Rate limit window must be positive, got {window} ({name})"
            )

    @staticmethod
    def _info(limit: int, window: int, count: int, window_start: float, now: float):
        reset_time = window_start + window

        return RateLimitInfoDict(
            limit=limit,
            remaining=max(0, limit - count),
            reset_time=int(math.ceil(reset_time)),
            window=window,
            retry_after=max(1, int(math.ceil(reset_time - now))),
        )

    def _unrestricted(self, limit: int, window: int, now: float) -> RateLimitInfoDict:
        return self._info(limit, window, 0, now, now)

    async def check_rate_limit(
        self, key: str, limit: int, window: int
    ) -> tuple[bool, RateLimitInfoDict]:
        """
        Count one request for `key` and decide whether it is admitted.

        Args:
            key: Bucket key (e.g., "ratelimit:auth:192.168.1.1")
            limit: Maximum number of requests allowed in the window
            window: Window length in seconds

        Returns:
            tuple[bool, RateLimitInfoDict]: (is_allowed, rate_limit_info)

        Raises:
            RateLimitConfigurationError: If limit or window is invalid

        Note:
            Store failures are logged and the request is allowed (fail open).
        """
        self._validate(limit, window)
        now = self._clock()

        if not self.enabled:
            return True, self._unrestricted(limit, window, now)

        try:
            count, window_start = await self.store.hit(key, window, now)
        except Exception as e:
            logger.warning(f"Rate limit check failed for key {key}: {e}. Allowing request.")
            return True, self._unrestricted(limit, window, now)

        return count <= limit, self._info(limit, window, count, window_start, now)

    def limit_for(self, endpoint_class: EndpointClass) -> WindowLimit:
        try:
            return self.limits[endpoint_class]
        except KeyError:
            raise UnknownEndpointClassError(f"No rate limit configured for {endpoint_class}")

    async def admit(self, client_identity: str, endpoint_class: EndpointClass) -> Admission:
        """
        Args:
            client_identity: Who is asking, typically the client IP.
            endpoint_class: Which limit applies.

        Returns:
            Admission; when denied, retry_after says how long until the window rolls over.
        """
        window_limit = self.limit_for(endpoint_class)
        key = RateLimitPrefix.key(endpoint_class, client_identity)

        is_allowed, info = await self.check_rate_limit(
            key=key, limit=window_limit.limit, window=window_limit.window
        )

        if not is_allowed:
            logger.warning(
                f"Rate limit exceeded. Identity: {client_identity}, "
                f"Class: {endpoint_class.value}, Retry after: {info['retry_after']}s"
            )

        return Admission(allowed=is_allowed, info=info)


def build_rate_limiter(config: Settings) -> RateLimiter:
    store: BucketStore
    if config.rate_limit_backend == "redis":
        store = RedisBucketStore()
    else:
        store = MemoryBucketStore()

    return RateLimiter(
        store=store,
        limits={
            EndpointClass.GENERAL: WindowLimit(config.rate_limit_default, config.rate_limit_window),
            EndpointClass.AUTH: WindowLimit(config.rate_limit_strict, config.rate_limit_window),
            EndpointClass.SENSITIVE: WindowLimit(
                config.rate_limit_sensitive, config.rate_limit_sensitive_window
            ),
        },
        enabled=config.rate_limit_enabled,
    )


rate_limiter = build_rate_limiter(settings)
