from .base import BaseRedisClient
from .rate_limiter import (
    Admission,
    MemoryBucketStore,
    RateLimiter,
    RedisBucketStore,
    WindowLimit,
    rate_limiter,
)

__all__ = [
    "Admission",
    "BaseRedisClient",
    "MemoryBucketStore",
    "RateLimiter",
    "RedisBucketStore",
    "WindowLimit",
    "rate_limiter",
]
