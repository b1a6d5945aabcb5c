from fastapi import Request

from credgate.core.constants import EndpointClass
from credgate.core.exceptions.domain import RateLimitedError
from credgate.core.types import RateLimitInfoDict
from credgate.core.utils import get_client_ip
from credgate.services.cache.rate_limiter import rate_limiter


def _remember(request: Request, info: RateLimitInfoDict) -> None:
    """Keep the tightest limit seen on this request for the response headers."""
    current: RateLimitInfoDict | None = getattr(request.state, "rate_limit_info", None)

    if current is None or info["remaining"] <= current["remaining"]:
        request.state.rate_limit_info = info


async def _enforce(request: Request, endpoint_class: EndpointClass, message: str) -> None:
    ip = get_client_ip(request)
    admission = await rate_limiter.admit(ip, endpoint_class)
    info = admission.info

    _remember(request, info)

    if not admission.allowed:
        raise RateLimitedError(
            retry_after=info["retry_after"],
            headers={
                "X-RateLimit-Limit": str(info["limit"]),
                "X-RateLimit-Remaining": str(info["remaining"]),
                "X-RateLimit-Reset": str(info["reset_time"]),
            },
            message=message,
        )


async def rate_limit_api(request: Request) -> None:
    """
    General rate limiting applied to every /api route (IP-based).

    Limit: settings.rate_limit_default per settings.rate_limit_window

    Raises:
        RateLimitedError: When rate limit is exceeded (HTTP 429)
    """
    await _enforce(
        request,
        EndpointClass.GENERAL,
        "Too many requests from this IP, please try again later",
    )


async def rate_limit_auth(request: Request) -> None:
    """
    Strict rate limiting for credential-issuing endpoints (IP-based).

    Applied to signup, login and refresh-token on top of the general limit
    to blunt brute-force attempts.

    Limit: settings.rate_limit_strict per settings.rate_limit_window

    Raises:
        RateLimitedError: When rate limit is exceeded (HTTP 429)
    """
    await _enforce(
        request,
        EndpointClass.AUTH,
        "Too many authentication attempts, please try again later",
    )


async def rate_limit_sensitive(request: Request) -> None:
    """
    Strictest rate limiting for sensitive operations (IP-based).

    Limit: settings.rate_limit_sensitive per settings.rate_limit_sensitive_window

    Raises:
        RateLimitedError: When rate limit is exceeded (HTTP 429)
    """
    await _enforce(
        request,
        EndpointClass.SENSITIVE,
        "Too many attempts, please try again later",
    )
