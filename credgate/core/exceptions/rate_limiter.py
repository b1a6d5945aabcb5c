from credgate.core.exceptions.base import CustomException


class RateLimiterException(CustomException):
    """Raised by the rate limiting service."""


class RateLimitConfigurationError(RateLimiterException):
    """A limit or window that is zero, negative or otherwise unusable."""


class UnknownEndpointClassError(RateLimitConfigurationError):
    """Admission was asked for an endpoint class with no registered limit."""
