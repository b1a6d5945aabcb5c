from enum import StrEnum


class EndpointClass(StrEnum):
    """
    Admission-control classes. Each class has its own limit and window.

    Example:
        ```python
        from credgate.core.constants import EndpointClass, RateLimitPrefix

        key = RateLimitPrefix.key(EndpointClass.AUTH, "192.168.1.1")
        # Result: "ratelimit:auth:192.168.1.1"
        ```
    """

    # Every /api route
    GENERAL = "general"

    # Credential-issuing endpoints (signup, login, refresh-token)
    AUTH = "auth"

    # Sensitive operations (password reset and the like)
    SENSITIVE = "sensitive"


class RateLimitPrefix:
    """
    Centralized registry of rate limit key prefixes.

    All rate limit keys follow the pattern: ratelimit:{endpoint_class}:{identity}
    where identity is typically an IP address.
    """

    ROOT = "ratelimit:"

    @classmethod
    def for_class(cls, endpoint_class: EndpointClass) -> str:
        return f"{cls.ROOT}{endpoint_class.value}:"

    @classmethod
    def key(cls, endpoint_class: EndpointClass, client_identity: str) -> str:
        return f"{cls.for_class(endpoint_class)}{client_identity}"


class CredentialKind(StrEnum):
    """Value of the "type" claim; also selects the signing secret."""

    ACCESS = "access"
    RENEWAL = "renewal"


# Paths that obtain credentials. A 401 on these is never answered with a refresh.
AUTH_PATH_PREFIX = "/api/v1/auth"
SIGNUP_PATH = f"{AUTH_PATH_PREFIX}/signup"
LOGIN_PATH = f"{AUTH_PATH_PREFIX}/login"
REFRESH_PATH = f"{AUTH_PATH_PREFIX}/refresh-token"
LOGOUT_PATH = f"{AUTH_PATH_PREFIX}/logout"
ME_PATH = f"{AUTH_PATH_PREFIX}/me"


class FieldSizes:
    # Common string lengths
    SHORT = 50
    MEDIUM = 255
    LONG = 1000

    # Specific field sizes
    NAME = SHORT
    EMAIL = MEDIUM
    PASSWORD = 128
    PASSWORD_HASH = LONG
    AVATAR = LONG
