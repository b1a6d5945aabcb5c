from typing import TypedDict


class JWTPayloadDict(TypedDict):
    """JWT payload structure for encoding/decoding."""

    sub: str  # Subject (user ID)
    exp: int  # Expiration timestamp
    iat: int  # Issued at timestamp
    type: str  # Credential kind: "access" or "renewal"
    jti: str  # Unique id so credentials minted in the same second differ


class RateLimitInfoDict(TypedDict):
    """Rate limit information for headers."""

    limit: int
    remaining: int
    reset_time: int
    window: int
    retry_after: int
