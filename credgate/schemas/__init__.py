from .base import BaseSchema, BaseTimestampSchema, Envelope
from .health_check import HealthCheckResponse
from .user import UserCreate, UserLogin, UserResponse, UserSignup
from .token import AccessTokenData, AuthData, CurrentUserData

__all__ = [
    "BaseSchema",
    "BaseTimestampSchema",
    "Envelope",
    "HealthCheckResponse",
    "UserCreate",
    "UserLogin",
    "UserResponse",
    "UserSignup",
    "AccessTokenData",
    "AuthData",
    "CurrentUserData",
]
