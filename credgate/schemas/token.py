from credgate.schemas.base import BaseSchema
from credgate.schemas.user import UserResponse


class AccessTokenData(BaseSchema):
    """Payload of a successful refresh: only the new access credential"""

    token: str


class AuthData(BaseSchema):
    """Payload of a successful signup or login"""

    user: UserResponse
    token: str


class CurrentUserData(BaseSchema):
    user: UserResponse
