from typing import Annotated

from pydantic import EmailStr, Field, SecretStr, field_validator

from credgate.core.constants import FieldSizes
from credgate.schemas.base import BaseSchema, BaseTimestampSchema

USER_NAME_DESCRIPTION = "Name must be between 2 and 50 characters"
USER_PASSWORD_MIN_LENGTH = 6
USER_PASSWORD_DESCRIPTION = (
    f"Password must be at least {USER_PASSWORD_MIN_LENGTH} characters long"
)


class UserCreate(BaseSchema):
    """User creation schema"""

    name: str
    email: EmailStr
    hashed_password: str
    avatar: str | None = None


class UserSignup(BaseSchema):
    """User signup schema"""

    name: Annotated[
        str,
        Field(min_length=2, max_length=FieldSizes.NAME, description=USER_NAME_DESCRIPTION),
    ]
    email: EmailStr
    password: Annotated[
        SecretStr,
        Field(
            min_length=USER_PASSWORD_MIN_LENGTH,
            max_length=FieldSizes.PASSWORD,
            description=USER_PASSWORD_DESCRIPTION,
        ),
    ]

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        if isinstance(value, str):
            return value.strip()

        return value

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()


class UserLogin(BaseSchema):
    """User login schema"""

    email: EmailStr
    password: Annotated[SecretStr, Field(min_length=1, max_length=FieldSizes.PASSWORD)]

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()


class UserResponse(BaseTimestampSchema):
    """User schema for API response"""

    id: int
    name: str
    email: EmailStr
    avatar: str | None = None
