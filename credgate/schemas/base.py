from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, SerializerFunctionWrapHandler, model_serializer

T = TypeVar("T")


class BaseSchema(BaseModel):
    """Base schema with common configuration"""

    model_config = ConfigDict(
        from_attributes=True,
        arbitrary_types_allowed=True,
        extra="forbid",
    )


class BaseTimestampSchema(BaseSchema):
    """Base schema with timestamp fields"""

    created_at: datetime
    updated_at: datetime | None = None


class Envelope(BaseModel, Generic[T]):
    """{success, message?, data?} wrapper shared by every endpoint"""

    success: bool = True
    message: str | None = None
    data: T | None = None

    @model_serializer(mode="wrap")
    def _omit_absent_members(self, handler: SerializerFunctionWrapHandler):
        # Only the envelope's own members; nulls inside data (e.g. avatar) stay
        body = handler(self)
        return {key: value for key, value in body.items() if key == "success" or value is not None}
