from typing import Any

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    data: Any | None = None


class BadRequestResponse(ErrorResponse):
    message: str = "Bad request"


class UnauthorizedResponse(ErrorResponse):
    message: str = "Not authorized. Please log in to access this resource."


class TooManyRequestsResponse(ErrorResponse):
    message: str = "Too many requests, please try again later"
