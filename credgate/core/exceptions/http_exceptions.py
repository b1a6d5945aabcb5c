from typing import Any

from starlette import status

from credgate.core.exceptions.base import HTTPException


class _StatusException(HTTPException):
    """HTTPException whose status code is fixed by the subclass."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        detail: Any = None,
        headers: dict[str, str] | None = None,
        data: Any = None,
    ) -> None:
        super().__init__(status_code=self.status_code, detail=detail, headers=headers, data=data)


class BadRequestException(_StatusException):
    """Rejected input: duplicate email or field validation errors."""

    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedException(_StatusException):
    """
    Missing or unusable credentials. Responses should carry a WWW-Authenticate challenge.
    """

    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundException(_StatusException):
    status_code = status.HTTP_404_NOT_FOUND


class TooManyRequestsException(_StatusException):
    """Admission denied by the rate limiter."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS


class InternalServerErrorException(_StatusException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
