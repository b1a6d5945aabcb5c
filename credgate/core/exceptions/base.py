from typing import Any

from fastapi import HTTPException as FastAPIHTTPException


class CustomException(Exception):
    """
    Root of every non-HTTP error raised by credgate.

    Keeps the underlying cause, when there is one, next to the readable message.
    """

    def __init__(self, message, exception: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.exception = exception

    def __str__(self):
        if self.exception is None:
            return self.message

        return f"{self.message}\nException: {self.exception}"


class HTTPException(FastAPIHTTPException):
    """
    An HTTP error that also carries a payload for the envelope's "data" member.
    """

    def __init__(
        self,
        status_code: int,
        detail: Any = None,
        headers: dict[str, str] | None = None,
        data: Any = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.data = data
