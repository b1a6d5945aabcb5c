from typing import Any

import httpx

from credgate.core.exceptions.base import CustomException

# =============================================================================
# Client Exceptions (raised by ApiSession and RefreshCoordinator)
# =============================================================================


class RenewalFailure(CustomException):
    """A renewal cycle ended without a new access credential."""

    def __init__(
        self,
        message: str = "Credential renewal failed",
        exception: Exception | None = None,
    ):
        super().__init__(message, exception)


class ReauthenticationRequired(CustomException):
    """Renewal is no longer possible; the user has to log in again."""

    def __init__(
        self,
        message: str = "Session expired. Please log in again.",
        exception: Exception | None = None,
    ):
        super().__init__(message, exception)


class CredentialRejectedError(CustomException):
    """The server rejected the access credential and no retry is allowed."""

    def __init__(self, response: httpx.Response, reason: str | None = None):
        super().__init__(f"Credential rejected ({reason or 'no reason given'})")
        self.response = response
        self.reason = reason


class ApiError(CustomException):
    """Any other non-2xx response, carrying the error envelope."""

    def __init__(self, status_code: int, message: str, data: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.data = data
