from enum import StrEnum
from typing import ClassVar, TypedDict

from credgate.core.exceptions.base import CustomException

# =============================================================================
# Auth Domain Exceptions (raised by Services and the AuthGate, mapped to HTTP
# responses in credgate.core.exceptions.handlers)
# =============================================================================


class ErrorKind(StrEnum):
    MISSING_CREDENTIAL = "missing_credential"
    MALFORMED_CREDENTIAL = "malformed_credential"
    SIGNATURE_MISMATCH = "signature_mismatch"
    EXPIRED_CREDENTIAL = "expired_credential"
    SUBJECT_NOT_FOUND = "subject_not_found"
    INVALID_LOGIN_CREDENTIALS = "invalid_login_credentials"
    DUPLICATE_EMAIL = "duplicate_email"
    VALIDATION_FAILURE = "validation_failure"
    RATE_LIMITED = "rate_limited"


class RejectionReason(StrEnum):
    """Machine-readable reason sent in the WWW-Authenticate challenge."""

    MISSING = "missing credential"
    INVALID = "invalid credential"
    EXPIRED = "expired credential"
    SUBJECT_GONE = "subject no longer exists"


class FieldError(TypedDict):
    field: str
    message: str


class AuthError(CustomException):
    """Base of the closed set of failures the auth core reports to clients."""

    kind: ClassVar[ErrorKind]
    default_message: ClassVar[str]
    reason: ClassVar[RejectionReason | None] = None

    def __init__(self, message: str | None = None, exception: Exception | None = None):
        super().__init__(message or self.default_message, exception)


class MissingCredentialError(AuthError):
    """No bearer credential on the request."""

    kind = ErrorKind.MISSING_CREDENTIAL
    default_message = "Not authorized. Please log in to access this resource."
    reason = RejectionReason.MISSING


class MalformedCredentialError(AuthError):
    """Credential is not a well-formed signed token."""

    kind = ErrorKind.MALFORMED_CREDENTIAL
    default_message = "Invalid token. Please log in again."
    reason = RejectionReason.INVALID


class SignatureMismatchError(AuthError):
    """Credential was not signed with the secret for the expected kind."""

    kind = ErrorKind.SIGNATURE_MISMATCH
    default_message = "Invalid token. Please log in again."
    reason = RejectionReason.INVALID


class ExpiredCredentialError(AuthError):
    """Credential signature is valid but its lifetime has elapsed."""

    kind = ErrorKind.EXPIRED_CREDENTIAL
    default_message = "Token expired. Please log in again."
    reason = RejectionReason.EXPIRED


class SubjectNotFoundError(AuthError):
    """Credential is valid but its subject has been removed."""

    kind = ErrorKind.SUBJECT_NOT_FOUND
    default_message = "User no longer exists."
    reason = RejectionReason.SUBJECT_GONE


class InvalidLoginCredentialsError(AuthError):
    """Unknown email or wrong password. Both look the same from outside."""

    kind = ErrorKind.INVALID_LOGIN_CREDENTIALS
    default_message = "Invalid email or password"


class DuplicateEmailError(AuthError):
    kind = ErrorKind.DUPLICATE_EMAIL
    default_message = "User with this email already exists"


class ValidationFailureError(AuthError):
    """Request body failed field-level validation."""

    kind = ErrorKind.VALIDATION_FAILURE
    default_message = "Validation failed"

    def __init__(
        self,
        errors: list[FieldError],
        message: str | None = None,
        exception: Exception | None = None,
    ):
        self.errors = errors
        if message is None and errors:
            message = ", ".join(error["message"] for error in errors)

        super().__init__(message, exception)


class RateLimitedError(AuthError):
    kind = ErrorKind.RATE_LIMITED
    default_message = "Too many requests, please try again later"

    def __init__(
        self,
        retry_after: int,
        headers: dict[str, str] | None = None,
        message: str | None = None,
        exception: Exception | None = None,
    ):
        self.retry_after = retry_after
        self.headers = headers or {}
        super().__init__(message, exception)
