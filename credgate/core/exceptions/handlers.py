from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from credgate.core.exceptions import http_exceptions
from credgate.core.exceptions.base import HTTPException
from credgate.core.exceptions.domain import (
    AuthError,
    ErrorKind,
    FieldError,
    RateLimitedError,
    ValidationFailureError,
)

# One entry per ErrorKind. Checked below so a new kind cannot ship unmapped.
ERROR_STATUS: dict[ErrorKind, type[HTTPException]] = {
    ErrorKind.MISSING_CREDENTIAL: http_exceptions.UnauthorizedException,
    ErrorKind.MALFORMED_CREDENTIAL: http_exceptions.UnauthorizedException,
    ErrorKind.SIGNATURE_MISMATCH: http_exceptions.UnauthorizedException,
    ErrorKind.EXPIRED_CREDENTIAL: http_exceptions.UnauthorizedException,
    ErrorKind.SUBJECT_NOT_FOUND: http_exceptions.UnauthorizedException,
    ErrorKind.INVALID_LOGIN_CREDENTIALS: http_exceptions.UnauthorizedException,
    ErrorKind.DUPLICATE_EMAIL: http_exceptions.BadRequestException,
    ErrorKind.VALIDATION_FAILURE: http_exceptions.BadRequestException,
    ErrorKind.RATE_LIMITED: http_exceptions.TooManyRequestsException,
}

_unmapped = set(ErrorKind) - set(ERROR_STATUS)
if _unmapped:
    raise RuntimeError(f"ErrorKind values without an HTTP mapping: {sorted(_unmapped)}")


def bearer_challenge(reason: str) -> str:
    """
    Build an RFC 6750 challenge carrying the rejection reason.
    """
    return f'Bearer error="invalid_token", error_description="{reason}"'


def to_http_exception(error: AuthError) -> HTTPException:
    """
    Translate a domain error into the single HTTP exception clients see.

    Args:
        error: The domain error raised by a service or the AuthGate.

    Returns:
        HTTPException with status, client-safe message, headers and data.
    """
    exception_class = ERROR_STATUS[error.kind]
    headers: dict[str, str] | None = None
    data: Any = None

    if error.reason is not None:
        headers = {"WWW-Authenticate": bearer_challenge(error.reason)}
    elif exception_class is http_exceptions.UnauthorizedException:
        headers = {"WWW-Authenticate": "Bearer"}

    if isinstance(error, ValidationFailureError):
        data = {"errors": error.errors}

    if isinstance(error, RateLimitedError):
        headers = {**error.headers, "Retry-After": str(error.retry_after)}
        data = {"retry_after": error.retry_after}

    return exception_class(detail=error.message, headers=headers, data=data)


def envelope(success: bool, message: str | None = None, data: Any = None) -> dict[str, Any]:
    """
    The {success, message?, data?} body shared by every endpoint.
    """
    body: dict[str, Any] = {"success": success}

    if message is not None:
        body["message"] = message

    if data is not None:
        body["data"] = data

    return body


def _http_exception_response(exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    data = getattr(exc, "data", None)

    return JSONResponse(
        status_code=exc.status_code,
        content=envelope(False, message, data),
        headers=getattr(exc, "headers", None),
    )


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    logger.info(f"{request.method} {request.url.path} rejected: {exc.kind.value}")
    return _http_exception_response(to_http_exception(exc))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404 and exc.detail == "Not Found":
        return _http_exception_response(
            http_exceptions.NotFoundException(detail=f"Not found - {request.url.path}")
        )

    return _http_exception_response(exc)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors: list[FieldError] = []

    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        message = str(error.get("msg", "Invalid value"))

        # pydantic prefixes custom validator messages
        message = message.removeprefix("Value error, ")
        errors.append(FieldError(field=".".join(location) or "body", message=message))

    return await auth_error_handler(request, ValidationFailureError(errors))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error(
        f"Unhandled error on {request.method} {request.url.path}: {exc}"
    )
    return _http_exception_response(
        http_exceptions.InternalServerErrorException(detail="Internal server error")
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Route every failure through the envelope so no internal error leaks verbatim.
    """
    app.add_exception_handler(AuthError, auth_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, request_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)
