import time
from typing import Callable

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from credgate.core.logger import new_request_id, request_id_var


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Tag each request with a short id, echoed back as X-Request-ID and bound to
    every log line emitted while the request is handled.

    Bodies and headers other than the user agent are never logged: they carry
    passwords and credentials.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = new_request_id()
        request.state.request_id = request_id
        context_token = request_id_var.set(request_id)

        route = f"{request.method} {request.url.path}"
        started = time.perf_counter()

        logger.trace(
            f"[{request_id}] {route} from {request.client.host if request.client else 'unknown'} "
            f"({request.headers.get('user-agent', 'unknown')})"
        )

        try:
            response: Response = await call_next(request)
        except Exception as e:
            logger.error(
                f"[{request_id}] {route} failed after {time.perf_counter() - started:.3f}s: {e}"
            )
            raise
        finally:
            request_id_var.reset(context_token)

        logger.trace(
            f"[{request_id}] {route} -> {response.status_code} "
            f"in {time.perf_counter() - started:.3f}s"
        )
        response.headers["X-Request-ID"] = request_id

        return response
