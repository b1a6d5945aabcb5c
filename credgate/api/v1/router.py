from fastapi import APIRouter, Depends, status

from credgate.api.v1.deps.rate_limit import rate_limit_api
from credgate.api.v1.endpoints import auth, health
from credgate.core import responses

_RATE_LIMIT_RESPONSES = {
    status.HTTP_429_TOO_MANY_REQUESTS: {
        "model": responses.TooManyRequestsResponse,
        "headers": {
            "X-RateLimit-Limit": {
                "description": "Maximum requests allowed in the current window",
                "schema": {"type": "integer", "example": 100},
            },
            "X-RateLimit-Remaining": {
                "description": "Requests remaining in current window",
                "schema": {"type": "integer", "example": 99},
            },
            "X-RateLimit-Reset": {
                "description": "Unix timestamp when limit resets",
                "schema": {"type": "integer", "example": 1765525115},
            },
            "Retry-After": {
                "description": "Seconds until the window resets",
                "schema": {"type": "integer", "example": 900},
            },
        },
    },
}

api_v1_router = APIRouter(
    prefix="/api/v1",
    dependencies=[Depends(rate_limit_api)],
    responses=_RATE_LIMIT_RESPONSES,
)


api_v1_router.include_router(
    health.router,
    tags=["Health"],
)

api_v1_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Auth"],
)
