from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, status
from loguru import logger

from credgate.api.v1.deps.auth import get_auth_service, get_current_user
from credgate.api.v1.deps.rate_limit import rate_limit_auth
from credgate.core import responses
from credgate.core.cookies import credential_store
from credgate.core.exceptions.domain import AuthError
from credgate.core.exceptions.handlers import auth_error_handler
from credgate.models.user import User
from credgate.schemas import (
    AccessTokenData,
    AuthData,
    CurrentUserData,
    Envelope,
    UserLogin,
    UserResponse,
    UserSignup,
)
from credgate.services.auth_service import AuthResult, AuthService

router = APIRouter()


def _auth_envelope(result: AuthResult, message: str) -> Envelope[AuthData]:
    return Envelope[AuthData](
        message=message,
        data=AuthData(
            user=UserResponse.model_validate(result.user),
            token=result.access.token,
        ),
    )


@router.post(
    "/signup",
    response_model=Envelope[AuthData],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit_auth)],
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": responses.BadRequestResponse},
    },
    summary="User signup",
    description="Create a new user, return an access token and set the refresh token cookie.",
)
async def signup(
    user_in: UserSignup,
    response: Response,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
):
    result = await auth_service.register_user(user_in)
    credential_store.set_renewal_credential(response, result.renewal.token)

    return _auth_envelope(result, "User registered successfully")


@router.post(
    "/login",
    response_model=Envelope[AuthData],
    dependencies=[Depends(rate_limit_auth)],
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": responses.BadRequestResponse},
        status.HTTP_401_UNAUTHORIZED: {"model": responses.UnauthorizedResponse},
    },
    summary="Login for access token",
    description="Authenticate user, return an access token and set the refresh token cookie.",
)
async def login(
    user_in: UserLogin,
    response: Response,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
):
    result = await auth_service.authenticate_user(user_in)
    credential_store.set_renewal_credential(response, result.renewal.token)

    return _auth_envelope(result, "Login successful")


@router.post(
    "/refresh-token",
    response_model=Envelope[AccessTokenData],
    dependencies=[Depends(rate_limit_auth)],
    responses={
        status.HTTP_401_UNAUTHORIZED: {"model": responses.UnauthorizedResponse},
    },
    summary="Refresh access token",
    description="Rotate both credentials using the refresh token cookie.",
)
async def refresh_token(
    request: Request,
    response: Response,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
):
    try:
        result = await auth_service.refresh_tokens(
            credential_store.read_renewal_credential(request)
        )
    except AuthError as e:
        # A rejected refresh token is useless to the client, drop it
        error_response = await auth_error_handler(request, e)
        credential_store.clear_renewal_credential(error_response)
        return error_response

    credential_store.set_renewal_credential(response, result.renewal.token)

    return Envelope[AccessTokenData](
        message="Token refreshed successfully",
        data=AccessTokenData(token=result.access.token),
    )


@router.post(
    "/logout",
    response_model=Envelope[None],
    summary="Logout",
    description="Clear the refresh token cookie. No credential required.",
)
async def logout(response: Response):
    credential_store.clear_renewal_credential(response)
    logger.info("Refresh token cookie cleared on logout")

    return Envelope[None](message="Logged out successfully")


@router.get(
    "/me",
    response_model=Envelope[CurrentUserData],
    responses={
        status.HTTP_401_UNAUTHORIZED: {"model": responses.UnauthorizedResponse},
    },
    summary="Current user",
    description="Return the user bound to the presented access token.",
)
async def me(current_user: Annotated[User, Depends(get_current_user)]):
    return Envelope[CurrentUserData](
        data=CurrentUserData(user=UserResponse.model_validate(current_user)),
    )
