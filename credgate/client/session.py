import re
from enum import StrEnum
from typing import Any, Callable

import httpx
from loguru import logger

from credgate.client.coordinator import RefreshCoordinator
from credgate.client.exceptions import (
    ApiError,
    CredentialRejectedError,
    ReauthenticationRequired,
    RenewalFailure,
)
from credgate.core.constants import LOGIN_PATH, LOGOUT_PATH, ME_PATH, REFRESH_PATH, SIGNUP_PATH
from credgate.core.exceptions.domain import RejectionReason

# Their failures are returned to the caller as-is, never fed to the coordinator
NEVER_REFRESHED_PATHS = frozenset({SIGNUP_PATH, LOGIN_PATH, REFRESH_PATH})

_ERROR_DESCRIPTION = re.compile(r'error_description="([^"]*)"')


class Attempt(StrEnum):
    ORIGINAL = "original"
    RETRY = "retry"


def is_credential_endpoint(url: httpx.URL) -> bool:
    """True for signup, login and refresh-token, also behind a base_url path prefix."""
    path = url.path.rstrip("/")
    return any(path.endswith(credential_path) for credential_path in NEVER_REFRESHED_PATHS)


def rejection_reason(response: httpx.Response) -> str | None:
    """Read the reason out of a Bearer WWW-Authenticate challenge."""
    challenge = response.headers.get("WWW-Authenticate", "")
    match = _ERROR_DESCRIPTION.search(challenge)
    return match.group(1) if match else None


def _envelope(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {"success": False, "message": response.reason_phrase or "Unexpected response"}

    return body if isinstance(body, dict) else {"success": False, "data": body}


def _raise_for_envelope(response: httpx.Response) -> dict[str, Any]:
    body = _envelope(response)

    if response.is_error:
        raise ApiError(
            status_code=response.status_code,
            message=body.get("message") or f"HTTP {response.status_code}",
            data=body.get("data"),
        )

    return body


class ApiSession:
    """
    httpx-based client for the credgate API.

    Holds the access credential in memory and lets the cookie jar carry the
    renewal cookie. A request rejected for an expired access credential goes
    through the RefreshCoordinator and is retried exactly once.

    Example:
        ```python
        async with ApiSession("https://auth.example.com") as session:
            await session.login("a@x.com", "secret")
            user = await session.me()
        ```
    """

    def __init__(
        self,
        base_url: str = "",
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        on_reauthenticate: Callable[[], None] | None = None,
    ):
        """
        Args:
            base_url: API origin, e.g. "https://auth.example.com".
            client: Pre-built httpx client (tests pass one over ASGITransport).
                The session closes only clients it created itself.
            timeout: Timeout for a client the session creates; it also bounds
                how long a renewal can stay in flight.
            on_reauthenticate: Called when renewal fails and a fresh login is needed.
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._on_reauthenticate = on_reauthenticate
        self.user: dict[str, Any] | None = None
        self.coordinator = RefreshCoordinator(
            renew=self._renew,
            on_failure=self._handle_renewal_failure,
        )

    async def __aenter__(self) -> "ApiSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    @property
    def access_token(self) -> str | None:
        return self.coordinator.credential

    @access_token.setter
    def access_token(self, token: str | None) -> None:
        self.coordinator.credential = token

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    def clear_credentials(self) -> None:
        """Forget the access credential, the renewal cookie and the cached user."""
        self.access_token = None
        self.user = None
        self._client.cookies.clear()

    def _handle_renewal_failure(self) -> None:
        self.clear_credentials()
        logger.info("Credential renewal failed, re-authentication required")

        if self._on_reauthenticate is not None:
            self._on_reauthenticate()

    async def _renew(self) -> str:
        response = await self._client.post(REFRESH_PATH)
        body = _envelope(response)

        if response.is_error:
            raise RenewalFailure(body.get("message") or f"HTTP {response.status_code}")

        return body["data"]["token"]

    async def _send(self, method: str, url: str, token: str | None, **kwargs) -> httpx.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        if token:
            headers["Authorization"] = f"Bearer {token}"

        return await self._client.request(method, url, headers=headers, **kwargs)

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """
        Send a request with the current access credential.

        An "expired credential" rejection on the original attempt waits for
        one renewal and retries once with the new credential. Credential
        endpoints (signup, login, refresh-token) are never retried.

        Returns:
            The response; any status other than 401 is passed through.

        Raises:
            CredentialRejectedError: A 401 that cannot be fixed by renewing,
                or any 401 on the retry.
            ReauthenticationRequired: Renewal failed.
        """
        attempt = Attempt.ORIGINAL

        while True:
            token = self.access_token
            response = await self._send(method, url, token, **kwargs)

            if response.status_code != httpx.codes.UNAUTHORIZED:
                return response

            if is_credential_endpoint(response.request.url):
                return response

            reason = rejection_reason(response)

            if attempt is Attempt.RETRY or reason != RejectionReason.EXPIRED:
                raise CredentialRejectedError(response, reason)

            if token is not None and self.access_token is None:
                # A renewal for this credential already failed and the session was cleared
                raise ReauthenticationRequired(
                    exception=CredentialRejectedError(response, reason)
                )

            # Another request may have renewed while this one was in flight
            if self.access_token == token:
                try:
                    await self.coordinator.ensure_fresh_credential()
                except RenewalFailure as e:
                    raise ReauthenticationRequired(exception=e) from e

            attempt = Attempt.RETRY

    async def signup(self, name: str, email: str, password: str) -> dict[str, Any]:
        response = await self.request(
            "POST",
            SIGNUP_PATH,
            json={"name": name, "email": email, "password": password},
        )
        return self._store_auth(_raise_for_envelope(response))

    async def login(self, email: str, password: str) -> dict[str, Any]:
        response = await self.request(
            "POST",
            LOGIN_PATH,
            json={"email": email, "password": password},
        )
        return self._store_auth(_raise_for_envelope(response))

    def _store_auth(self, body: dict[str, Any]) -> dict[str, Any]:
        self.access_token = body["data"]["token"]
        self.user = body["data"]["user"]
        return self.user  # type: ignore[return-value]

    async def me(self) -> dict[str, Any]:
        response = await self.request("GET", ME_PATH)
        self.user = _raise_for_envelope(response)["data"]["user"]
        return self.user  # type: ignore[return-value]

    async def refresh(self) -> str:
        """
        Renew the access credential explicitly, sharing any in-flight renewal.

        Raises:
            ReauthenticationRequired: Renewal failed.
        """
        try:
            return await self.coordinator.ensure_fresh_credential()
        except RenewalFailure as e:
            raise ReauthenticationRequired(exception=e) from e

    async def logout(self) -> None:
        """Log out on the server if possible; local credentials are always cleared."""
        try:
            response = await self.request("POST", LOGOUT_PATH)
            _raise_for_envelope(response)
        except (httpx.HTTPError, ApiError, CredentialRejectedError, ReauthenticationRequired) as e:
            logger.warning(f"Logout request failed, clearing local credentials anyway: {e}")
        finally:
            self.clear_credentials()

    async def aclose(self) -> None:
        await self.coordinator.close()

        if self._owns_client:
            await self._client.aclose()
