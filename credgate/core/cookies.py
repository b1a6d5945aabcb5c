from fastapi import Request, Response

from credgate.core.config import Settings, settings

BEARER_SCHEME = "bearer"


class CredentialStore:
    """
    Moves credentials between client and server.

    The access credential travels in the readable Authorization header.
    The renewal credential only ever travels in an HTTP-only, same-site-strict
    cookie scoped to the root path, so page scripts cannot read it.

    Reference:
        https://cheatsheetseries.owasp.org/cheatsheets/Session_Management_Cheat_Sheet.html#cookies
    """

    def __init__(
        self,
        cookie_name: str,
        max_age: int,
        secure: bool,
        path: str = "/",
    ):
        self.cookie_name = cookie_name
        self.max_age = max_age
        self.secure = secure
        self.path = path

    @classmethod
    def from_settings(cls, config: Settings) -> "CredentialStore":
        return cls(
            cookie_name=config.renewal_cookie_name,
            max_age=config.renewal_token_expire_seconds,
            secure=config.renewal_cookie_secure,
            path=config.renewal_cookie_path,
        )

    @staticmethod
    def read_access_credential(request: Request) -> str | None:
        """
        Extract the credential from an "Authorization: Bearer <token>" header.

        Returns:
            The raw token, or None when the header is absent, uses another
            scheme or has no token part.
        """
        authorization = request.headers.get("Authorization")
        if not authorization:
            return None

        scheme, _, token = authorization.strip().partition(" ")
        if scheme.lower() != BEARER_SCHEME:
            return None

        token = token.strip()
        return token or None

    def read_renewal_credential(self, request: Request) -> str | None:
        return request.cookies.get(self.cookie_name) or None

    def set_renewal_credential(self, response: Response, token: str) -> None:
        response.set_cookie(
            key=self.cookie_name,
            value=token,
            max_age=self.max_age,
            path=self.path,
            secure=self.secure,
            httponly=True,
            samesite="strict",
        )

    def clear_renewal_credential(self, response: Response) -> None:
        # Same path and flags as when set, otherwise browsers keep the original
        response.delete_cookie(
            key=self.cookie_name,
            path=self.path,
            secure=self.secure,
            httponly=True,
            samesite="strict",
        )


credential_store = CredentialStore.from_settings(settings)
