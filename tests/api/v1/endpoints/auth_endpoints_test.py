import pytest
from httpx import ASGITransport, AsyncClient

from credgate.api.v1.deps.auth import get_user_repo
from credgate.core.auth import TokenIssuer, token_verifier
from credgate.core.constants import (
    CredentialKind,
    LOGIN_PATH,
    LOGOUT_PATH,
    ME_PATH,
    REFRESH_PATH,
    SIGNUP_PATH,
)
from credgate.models import User

USER_FIELDS = {"id", "name", "email", "avatar", "created_at", "updated_at"}


def renewal_cookie(response) -> str:
    return next(
        header
        for header in response.headers.get_list("set-cookie")
        if header.startswith("refreshToken=")
    )


class TestSignup:
    """Test suite for POST /api/v1/auth/signup endpoint"""

    @pytest.mark.asyncio
    async def test_signup_success(self, client: AsyncClient):
        response = await client.post(
            SIGNUP_PATH,
            json={"name": "Ada Lovelace", "email": "a@x.com", "password": "secret1"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "User registered successfully"
        assert set(body["data"]["user"]) == USER_FIELDS
        assert body["data"]["user"]["email"] == "a@x.com"
        assert "password" not in response.text

        verification = token_verifier.verify(body["data"]["token"], CredentialKind.ACCESS)
        assert verification.is_valid
        assert verification.subject_id == str(body["data"]["user"]["id"])

        cookie = renewal_cookie(response)
        assert "HttpOnly" in cookie
        assert "SameSite=strict" in cookie
        assert "Max-Age=604800" in cookie
        assert "Path=/" in cookie
        assert "Secure" not in cookie
        assert client.cookies.get("refreshToken")

    @pytest.mark.asyncio
    async def test_signup_duplicate_email(self, client: AsyncClient):
        payload = {"name": "Ada Lovelace", "email": "a@x.com", "password": "secret1"}
        await client.post(SIGNUP_PATH, json=payload)

        response = await client.post(SIGNUP_PATH, json={**payload, "email": "A@X.com"})

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "message": "User with this email already exists",
        }

    @pytest.mark.asyncio
    async def test_signup_validation_failure(self, client: AsyncClient):
        response = await client.post(
            SIGNUP_PATH,
            json={"name": "A", "email": "not-an-email", "password": "123"},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        fields = {error["field"] for error in body["data"]["errors"]}
        assert fields == {"name", "email", "password"}
        for error in body["data"]["errors"]:
            assert error["message"] in body["message"]

    @pytest.mark.asyncio
    async def test_signup_missing_body(self, client: AsyncClient):
        response = await client.post(SIGNUP_PATH)

        assert response.status_code == 400
        assert response.json()["success"] is False


class TestLogin:
    """Test suite for POST /api/v1/auth/login endpoint"""

    @pytest.mark.asyncio
    async def test_login_success(self, client: AsyncClient, user: User, default_password: str):
        response = await client.post(
            LOGIN_PATH,
            json={"email": user.email, "password": default_password},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Login successful"
        assert body["data"]["user"]["id"] == user.id
        assert token_verifier.verify(body["data"]["token"], CredentialKind.ACCESS).is_valid

        renewal = client.cookies.get("refreshToken")
        assert token_verifier.verify(renewal, CredentialKind.RENEWAL).subject_id == str(user.id)

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client: AsyncClient, user: User):
        response = await client.post(
            LOGIN_PATH,
            json={"email": user.email, "password": "wrong-password"},
        )

        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Invalid email or password"}
        assert "set-cookie" not in response.headers

    @pytest.mark.asyncio
    async def test_login_unknown_email_looks_the_same(self, client: AsyncClient, user: User):
        wrong_password = await client.post(
            LOGIN_PATH,
            json={"email": user.email, "password": "wrong-password"},
        )
        unknown_email = await client.post(
            LOGIN_PATH,
            json={"email": "nobody@x.com", "password": "wrong-password"},
        )

        assert unknown_email.status_code == wrong_password.status_code == 401
        assert unknown_email.json() == wrong_password.json()


class TestRefreshToken:
    """Test suite for POST /api/v1/auth/refresh-token endpoint"""

    @pytest.mark.asyncio
    async def test_refresh_rotates_credentials(
        self, client: AsyncClient, user: User, default_password: str
    ):
        await client.post(LOGIN_PATH, json={"email": user.email, "password": default_password})
        old_renewal = client.cookies.get("refreshToken")

        response = await client.post(REFRESH_PATH)

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Token refreshed successfully"
        assert token_verifier.verify(body["data"]["token"], CredentialKind.ACCESS).is_valid
        assert "HttpOnly" in renewal_cookie(response)
        assert client.cookies.get("refreshToken") != old_renewal

    @pytest.mark.asyncio
    async def test_refresh_without_cookie(self, client: AsyncClient):
        response = await client.post(REFRESH_PATH)

        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "No refresh token provided"}
        assert "Max-Age=0" in renewal_cookie(response)

    @pytest.mark.asyncio
    async def test_refresh_with_invalid_cookie_clears_it(self, client: AsyncClient):
        client.cookies.set("refreshToken", "garbage", domain="auth.test")

        response = await client.post(REFRESH_PATH)

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid or expired refresh token"
        assert "Max-Age=0" in renewal_cookie(response)
        assert client.cookies.get("refreshToken") is None

    @pytest.mark.asyncio
    async def test_refresh_with_access_credential_rejected(
        self, client: AsyncClient, access_token: str
    ):
        client.cookies.set("refreshToken", access_token, domain="auth.test")

        response = await client.post(REFRESH_PATH)

        assert response.status_code == 401
        assert 'error_description="invalid credential"' in response.headers["www-authenticate"]

    @pytest.mark.asyncio
    async def test_refresh_for_removed_user(
        self, client: AsyncClient, user: User, issuer: TokenIssuer, subject_store
    ):
        client.cookies.set(
            "refreshToken", issuer.issue_renewal(str(user.id)).token, domain="auth.test"
        )
        subject_store.remove(user.id)

        response = await client.post(REFRESH_PATH)

        assert response.status_code == 401
        assert response.json()["message"] == "User no longer exists."


class TestLogout:
    """Test suite for POST /api/v1/auth/logout endpoint"""

    @pytest.mark.asyncio
    async def test_logout_clears_cookie(
        self, client: AsyncClient, user: User, default_password: str
    ):
        await client.post(LOGIN_PATH, json={"email": user.email, "password": default_password})
        assert client.cookies.get("refreshToken")

        response = await client.post(LOGOUT_PATH)

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Logged out successfully"}
        assert client.cookies.get("refreshToken") is None

    @pytest.mark.asyncio
    async def test_logout_without_credentials(self, client: AsyncClient):
        response = await client.post(LOGOUT_PATH)

        assert response.status_code == 200
        assert "Max-Age=0" in renewal_cookie(response)


class TestMe:
    """Test suite for GET /api/v1/auth/me endpoint"""

    @pytest.mark.asyncio
    async def test_me(self, client: AsyncClient, user: User, access_token: str):
        response = await client.get(ME_PATH, headers={"Authorization": f"Bearer {access_token}"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert "message" not in body
        assert body["data"]["user"]["id"] == user.id
        assert body["data"]["user"]["avatar"] is None
        assert body["data"]["user"]["email"] == user.email
        assert set(body["data"]["user"]) == USER_FIELDS

    @pytest.mark.asyncio
    async def test_me_without_credential(self, client: AsyncClient):
        response = await client.get(ME_PATH)

        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "message": "Not authorized. Please log in to access this resource.",
        }
        assert (
            response.headers["www-authenticate"]
            == 'Bearer error="invalid_token", error_description="missing credential"'
        )

    @pytest.mark.asyncio
    async def test_me_with_expired_credential(
        self, client: AsyncClient, user: User, expired_issuer: TokenIssuer
    ):
        expired = expired_issuer.issue_access(str(user.id)).token

        response = await client.get(ME_PATH, headers={"Authorization": f"Bearer {expired}"})

        assert response.status_code == 401
        assert response.json()["message"] == "Token expired. Please log in again."
        assert 'error_description="expired credential"' in response.headers["www-authenticate"]

    @pytest.mark.asyncio
    async def test_me_with_renewal_credential(
        self, client: AsyncClient, user: User, issuer: TokenIssuer
    ):
        renewal = issuer.issue_renewal(str(user.id)).token

        response = await client.get(ME_PATH, headers={"Authorization": f"Bearer {renewal}"})

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid token. Please log in again."

    @pytest.mark.asyncio
    async def test_me_for_removed_user(
        self, client: AsyncClient, user: User, access_token: str, subject_store
    ):
        subject_store.remove(user.id)

        response = await client.get(ME_PATH, headers={"Authorization": f"Bearer {access_token}"})

        assert response.status_code == 401
        assert response.json()["message"] == "User no longer exists."


class TestRateLimiting:
    @pytest.mark.asyncio
    async def test_auth_endpoints_limited(self, client: AsyncClient):
        payload = {"email": "nobody@x.com", "password": "wrong-password"}

        for _ in range(10):
            response = await client.post(LOGIN_PATH, json=payload)
            assert response.status_code == 401

        response = await client.post(LOGIN_PATH, json=payload)

        assert response.status_code == 429
        assert response.json()["message"] == (
            "Too many authentication attempts, please try again later"
        )
        assert response.json()["data"]["retry_after"] > 0
        assert int(response.headers["Retry-After"]) > 0
        assert response.headers["X-RateLimit-Limit"] == "10"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert "X-RateLimit-Reset" in response.headers

    @pytest.mark.asyncio
    async def test_auth_limit_shared_across_credential_endpoints(self, client: AsyncClient):
        for _ in range(10):
            await client.post(REFRESH_PATH)

        response = await client.post(
            SIGNUP_PATH,
            json={"name": "Ada Lovelace", "email": "a@x.com", "password": "secret1"},
        )

        assert response.status_code == 429

    @pytest.mark.asyncio
    async def test_general_headers_on_success(self, client: AsyncClient):
        response = await client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.headers["X-RateLimit-Limit"] == "100"
        assert response.headers["X-RateLimit-Remaining"] == "99"

    @pytest.mark.asyncio
    async def test_logout_not_auth_limited(self, client: AsyncClient):
        for _ in range(15):
            response = await client.post(LOGOUT_PATH)
            assert response.status_code == 200


class TestAppEnvelope:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/api/v1/health")

        body = response.json()
        assert body["success"] is True
        assert body["status"] == "ok"
        assert body["message"] == "Server is running"
        assert "timestamp" in body
        assert "X-Request-ID" in response.headers

    @pytest.mark.asyncio
    async def test_not_found(self, client: AsyncClient):
        response = await client.get("/api/v1/nope")

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Not found - /api/v1/nope"}

    @pytest.mark.asyncio
    async def test_unhandled_error(self, test_app):
        def broken_store():
            raise RuntimeError("database exploded")

        test_app.dependency_overrides[get_user_repo] = broken_store

        transport = ASGITransport(app=test_app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://auth.test") as ac:
            response = await ac.get(ME_PATH)

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Internal server error"}
        assert "database exploded" not in response.text
