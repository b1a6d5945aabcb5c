import os

# Settings are read at import time, so these must be set before credgate loads
os.environ.setdefault("ACCESS_TOKEN_SECRET", "test-access-secret-0123456789abcdef")
os.environ.setdefault("RENEWAL_TOKEN_SECRET", "test-renewal-secret-fedcba9876543210")
os.environ.setdefault("CURRENT_ENVIRONMENT", "dev")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")

import itertools  # noqa: E402
from datetime import UTC, datetime, timedelta  # noqa: E402
from typing import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from faker import Faker  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from credgate.api.v1.deps.auth import get_user_repo  # noqa: E402
from credgate.core.auth import TokenIssuer, get_password_hash  # noqa: E402
from credgate.core.config import settings  # noqa: E402
from credgate.main import app  # noqa: E402
from credgate.models import User  # noqa: E402
from credgate.schemas import UserCreate  # noqa: E402
from credgate.services.cache.rate_limiter import MemoryBucketStore, rate_limiter  # noqa: E402

DEFAULT_PASSWORD = "P@ssword123"

# Cookie jars refuse cookies for bare "localhost", so tests use a dotted host
TEST_BASE_URL = "http://auth.test"


class InMemorySubjectStore:
    """Subject store backed by a dict, standing in for UserRepo."""

    def __init__(self):
        self.users: dict[int, User] = {}
        self._ids = itertools.count(1)

    async def find_by_id(self, subject_id: str) -> User | None:
        try:
            return self.users.get(int(subject_id))
        except (TypeError, ValueError):
            return None

    async def find_by_email(self, email: str) -> User | None:
        email = email.strip().lower()
        return next((user for user in self.users.values() if user.email == email), None)

    async def create(self, schema: UserCreate) -> User:
        now = datetime.now(UTC)
        user = User(
            id=next(self._ids),
            name=schema.name,
            email=str(schema.email).lower(),
            hashed_password=schema.hashed_password,
            avatar=schema.avatar,
            created_at=now,
            updated_at=now,
        )
        self.users[user.id] = user
        return user

    def remove(self, user_id: int) -> None:
        self.users.pop(user_id, None)


@pytest.fixture(scope="session")
def pre_hashed_password():
    """Pre-compute the hashed password once for all tests to avoid repeated argon2 operations."""
    return get_password_hash(DEFAULT_PASSWORD)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def fresh_rate_limits(monkeypatch):
    """Every test starts with empty rate limit buckets."""
    monkeypatch.setattr(rate_limiter, "store", MemoryBucketStore())
    monkeypatch.setattr(rate_limiter, "enabled", True)


@pytest.fixture
def subject_store() -> InMemorySubjectStore:
    return InMemorySubjectStore()


@pytest_asyncio.fixture(scope="function")
async def test_app(subject_store: InMemorySubjectStore) -> AsyncGenerator[FastAPI, None]:
    """The application with the subject store swapped for the in-memory one."""
    app.dependency_overrides[get_user_repo] = lambda: subject_store

    yield app

    # Clear any application dependencies
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url=TEST_BASE_URL) as ac:
        yield ac


@pytest.fixture
def faker() -> Faker:
    """Create a Faker instance for generating test data."""
    return Faker()


@pytest.fixture
def default_password() -> str:
    return DEFAULT_PASSWORD


@pytest_asyncio.fixture
async def user(
    subject_store: InMemorySubjectStore,
    faker: Faker,
    pre_hashed_password: str,
) -> User:
    """Create a test user."""
    return await subject_store.create(
        UserCreate(
            name=faker.name()[:50],
            email=faker.unique.safe_email(),
            hashed_password=pre_hashed_password,
        )
    )


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer.from_settings(settings)


@pytest.fixture
def expired_issuer() -> TokenIssuer:
    """Issues access credentials whose expiry was one second ago."""
    lifetime = timedelta(seconds=settings.access_token_expire_seconds)

    def clock() -> datetime:
        return datetime.now(UTC) - lifetime - timedelta(seconds=1)

    return TokenIssuer.from_settings(settings, clock=clock)


@pytest.fixture
def access_token(user: User, issuer: TokenIssuer) -> str:
    return issuer.issue_access(str(user.id)).token
