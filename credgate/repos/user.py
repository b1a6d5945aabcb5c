from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from credgate.core.utils import parse_subject_id
from credgate.models.user import User
from credgate.repos.base import BaseRepository
from credgate.schemas import UserCreate


class SubjectStore(Protocol):
    """What the auth core needs from user storage."""

    async def find_by_id(self, subject_id: str) -> User | None: ...

    async def find_by_email(self, email: str) -> User | None: ...

    async def create(self, schema: UserCreate) -> User: ...


class UserRepo(BaseRepository[User, UserCreate]):
    def __init__(self, session: AsyncSession):
        """User repository for database operations"""
        super().__init__(session, User)

    async def find_by_id(self, subject_id: str) -> User | None:
        """
        Get a user by the subject id carried in a credential

        Args:
            subject_id (str): The "sub" claim.

        Returns:
            User | None: The user object if found, else None.
        """
        user_id = parse_subject_id(subject_id)
        if user_id is None:
            return None

        return await self.get_by_id(user_id)

    async def find_by_email(self, email: str) -> User | None:
        """
        Get a user by email

        Args:
            email (str): The email of the user, compared case-insensitively.

        Returns:
            User | None: The user object if found, else None.
        """
        return await self.get_one_by("email", email.strip().lower())

    async def create(self, schema: UserCreate) -> User:
        return await self.create_one(schema)
