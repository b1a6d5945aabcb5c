from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from credgate.core.constants import FieldSizes
from credgate.models.base import TimestampedModel


class User(TimestampedModel):
    """A subject. Its primary key, as a string, is the "sub" claim of every credential."""

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(FieldSizes.NAME))
    # Stored lowercased; lookups lowercase too
    email: Mapped[str] = mapped_column(String(FieldSizes.EMAIL), unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String(FieldSizes.PASSWORD_HASH))
    avatar: Mapped[str | None] = mapped_column(String(FieldSizes.AVATAR))
