from .base import Base, TimestampedModel
from .user import User

__all__ = ["Base", "TimestampedModel", "User"]
