from .base import BaseRepository
from .user import SubjectStore, UserRepo

__all__ = ["BaseRepository", "SubjectStore", "UserRepo"]
