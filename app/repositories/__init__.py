"""Repository package - expose all concrete repositories from one import."""
from .user_repository import UserRepository
from .backlog_repository import BacklogRepository

__all__ = [
    'UserRepository',
    'BacklogRepository',
]
