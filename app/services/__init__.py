"""Services package - expose all concrete services from one import."""
from .auth_service import AuthService
from .session_service import SessionStore
from .secret_service import SecretCipher, SecretStore
from .backlog_service import BacklogService
from .library_service import LibraryService

__all__ = [
    'AuthService',
    'SessionStore',
    'SecretCipher',
    'SecretStore',
    'BacklogService',
    'LibraryService',
]
