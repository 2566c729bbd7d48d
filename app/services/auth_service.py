"""Business logic for registration, password hashing and login."""
import hashlib
import hmac
import logging
import os
from typing import Dict, Optional, Tuple

from steamlog import is_valid_steam_id

from ..repositories.user_repository import UserRepository

# scrypt cost parameters; changing them invalidates every stored hash
SCRYPT_N = 1024
SCRYPT_R = 8
SCRYPT_P = 1
KEY_LENGTH = 64
SALT_LENGTH = 16

MIN_PASSWORD_LENGTH = 6


class RegistrationError(ValueError):
    """Registration input was rejected."""


class UserExistsError(RegistrationError):
    """The username is already taken."""


def hash_password(password: str, salt: Optional[bytes] = None) -> Tuple[str, str]:
    """Hash *password* with scrypt.

    Returns:
        ``(hash_hex, salt_hex)``.  A random salt is generated when none is given.
    """
    if salt is None:
        salt = os.urandom(SALT_LENGTH)
    derived = hashlib.scrypt(password.encode('utf-8'), salt=salt,
                             n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P, dklen=KEY_LENGTH)
    return derived.hex(), salt.hex()


def verify_password(password: str, hash_hex: str, salt_hex: str) -> bool:
    """Return True if *password* matches the stored scrypt hash."""
    try:
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(hash_hex)
    except (TypeError, ValueError):
        return False
    candidate, _ = hash_password(password, salt)
    return hmac.compare_digest(bytes.fromhex(candidate), expected)


class AuthService:
    """Registers and authenticates users against
    :class:`~app.repositories.user_repository.UserRepository`.
    """

    def __init__(self, users: UserRepository) -> None:
        self._users = users
        self._log = logging.getLogger('steamlog.auth')

    def register(self, username: str, password: str, steam_id64: str) -> Dict:
        """Create a new user.

        Raises:
            RegistrationError: If a field is missing or the password is too short.
            UserExistsError: If *username* is already registered.
        """
        username = (username or '').strip() if isinstance(username, str) else ''
        steam_id64 = (steam_id64 or '').strip() if isinstance(steam_id64, str) else ''
        if not isinstance(password, str):
            password = ''
        if (not username or not password.strip() or not steam_id64
                or len(password) < MIN_PASSWORD_LENGTH):
            raise RegistrationError('Invalid input. Username, password (min 6 chars), '
                                    'and SteamID64 are required.')

        if not is_valid_steam_id(steam_id64):
            self._log.warning('User %s registered with a non-standard SteamID64', username)

        with self._users.lock:
            if self._users.find_by_username(username):
                raise UserExistsError('User already exists.')
            hashed, salt = hash_password(password)
            user = self._users.create(username, hashed, salt, steam_id64)

        self._log.info('Registered new user: %s', username)
        return user

    def authenticate(self, username: str, password: str) -> Optional[Dict]:
        """Return the user record if the credentials match, else ``None``."""
        if not username or not password:
            return None
        user = self._users.find_by_username(username)
        if not user:
            return None
        if not verify_password(password, user.get('hashedPassword', ''), user.get('salt', '')):
            self._log.info('Failed login for user: %s', username)
            return None
        return user
