"""Encryption of per-user Steam API keys at rest."""
import base64
import binascii
import hashlib
import logging
import os
from typing import Dict, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..repositories.user_repository import UserRepository

IV_LENGTH = 12

# Fields older user files used for a plaintext key
LEGACY_KEY_FIELDS = ('apiKey', 'steamApiKey', 'steam_api_key', 'steam_key', 'key', 'steamKey')


class SecretDecryptionError(Exception):
    """A stored secret could not be decrypted."""


class SecretCipher:
    """AES-256-GCM wrapper keyed by the SHA-256 digest of a server secret.

    Encrypted payloads are dicts of base64 strings::

        {"data": "<ciphertext>", "iv": "<12-byte nonce>", "tag": "<16-byte tag>"}
    """

    TAG_LENGTH = 16

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError('Server encryption secret not configured.')
        self._aead = AESGCM(hashlib.sha256(secret.encode('utf-8')).digest())

    def encrypt(self, plaintext: str) -> Dict[str, str]:
        iv = os.urandom(IV_LENGTH)
        sealed = self._aead.encrypt(iv, plaintext.encode('utf-8'), None)
        ciphertext, tag = sealed[:-self.TAG_LENGTH], sealed[-self.TAG_LENGTH:]
        return {
            'data': base64.b64encode(ciphertext).decode('ascii'),
            'iv': base64.b64encode(iv).decode('ascii'),
            'tag': base64.b64encode(tag).decode('ascii'),
        }

    def decrypt(self, payload: Dict[str, str]) -> str:
        """Reverse :meth:`encrypt`.

        Raises:
            SecretDecryptionError: On a malformed payload, a wrong key or
                tampered data.
        """
        try:
            ciphertext = base64.b64decode(payload['data'], validate=True)
            iv = base64.b64decode(payload['iv'], validate=True)
            tag = base64.b64decode(payload['tag'], validate=True)
        except (KeyError, TypeError, binascii.Error) as e:
            raise SecretDecryptionError('Malformed encrypted payload') from e
        if len(iv) != IV_LENGTH or len(tag) != self.TAG_LENGTH:
            raise SecretDecryptionError('Malformed encrypted payload')
        try:
            plaintext = self._aead.decrypt(iv, ciphertext + tag, None)
        except InvalidTag as e:
            raise SecretDecryptionError('Could not decrypt secret') from e
        try:
            return plaintext.decode('utf-8')
        except UnicodeDecodeError as e:
            raise SecretDecryptionError('Decrypted secret is not valid text') from e


class SecretStore:
    """Stores each user's Steam API key encrypted on their user record."""

    def __init__(self, users: UserRepository, cipher: SecretCipher) -> None:
        self._users = users
        self._cipher = cipher
        self._log = logging.getLogger('steamlog.secrets')

    def save_api_key(self, user_id: str, api_key: str) -> bool:
        """Encrypt and store *api_key*.  Returns ``False`` if the user is unknown."""
        updated = self._users.update(user_id, {'encryptedApiKey': self._cipher.encrypt(api_key)})
        if updated is None:
            return False
        self._log.info('Stored Steam API key for user %s', user_id)
        return True

    def has_api_key(self, user_id: str) -> bool:
        user = self._users.find_by_id(user_id)
        if not user:
            return False
        return bool(user.get('encryptedApiKey') or self._legacy_key(user))

    def get_api_key(self, user_id: str) -> Optional[str]:
        """Return the user's decrypted key, or ``None`` when none is stored.

        Raises:
            SecretDecryptionError: If the stored payload cannot be decrypted.
        """
        user = self._users.find_by_id(user_id)
        if not user:
            return None
        payload = user.get('encryptedApiKey')
        if payload:
            try:
                return self._cipher.decrypt(payload)
            except SecretDecryptionError:
                self._log.error('Could not decrypt the stored API key for user %s', user_id)
                raise
        return self._legacy_key(user)

    @staticmethod
    def _legacy_key(user: Dict) -> Optional[str]:
        for name in LEGACY_KEY_FIELDS:
            value = user.get(name)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return None
