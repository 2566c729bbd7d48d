"""Repository for registered users (the credential store)."""
import uuid
from typing import Dict, List, Optional

from .base import BaseRepository


class UserRepository(BaseRepository):
    """Persists user records to a JSON file.

    Schema::

        [
          {
            "id": "<uuid4>",
            "username": "...",
            "hashedPassword": "<hex>",
            "salt": "<hex>",
            "steamId64": "...",
            "encryptedApiKey": {"data": "...", "iv": "...", "tag": "..."}
          }
        ]

    ``encryptedApiKey`` is only present once the user has stored a key.
    """

    def __init__(self, file_path: str = 'data/users.json') -> None:
        super().__init__(file_path)

    def all(self) -> List[Dict]:
        data = self._load([])
        # Older files stored users as an {id: record} map
        if isinstance(data, dict):
            data = [u for u in data.values() if isinstance(u, dict)]
        if not isinstance(data, list):
            self._log.warning("Ignoring unexpected users file layout in %s", self._path)
            return []
        return data

    def find_by_username(self, username: str) -> Optional[Dict]:
        if not username:
            return None
        with self._lock:
            return next((u for u in self.all() if u.get('username') == username), None)

    def find_by_id(self, user_id) -> Optional[Dict]:
        if user_id is None:
            return None
        uid = str(user_id)
        with self._lock:
            return next((u for u in self.all() if str(u.get('id')) == uid), None)

    def create(self, username: str, hashed_password: str, salt: str,
               steam_id64: str) -> Dict:
        user = {
            'id': str(uuid.uuid4()),
            'username': username,
            'hashedPassword': hashed_password,
            'salt': salt,
            'steamId64': steam_id64,
        }
        with self._lock:
            users = self.all()
            users.append(user)
            self._save(users)
        return user

    def update(self, user_id, updates: Dict) -> Optional[Dict]:
        """Shallow-merge *updates* into the user record.

        Returns:
            The updated record, or ``None`` if *user_id* is unknown.
        """
        uid = str(user_id)
        with self._lock:
            users = self.all()
            for index, user in enumerate(users):
                if str(user.get('id')) == uid:
                    users[index] = {**user, **updates}
                    self._save(users)
                    return users[index]
        return None

    def count(self) -> int:
        with self._lock:
            return len(self.all())
