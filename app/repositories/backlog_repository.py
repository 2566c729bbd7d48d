"""Repository for backlog items (per-user status records for Steam apps)."""
from typing import Callable, Dict, List, Optional

from .base import BaseRepository


class BacklogRepository(BaseRepository):
    """Persists backlog items for all users to a single JSON file.

    Schema::

        [
          {
            "id": "<uuid4>",
            "userId": "<user id>",
            "appId": "<steam app id>",
            "status": "Planning",
            "userRating": 8,
            "targetFinishDate": "2026-12-31"
          }
        ]
    """

    def __init__(self, file_path: str = 'data/backlog.json') -> None:
        super().__init__(file_path)

    def all(self) -> List[Dict]:
        data = self._load([])
        if not isinstance(data, list):
            self._log.warning("Ignoring unexpected backlog file layout in %s", self._path)
            return []
        return data

    def find_by_user(self, user_id: str) -> List[Dict]:
        with self._lock:
            return [item for item in self.all() if item.get('userId') == user_id]

    def find(self, user_id: str, item_id: str) -> Optional[Dict]:
        with self._lock:
            return next((item for item in self.all()
                         if item.get('id') == item_id and item.get('userId') == user_id), None)

    def insert_unique(self, item: Dict) -> bool:
        """Append *item* unless the user already tracks the same app.

        Returns:
            ``True`` if the item was stored, ``False`` on a duplicate.
        """
        with self._lock:
            items = self.all()
            if any(i.get('userId') == item['userId'] and str(i.get('appId')) == item['appId']
                   for i in items):
                return False
            items.append(item)
            self._save(items)
        return True

    def modify(self, user_id: str, item_id: str,
               mutate: Callable[[Dict], None]) -> Optional[Dict]:
        """Apply *mutate* to the user's item in place and persist it.

        Returns:
            The modified item, or ``None`` if it does not exist for *user_id*.
        """
        with self._lock:
            items = self.all()
            for item in items:
                if item.get('id') == item_id and item.get('userId') == user_id:
                    mutate(item)
                    self._save(items)
                    return item
        return None

    def delete(self, user_id: str, item_id: str) -> bool:
        with self._lock:
            items = self.all()
            remaining = [i for i in items
                         if i.get('id') != item_id or i.get('userId') != user_id]
            if len(remaining) == len(items):
                return False
            self._save(remaining)
        return True
