"""Business logic for the game backlog status tracker."""
import datetime
import uuid
from typing import Dict, List, Optional

from ..repositories.backlog_repository import BacklogRepository

VALID_STATUSES = ('Planning', 'Playing', 'Completed', 'Dropped')
UNTRACKED_STATUS = 'Not Started'

MIN_RATING = 1
MAX_RATING = 10

UPDATABLE_FIELDS = ('status', 'userRating', 'targetFinishDate')


class BacklogValidationError(ValueError):
    """Backlog input was rejected."""


class DuplicateBacklogItemError(Exception):
    """The user already tracks this app."""


def validate_status(status) -> str:
    if status not in VALID_STATUSES:
        raise BacklogValidationError(
            f"Invalid status {status!r}; expected one of: {', '.join(VALID_STATUSES)}.")
    return status


def validate_rating(rating) -> Optional[int]:
    if rating is None:
        return None
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise BacklogValidationError('userRating must be an integer between 1 and 10.')
    if not MIN_RATING <= rating <= MAX_RATING:
        raise BacklogValidationError('userRating must be an integer between 1 and 10.')
    return rating


def validate_target_date(value) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise BacklogValidationError('targetFinishDate must be a YYYY-MM-DD date.')
    try:
        parsed = datetime.datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError as e:
        raise BacklogValidationError('targetFinishDate must be a YYYY-MM-DD date.') from e
    # strptime also accepts unpadded months and days
    if parsed.isoformat() != value:
        raise BacklogValidationError('targetFinishDate must be a YYYY-MM-DD date.')
    return value


class BacklogService:
    """Creates, updates, lists and removes backlog items, delegating persistence
    to :class:`~app.repositories.backlog_repository.BacklogRepository`.

    Valid statuses: ``Planning``, ``Playing``, ``Completed``, ``Dropped``.
    Games without an item are reported as ``Not Started``.
    """

    def __init__(self, repository: BacklogRepository) -> None:
        self._repo = repository

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def list_items(self, user_id: str) -> List[Dict]:
        """Return all backlog items owned by *user_id*."""
        return self._repo.find_by_user(user_id)

    def create_item(self, user_id: str, app_id, data: Optional[Dict] = None) -> Dict:
        """Start tracking *app_id* for *user_id*.

        Raises:
            BacklogValidationError: If *app_id*/status is missing or a field is invalid.
            DuplicateBacklogItemError: If the user already tracks *app_id*.
        """
        data = data or {}
        if app_id in (None, '') or not data.get('status'):
            raise BacklogValidationError('App ID and Status are required.')

        item = {
            'id': str(uuid.uuid4()),
            'userId': user_id,
            'appId': str(app_id),
            'status': validate_status(data['status']),
            'userRating': validate_rating(data.get('userRating')),
            'targetFinishDate': validate_target_date(data.get('targetFinishDate')),
        }
        if not self._repo.insert_unique(item):
            raise DuplicateBacklogItemError('Backlog item for this game already exists.')
        return item

    def update_item(self, user_id: str, item_id: str, updates: Dict) -> Optional[Dict]:
        """Apply *updates* to one of the user's items.

        Only ``status``, ``userRating`` and ``targetFinishDate`` are applied,
        and only when present; an explicit ``None`` clears rating or date.

        Returns:
            The updated item, or ``None`` if it does not exist for *user_id*.

        Raises:
            BacklogValidationError: If *updates* is empty or a field is invalid.
        """
        if not updates:
            raise BacklogValidationError('No fields provided for update.')

        changes: Dict = {}
        if 'status' in updates:
            changes['status'] = validate_status(updates['status'])
        if 'userRating' in updates:
            changes['userRating'] = validate_rating(updates['userRating'])
        if 'targetFinishDate' in updates:
            changes['targetFinishDate'] = validate_target_date(updates['targetFinishDate'])

        return self._repo.modify(user_id, item_id, lambda item: item.update(changes))

    def delete_item(self, user_id: str, item_id: str) -> bool:
        """Remove one of the user's items.  Returns ``True`` if it existed."""
        return self._repo.delete(user_id, item_id)
