"""Library sync: merges the user's Steam library with their local backlog."""
import logging
from typing import Callable, Dict, Iterable, List, Optional

from steamlog import MissingConfigurationError, SteamAPIClient, resolve_api_key

from ..repositories.backlog_repository import BacklogRepository
from ..repositories.user_repository import UserRepository
from .secret_service import SecretStore

FILTER_MODES = ('all', 'never-played', 'over-50h', 'over-100h')

_logger = logging.getLogger('steamlog.library')


class LibraryError(Exception):
    """The library cannot be synced for this user."""


def merge_library(steam_games: Iterable[Dict], backlog_items: Iterable[Dict]) -> List[Dict]:
    """Combine Steam's owned-games list with local backlog items.

    Output follows Steam's order.  Backlog items for apps that are no longer
    owned are left out; Steam-reported fields are never overridden.
    """
    by_app = {}
    for item in backlog_items:
        by_app.setdefault(str(item.get('appId')), item)

    merged = []
    for game in steam_games:
        app_id = str(game.get('appId'))
        entry = by_app.get(app_id)
        merged.append({
            'appId': app_id,
            'name': game.get('name', ''),
            'playtimeMinutes': game.get('playtimeMinutes', 0),
            'imgUrls': list(game.get('imgUrls') or []),
            'isBacklogged': entry is not None,
            'status': entry.get('status') if entry else None,
            'userRating': entry.get('userRating') if entry else None,
            'targetFinishDate': entry.get('targetFinishDate') if entry else None,
            'backlogId': entry.get('id') if entry else None,
        })
    return merged


def filter_games(games: List[Dict], mode: Optional[str]) -> List[Dict]:
    """Narrow a merged library by playtime bucket; unknown modes return everything."""
    if mode == 'never-played':
        return [g for g in games if g.get('playtimeMinutes', 0) == 0]
    if mode == 'over-50h':
        return [g for g in games if g.get('playtimeMinutes', 0) > 50 * 60]
    if mode == 'over-100h':
        return [g for g in games if g.get('playtimeMinutes', 0) > 100 * 60]
    return list(games)


class LibraryService:
    """Builds the merged library view used by the list endpoint and charts.

    The Steam client is created per request through *client_factory* so the
    API key can differ between users.
    """

    def __init__(self, users: UserRepository, backlog: BacklogRepository,
                 secrets: SecretStore,
                 client_factory: Callable[[str], SteamAPIClient] = SteamAPIClient,
                 fallback_api_key: Optional[str] = None) -> None:
        self._users = users
        self._backlog = backlog
        self._secrets = secrets
        self._client_factory = client_factory
        self._fallback_api_key = fallback_api_key

    def get_library(self, user_id: str) -> List[Dict]:
        """Fetch and merge the library for *user_id*.

        Raises:
            LibraryError: If the user has no SteamID64 on record.
            MissingConfigurationError: If no Steam API key is available.
            SecretDecryptionError: If the user's stored key is unreadable.
            SteamAPIError: If the Steam call fails.
        """
        user = self._users.find_by_id(user_id)
        steam_id64 = user.get('steamId64') if user else None
        if not steam_id64:
            raise LibraryError('User SteamID64 not found or user not registered correctly.')

        backlog_items = self._backlog.find_by_user(user_id)

        api_key = resolve_api_key(user_id=user_id, secret_store=self._secrets,
                                  fallback=self._fallback_api_key)
        if not api_key:
            raise MissingConfigurationError('Steam API Key is not configured.')

        client = self._client_factory(api_key)
        steam_games = client.get_owned_games(steam_id64)
        merged = merge_library(steam_games, backlog_items)
        _logger.info('Synced %d games for user %s (%d tracked)',
                     len(merged), user_id, sum(1 for g in merged if g['isBacklogged']))
        return merged
