#!/usr/bin/env python3
"""
SteamLog - Personal Game Backlog Tracker
Core library: logging, configuration, shared helpers and the Steam Web API client.
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional

import requests

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

def setup_logging(level: str = 'WARNING') -> logging.Logger:
    """Configure the root SteamLog logger.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to WARNING so library use is quiet.

    Returns:
        Configured logger instance.
    """
    numeric = getattr(logging, level.upper(), logging.WARNING)
    logger = logging.getLogger('steamlog')
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('[%(levelname)s] %(name)s: %(message)s'))
        logger.addHandler(handler)
    logger.setLevel(numeric)
    return logger


logger = setup_logging()


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class SteamLogError(Exception):
    """Base class for errors raised by SteamLog."""


class ConfigurationError(SteamLogError):
    """Raised when the server configuration is unusable."""


class MissingConfigurationError(SteamLogError):
    """No Steam API key is available for the request.

    The web layer turns this into a 403 carrying :attr:`error_code` so the
    client can prompt for a key and resubmit the sync.
    """

    error_code = 'E_MISSING_STEAM_API_KEY'
    config_item = 'Steam API Key'


class SteamAPIError(SteamLogError):
    """The Steam Web API call failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_PLACEHOLDER_VALUES = {'DEMO_MODE', 'DEMO_ID', 'DEMO_KEY', 'YOUR_STEAM_API_KEY_HERE',
                       'YOUR_STEAM_ID_HERE', 'YOUR_SECRET_HERE'}


def is_placeholder_value(value: str) -> bool:
    """Check if a value is a placeholder/demo sentinel that should not be used for real API calls."""
    if not value or not isinstance(value, str):
        return True
    return value.startswith(('YOUR_', 'DEMO_')) or value in _PLACEHOLDER_VALUES


def minutes_to_hours(minutes: int) -> float:
    """Convert playtime from minutes to hours, rounded to 1 decimal place."""
    return round(minutes / 60, 1)


def is_valid_steam_id(steam_id: str) -> bool:
    """Validate Steam ID format (64-bit SteamID)

    Args:
        steam_id: Steam ID to validate

    Returns:
        True if valid 64-bit Steam ID format, False otherwise
    """
    if not steam_id or not isinstance(steam_id, str):
        return False

    # Steam 64-bit IDs are 17-digit numbers starting with 7656119
    if not steam_id.isdigit():
        return False

    if len(steam_id) != 17:
        return False

    if not steam_id.startswith('7656119'):
        return False

    return True


STEAM_CDN_HOSTS = (
    'https://cdn.cloudflare.steamstatic.com',
    'https://steamcdn-a.akamaihd.net',
    'https://cdn.akamai.steamstatic.com',
)


def header_image_urls(app_id) -> List[str]:
    """Return the header image URL for *app_id* on each Steam CDN, primary first."""
    return [f"{host}/steam/apps/{app_id}/header.jpg" for host in STEAM_CDN_HOSTS]


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

DEV_FALLBACK_SECRET = 'dev-fallback-change-me'

DEFAULT_CONFIG: Dict[str, Any] = {
    'data_dir': 'data',
    'client_root': 'static',
    'host': '127.0.0.1',
    'port': 3000,
    'session_ttl': 3600,
    'steam_timeout': 10,
    'steam_api_key': '',
    'api_key_secret': '',
    'environment': 'development',
    'cookie_secure': False,
}

# config key -> (environment variable, type)
_ENV_OVERRIDES = {
    'data_dir': ('STEAMLOG_DATA_DIR', str),
    'client_root': ('STEAMLOG_CLIENT_ROOT', str),
    'host': ('STEAMLOG_HOST', str),
    'port': ('STEAMLOG_PORT', int),
    'session_ttl': ('STEAMLOG_SESSION_TTL', int),
    'steam_timeout': ('STEAMLOG_STEAM_TIMEOUT', int),
    'steam_api_key': ('STEAM_API_KEY', str),
    'api_key_secret': ('API_KEY_SECRET', str),
    'environment': ('STEAMLOG_ENV', str),
    'cookie_secure': ('STEAMLOG_COOKIE_SECURE', bool),
}


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def load_config(config_path: str = 'config.json') -> Dict[str, Any]:
    """Load server configuration with environment variable support.

    Values come from :data:`DEFAULT_CONFIG`, then the optional JSON file at
    *config_path*, then environment variables (which take precedence):

    - STEAMLOG_DATA_DIR, STEAMLOG_CLIENT_ROOT, STEAMLOG_HOST, STEAMLOG_PORT
    - STEAMLOG_SESSION_TTL, STEAMLOG_STEAM_TIMEOUT, STEAMLOG_ENV
    - STEAMLOG_COOKIE_SECURE
    - STEAM_API_KEY overrides steam_api_key
    - API_KEY_SECRET overrides api_key_secret

    Raises:
        ConfigurationError: On an unreadable config file or a non-numeric
            value for an integer setting.
    """
    config = dict(DEFAULT_CONFIG)

    if config_path and os.path.exists(config_path):
        try:
            with open(config_path, 'r') as f:
                file_config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Error parsing config file {config_path}: {e}") from e
        if not isinstance(file_config, dict):
            raise ConfigurationError(f"Config file {config_path} must contain a JSON object")
        config.update(file_config)

    for key, (env_var, kind) in _ENV_OVERRIDES.items():
        raw = os.getenv(env_var)
        if raw is None or raw == '':
            continue
        if kind is int:
            try:
                config[key] = int(raw)
            except ValueError as e:
                raise ConfigurationError(f"{env_var} must be an integer, got {raw!r}") from e
        elif kind is bool:
            config[key] = _parse_bool(raw)
        else:
            config[key] = raw

    if is_placeholder_value(config.get('steam_api_key', '')):
        config['steam_api_key'] = ''
    if is_placeholder_value(config.get('api_key_secret', '')):
        config['api_key_secret'] = ''

    return config


def resolve_encryption_secret(config: Dict[str, Any]) -> str:
    """Return the secret used to encrypt per-user API keys.

    Outside production an empty secret falls back to :data:`DEV_FALLBACK_SECRET`
    with a warning; in production it is a hard error.
    """
    secret = config.get('api_key_secret') or ''
    if secret:
        return secret
    if config.get('environment') == 'production':
        raise ConfigurationError(
            'Missing required environment variable: API_KEY_SECRET. Aborting startup.')
    logger.warning('API_KEY_SECRET not set, using the development fallback secret. '
                   'Do not run like this in production.')
    return DEV_FALLBACK_SECRET


# ---------------------------------------------------------------------------
# Steam Web API
# ---------------------------------------------------------------------------

class SteamAPIClient:
    """Client for the Steam Web API owned-games endpoint."""

    BASE_URL = "https://api.steampowered.com"
    OWNED_GAMES_PATH = "/IPlayerService/GetOwnedGames/v0001/"

    def __init__(self, api_key: str, timeout: int = 10):
        self.session = requests.Session()
        self.api_key = api_key
        self.timeout = timeout
        self._log = logging.getLogger('steamlog.steam')

    def get_owned_games(self, steam_id64: str) -> List[Dict]:
        """Get the games owned by a Steam user.

        Returns:
            List of ``{appId, name, playtimeMinutes, imgUrls}`` dicts.  A
            profile whose game list is hidden yields an empty list.

        Raises:
            ValueError: If *steam_id64* is empty.
            MissingConfigurationError: If no usable API key is set.
            SteamAPIError: On HTTP, transport or decoding failures.
        """
        if not steam_id64:
            raise ValueError('steamId64 required')
        if is_placeholder_value(self.api_key):
            raise MissingConfigurationError('Steam API Key is not configured.')

        url = f"{self.BASE_URL}{self.OWNED_GAMES_PATH}"
        params = {
            'key': self.api_key,
            'steamid': steam_id64,
            'format': 'json',
            'include_appinfo': 1,
            'include_played_free_games': 1,
        }

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.Timeout as e:
            self._log.error("Steam API request timed out for %s", steam_id64)
            raise SteamAPIError('Steam API request timed out') from e
        except requests.RequestException as e:
            self._log.error("Could not connect to Steam API: %s", e)
            raise SteamAPIError(f'Could not connect to Steam API: {e}') from e

        if response.status_code != 200:
            self._log.error("Steam API returned HTTP %s for %s", response.status_code, steam_id64)
            raise SteamAPIError(f'Steam API failed with status: {response.status_code}',
                                status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise SteamAPIError('Invalid JSON response from Steam API.') from e

        games = (data.get('response') or {}).get('games') if isinstance(data, dict) else None
        if not isinstance(games, list):
            self._log.info("No games returned for %s (profile may be private)", steam_id64)
            return []

        return [self._map_game(g) for g in games if isinstance(g, dict) and 'appid' in g]

    @staticmethod
    def _map_game(game: Dict) -> Dict:
        playtime = game.get('playtime_forever')
        if not isinstance(playtime, int) or isinstance(playtime, bool):
            playtime = game.get('playtime') or 0
        try:
            playtime = max(int(playtime), 0)
        except (TypeError, ValueError):
            playtime = 0
        return {
            'appId': game['appid'],
            'name': game.get('name') or game.get('title') or '',
            'playtimeMinutes': playtime,
            'imgUrls': header_image_urls(game['appid']),
        }


def resolve_api_key(explicit: Optional[str] = None, user_id: Optional[str] = None,
                    secret_store=None, fallback: Optional[str] = None) -> Optional[str]:
    """Pick the Steam API key to use for a request.

    Order: *explicit* key, then the user's stored key from *secret_store*,
    then *fallback* (server config / ``STEAM_API_KEY``).  Placeholder values
    are skipped.

    Raises:
        SecretDecryptionError: If the user's stored key cannot be decrypted.
    """
    if explicit and explicit.strip() and not is_placeholder_value(explicit.strip()):
        return explicit.strip()

    if user_id and secret_store is not None:
        stored = secret_store.get_api_key(user_id)
        if stored and not is_placeholder_value(stored):
            return stored

    if fallback and fallback.strip() and not is_placeholder_value(fallback.strip()):
        return fallback.strip()
    return None
