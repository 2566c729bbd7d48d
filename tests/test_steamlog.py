#!/usr/bin/env python3
"""
Unit tests for SteamLog core functionality: helpers, configuration and the
Steam Web API client.

Run with:
    python -m pytest tests/
  or
    python -m unittest discover tests/
"""
import json
import os
import shutil
import tempfile
import unittest
from unittest.mock import MagicMock, patch

import requests

# Make sure steamlog can be imported regardless of where tests are run from.
import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import steamlog

# ---------------------------------------------------------------------------
# Constants used across tests
# ---------------------------------------------------------------------------
VALID_STEAM_ID = '76561190000000001'
FAKE_API_KEY = 'TEST_API_KEY_12345'

# Raw GetOwnedGames payload entries
RAW_GAMES = [
    {'appid': 620, 'name': 'Portal 2', 'playtime_forever': 2720},
    {'appid': 440, 'name': 'Team Fortress 2', 'playtime_forever': 0},
    {'appid': 570, 'title': 'Dota 2', 'playtime': 120},
]


def _response(status_code=200, payload=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload
    return resp


class TestMinutesToHours(unittest.TestCase):

    def test_exact_hours(self):
        self.assertEqual(steamlog.minutes_to_hours(120), 2.0)

    def test_rounds_to_one_decimal(self):
        self.assertEqual(steamlog.minutes_to_hours(100), 1.7)

    def test_zero(self):
        self.assertEqual(steamlog.minutes_to_hours(0), 0.0)


class TestIsValidSteamId(unittest.TestCase):

    def test_valid(self):
        self.assertTrue(steamlog.is_valid_steam_id(VALID_STEAM_ID))

    def test_wrong_prefix(self):
        self.assertFalse(steamlog.is_valid_steam_id('12345678901234567'))

    def test_wrong_length(self):
        self.assertFalse(steamlog.is_valid_steam_id('7656119000000'))

    def test_not_digits(self):
        self.assertFalse(steamlog.is_valid_steam_id('7656119abcdefghij'))

    def test_empty_and_none(self):
        self.assertFalse(steamlog.is_valid_steam_id(''))
        self.assertFalse(steamlog.is_valid_steam_id(None))


class TestIsPlaceholderValue(unittest.TestCase):

    def test_your_prefix(self):
        self.assertTrue(steamlog.is_placeholder_value('YOUR_STEAM_API_KEY_HERE'))

    def test_demo_sentinel(self):
        self.assertTrue(steamlog.is_placeholder_value('DEMO_MODE'))

    def test_any_demo_prefix(self):
        self.assertTrue(steamlog.is_placeholder_value('DEMO_STEAM_KEY'))

    def test_empty(self):
        self.assertTrue(steamlog.is_placeholder_value(''))

    def test_real_value(self):
        self.assertFalse(steamlog.is_placeholder_value(FAKE_API_KEY))


class TestHeaderImageUrls(unittest.TestCase):

    def test_three_cdn_urls_primary_first(self):
        urls = steamlog.header_image_urls(620)
        self.assertEqual(len(urls), 3)
        self.assertEqual(urls[0],
                         'https://cdn.cloudflare.steamstatic.com/steam/apps/620/header.jpg')
        for url in urls:
            self.assertTrue(url.endswith('/steam/apps/620/header.jpg'))


# ===========================================================================
# Configuration
# ===========================================================================

class TestLoadConfig(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.cfg_path = os.path.join(self.tmp, 'config.json')

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def test_defaults_without_file(self):
        with patch.dict(os.environ, {}, clear=True):
            config = steamlog.load_config(self.cfg_path)
        self.assertEqual(config['port'], 3000)
        self.assertEqual(config['session_ttl'], 3600)
        self.assertEqual(config['data_dir'], 'data')

    def test_file_values_applied(self):
        with open(self.cfg_path, 'w') as f:
            json.dump({'port': 8080, 'data_dir': '/srv/steamlog'}, f)
        with patch.dict(os.environ, {}, clear=True):
            config = steamlog.load_config(self.cfg_path)
        self.assertEqual(config['port'], 8080)
        self.assertEqual(config['data_dir'], '/srv/steamlog')

    def test_environment_overrides_file(self):
        with open(self.cfg_path, 'w') as f:
            json.dump({'port': 8080, 'steam_api_key': 'FROM_FILE'}, f)
        env = {'STEAMLOG_PORT': '9000', 'STEAM_API_KEY': 'FROM_ENV',
               'STEAMLOG_COOKIE_SECURE': 'true'}
        with patch.dict(os.environ, env, clear=True):
            config = steamlog.load_config(self.cfg_path)
        self.assertEqual(config['port'], 9000)
        self.assertEqual(config['steam_api_key'], 'FROM_ENV')
        self.assertTrue(config['cookie_secure'])

    def test_non_numeric_integer_raises(self):
        with patch.dict(os.environ, {'STEAMLOG_PORT': 'eighty'}, clear=True):
            with self.assertRaises(steamlog.ConfigurationError):
                steamlog.load_config(self.cfg_path)

    def test_corrupt_file_raises(self):
        with open(self.cfg_path, 'w') as f:
            f.write('{not json')
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(steamlog.ConfigurationError):
                steamlog.load_config(self.cfg_path)

    def test_placeholder_key_is_cleared(self):
        with open(self.cfg_path, 'w') as f:
            json.dump({'steam_api_key': 'YOUR_STEAM_API_KEY_HERE'}, f)
        with patch.dict(os.environ, {}, clear=True):
            config = steamlog.load_config(self.cfg_path)
        self.assertEqual(config['steam_api_key'], '')


class TestResolveEncryptionSecret(unittest.TestCase):

    def test_configured_secret_used(self):
        self.assertEqual(steamlog.resolve_encryption_secret({'api_key_secret': 's3cret'}),
                         's3cret')

    def test_dev_fallback_outside_production(self):
        secret = steamlog.resolve_encryption_secret(
            {'api_key_secret': '', 'environment': 'development'})
        self.assertEqual(secret, steamlog.DEV_FALLBACK_SECRET)

    def test_production_requires_secret(self):
        with self.assertRaises(steamlog.ConfigurationError):
            steamlog.resolve_encryption_secret({'api_key_secret': '', 'environment': 'production'})


# ===========================================================================
# SteamAPIClient.get_owned_games
# ===========================================================================

class TestGetOwnedGames(unittest.TestCase):

    def _client(self, key=FAKE_API_KEY):
        return steamlog.SteamAPIClient(key)

    def test_maps_games_to_client_fields(self):
        client = self._client()
        resp = _response(200, {'response': {'game_count': 3, 'games': RAW_GAMES}})
        with patch.object(client.session, 'get', return_value=resp):
            games = client.get_owned_games(VALID_STEAM_ID)
        self.assertEqual([g['appId'] for g in games], [620, 440, 570])
        self.assertEqual(games[0]['name'], 'Portal 2')
        self.assertEqual(games[0]['playtimeMinutes'], 2720)
        self.assertEqual(games[1]['playtimeMinutes'], 0)
        self.assertEqual(len(games[0]['imgUrls']), 3)

    def test_name_and_playtime_fallbacks(self):
        client = self._client()
        resp = _response(200, {'response': {'games': RAW_GAMES}})
        with patch.object(client.session, 'get', return_value=resp):
            games = client.get_owned_games(VALID_STEAM_ID)
        self.assertEqual(games[2]['name'], 'Dota 2')
        self.assertEqual(games[2]['playtimeMinutes'], 120)

    def test_non_numeric_playtime_becomes_zero(self):
        client = self._client()
        raw = [{'appid': 10, 'name': 'A', 'playtime': 'abc'},
               {'appid': 20, 'name': 'B', 'playtime': '90'}]
        resp = _response(200, {'response': {'games': raw}})
        with patch.object(client.session, 'get', return_value=resp):
            games = client.get_owned_games(VALID_STEAM_ID)
        self.assertEqual([g['playtimeMinutes'] for g in games], [0, 90])

    def test_sends_expected_query(self):
        client = self._client()
        resp = _response(200, {'response': {'games': []}})
        with patch.object(client.session, 'get', return_value=resp) as mock_get:
            client.get_owned_games(VALID_STEAM_ID)
        args, kwargs = mock_get.call_args
        self.assertTrue(args[0].endswith('/IPlayerService/GetOwnedGames/v0001/'))
        self.assertEqual(kwargs['params']['key'], FAKE_API_KEY)
        self.assertEqual(kwargs['params']['steamid'], VALID_STEAM_ID)
        self.assertEqual(kwargs['params']['include_appinfo'], 1)
        self.assertEqual(kwargs['params']['include_played_free_games'], 1)
        self.assertEqual(kwargs['timeout'], 10)

    def test_private_profile_returns_empty(self):
        client = self._client()
        with patch.object(client.session, 'get', return_value=_response(200, {'response': {}})):
            self.assertEqual(client.get_owned_games(VALID_STEAM_ID), [])

    def test_http_error_raises_with_status(self):
        client = self._client()
        with patch.object(client.session, 'get', return_value=_response(403)):
            with self.assertRaises(steamlog.SteamAPIError) as ctx:
                client.get_owned_games(VALID_STEAM_ID)
        self.assertEqual(ctx.exception.status_code, 403)
        self.assertIn('403', str(ctx.exception))

    def test_timeout_raises(self):
        client = self._client()
        with patch.object(client.session, 'get', side_effect=requests.Timeout('slow')):
            with self.assertRaises(steamlog.SteamAPIError) as ctx:
                client.get_owned_games(VALID_STEAM_ID)
        self.assertIsNone(ctx.exception.status_code)
        self.assertIn('timed out', str(ctx.exception))

    def test_connection_error_raises(self):
        client = self._client()
        with patch.object(client.session, 'get',
                          side_effect=requests.ConnectionError('refused')):
            with self.assertRaises(steamlog.SteamAPIError) as ctx:
                client.get_owned_games(VALID_STEAM_ID)
        self.assertIn('Could not connect', str(ctx.exception))

    def test_invalid_json_raises(self):
        client = self._client()
        resp = _response(200)
        resp.json.side_effect = ValueError('not json')
        with patch.object(client.session, 'get', return_value=resp):
            with self.assertRaises(steamlog.SteamAPIError):
                client.get_owned_games(VALID_STEAM_ID)

    def test_missing_steam_id_raises(self):
        with self.assertRaises(ValueError):
            self._client().get_owned_games('')

    def test_missing_key_raises_without_request(self):
        client = self._client(key='')
        with patch.object(client.session, 'get') as mock_get:
            with self.assertRaises(steamlog.MissingConfigurationError) as ctx:
                client.get_owned_games(VALID_STEAM_ID)
        mock_get.assert_not_called()
        self.assertEqual(ctx.exception.error_code, 'E_MISSING_STEAM_API_KEY')


# ===========================================================================
# resolve_api_key
# ===========================================================================

class TestResolveApiKey(unittest.TestCase):

    def test_explicit_key_wins(self):
        store = MagicMock()
        store.get_api_key.return_value = 'STORED'
        self.assertEqual(steamlog.resolve_api_key(' EXPLICIT ', 'u1', store, 'FALLBACK'),
                         'EXPLICIT')
        store.get_api_key.assert_not_called()

    def test_stored_key_before_fallback(self):
        store = MagicMock()
        store.get_api_key.return_value = 'STORED'
        self.assertEqual(steamlog.resolve_api_key(None, 'u1', store, 'FALLBACK'), 'STORED')

    def test_fallback_used_when_nothing_stored(self):
        store = MagicMock()
        store.get_api_key.return_value = None
        self.assertEqual(steamlog.resolve_api_key(None, 'u1', store, 'FALLBACK'), 'FALLBACK')

    def test_placeholder_fallback_ignored(self):
        self.assertIsNone(steamlog.resolve_api_key(fallback='YOUR_STEAM_API_KEY_HERE'))

    def test_nothing_available(self):
        self.assertIsNone(steamlog.resolve_api_key())


if __name__ == '__main__':
    unittest.main()
