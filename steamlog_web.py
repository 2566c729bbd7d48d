#!/usr/bin/env python3
"""
SteamLog Web - REST API and dashboard server for SteamLog
Serves the session-authenticated JSON API and the static dashboard client.
"""

import argparse
import logging
import os
from functools import wraps
from typing import Callable, Dict, Optional

from colorama import Fore, Style, init
from dotenv import load_dotenv
from flask import (Blueprint, Flask, Response, current_app, g, jsonify, request,
                   send_from_directory)
from werkzeug.exceptions import NotFound

import steamlog
from app.repositories import BacklogRepository, UserRepository
from app.services import (AuthService, BacklogService, LibraryService, SecretCipher,
                          SecretStore, SessionStore)
from app.services.auth_service import RegistrationError, UserExistsError
from app.services.backlog_service import BacklogValidationError, DuplicateBacklogItemError
from app.services.chart_service import (library_summary, playtime_by_status,
                                        top_games_by_playtime)
from app.services.library_service import LibraryError, filter_games
from app.services.secret_service import SecretDecryptionError
from openapi_spec import build_spec

load_dotenv()

log_level = os.getenv('STEAMLOG_LOG_LEVEL', 'INFO')
steamlog.setup_logging(log_level)
web_logger = logging.getLogger('steamlog.web')

SESSION_COOKIE = 'sessionId'

CONTENT_TYPES = {
    '.html': 'text/html',
    '.css': 'text/css',
    '.js': 'application/javascript',
    '.png': 'image/png',
}

PRIVATE_PROFILE_MESSAGE = 'Could not access the Steam account; make sure the profile is public.'
SYNC_FAILED_MESSAGE = 'Failed to sync game library.'

api = Blueprint('api', __name__, url_prefix='/api')
static_files = Blueprint('static_files', __name__)


class InvalidPayload(Exception):
    """Request body is not a JSON object."""


class Services:
    """Everything a request handler needs, built once per app."""

    def __init__(self, config: Dict, client_factory: Optional[Callable] = None) -> None:
        data_dir = config['data_dir']
        self.config = config
        self.users = UserRepository(os.path.join(data_dir, 'users.json'))
        self.backlog_repo = BacklogRepository(os.path.join(data_dir, 'backlog.json'))
        self.sessions = SessionStore(ttl=config['session_ttl'])
        self.auth = AuthService(self.users)
        self.secrets = SecretStore(self.users,
                                   SecretCipher(steamlog.resolve_encryption_secret(config)))
        self.backlog = BacklogService(self.backlog_repo)

        if client_factory is None:
            timeout = config['steam_timeout']

            def client_factory(api_key):
                return steamlog.SteamAPIClient(api_key, timeout=timeout)

        self.library = LibraryService(self.users, self.backlog_repo, self.secrets,
                                      client_factory=client_factory,
                                      fallback_api_key=config.get('steam_api_key'))


def _services() -> Services:
    return current_app.extensions['steamlog']


# ===========================================================================================
# Request helpers
# ===========================================================================================

def _json_body() -> Dict:
    """Parse the request body as a JSON object; an empty body is ``{}``."""
    if not request.get_data(cache=True):
        return {}
    data = request.get_json(force=True, silent=True)
    if not isinstance(data, dict):
        raise InvalidPayload()
    return data


def _message(message: str, status: int, **extra):
    return jsonify({'message': message, **extra}), status


def _set_session_cookie(response: Response, session_id: str) -> Response:
    svc = _services()
    response.set_cookie(SESSION_COOKIE, session_id, max_age=svc.sessions.ttl, path='/',
                        httponly=True, samesite='Lax', secure=svc.config['cookie_secure'])
    return response


def require_login(f):
    """Decorator to require a live session; sets ``g.user_id``."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        session_id = request.cookies.get(SESSION_COOKIE)
        if not session_id:
            return _message('Unauthorized: No session provided.', 401)
        user_id = _services().sessions.get_user_id(session_id)
        if not user_id:
            return _message('Unauthorized: Invalid or expired session.', 401)
        g.user_id = user_id
        return f(*args, **kwargs)
    return decorated_function


def _library_response(build: Callable):
    """Sync the current user's library and answer with ``build(games)``.

    Maps each sync failure to the status code the dashboard expects; a 403
    with ``errorCode`` tells the client to ask for a Steam API key and retry.
    """
    user_id = g.user_id
    try:
        games = _services().library.get_library(user_id)
        payload = build(games)
    except LibraryError as e:
        return _message(str(e), 400)
    except steamlog.MissingConfigurationError as e:
        return _message(str(e), 403, errorCode=e.error_code, configItem=e.config_item)
    except SecretDecryptionError:
        web_logger.error('Stored Steam API key for user %s could not be decrypted', user_id)
        return _message('Stored Steam API key could not be decrypted. Please save it again.',
                        500, errorCode='E_DECRYPT_FAILED')
    except steamlog.SteamAPIError as e:
        web_logger.error('Library sync failed for user %s: %s', user_id, e)
        message = PRIVATE_PROFILE_MESSAGE if e.status_code == 403 else SYNC_FAILED_MESSAGE
        return _message(message, 500)
    except Exception as e:
        web_logger.exception('Unexpected error syncing library for user %s: %s', user_id, e)
        return _message(SYNC_FAILED_MESSAGE, 500)
    return jsonify(payload)


# ===========================================================================================
# Authentication Endpoints
# ===========================================================================================

@api.route('/auth/register', methods=['POST'])
def api_auth_register():
    """Register a new user and log them in"""
    data = _json_body()
    svc = _services()
    username = data.get('username')
    web_logger.info('Register endpoint called for username=%s', username)

    try:
        user = svc.auth.register(username, data.get('password'), data.get('steamId64'))
    except UserExistsError as e:
        return _message(str(e), 409)
    except RegistrationError as e:
        return _message(str(e), 400)
    except Exception as e:
        web_logger.exception('Registration error: %s', e)
        return _message('Internal Server Error during registration.', 500)

    svc.sessions.purge_expired()
    session_id = svc.sessions.create(user['id'])
    response = jsonify({'message': 'User created successfully.', 'userId': user['id']})
    response.status_code = 201
    return _set_session_cookie(response, session_id)


@api.route('/auth/login', methods=['POST'])
def api_auth_login():
    """Log in a user"""
    data = _json_body()
    svc = _services()
    username = data.get('username')
    password = data.get('password')

    if (not isinstance(username, str) or not isinstance(password, str)
            or not username or not password):
        return _message('Username and password are required.', 400)

    try:
        user = svc.auth.authenticate(username, password)
    except Exception as e:
        web_logger.exception('Login error: %s', e)
        return _message('Internal Server Error during login.', 500)

    if not user:
        return _message('Invalid credentials.', 401)

    svc.sessions.purge_expired()
    session_id = svc.sessions.create(user['id'])
    web_logger.info('User logged in: %s', username)
    response = jsonify({'message': 'Login successful.', 'userId': user['id']})
    return _set_session_cookie(response, session_id)


@api.route('/auth/logout', methods=['POST'])
def api_auth_logout():
    """Log out the current session"""
    svc = _services()
    session_id = request.cookies.get(SESSION_COOKIE)
    if session_id:
        svc.sessions.delete(session_id)

    response = jsonify({'message': 'Logged out successfully.'})
    response.set_cookie(SESSION_COOKIE, '', max_age=0, path='/', httponly=True,
                        samesite='Lax', secure=svc.config['cookie_secure'])
    return response


@api.route('/auth/current', methods=['GET'])
@require_login
def api_auth_current():
    """Get the logged-in user"""
    svc = _services()
    user = svc.users.find_by_id(g.user_id)
    if not user:
        return _message('Unauthorized: Invalid or expired session.', 401)
    return jsonify({
        'userId': user['id'],
        'username': user.get('username'),
        'steamId64': user.get('steamId64'),
        'hasApiKey': svc.secrets.has_api_key(user['id']),
    })


# ===========================================================================================
# User Settings Endpoints
# ===========================================================================================

@api.route('/user/<user_id>/apikey', methods=['POST'])
@require_login
def api_save_api_key(user_id):
    """Encrypt and store the user's Steam API key"""
    if user_id != g.user_id:
        return _message('Forbidden: Cannot save key for another user.', 403)

    api_key = _json_body().get('apiKey')
    if not isinstance(api_key, str) or not api_key.strip():
        return jsonify({'error': 'missing_param', 'message': 'userId and apiKey required'}), 400

    try:
        saved = _services().secrets.save_api_key(user_id, api_key.strip())
    except Exception as e:
        web_logger.exception('Save API key failed: %s', e)
        return jsonify({'error': 'save_failed', 'message': 'internal_server_error'}), 500

    if not saved:
        return jsonify({'error': 'user_not_found',
                        'message': 'User not found for API Key saving.'}), 404
    return jsonify({'ok': True, 'message': 'API Key saved successfully'})


# ===========================================================================================
# Library Endpoints
# ===========================================================================================

@api.route('/library/sync', methods=['GET'])
@require_login
def api_library_sync():
    """Steam library merged with the user's backlog"""
    mode = request.args.get('filter')
    return _library_response(lambda games: filter_games(games, mode))


# ===========================================================================================
# Backlog Endpoints
# ===========================================================================================

@api.route('/backlog', methods=['GET'])
@require_login
def api_backlog_list():
    """Local backlog items only; the dashboard uses /api/library/sync"""
    try:
        return jsonify(_services().backlog.list_items(g.user_id))
    except Exception as e:
        web_logger.exception('Error fetching backlog: %s', e)
        return _message('Failed to fetch backlog items.', 500)


@api.route('/backlog', methods=['POST'])
@require_login
def api_backlog_create():
    """Start tracking a game"""
    data = _json_body()
    try:
        item = _services().backlog.create_item(g.user_id, data.get('appId'), data)
    except BacklogValidationError as e:
        return _message(str(e), 400)
    except DuplicateBacklogItemError as e:
        return _message(str(e), 409)
    except Exception as e:
        web_logger.exception('Error creating backlog item: %s', e)
        return _message('Failed to create backlog item.', 500)
    return jsonify(item), 201


@api.route('/backlog/<item_id>', methods=['PUT'])
@require_login
def api_backlog_update(item_id):
    """Update status, rating or target date of a backlog item"""
    updates = _json_body()
    try:
        item = _services().backlog.update_item(g.user_id, item_id, updates)
    except BacklogValidationError as e:
        return _message(str(e), 400)
    except Exception as e:
        web_logger.exception('Error updating backlog item %s: %s', item_id, e)
        return _message('Failed to update backlog item.', 500)
    if item is None:
        return _message('Update failed: Item not found or unauthorized.', 404)
    return jsonify(item)


@api.route('/backlog/<item_id>', methods=['DELETE'])
@require_login
def api_backlog_delete(item_id):
    """Stop tracking a game"""
    try:
        deleted = _services().backlog.delete_item(g.user_id, item_id)
    except Exception as e:
        web_logger.exception('Error deleting backlog item %s: %s', item_id, e)
        return _message('Failed to delete backlog item.', 500)
    if not deleted:
        return _message('Delete failed: Item not found or unauthorized.', 404)
    return Response(status=204)


# ===========================================================================================
# Chart & Stats Endpoints
# ===========================================================================================

@api.route('/charts/playtime', methods=['GET'])
@require_login
def api_chart_playtime():
    """Playtime pie chart data, by backlog status or by game"""
    if request.args.get('groupBy') == 'game':
        return _library_response(top_games_by_playtime)
    return _library_response(playtime_by_status)


@api.route('/stats', methods=['GET'])
@require_login
def api_stats():
    """Library statistics"""
    return _library_response(library_summary)


@api.route('/openapi.json', methods=['GET'])
def api_openapi():
    """OpenAPI 3.0 specification"""
    return jsonify(build_spec(server_url=request.host_url.rstrip('/')))


# ===========================================================================================
# Static Files
# ===========================================================================================

@static_files.route('/', defaults={'filename': 'index.html'})
@static_files.route('/<path:filename>')
def serve_static(filename):
    """Serve the dashboard client"""
    if filename == 'api' or filename.startswith('api/'):
        return _message('API Endpoint Not Found', 404)
    client_root = os.path.abspath(_services().config['client_root'])
    ext = os.path.splitext(filename)[1].lower()
    try:
        return send_from_directory(client_root, filename, mimetype=CONTENT_TYPES.get(ext))
    except NotFound:
        web_logger.debug('Static file not found: %s', filename)
        return Response('404 Not Found', status=404, mimetype='text/plain')


# ===========================================================================================
# App factory
# ===========================================================================================

def create_app(config: Optional[Dict] = None,
               client_factory: Optional[Callable] = None) -> Flask:
    """Build the Flask application.

    Args:
        config: Settings overriding :func:`steamlog.load_config`; when
            ``None`` the config file and environment are read.
        client_factory: ``api_key -> client`` callable used for Steam calls.
    """
    merged = dict(steamlog.DEFAULT_CONFIG)
    merged.update(steamlog.load_config() if config is None else config)

    app = Flask(__name__, static_folder=None)
    app.extensions['steamlog'] = Services(merged, client_factory=client_factory)
    app.register_blueprint(api)
    app.register_blueprint(static_files)

    @app.errorhandler(InvalidPayload)
    def handle_invalid_payload(_e):
        return _message('Invalid JSON payload', 400)

    @app.errorhandler(404)
    @app.errorhandler(405)
    def handle_not_found(e):
        if request.path.startswith('/api/'):
            return _message('API Endpoint Not Found', 404)
        return Response('404 Not Found', status=404, mimetype='text/plain')

    return app


def _add_file_logging(level: str) -> None:
    try:
        os.makedirs('logs', exist_ok=True)
        fh = logging.FileHandler('logs/steamlog_web.log')
        fh.setFormatter(logging.Formatter('[%(asctime)s] %(levelname)s %(name)s: %(message)s'))
        fh.setLevel(getattr(logging, level.upper(), logging.INFO))
        logging.getLogger('steamlog').addHandler(fh)
    except OSError:
        web_logger.warning('Could not create log file handler')


def main():
    """Main entry point for the web server"""
    parser = argparse.ArgumentParser(description='SteamLog web server')
    parser.add_argument('--config', default='config.json', help='Path to config file')
    parser.add_argument('--host', help='Interface to bind (default from config)')
    parser.add_argument('--port', type=int, help='Port to listen on (default from config)')
    parser.add_argument('--data-dir', help='Directory holding users.json and backlog.json')
    parser.add_argument('--log-level', default=log_level, help='DEBUG, INFO, WARNING, ...')
    args = parser.parse_args()

    init(autoreset=True)
    steamlog.setup_logging(args.log_level)
    _add_file_logging(args.log_level)

    try:
        config = steamlog.load_config(args.config)
        if args.host:
            config['host'] = args.host
        if args.port:
            config['port'] = args.port
        if args.data_dir:
            config['data_dir'] = args.data_dir
        app = create_app(config)
    except steamlog.ConfigurationError as e:
        print(f"{Fore.RED}Error: {e}")
        raise SystemExit(1)

    url = f"http://{config['host']}:{config['port']}"
    print("\n" + "=" * 60)
    print(f"{Fore.CYAN}{Style.BRIGHT}🎮 SteamLog is starting...")
    print("=" * 60)
    print(f"\nOpen your browser and go to:\n  {Fore.GREEN}{url}")
    print(f"\nData directory: {os.path.abspath(config['data_dir'])}")
    print("Press Ctrl+C to stop the server")
    print("=" * 60 + "\n")

    try:
        app.run(host=config['host'], port=config['port'], debug=False)
    except KeyboardInterrupt:
        print(f"\n{Fore.YELLOW}🛑 SteamLog stopped")


if __name__ == "__main__":
    main()
