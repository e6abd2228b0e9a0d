#!/usr/bin/env python3
"""
OAuth Gate HTTP Server

Exposes the Discord OAuth flow as Flask endpoints:

- GET  /auth/csrf              issue the session CSRF token
- GET  /auth/discord           start a login (``?type=`` and ``?redirect=``)
- GET  /auth/discord/callback  Discord redirect target
- POST /auth/refresh           refresh the access token
- POST /auth/logout            revoke the token and clear the session

Flow errors are rendered as ``{"code", "message"}`` JSON with the same
HTTP status, or handed to ``OAUTH_ERROR_CALLBACK`` when configured.
"""
import os
import secrets
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from flask import Blueprint, Flask, current_app, jsonify, redirect as flask_redirect, request, session
from dotenv import load_dotenv

from oauthgate.auth import (
    AuthSettings,
    DiscordClient,
    FlowConfig,
    QuerySettings,
    StateSettings,
    login,
    logout,
    redirect,
    refresh_token,
)
from oauthgate.auth.settings import FLOW_LOGIN, FLOW_TYPES, FLOW_WEBHOOK
from oauthgate.crypto import CryptoSettings
from oauthgate.errors import OAuthFlowError
from oauthgate.utils.config_validator import validate_config
from oauthgate.utils.logger import get_logger

logger = get_logger("server")

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')

# Session keys
SESSION_CSRF = 'csrf_token'
SESSION_ACCESS_TOKEN = 'access_token'
SESSION_REFRESH_TOKEN = 'refresh_token'
SESSION_USER = 'discord_user'

CSRF_HEADER = 'X-CSRF-Token'


# =============================================================================
# HELPERS
# =============================================================================

def _settings() -> Dict[str, Any]:
    return current_app.extensions['oauthgate']


def _has_session() -> bool:
    return bool(session.get(SESSION_ACCESS_TOKEN))


def get_csrf_token() -> str:
    """Return the session CSRF token, creating it on first use."""
    token = session.get(SESSION_CSRF)
    if not token:
        token = secrets.token_urlsafe(32)
        session[SESSION_CSRF] = token
    return token


def _request_csrf_token() -> Optional[str]:
    """CSRF value sent by the client: header, form field or JSON body."""
    token = request.headers.get(CSRF_HEADER) or request.form.get('csrfToken')
    if not token and request.is_json:
        body = request.get_json(silent=True) or {}
        token = body.get('csrfToken')
    return token


def _flow_config(flow_type: Optional[str] = None, **overrides) -> FlowConfig:
    settings = _settings()
    config = FlowConfig(
        type=flow_type,
        crypto=settings['crypto'],
        auth=settings['auth'],
        query=settings['query'],
    )
    return config.with_updates(**overrides) if overrides else config


def _store_tokens(token: Mapping[str, Any]) -> None:
    session[SESSION_ACCESS_TOKEN] = token.get('access_token')
    if token.get('refresh_token'):
        session[SESSION_REFRESH_TOKEN] = token['refresh_token']


def _clear_session() -> None:
    for key in (SESSION_ACCESS_TOKEN, SESSION_REFRESH_TOKEN, SESSION_USER):
        session.pop(key, None)


# =============================================================================
# ROUTES
# =============================================================================

@auth_bp.errorhandler(OAuthFlowError)
def handle_flow_error(error: OAuthFlowError):
    """Render a rejected flow step."""
    logger.warning(f"{request.path} rejected: {error.code} {error.message}")
    callback = _settings().get('error_callback')
    if callable(callback):
        return callback(error, request)
    return jsonify(error.to_dict()), error.code


@auth_bp.route('/csrf', methods=['GET'])
def auth_csrf():
    """Return the CSRF token the client must echo on refresh/logout."""
    return jsonify({'csrfToken': get_csrf_token()})


@auth_bp.route('/discord', methods=['GET'])
def auth_discord_start():
    """Start the Discord OAuth flow and redirect the browser."""
    flow_type = request.args.get('type', FLOW_LOGIN)
    settings = _settings()
    config = _flow_config(
        flow_type if flow_type in FLOW_TYPES else None,
        state=StateSettings(csrf_token=get_csrf_token()),
        port=settings.get('port'),
    )

    result = login(
        request.args, request.host, config, _has_session(), api_url=settings['client'].api_url,
    )
    return flask_redirect(result.url)


@auth_bp.route('/discord/callback', methods=['GET'])
def auth_discord_callback():
    """
    Discord OAuth callback.

    Query params:
    - code: Authorization code from Discord
    - state: Encrypted state blob
    - guild_id: Guild the webhook was added to (webhook flow)
    """
    auth = _settings()['auth']
    config = _flow_config(auth=replace(auth, csrf_token=get_csrf_token()))

    result = redirect(request.args, config, _has_session(), client=_settings()['client'])

    if result.get('state', {}).get('type') == FLOW_WEBHOOK:
        token = result['tokenRequest']
        return jsonify({
            'success': True,
            'guild_id': result.get('guild_id'),
            'webhook': token.get('webhook'),
            'redirect': result['redirect'],
        })

    if result.get('newSession'):
        _store_tokens(result['tokenRequest'])
        if 'user' in result:
            user = result['user']
            session[SESSION_USER] = {
                'id': user.get('id'),
                'username': user.get('username'),
                'avatar': user.get('avatar'),
            }
        logger.info(f"Discord login: {result.get('user', {}).get('username', 'unknown')}")

    return flask_redirect(result.get('redirect', '/'))


@auth_bp.route('/refresh', methods=['POST'])
def auth_refresh():
    """Refresh the access token stored in the session."""
    auth = _settings()['auth']
    config = _flow_config(
        auth=replace(auth, csrf_token=get_csrf_token()),
        refresh_token=session.get(SESSION_REFRESH_TOKEN),
    )

    result = refresh_token(
        _request_csrf_token(), request.args, config, _has_session(), client=_settings()['client'],
    )
    if result['refreshed']:
        _store_tokens(result['tokenRequest'])

    return jsonify({'refreshed': result['refreshed'], 'redirect': result['redirect']})


@auth_bp.route('/logout', methods=['POST'])
def auth_logout():
    """Revoke the Discord token and clear the session."""
    config = _flow_config(
        state=StateSettings(csrf_token=get_csrf_token()),
        csrf_token=_request_csrf_token(),
    )

    result = logout(
        request.args,
        session.get(SESSION_ACCESS_TOKEN),
        config,
        _has_session(),
        client=_settings()['client'],
    )
    _clear_session()

    return jsonify({
        'success': True,
        'complete': result['complete'],
        'existSession': result['existSession'],
        'redirect': result['redirect'],
    })


@auth_bp.route('/me', methods=['GET'])
def auth_me():
    """Current Discord user stored in the session."""
    user = session.get(SESSION_USER)
    if not _has_session() or not user:
        return jsonify({'code': 401, 'message': 'Not authenticated'}), 401
    return jsonify(user)


# =============================================================================
# APP FACTORY
# =============================================================================

def _coerce(value: Any, cls, from_env):
    if isinstance(value, cls):
        return value
    if isinstance(value, Mapping):
        return cls.from_mapping(value)
    return from_env()


def create_app(config: Optional[Mapping[str, Any]] = None) -> Flask:
    """
    Build the Flask app.

    Recognized config keys (besides Flask's own):
    ``OAUTH_AUTH`` (AuthSettings or mapping), ``OAUTH_CRYPTO``
    (CryptoSettings or mapping), ``OAUTH_QUERY``, ``OAUTH_PORT``,
    ``OAUTH_CLIENT`` (DiscordClient) and ``OAUTH_ERROR_CALLBACK``.
    Missing settings are read from the environment.
    """
    # Load .env file for secrets
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(env_path)
        logger.info(f"Loaded .env from {env_path}")

    app = Flask(__name__)
    app.config['SECRET_KEY'] = os.environ.get('FLASK_SECRET_KEY') or secrets.token_hex(32)
    if config:
        app.config.update(config)

    if not app.config.get('TESTING'):
        validate_config(['discord_auth'])

    app.extensions['oauthgate'] = {
        'auth': _coerce(app.config.get('OAUTH_AUTH'), AuthSettings, AuthSettings.from_env),
        'crypto': _coerce(app.config.get('OAUTH_CRYPTO'), CryptoSettings, CryptoSettings.from_env),
        'query': _coerce(app.config.get('OAUTH_QUERY'), QuerySettings, QuerySettings),
        'port': app.config.get('OAUTH_PORT'),
        'client': app.config.get('OAUTH_CLIENT') or DiscordClient(),
        'error_callback': app.config.get('OAUTH_ERROR_CALLBACK'),
    }

    app.register_blueprint(auth_bp)
    return app


if __name__ == '__main__':
    port = int(os.environ.get('PORT', '5001'))
    create_app().run(host='0.0.0.0', port=port)
