"""
Discord API Client
==================
Thin wrapper over the Discord OAuth2 and user endpoints.

Every call returns the decoded JSON payload or raises
:class:`~oauthgate.errors.UpstreamError` carrying the upstream status.
Nothing is retried.
"""

import base64
import os
import secrets
from typing import Any, Dict, List, Optional, Tuple, Union
from urllib.parse import quote

import requests

from oauthgate.errors import OAuthFlowError, UpstreamError
from oauthgate.utils.logger import get_logger

logger = get_logger("discord_api")

# =============================================================================
# CONFIGURATION
# =============================================================================

DISCORD_API_URL = os.environ.get('DISCORD_API_URL', 'https://discord.com/api/')
DISCORD_CDN_AVATARS = 'https://cdn.discordapp.com/embed/avatars/'
DEFAULT_TIMEOUT = int(os.environ.get('DISCORD_API_TIMEOUT', '10'))

FORM_HEADERS = {'Content-Type': 'application/x-www-form-urlencoded'}

Payload = Union[Dict[str, Any], List[Any]]


# =============================================================================
# HELPERS
# =============================================================================

def validate_response(data: Any) -> Tuple[Optional[Payload], Optional[OAuthFlowError]]:
    """
    Split a Discord payload into ``(data, error)``.

    - ``{"message": "401: Unauthorized"}`` is a 401.
    - ``{"error": ..., "error_description": ...}`` is a 401 with the description.
    - any other dict or a list is data.
    - anything else is a 500.
    """
    if isinstance(data, dict):
        if data.get('message') == '401: Unauthorized':
            return None, UpstreamError(data['message'], 401)
        if isinstance(data.get('error'), str) and isinstance(data.get('error_description'), str):
            return None, UpstreamError(data['error_description'], 401)
        return data, None

    if isinstance(data, list):
        return data, None

    return None, UpstreamError('Invalid HTTP Result!', 500)


def basic_credentials(client_id: str, client_secret: str) -> str:
    """Base64 ``client_id:client_secret`` for HTTP Basic auth."""
    return base64.b64encode(f'{client_id}:{client_secret}'.encode('utf-8')).decode('ascii')


def random_avatar(value: Union[int, str, None] = None, url: str = DISCORD_CDN_AVATARS) -> str:
    """Default avatar URL; a random one of the five when ``value`` is None."""
    if not isinstance(value, (int, str)):
        value = secrets.randbelow(5)
    return f'{url}{value}.png'


# =============================================================================
# CLIENT
# =============================================================================

class DiscordClient:
    """Stateless Discord API client sharing one HTTP session."""

    def __init__(
        self,
        api_url: str = DISCORD_API_URL,
        timeout: int = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.api_url = api_url if api_url.endswith('/') else api_url + '/'
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs) -> Payload:
        url = f'{self.api_url}{path}'
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            status = e.response.status_code if e.response is not None else 502
            logger.warning(f"Discord request failed: {method} {path}: {e}")
            raise UpstreamError(str(e), status) from e

        try:
            payload = response.json() if response.content else {}
        except ValueError as e:
            code = response.status_code if response.status_code >= 400 else 500
            logger.warning(f"Discord returned a non-JSON body: {method} {path} ({response.status_code})")
            raise UpstreamError('Invalid HTTP Result!', code) from e

        data, error = validate_response(payload)
        if error is not None:
            logger.warning(f"Discord rejected {method} {path}: {error.message}")
            raise error

        if response.status_code >= 400:
            message = payload.get('message') if isinstance(payload, dict) else None
            raise UpstreamError(message or response.reason or 'Discord API error', response.status_code)

        return data

    # -------------------------------------------------------------------------
    # OAuth2
    # -------------------------------------------------------------------------

    def get_token(
        self,
        client_id: str,
        client_secret: str,
        code: Union[str, int],
        redirect_uri: str,
        scope: str = '',
    ) -> Payload:
        """Exchange an authorization code for an access token."""
        data = {
            'client_id': client_id,
            'client_secret': client_secret,
            'grant_type': 'authorization_code',
            'code': code,
            'redirect_uri': redirect_uri,
            'scope': scope,
        }
        return self._request('POST', 'oauth2/token', data=data, headers=FORM_HEADERS)

    def refresh_token(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: Union[str, int],
        redirect_uri: str,
        scope: str = '',
    ) -> Payload:
        """Exchange a refresh token for a new access token."""
        data = {
            'client_id': client_id,
            'client_secret': client_secret,
            'grant_type': 'refresh_token',
            'refresh_token': refresh_token,
            'redirect_uri': redirect_uri,
            'scope': scope,
        }
        return self._request('POST', 'oauth2/token', data=data, headers=FORM_HEADERS)

    def revoke_token(self, access_token: Union[str, int], client_id: str, client_secret: str) -> Payload:
        """Revoke an access token with HTTP Basic client credentials."""
        headers = dict(FORM_HEADERS)
        headers['Authorization'] = f'Basic {basic_credentials(client_id, client_secret)}'
        return self._request('POST', 'oauth2/token/revoke', data={'token': access_token}, headers=headers)

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    def get_user(
        self,
        access_token: Union[str, int],
        token_type: str = 'Bearer',
        user: str = '@me',
        version: str = '',
    ) -> Payload:
        """Fetch a user profile. Use ``token_type='Bot'`` for bot tokens."""
        headers = {'Authorization': f'{token_type} {access_token}'}
        return self._request('GET', f'{version}users/{user}', headers=headers)

    def get_user_guilds(self, access_token: Union[str, int]) -> Payload:
        """Guilds of the authenticated user (needs the ``guilds`` scope)."""
        headers = {'Authorization': f'Bearer {access_token}'}
        return self._request('GET', 'users/@me/guilds', headers=headers)

    def get_user_connections(self, access_token: Union[str, int]) -> Payload:
        """Linked accounts of the authenticated user (needs ``connections``)."""
        headers = {'Authorization': f'Bearer {access_token}'}
        return self._request('GET', 'users/@me/connections', headers=headers)

    # -------------------------------------------------------------------------
    # Guilds
    # -------------------------------------------------------------------------

    def add_guild_member(
        self,
        bot_token: str,
        guild_id: Union[str, int],
        user_id: Union[str, int],
        access_token: str,
        roles: Optional[List[str]] = None,
        nickname: Optional[str] = None,
        mute: bool = False,
        deaf: bool = False,
    ) -> Payload:
        """
        Add a user to a guild with the bot token.

        The user's ``access_token`` must carry the ``guilds.join`` scope.
        Discord answers 204 with no body when the user is already a member.
        """
        body: Dict[str, Any] = {'access_token': access_token, 'mute': mute, 'deaf': deaf}
        if roles:
            body['roles'] = list(roles)
        if nickname:
            body['nick'] = nickname

        path = f"guilds/{quote(str(guild_id), safe='')}/members/{quote(str(user_id), safe='')}"
        headers = {'Authorization': f'Bot {bot_token}'}
        return self._request('PUT', path, json=body, headers=headers)

    def get_guild_widget(self, guild_id: Union[str, int]) -> Payload:
        """Public widget of a guild; Discord answers 403 when it is disabled."""
        return self._request('GET', f"guilds/{quote(str(guild_id), safe='')}/widget.json")


_default_client: Optional[DiscordClient] = None


def get_client() -> DiscordClient:
    """Get or create the process-wide client."""
    global _default_client
    if _default_client is None:
        _default_client = DiscordClient()
    return _default_client
