"""
Redirect Handler
================
Handles the Discord callback: decrypts ``state``, checks the CSRF token,
exchanges ``code`` for a token and optionally loads the user profile.
"""

import json
from typing import Any, Dict, Mapping, Optional

from oauthgate.auth.discord_api import DiscordClient, get_client
from oauthgate.auth.request_utils import csrf_matches, is_present
from oauthgate.auth.settings import (
    FLOW_LOGIN,
    FLOW_LOGIN_COMMAND,
    FLOW_WEBHOOK,
    LOGIN_COMMAND_SCOPES,
    parse_flow_config,
)
from oauthgate.crypto import CryptoSettings, decrypt
from oauthgate.errors import CsrfError, DecodingError, UpstreamError, ValidationError
from oauthgate.utils.logger import get_logger

logger = get_logger("auth.redirect")


def decode_state(crypto: CryptoSettings, raw_state: Any) -> Dict[str, Any]:
    """Decrypt and parse the state parameter; anything unreadable is ``{}``."""
    if not isinstance(raw_state, str):
        return {}

    try:
        state = json.loads(decrypt(crypto, raw_state))
    except (DecodingError, ValueError):
        logger.warning("Discarding unreadable OAuth state")
        return {}

    return state if isinstance(state, dict) else {}


def redirect(
    query: Optional[Mapping[str, Any]],
    config: Any,
    exist_session: bool,
    client: Optional[DiscordClient] = None,
) -> Dict[str, Any]:
    """
    Complete the OAuth round trip.

    Returns:
        ``{"newSession", "state", "redirect", "tokenRequest", "user"?,
        "guild_id"?}`` after an exchange, or ``{"newSession": False}`` when
        a session already exists and the flow is not a webhook.

    Raises:
        CsrfError: state csrf token does not match (401)
        ValidationError: missing code (401) or unknown state type (400)
        UpstreamError: Discord rejected a call or returned bad data
    """
    flow = parse_flow_config(config)
    auth = flow.auth
    query = query or {}

    state = decode_state(flow.crypto, query.get('state'))
    state_type = state.get('type')

    if not csrf_matches(auth.csrf_token, state.get('csrfToken')):
        logger.warning("OAuth callback rejected: csrf token mismatch")
        raise CsrfError('Incorrect csrfToken!')

    result: Dict[str, Any] = {'newSession': False, 'state': state, 'redirect': '/'}
    if isinstance(state.get('redirect'), str):
        result['redirect'] += state['redirect'].lstrip('/\\')

    if exist_session and state_type != FLOW_WEBHOOK:
        return {'newSession': False}

    code = query.get('code')
    if not is_present(code):
        raise ValidationError('Invalid Discord Code!', 401)

    scope = auth.scope_string
    if state_type == FLOW_LOGIN_COMMAND:
        scope = ' '.join(LOGIN_COMMAND_SCOPES)

    client = client or get_client()
    token = client.get_token(
        client_id=auth.client_id,
        client_secret=auth.client_secret,
        code=code,
        redirect_uri=auth.redirect,
        scope=scope,
    )

    if not isinstance(token, dict):
        raise UpstreamError('Invalid JSON Token Data!', 500)
    if not is_present(token.get('access_token')):
        raise UpstreamError('Invalid User Token Data!', 500)

    result['tokenRequest'] = token

    if state_type == FLOW_LOGIN:
        result['newSession'] = True
        if auth.first_get_user:
            user = client.get_user(token['access_token'])
            if not isinstance(user, dict):
                raise UpstreamError('Invalid JSON User Data!', 500)
            result['user'] = user
        logger.info("OAuth login completed")
        return result

    if state_type == FLOW_WEBHOOK:
        if isinstance(query.get('guild_id'), str):
            result['guild_id'] = query['guild_id']
        logger.info("OAuth webhook authorization completed")
        return result

    raise ValidationError('Invalid State Type!', 400)
