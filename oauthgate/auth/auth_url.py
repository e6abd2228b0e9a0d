"""
Authorization URL Builder
=========================
Composes the Discord ``oauth2/authorize`` URL for a flow type.
"""

import json
from typing import Any, Mapping
from urllib.parse import quote

from oauthgate.auth.discord_api import DISCORD_API_URL
from oauthgate.auth.settings import (
    AuthSettings,
    COMMANDS_UPDATE_SCOPE,
    FLOW_LOGIN,
    FLOW_LOGIN_COMMAND,
    FLOW_WEBHOOK,
    WEBHOOK_SCOPE,
)
from oauthgate.crypto import CryptoSettings, encrypt


def encode_uri_component(value: Any) -> str:
    """Percent-encode like JavaScript's ``encodeURIComponent``."""
    return quote(str(value), safe="-_.!~*'()")


def needs_redirect(auth: AuthSettings, flow_type: str) -> bool:
    """Whether Discord must send the user back through the redirect URI."""
    if flow_type in (FLOW_LOGIN, FLOW_WEBHOOK):
        return True
    if flow_type == FLOW_LOGIN_COMMAND:
        return COMMANDS_UPDATE_SCOPE in auth.discord_scope
    return False


def build_auth_url(
    auth: AuthSettings,
    state: Mapping[str, Any],
    crypto: CryptoSettings,
    flow_type: str,
    api_url: str = DISCORD_API_URL,
) -> str:
    """
    Build the authorization URL.

    ``login`` and ``login_command`` request ``auth.discord_scope``; ``webhook``
    requests ``webhook.incoming``. When a redirect is needed the state blob is
    JSON-encoded, encrypted and attached with ``response_type=code`` and
    ``redirect_uri``. No network call is made.
    """
    if flow_type in (FLOW_LOGIN, FLOW_LOGIN_COMMAND):
        scope = '%20'.join(encode_uri_component(s) for s in auth.discord_scope)
    elif flow_type == FLOW_WEBHOOK:
        scope = WEBHOOK_SCOPE
    else:
        scope = ''

    url = f'{api_url}oauth2/authorize?client_id={encode_uri_component(auth.client_id)}&scope={scope}'

    if needs_redirect(auth, flow_type):
        encrypted_state = encrypt(crypto, json.dumps(dict(state)))
        url += '&response_type=code'
        if isinstance(auth.redirect, str):
            url += f'&redirect_uri={encode_uri_component(auth.redirect)}'
        url += f'&state={encode_uri_component(encrypted_state)}'

    return url
