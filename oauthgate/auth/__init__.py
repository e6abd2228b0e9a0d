"""
Authentication Module
=====================
Discord OAuth2 redirect flow with encrypted state and CSRF protection.
"""

from .settings import (
    AuthSettings,
    StateSettings,
    QuerySettings,
    FlowConfig,
    parse_flow_config,
    FLOW_TYPES,
)
from .discord_api import (
    DiscordClient,
    validate_response,
    basic_credentials,
    random_avatar,
)
from .auth_url import build_auth_url
from .login_flow import login, LoginResult
from .redirect_flow import redirect, decode_state
from .refresh_flow import refresh_token
from .logout_flow import logout
from .request_utils import sanitize_redirect, get_domain_url

__all__ = [
    'AuthSettings',
    'StateSettings',
    'QuerySettings',
    'FlowConfig',
    'parse_flow_config',
    'FLOW_TYPES',
    'DiscordClient',
    'validate_response',
    'basic_credentials',
    'random_avatar',
    'build_auth_url',
    'login',
    'LoginResult',
    'redirect',
    'decode_state',
    'refresh_token',
    'logout',
    'sanitize_redirect',
    'get_domain_url',
]
