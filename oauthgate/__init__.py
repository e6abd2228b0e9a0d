"""
OAuth Gate
==========
Discord OAuth2 login, callback, token refresh and logout with encrypted
state and CSRF protection.
"""

from oauthgate.errors import (
    OAuthFlowError,
    ConfigError,
    ValidationError,
    CsrfError,
    UpstreamError,
    DecodingError,
)

__version__ = '0.1.0'

__all__ = [
    'OAuthFlowError',
    'ConfigError',
    'ValidationError',
    'CsrfError',
    'UpstreamError',
    'DecodingError',
]
