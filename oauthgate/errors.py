"""
OAuth Flow Errors
=================
Every rejected operation carries an HTTP-like ``code`` and a ``message``.
The HTTP boundary renders them as ``{"code": ..., "message": ...}``.
"""

from typing import Any, Dict, Optional


class OAuthFlowError(Exception):
    """Base error for the OAuth redirect flow."""

    default_code = 500

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = self.default_code if code is None else code

    def to_dict(self) -> Dict[str, Any]:
        return {'code': self.code, 'message': self.message}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code}, message={self.message!r})"


class ConfigError(OAuthFlowError):
    """Malformed settings."""

    default_code = 500


class ValidationError(OAuthFlowError):
    """Missing or invalid request field. 401 when it is an auth concern."""

    default_code = 400


class CsrfError(OAuthFlowError):
    """CSRF token mismatch."""

    default_code = 401


class UpstreamError(OAuthFlowError):
    """Discord API failure; ``code`` is the upstream HTTP status."""

    default_code = 502


class DecodingError(OAuthFlowError):
    """Encrypted state could not be decoded."""

    default_code = 400
