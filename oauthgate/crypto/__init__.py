"""
State Crypto
============
Layered AES-CBC encryption for the OAuth state parameter.
"""

from .state_codec import (
    CryptoSettings,
    DEFAULT_KEY,
    encrypt,
    decrypt,
)

__all__ = [
    'CryptoSettings',
    'DEFAULT_KEY',
    'encrypt',
    'decrypt',
]
