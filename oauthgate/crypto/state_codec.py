"""
State Codec
===========
Symmetric encryption for the OAuth ``state`` parameter.

Each layer is AES-CBC with PKCS7 padding and a fresh random IV, formatted as
``<iv>:<ciphertext>`` in hex or base64. When several keys are configured the
layers are applied in order on encrypt and peeled off in reverse on decrypt.
"""

import base64
import binascii
import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Tuple

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from oauthgate.errors import ConfigError, DecodingError
from oauthgate.utils.logger import get_logger

logger = get_logger("crypto")

# =============================================================================
# CONFIGURATION
# =============================================================================

# Development key, never use in production
DEFAULT_KEY = 'tinypudding123456789012345678900'
DEFAULT_ALGORITHM = 'aes-256-cbc'
DEFAULT_IV_LENGTH = 16

KEY_SIZES = {
    'aes-128-cbc': 16,
    'aes-192-cbc': 24,
    'aes-256-cbc': 32,
}

STRING_TYPES = ('hex', 'base64')


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('true', '1', 'yes', 'on')
    return bool(value)


@dataclass(frozen=True)
class CryptoSettings:
    """Key material and encoding options for the state codec."""

    keys: Tuple[str, ...] = (DEFAULT_KEY,)
    algorithm: str = DEFAULT_ALGORITHM
    iv_length: int = DEFAULT_IV_LENGTH
    string_type: str = 'hex'
    reverse_decode: bool = True

    def __post_init__(self):
        if isinstance(self.keys, str):
            object.__setattr__(self, 'keys', (self.keys,))
        else:
            object.__setattr__(self, 'keys', tuple(self.keys))

        if not self.keys or not all(isinstance(k, str) and k for k in self.keys):
            raise ConfigError('Invalid Crypto Values!')
        if self.algorithm not in KEY_SIZES:
            raise ConfigError(f'Unsupported algorithm: {self.algorithm}')
        if self.string_type not in STRING_TYPES:
            raise ConfigError(f'Unsupported string type: {self.string_type}')
        if not isinstance(self.iv_length, int) or self.iv_length < 1:
            raise ConfigError('Invalid Crypto Values!')

    @property
    def key_size(self) -> int:
        return KEY_SIZES[self.algorithm]

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> 'CryptoSettings':
        """
        Build settings from a loose mapping.

        Accepts ``key``/``keys`` (str or list), ``algorithm``,
        ``iv_length``/``IV_LENGTH``, ``string_type``/``stringType`` and
        ``reverse_decode``. Missing values fall back to the defaults.
        """
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise ConfigError('Invalid Crypto Values!')

        keys = data.get('keys', data.get('key'))
        if keys is None:
            logger.warning("No state encryption key configured, using the development key")
            keys = (DEFAULT_KEY,)
        elif isinstance(keys, str):
            keys = (keys,)
        elif isinstance(keys, Sequence):
            keys = tuple(keys)
        else:
            raise ConfigError('Invalid Crypto Values!')

        return cls(
            keys=keys,
            algorithm=data.get('algorithm', DEFAULT_ALGORITHM),
            iv_length=data.get('iv_length', data.get('IV_LENGTH', DEFAULT_IV_LENGTH)),
            string_type=data.get('string_type', data.get('stringType', 'hex')),
            reverse_decode=_as_bool(data.get('reverse_decode', True)),
        )

    @classmethod
    def from_env(cls) -> 'CryptoSettings':
        """Read ``STATE_ENCRYPTION_KEYS`` (comma separated) and friends."""
        raw_keys = os.environ.get('STATE_ENCRYPTION_KEYS', '')
        data = {
            'algorithm': os.environ.get('STATE_ALGORITHM', DEFAULT_ALGORITHM),
            'string_type': os.environ.get('STATE_STRING_TYPE', 'hex'),
            'reverse_decode': os.environ.get('STATE_REVERSE_DECODE', 'true'),
        }
        keys = [k.strip() for k in raw_keys.split(',') if k.strip()]
        if keys:
            data['keys'] = keys
        return cls.from_mapping(data)


# =============================================================================
# TEXT ENCODING
# =============================================================================

def _to_text(raw: bytes, string_type: str) -> str:
    if string_type == 'hex':
        return raw.hex()
    return base64.b64encode(raw).decode('ascii')


def _from_text(text: str, string_type: str) -> bytes:
    if string_type == 'hex':
        return bytes.fromhex(text)
    return base64.b64decode(text.encode('ascii'), validate=True)


# =============================================================================
# SINGLE LAYER
# =============================================================================

def _encrypt_layer(settings: CryptoSettings, key: str, text: str) -> str:
    key_bytes = key.encode('utf-8')
    if len(key_bytes) != settings.key_size:
        raise ConfigError(
            f'Invalid key length for {settings.algorithm}: '
            f'expected {settings.key_size} bytes, got {len(key_bytes)}'
        )

    iv = os.urandom(settings.iv_length)
    try:
        encryptor = Cipher(algorithms.AES(key_bytes), modes.CBC(iv)).encryptor()
    except ValueError as e:
        raise ConfigError(f'Invalid Crypto Values! {e}') from e

    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(text.encode('utf-8')) + padder.finalize()
    encrypted = encryptor.update(padded) + encryptor.finalize()

    return _to_text(iv, settings.string_type) + ':' + _to_text(encrypted, settings.string_type)


def _decrypt_layer(settings: CryptoSettings, key: str, text: str) -> str:
    if not isinstance(text, str) or ':' not in text:
        raise DecodingError('Invalid encrypted value: missing iv separator')

    iv_text, data_text = text.split(':', 1)
    key_bytes = key.encode('utf-8')
    if len(key_bytes) != settings.key_size:
        raise DecodingError(
            f'Invalid key length for {settings.algorithm}: '
            f'expected {settings.key_size} bytes, got {len(key_bytes)}'
        )

    try:
        iv = _from_text(iv_text, settings.string_type)
        encrypted = _from_text(data_text, settings.string_type)
        decryptor = Cipher(algorithms.AES(key_bytes), modes.CBC(iv)).decryptor()
        padded = decryptor.update(encrypted) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        plain = unpadder.update(padded) + unpadder.finalize()
        return plain.decode('utf-8')
    except (ValueError, binascii.Error, UnicodeError) as e:
        raise DecodingError(f'Invalid encrypted value: {e}') from e


# =============================================================================
# PUBLIC API
# =============================================================================

def encrypt(settings: CryptoSettings, text: str) -> str:
    """Encrypt ``text`` with every configured key, in order."""
    result = text
    for key in settings.keys:
        result = _encrypt_layer(settings, key, result)
    return result


def decrypt(settings: CryptoSettings, text: str) -> str:
    """
    Decrypt a value produced by :func:`encrypt`.

    Keys are applied last-to-first unless ``settings.reverse_decode`` is
    False, in which case they are applied in configured order. Forward order
    only inverts :func:`encrypt` when a single key is configured.

    Raises:
        DecodingError: malformed input, wrong key or bad padding.
    """
    keys = settings.keys
    if settings.reverse_decode:
        keys = tuple(reversed(keys))

    result = text
    for key in keys:
        result = _decrypt_layer(settings, key, result)
    return result
