"""
Flow Settings
=============
Typed configuration for the Discord OAuth flow.

Raw mappings (JSON config, Flask config, test fixtures) are parsed once by
:func:`parse_flow_config`; every handler downstream receives a
:class:`FlowConfig` and trusts its shape.
"""

import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

from oauthgate.crypto import CryptoSettings
from oauthgate.errors import ConfigError, ValidationError

# =============================================================================
# CONSTANTS
# =============================================================================

FLOW_LOGIN = 'login'
FLOW_LOGIN_COMMAND = 'login_command'
FLOW_WEBHOOK = 'webhook'
FLOW_TYPES = (FLOW_LOGIN, FLOW_LOGIN_COMMAND, FLOW_WEBHOOK)

DEFAULT_REDIRECT_URI = 'http://localhost/redirect'

# Scopes that force Discord to send the user back through the redirect URI
COMMANDS_UPDATE_SCOPE = 'applications.commands.update'
LOGIN_COMMAND_SCOPES = ('applications.commands', COMMANDS_UPDATE_SCOPE)
WEBHOOK_SCOPE = 'webhook.incoming'


def _scope_tuple(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(value.split())
    if isinstance(value, Sequence):
        return tuple(str(item) for item in value)
    raise ConfigError('Invalid System Config!')


def _pick(data: Mapping[str, Any], *names: str, default: Any = None) -> Any:
    for name in names:
        if name in data:
            return data[name]
    return default


# =============================================================================
# SETTINGS
# =============================================================================

@dataclass(frozen=True)
class AuthSettings:
    """Discord application credentials and scopes."""

    client_id: str = ''
    client_secret: str = ''
    redirect: str = DEFAULT_REDIRECT_URI
    discord_scope: Tuple[str, ...] = ()
    csrf_token: Optional[str] = None
    first_get_user: bool = True

    @property
    def scope_string(self) -> str:
        return ' '.join(self.discord_scope)

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> 'AuthSettings':
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ConfigError('Invalid System Config!')

        client_id = _pick(data, 'client_id', default='')
        client_secret = _pick(data, 'client_secret', default='')
        redirect = _pick(data, 'redirect', 'redirect_uri', default=DEFAULT_REDIRECT_URI)
        csrf_token = _pick(data, 'csrf_token', 'csrfToken')

        return cls(
            client_id='' if client_id is None else str(client_id),
            client_secret='' if client_secret is None else str(client_secret),
            redirect=redirect,
            discord_scope=_scope_tuple(_pick(data, 'discord_scope', 'discordScope')),
            csrf_token=csrf_token if isinstance(csrf_token, str) else None,
            first_get_user=bool(_pick(data, 'first_get_user', default=True)),
        )

    @classmethod
    def from_env(cls) -> 'AuthSettings':
        return cls(
            client_id=os.environ.get('DISCORD_CLIENT_ID', ''),
            client_secret=os.environ.get('DISCORD_CLIENT_SECRET', ''),
            redirect=os.environ.get('DISCORD_REDIRECT_URI', DEFAULT_REDIRECT_URI),
            discord_scope=_scope_tuple(os.environ.get('DISCORD_SCOPE', 'identify')),
        )


@dataclass(frozen=True)
class StateSettings:
    """Defaults for the state blob a login embeds."""

    csrf_token: str = ''
    redirect: str = ''
    type: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> 'StateSettings':
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ValidationError('Invalid State Config!', 400)

        csrf_token = _pick(data, 'csrf_token', 'csrfToken', default='')
        redirect = data.get('redirect', '')
        state_type = data.get('type')
        return cls(
            csrf_token=csrf_token if isinstance(csrf_token, str) else '',
            redirect=redirect if isinstance(redirect, str) else '',
            type=state_type if isinstance(state_type, str) else None,
        )

    def to_state(self, flow_type: str, redirect: str = '') -> Dict[str, str]:
        """Build the JSON-ready state blob."""
        return {
            'csrfToken': self.csrf_token,
            'redirect': redirect,
            'type': self.type or flow_type,
        }


@dataclass(frozen=True)
class QuerySettings:
    """Names of the query parameters the handlers read."""

    redirect: str = 'redirect'
    csrf_token: str = 'csrfToken'

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> 'QuerySettings':
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ValidationError('Invalid Request!', 400)

        redirect = data.get('redirect', 'redirect')
        csrf_token = _pick(data, 'csrf_token', 'csrfToken', default='csrfToken')
        if not isinstance(redirect, str) or not isinstance(csrf_token, str):
            raise ValidationError('Invalid Request!', 400)
        return cls(redirect=redirect, csrf_token=csrf_token)


@dataclass(frozen=True)
class FlowConfig:
    """Everything one flow entry point needs."""

    type: Optional[str] = None
    crypto: CryptoSettings = field(default_factory=CryptoSettings)
    auth: AuthSettings = field(default_factory=AuthSettings)
    state: StateSettings = field(default_factory=StateSettings)
    query: QuerySettings = field(default_factory=QuerySettings)
    port: Optional[int] = None
    # Stored refresh token for the refresh handler
    refresh_token: Union[str, int, None] = None
    # Request-side csrf value compared by the logout handler
    csrf_token: Optional[str] = None

    def with_updates(self, **changes: Any) -> 'FlowConfig':
        return replace(self, **changes)


def parse_flow_config(raw: Union['FlowConfig', Mapping[str, Any], None]) -> FlowConfig:
    """
    Parse a raw mapping into a :class:`FlowConfig`.

    Recognized keys: ``type``, ``crypto``, ``auth``, ``state``, ``query``,
    ``port``, ``refresh_token``, ``csrfToken``/``csrf_token``.

    Raises:
        ConfigError: config, crypto or auth section is malformed (500).
        ValidationError: state or query section is malformed (400).
    """
    if isinstance(raw, FlowConfig):
        return raw
    if not isinstance(raw, Mapping):
        raise ConfigError('Invalid Config Values!')

    crypto = raw.get('crypto')
    if isinstance(crypto, CryptoSettings):
        crypto_settings = crypto
    else:
        try:
            crypto_settings = CryptoSettings.from_mapping(crypto)
        except ConfigError as e:
            raise ConfigError('Invalid Crypto Values!') from e

    port = raw.get('port')
    csrf_token = _pick(raw, 'csrf_token', 'csrfToken')

    return FlowConfig(
        type=raw.get('type'),
        crypto=crypto_settings,
        auth=AuthSettings.from_mapping(raw.get('auth')),
        state=StateSettings.from_mapping(raw.get('state')),
        query=QuerySettings.from_mapping(raw.get('query')),
        port=port if isinstance(port, int) else None,
        refresh_token=raw.get('refresh_token'),
        csrf_token=csrf_token if isinstance(csrf_token, str) else None,
    )
