"""Tests for the login initiator and redirect sanitizing."""

import json
from urllib.parse import parse_qs, urlsplit

import pytest

from oauthgate.auth import get_domain_url, login, sanitize_redirect
from oauthgate.crypto import decrypt
from oauthgate.errors import ConfigError, ValidationError

from conftest import KEY_A


def _raw_config(**overrides):
    config = {
        'type': 'login',
        'crypto': {'key': KEY_A},
        'auth': {
            'client_id': '123456789',
            'redirect': 'https://example.com/callback',
            'discordScope': ['identify'],
        },
        'state': {'csrfToken': 'csrf-1'},
    }
    config.update(overrides)
    return config


def _state_from(url, crypto):
    state = parse_qs(urlsplit(url).query)['state'][0]
    return json.loads(decrypt(crypto, state))


@pytest.mark.parametrize('value, expected', [
    ('/admin', 'admin'),
    ('https://evil.com', ''),
    ('dashboard', 'dashboard'),
    ('  /profile ', 'profile'),
    ('https://example.com/settings', 'settings'),
    ('https://example.com.evil.com/x', ''),
    ('//evil.com', 'evil.com'),
    ('/\\evil.com', 'evil.com'),
    ('https://example.com//evil.com/x', 'evil.com/x'),
    (None, ''),
])
def test_sanitize_redirect(value, expected):
    assert sanitize_redirect(value, 'https://example.com') == expected


@pytest.mark.parametrize('host, port, expected', [
    ('example.com', None, 'https://example.com'),
    ('example.com', 443, 'https://example.com'),
    ('example.com', 8080, 'https://example.com:8080'),
    ('example.com:8080', 8080, 'https://example.com:8080'),
    ('localhost', 5001, 'http://localhost:5001'),
    (None, None, ''),
])
def test_get_domain_url(host, port, expected):
    assert get_domain_url(host, port) == expected


def test_login_without_session_goes_to_discord(flow, crypto):
    result = login({'redirect': '/admin'}, 'example.com', flow, exist_session=False)

    assert result.external is True
    assert result.url.startswith('https://discord.com/api/oauth2/authorize?')
    assert _state_from(result.url, crypto) == {'csrfToken': '', 'redirect': 'admin', 'type': 'login'}


def test_login_from_raw_mapping_embeds_csrf_token(crypto):
    result = login({'redirect': 'dashboard'}, 'example.com', _raw_config(), exist_session=False)

    state = _state_from(result.url, crypto)
    assert state['csrfToken'] == 'csrf-1'
    assert state['redirect'] == 'dashboard'


def test_external_redirect_is_cleared(flow, crypto):
    result = login({'redirect': 'https://evil.com'}, 'example.com', flow, exist_session=False)
    assert _state_from(result.url, crypto)['redirect'] == ''


def test_existing_session_skips_discord(flow):
    result = login({'redirect': '/dashboard'}, 'example.com', flow, exist_session=True)

    assert result.external is False
    assert result.url == 'https://example.com/dashboard'


def test_existing_session_without_target_goes_home(flow):
    result = login({}, 'example.com', flow, exist_session=True)
    assert result.url == 'https://example.com/'


@pytest.mark.parametrize('flow_type', ['login_command', 'webhook'])
def test_command_and_webhook_flows_always_reauthenticate(flow_type):
    result = login({}, 'example.com', _raw_config(type=flow_type), exist_session=True)
    assert result.external is True


def test_custom_query_key(crypto):
    config = _raw_config(query={'redirect': 'next'})
    result = login({'next': 'inbox', 'redirect': 'ignored'}, 'example.com', config, exist_session=False)
    assert _state_from(result.url, crypto)['redirect'] == 'inbox'


@pytest.mark.parametrize('overrides, error, code, message', [
    ({'type': 'signup'}, ConfigError, 500, 'Invalid Config Values!'),
    ({'crypto': 'not-a-mapping'}, ConfigError, 500, 'Invalid Crypto Values!'),
    ({'auth': ['nope']}, ConfigError, 500, 'Invalid System Config!'),
    ({'state': 'nope'}, ValidationError, 400, 'Invalid State Config!'),
    ({'query': 'nope'}, ValidationError, 400, 'Invalid Request!'),
])
def test_malformed_config_is_rejected(overrides, error, code, message):
    with pytest.raises(error) as exc_info:
        login({}, 'example.com', _raw_config(**overrides), exist_session=False)
    assert exc_info.value.to_dict() == {'code': code, 'message': message}


def test_non_mapping_config_is_rejected():
    with pytest.raises(ConfigError):
        login({}, 'example.com', None, exist_session=False)


def test_authorization_url_uses_given_api_base(flow):
    result = login({}, 'example.com', flow, exist_session=False, api_url='https://discord.test/api/')
    assert result.url.startswith('https://discord.test/api/oauth2/authorize?client_id=123456789')
