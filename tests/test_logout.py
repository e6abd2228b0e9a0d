"""Tests for the logout handler."""

from dataclasses import replace

import pytest

from oauthgate.auth import AuthSettings, StateSettings, logout
from oauthgate.errors import CsrfError, UpstreamError, ValidationError


@pytest.fixture
def logout_flow(flow):
    return replace(flow, state=StateSettings(csrf_token='csrf-1'), csrf_token='csrf-1')


def test_logout_revokes_token(logout_flow, client):
    result = logout({'redirect': '/bye'}, 'access-123', logout_flow, True, client=client)

    assert result['complete'] is True
    assert result['data'] == {}
    assert result['user']['username'] == 'nelly'
    assert result['redirect'] == 'bye'
    assert result['state'] == {'csrfToken': 'csrf-1'}
    client.revoke_token.assert_called_once_with('access-123', '123456789', 'shh-secret')


def test_numeric_token_skips_profile_fetch(logout_flow, client):
    result = logout({}, 987654, logout_flow, True, client=client)

    assert 'user' not in result
    client.get_user.assert_not_called()
    client.revoke_token.assert_called_once()


def test_csrf_mismatch_never_calls_discord(logout_flow, client):
    config = replace(logout_flow, csrf_token='forged')

    with pytest.raises(CsrfError) as exc_info:
        logout({}, 'access-123', config, True, client=client)

    assert exc_info.value.to_dict() == {'code': 401, 'message': 'Invalid csrfToken!'}
    client.revoke_token.assert_not_called()
    client.get_user.assert_not_called()


def test_no_session_resolves_without_revoking(logout_flow, client):
    result = logout({}, None, logout_flow, False, client=client)

    assert result == {
        'data': None,
        'existSession': False,
        'complete': False,
        'state': {'csrfToken': 'csrf-1'},
        'redirect': '/',
    }
    client.revoke_token.assert_not_called()


@pytest.mark.parametrize('token, auth, message', [
    ('', AuthSettings(client_id='1', client_secret='2'), 'Invalid Token Data!'),
    ('access-123', AuthSettings(client_id='', client_secret='2'), 'Invalid Client ID!'),
    ('access-123', AuthSettings(client_id='1', client_secret=''), 'Invalid Client Secret!'),
])
def test_missing_credentials_are_rejected(logout_flow, client, token, auth, message):
    config = replace(logout_flow, auth=auth)
    with pytest.raises(ValidationError) as exc_info:
        logout({}, token, config, True, client=client)
    assert exc_info.value.to_dict() == {'code': 401, 'message': message}


def test_revoke_failure_propagates(logout_flow, client):
    client.revoke_token.side_effect = UpstreamError('Unauthorized', 401)
    with pytest.raises(UpstreamError):
        logout({}, 'access-123', logout_flow, True, client=client)


def test_profile_failure_stops_before_revoke(logout_flow, client):
    client.get_user.side_effect = UpstreamError('401: Unauthorized', 401)
    with pytest.raises(UpstreamError):
        logout({}, 'access-123', logout_flow, True, client=client)
    client.revoke_token.assert_not_called()
