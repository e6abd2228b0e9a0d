"""Tests for the Discord callback handler."""

from dataclasses import replace
from urllib.parse import parse_qs, urlsplit

import pytest

from oauthgate.auth import decode_state, login, redirect
from oauthgate.errors import CsrfError, UpstreamError, ValidationError

from conftest import encrypted_state


def test_login_round_trip(flow, crypto, client):
    start = login({'redirect': '/dashboard'}, 'example.com', flow, exist_session=False)
    state = parse_qs(urlsplit(start.url).query)['state'][0]

    result = redirect({'state': state, 'code': 'abc'}, flow, False, client=client)

    assert result['newSession'] is True
    assert result['redirect'] == '/dashboard'
    assert result['tokenRequest']['access_token'] == 'access-123'
    assert result['user']['username'] == 'nelly'
    client.get_user.assert_called_once_with('access-123')


def test_token_exchange_arguments(flow, crypto, client):
    redirect({'state': encrypted_state(crypto), 'code': 'abc'}, flow, False, client=client)

    client.get_token.assert_called_once_with(
        client_id='123456789',
        client_secret='shh-secret',
        code='abc',
        redirect_uri='https://example.com/auth/discord/callback',
        scope='identify guilds',
    )


def test_first_get_user_disabled(flow, crypto, client):
    config = replace(flow, auth=replace(flow.auth, first_get_user=False))
    result = redirect({'state': encrypted_state(crypto), 'code': 'abc'}, config, False, client=client)

    assert 'user' not in result
    client.get_user.assert_not_called()


def test_csrf_mismatch_is_rejected(flow, crypto, client):
    config = replace(flow, auth=replace(flow.auth, csrf_token='expected'))
    query = {'state': encrypted_state(crypto, csrfToken='forged'), 'code': 'abc'}

    with pytest.raises(CsrfError) as exc_info:
        redirect(query, config, False, client=client)

    assert exc_info.value.to_dict() == {'code': 401, 'message': 'Incorrect csrfToken!'}
    client.get_token.assert_not_called()


def test_matching_csrf_passes(flow, crypto, client):
    config = replace(flow, auth=replace(flow.auth, csrf_token='expected'))
    query = {'state': encrypted_state(crypto, csrfToken='expected'), 'code': 'abc'}
    assert redirect(query, config, False, client=client)['newSession'] is True


def test_malformed_state_is_treated_as_empty(crypto):
    assert decode_state(crypto, 'not-encrypted') == {}
    assert decode_state(crypto, None) == {}


def test_malformed_state_is_not_fatal(flow, client):
    result = redirect({'state': 'garbage', 'code': 'abc'}, flow, True, client=client)
    assert result == {'newSession': False}


def test_existing_session_is_a_no_op(flow, crypto, client):
    result = redirect({'state': encrypted_state(crypto), 'code': 'abc'}, flow, True, client=client)

    assert result == {'newSession': False}
    client.get_token.assert_not_called()


@pytest.mark.parametrize('code', [None, '', float('nan')])
def test_missing_code_is_rejected(flow, crypto, client, code):
    with pytest.raises(ValidationError) as exc_info:
        redirect({'state': encrypted_state(crypto), 'code': code}, flow, False, client=client)
    assert exc_info.value.code == 401


def test_numeric_code_is_accepted(flow, crypto, client):
    result = redirect({'state': encrypted_state(crypto), 'code': 12345}, flow, False, client=client)
    assert result['newSession'] is True


def test_webhook_proceeds_with_session_and_keeps_guild(flow, crypto, client):
    query = {'state': encrypted_state(crypto, type='webhook'), 'code': 'abc', 'guild_id': '42'}
    result = redirect(query, flow, True, client=client)

    assert result['guild_id'] == '42'
    assert result['newSession'] is False
    assert 'user' not in result


def test_login_command_uses_command_scopes(flow, crypto, client):
    query = {'state': encrypted_state(crypto, type='login_command'), 'code': 'abc'}

    with pytest.raises(ValidationError) as exc_info:
        redirect(query, flow, False, client=client)

    assert exc_info.value.to_dict() == {'code': 400, 'message': 'Invalid State Type!'}
    assert client.get_token.call_args.kwargs['scope'] == 'applications.commands applications.commands.update'


def test_unknown_state_type_is_rejected_after_exchange(flow, client):
    with pytest.raises(ValidationError) as exc_info:
        redirect({'state': 'garbage', 'code': 'abc'}, flow, False, client=client)

    assert exc_info.value.code == 400
    client.get_token.assert_called_once()


def test_token_without_access_token_is_rejected(flow, crypto, client):
    client.get_token.return_value = {'token_type': 'Bearer'}
    with pytest.raises(UpstreamError) as exc_info:
        redirect({'state': encrypted_state(crypto), 'code': 'abc'}, flow, False, client=client)
    assert exc_info.value.to_dict() == {'code': 500, 'message': 'Invalid User Token Data!'}


def test_non_object_user_is_rejected(flow, crypto, client):
    client.get_user.return_value = []
    with pytest.raises(UpstreamError) as exc_info:
        redirect({'state': encrypted_state(crypto), 'code': 'abc'}, flow, False, client=client)
    assert exc_info.value.message == 'Invalid JSON User Data!'


def test_upstream_failure_propagates(flow, crypto, client):
    client.get_token.side_effect = UpstreamError('invalid "code" in request', 401)
    with pytest.raises(UpstreamError) as exc_info:
        redirect({'state': encrypted_state(crypto), 'code': 'abc'}, flow, False, client=client)
    assert exc_info.value.code == 401


def test_redirect_reads_raw_mapping(crypto, client):
    config = {
        'crypto': {'key': 'a' * 32},
        'auth': {'client_id': '1', 'client_secret': '2', 'first_get_user': False},
    }
    result = redirect({'state': encrypted_state(crypto), 'code': 'abc'}, config, False, client=client)
    assert isinstance(result, dict)
    assert result['newSession'] is True


def test_state_redirect_cannot_leave_the_site(flow, crypto, client):
    query = {'state': encrypted_state(crypto, redirect='//evil.com/phish'), 'code': 'abc'}
    assert redirect(query, flow, False, client=client)['redirect'] == '/evil.com/phish'
