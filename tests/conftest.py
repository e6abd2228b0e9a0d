import json
from unittest.mock import MagicMock

import pytest

from oauthgate.auth import AuthSettings, DiscordClient, FlowConfig
from oauthgate.crypto import CryptoSettings, encrypt

KEY_A = 'a' * 32
KEY_B = 'b' * 32


@pytest.fixture
def crypto():
    return CryptoSettings(keys=(KEY_A,))


@pytest.fixture
def auth():
    return AuthSettings(
        client_id='123456789',
        client_secret='shh-secret',
        redirect='https://example.com/auth/discord/callback',
        discord_scope=('identify', 'guilds'),
    )


@pytest.fixture
def client():
    fake = MagicMock(spec=DiscordClient)
    fake.api_url = 'https://discord.com/api/'
    fake.get_token.return_value = {
        'access_token': 'access-123',
        'token_type': 'Bearer',
        'expires_in': 604800,
        'refresh_token': 'refresh-123',
        'scope': 'identify guilds',
    }
    fake.refresh_token.return_value = {
        'access_token': 'access-456',
        'token_type': 'Bearer',
        'expires_in': 604800,
        'refresh_token': 'refresh-456',
        'scope': 'identify guilds',
    }
    fake.get_user.return_value = {'id': '80351110224678912', 'username': 'nelly', 'avatar': None}
    fake.revoke_token.return_value = {}
    return fake


@pytest.fixture
def flow(crypto, auth):
    return FlowConfig(type='login', crypto=crypto, auth=auth)


def encrypted_state(crypto, **fields):
    state = {'csrfToken': '', 'redirect': '', 'type': 'login'}
    state.update(fields)
    return encrypt(crypto, json.dumps(state))
