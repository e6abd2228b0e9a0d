"""
Logout Handler
==============
Revokes the session's access token with Discord.
"""

from typing import Any, Dict, Mapping, Optional, Union

from oauthgate.auth.discord_api import DiscordClient, get_client
from oauthgate.auth.request_utils import csrf_matches, is_present, resolve_redirect
from oauthgate.auth.settings import parse_flow_config
from oauthgate.errors import CsrfError, ValidationError
from oauthgate.utils.logger import get_logger

logger = get_logger("auth.logout")


def logout(
    query: Optional[Mapping[str, Any]],
    access_token: Union[str, int, None],
    config: Any,
    exist_session: bool,
    client: Optional[DiscordClient] = None,
) -> Dict[str, Any]:
    """
    End a Discord session.

    The CSRF token configured on ``config.state`` is compared with the
    request-side ``config.csrf_token``. Without a session nothing is revoked.

    Returns:
        ``{"data", "existSession", "complete", "state", "redirect"}`` plus
        ``user`` when the profile was fetched before revoking.

    Raises:
        CsrfError: csrf mismatch (401)
        ValidationError: missing token, client id or client secret (401)
        UpstreamError: profile fetch or revoke failed
    """
    flow = parse_flow_config(config)

    if not csrf_matches(flow.state.csrf_token, flow.csrf_token):
        logger.warning("Logout rejected: csrf token mismatch")
        raise CsrfError('Invalid csrfToken!')

    result: Dict[str, Any] = {
        'data': None,
        'existSession': exist_session,
        'complete': False,
        'state': {'csrfToken': flow.csrf_token},
        'redirect': resolve_redirect(flow.state.redirect, query, flow.query.redirect),
    }

    if not exist_session:
        return result

    if not is_present(access_token):
        raise ValidationError('Invalid Token Data!', 401)
    if not is_present(flow.auth.client_id):
        raise ValidationError('Invalid Client ID!', 401)
    if not is_present(flow.auth.client_secret):
        raise ValidationError('Invalid Client Secret!', 401)

    client = client or get_client()

    if isinstance(access_token, str):
        result['user'] = client.get_user(access_token)

    result['data'] = client.revoke_token(access_token, flow.auth.client_id, flow.auth.client_secret)
    result['complete'] = True
    logger.info("Discord token revoked")
    return result
