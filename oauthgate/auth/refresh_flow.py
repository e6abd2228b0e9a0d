"""
Token Refresh Handler
=====================
Exchanges a stored refresh token for a new access token.
"""

from typing import Any, Dict, Mapping, Optional

from oauthgate.auth.discord_api import DiscordClient, get_client
from oauthgate.auth.request_utils import csrf_matches, is_present, resolve_redirect
from oauthgate.auth.settings import parse_flow_config
from oauthgate.errors import CsrfError, UpstreamError, ValidationError
from oauthgate.utils.logger import get_logger

logger = get_logger("auth.refresh")


def refresh_token(
    csrf_token: Optional[str],
    query: Optional[Mapping[str, Any]],
    config: Any,
    exist_session: bool,
    client: Optional[DiscordClient] = None,
) -> Dict[str, Any]:
    """
    Refresh the session's access token.

    Args:
        csrf_token: CSRF value supplied with the request
        query: Request query parameters
        config: :class:`FlowConfig` or raw mapping; ``refresh_token`` holds
            the stored token
        exist_session: Whether the user has a session

    Returns:
        ``{"refreshed": True, "tokenRequest", "redirect"}`` or
        ``{"refreshed": False, "redirect"}`` without a session.
    """
    flow = parse_flow_config(config)
    auth = flow.auth

    if not csrf_matches(auth.csrf_token, csrf_token):
        logger.warning("Token refresh rejected: csrf token mismatch")
        raise CsrfError('Incorrect csrfToken!')

    result: Dict[str, Any] = {
        'refreshed': False,
        'redirect': resolve_redirect(flow.state.redirect, query, flow.query.redirect),
    }

    if not exist_session:
        return result

    if not is_present(flow.refresh_token):
        raise ValidationError('Invalid Refresh Token Data!', 401)

    client = client or get_client()
    token = client.refresh_token(
        client_id=auth.client_id,
        client_secret=auth.client_secret,
        refresh_token=flow.refresh_token,
        redirect_uri=auth.redirect,
        scope=auth.scope_string,
    )

    if not isinstance(token, dict):
        raise UpstreamError('Invalid JSON Token Data!', 500)
    if not is_present(token.get('access_token')):
        raise UpstreamError('Invalid User Token Data!', 500)

    result['refreshed'] = True
    result['tokenRequest'] = token
    logger.info("Access token refreshed")
    return result
