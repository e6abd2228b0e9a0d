"""
Login Initiator
===============
Decides whether a login request goes to Discord or straight to its target.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from oauthgate.auth.auth_url import build_auth_url
from oauthgate.auth.discord_api import DISCORD_API_URL
from oauthgate.auth.request_utils import get_domain_url, sanitize_redirect
from oauthgate.auth.settings import FLOW_LOGIN, FLOW_TYPES, FlowConfig, parse_flow_config
from oauthgate.errors import ConfigError
from oauthgate.utils.logger import get_logger

logger = get_logger("auth.login")


@dataclass(frozen=True)
class LoginResult:
    """Where to send the browser next."""

    url: str
    # True when ``url`` is the Discord authorization page
    external: bool
    state: Dict[str, Any] = field(default_factory=dict)


def login(
    query: Optional[Mapping[str, Any]],
    host: Optional[str],
    config: Any,
    exist_session: bool,
    api_url: str = DISCORD_API_URL,
) -> LoginResult:
    """
    Start a login.

    Args:
        query: Request query parameters (the redirect target is read from
            ``config.query.redirect``)
        host: Request host, used to build the own origin
        config: :class:`FlowConfig` or raw mapping
        exist_session: Whether the user already has a session
        api_url: Discord API base the authorization URL is built on

    Returns:
        LoginResult pointing at Discord, or at the sanitized target when the
        session exists and the flow is a plain login.

    Raises:
        ConfigError: invalid flow type, crypto or auth settings (500)
        ValidationError: invalid state or query settings (400)
    """
    flow: FlowConfig = parse_flow_config(config)
    if flow.type not in FLOW_TYPES:
        raise ConfigError('Invalid Config Values!')

    origin = get_domain_url(host, flow.port)

    raw_target = query.get(flow.query.redirect) if query is not None else None
    redirect = sanitize_redirect(raw_target, origin)
    state = flow.state.to_state(flow.type, redirect)

    if not exist_session or flow.type != FLOW_LOGIN:
        url = build_auth_url(flow.auth, state, flow.crypto, flow.type, api_url=api_url)
        logger.info(f"Login ({flow.type}) redirecting to Discord")
        return LoginResult(url=url, external=True, state=state)

    logger.info("Login skipped, session already exists")
    return LoginResult(url=f'{origin}/{redirect}', external=False, state=state)
