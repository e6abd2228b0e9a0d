"""
Request helpers shared by the flow handlers.
"""

import hmac
import math
from typing import Any, Mapping, Optional


def is_present(value: Any) -> bool:
    """True for a non-empty string or a real number."""
    if isinstance(value, bool):
        return False
    if isinstance(value, str):
        return len(value) > 0
    if isinstance(value, (int, float)):
        return not math.isnan(value)
    return False


def csrf_matches(expected: Optional[str], given: Any) -> bool:
    """
    Check a CSRF token.

    An unset or empty ``expected`` token disables the check.
    """
    if not isinstance(expected, str) or not expected:
        return True
    if not isinstance(given, str):
        return False
    return hmac.compare_digest(expected.encode('utf-8'), given.encode('utf-8'))


def get_domain_url(host: Optional[str], port: Optional[int] = None, scheme: str = 'https') -> str:
    """
    Build the site origin from a host header value.

    ``localhost`` is always plain http. A port is appended when it is not
    80/443 and the host does not already carry one.
    """
    if not isinstance(host, str) or not host:
        return ''

    if host == 'localhost' or host.startswith('localhost:'):
        url = f'http://{host}'
    else:
        url = f'{scheme}://{host}'

    if isinstance(port, int) and port not in (80, 443) and ':' not in host:
        url += f':{port}'
    return url


def sanitize_redirect(value: Any, origin: str = '') -> str:
    """
    Reduce a caller-supplied redirect target to a relative path.

    ``/admin`` -> ``admin``; ``https://own.site/x`` -> ``x`` when ``origin``
    is ``https://own.site``; any other absolute URL -> ``''``. Every leading
    slash or backslash is dropped, so ``//evil.com`` stays on the own site.
    """
    if not isinstance(value, str):
        return ''

    value = value.strip()
    if value.startswith('http'):
        if origin and (value == origin or value.startswith(origin + '/')):
            value = value[len(origin):]
        else:
            return ''

    # Leading slashes or backslashes would make a scheme-relative URL
    return value.lstrip('/\\')


def resolve_redirect(state_redirect: Any, query: Optional[Mapping[str, Any]], query_key: str) -> str:
    """
    Final redirect for refresh and logout.

    The configured state redirect wins, then the query parameter, then ``/``.
    Leading slashes and backslashes are stripped from either source.
    """
    if isinstance(state_redirect, str) and state_redirect:
        target = state_redirect
    elif query is not None and isinstance(query.get(query_key), str):
        target = query[query_key]
    else:
        return '/'

    return target.lstrip('/\\')
