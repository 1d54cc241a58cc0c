"""
Redirect helpers for the interactive flow.

Author: Keygate Team
Date: 2026-10-06
"""

from typing import Iterable, List, Mapping, Optional, Tuple, Union
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from fastapi import status
from fastapi.responses import RedirectResponse

DEFAULT_LOGIN_REDIRECT = "/authorize"

Params = Union[Mapping[str, str], Iterable[Tuple[str, str]]]


def _pairs(params: Params) -> List[Tuple[str, str]]:
    if isinstance(params, Mapping):
        return list(params.items())
    return list(params)


def query_string(params: Params) -> str:
    """Encode ``params`` as ``?a=b&...``, or an empty string if there are none."""
    encoded = urlencode(_pairs(params))
    return f"?{encoded}" if encoded else ""


def set_params(params: Params, **updates: str) -> List[Tuple[str, str]]:
    """Replace or append ``updates`` in ``params``, keeping other pairs in order."""
    pairs = [(k, v) for k, v in _pairs(params) if k not in updates]
    pairs.extend(updates.items())
    return pairs


def local_redirect_target(target: Optional[str], default: str = DEFAULT_LOGIN_REDIRECT) -> str:
    """Accept only same-origin paths; anything else yields ``default``."""
    if not target or not target.startswith("/") or target.startswith("//") or "\\" in target:
        return default
    return target


def redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)


def redirect_with_query(to: str, params: Params) -> RedirectResponse:
    """Redirect to ``to`` carrying ``params`` in the query string."""
    return redirect(f"{to}{query_string(params)}")


def redirect_with_params(redirect_uri: str, params: Params) -> RedirectResponse:
    """Merge ``params`` into the redirect URI's own query string."""
    parts = urlsplit(redirect_uri)
    merged = set_params(parse_qsl(parts.query, keep_blank_values=True), **dict(_pairs(params)))
    return redirect(urlunsplit(parts._replace(query=urlencode(merged), fragment="")))


def redirect_with_fragment(redirect_uri: str, params: Params) -> RedirectResponse:
    """Redirect to ``redirect_uri`` carrying ``params`` in the URL fragment."""
    parts = urlsplit(redirect_uri)
    return redirect(urlunsplit(parts._replace(fragment=urlencode(_pairs(params)))))


def error_redirect(
    redirect_uri: str, error: str, state: str, response_type: str
) -> RedirectResponse:
    """Report a failed or declined authorization back to the client."""
    params = [("error", error)]
    if state:
        params.append(("state", state))
    if response_type == "token":
        return redirect_with_fragment(redirect_uri, params)
    return redirect_with_params(redirect_uri, params)
