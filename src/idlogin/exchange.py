"""Token endpoint calls: authorization-code exchange and refresh.

Both functions perform a single form-encoded ``POST`` with :mod:`httpx` and
map failures onto distinct error kinds:

* transport problems (DNS, TLS, refused connection, timeout) raise
  :class:`~idlogin.exceptions.NetworkError`;
* a non-2xx status or an unusable body raises
  :class:`~idlogin.exceptions.ExchangeRejected`.

Nothing here retries; retry policy belongs to the caller.
"""

from __future__ import annotations

from typing import Any

import httpx

from idlogin.exceptions import ExchangeRejected, NetworkError
from idlogin.models import TokenRecord
from idlogin.output import debug

DEFAULT_HTTP_TIMEOUT = 30.0


def _post_form(token_endpoint: str, data: dict[str, str], timeout: float) -> dict[str, Any]:
    """POST *data* to the token endpoint and return the decoded JSON object."""
    debug(f"POST {token_endpoint} (grant_type={data.get('grant_type')})")
    try:
        response = httpx.post(
            token_endpoint,
            data=data,
            headers={"Accept": "application/json"},
            timeout=timeout,
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise ExchangeRejected(
            f"Token endpoint rejected the request with status "
            f"{exc.response.status_code}: {exc.response.text}",
            status_code=exc.response.status_code,
            body=exc.response.text,
        ) from exc
    except httpx.HTTPError as exc:
        raise NetworkError(f"Cannot reach token endpoint {token_endpoint}: {exc}") from exc

    try:
        token_data = response.json()
    except ValueError as exc:
        raise ExchangeRejected(
            "Token endpoint returned a non-JSON body",
            status_code=response.status_code,
            body=response.text,
        ) from exc
    if not isinstance(token_data, dict):
        raise ExchangeRejected(
            "Token endpoint returned an unexpected JSON document",
            status_code=response.status_code,
            body=response.text,
        )
    return token_data


def _session_token(token_data: dict[str, Any]) -> str:
    token = token_data.get("access_token") or token_data.get("id_token")
    if not token:
        raise ExchangeRejected("Token response missing 'access_token' field")
    return str(token)


def exchange_code(
    token_endpoint: str,
    *,
    client_id: str,
    code: str,
    redirect_uri: str,
    code_verifier: str,
    timeout: float = DEFAULT_HTTP_TIMEOUT,
) -> TokenRecord:
    """Exchange an authorization code for session and refresh tokens.

    Args:
        token_endpoint: The provider's token URL.
        client_id: The tenant identifier, used as OAuth2 client id.
        code: The authorization code received on the callback.
        redirect_uri: The exact redirect URI used in the authorization request.
        code_verifier: The PKCE verifier matching the challenge that was sent.
        timeout: HTTP timeout in seconds.

    Returns:
        A :class:`~idlogin.models.TokenRecord`. The session token is
        ``access_token`` (or ``id_token`` when the provider only returns
        that); the refresh token is empty when the response has none.

    Raises:
        NetworkError: On transport failures.
        ExchangeRejected: On a non-2xx response or a body without a token.
    """
    token_data = _post_form(
        token_endpoint,
        {
            "grant_type": "authorization_code",
            "client_id": client_id,
            "code": code,
            "redirect_uri": redirect_uri,
            "code_verifier": code_verifier,
        },
        timeout,
    )
    return TokenRecord(
        ok=True,
        code=200,
        session_token=_session_token(token_data),
        refresh_token=str(token_data.get("refresh_token") or ""),
    )


def refresh_tokens(
    token_endpoint: str,
    *,
    client_id: str,
    refresh_token: str,
    timeout: float = DEFAULT_HTTP_TIMEOUT,
) -> TokenRecord:
    """Mint a new session token from a refresh token.

    A response without a new ``refresh_token`` keeps the one passed in.

    Raises:
        NetworkError: On transport failures.
        ExchangeRejected: On a non-2xx response or a body without a token.
    """
    token_data = _post_form(
        token_endpoint,
        {
            "grant_type": "refresh_token",
            "client_id": client_id,
            "refresh_token": refresh_token,
        },
        timeout,
    )
    return TokenRecord(
        ok=True,
        code=200,
        session_token=_session_token(token_data),
        refresh_token=str(token_data.get("refresh_token") or refresh_token),
    )
