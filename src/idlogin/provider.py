"""Identity provider session capabilities.

The login flow needs two things from the identity provider beyond the
authorization-code dance: checking whether a cached session is still good,
and minting a new session from a refresh token. :class:`IdentityProvider`
is the interface; :class:`OAuthIdentityProvider` implements it against the
provider's standard OAuth2 endpoints with :mod:`httpx`.

To support another provider, subclass :class:`IdentityProvider` and pass
an instance to :class:`~idlogin.flow.LoginFlow`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx

from idlogin.exceptions import ExchangeRejected, NetworkError, SessionError
from idlogin.exchange import DEFAULT_HTTP_TIMEOUT, refresh_tokens
from idlogin.models import LoginSettings, TokenRecord
from idlogin.output import debug


class IdentityProvider(ABC):
    """Session operations offered by the identity provider."""

    @abstractmethod
    def validate_session(self, session_token: str) -> dict[str, Any]:
        """Validate a session token and return its claims.

        Raises:
            SessionError: If the provider rejects the token.
            NetworkError: If the provider cannot be reached.
        """
        ...

    @abstractmethod
    def refresh_session(self, refresh_token: str) -> TokenRecord:
        """Exchange a refresh token for a new :class:`~idlogin.models.TokenRecord`.

        Raises:
            SessionError: If the provider rejects the refresh token.
            NetworkError: If the provider cannot be reached.
        """
        ...


class OAuthIdentityProvider(IdentityProvider):
    """:class:`IdentityProvider` backed by the tenant's OAuth2 endpoints.

    * validation -- ``GET {base_url}/oauth2/v1/userinfo`` with the session
      token as bearer credential; the JSON body is the claim set.
    * refresh -- ``POST {base_url}/oauth2/v1/token`` with
      ``grant_type=refresh_token``.

    Args:
        settings: The resolved settings of the tenant.
        timeout: HTTP timeout in seconds.
    """

    def __init__(self, settings: LoginSettings, timeout: float = DEFAULT_HTTP_TIMEOUT) -> None:
        self._settings = settings
        self._timeout = timeout

    def validate_session(self, session_token: str) -> dict[str, Any]:
        if not session_token:
            raise SessionError("No session token to validate")

        url = self._settings.userinfo_endpoint
        debug(f"GET {url}")
        try:
            response = httpx.get(
                url,
                headers={
                    "Authorization": f"Bearer {session_token}",
                    "Accept": "application/json",
                },
                timeout=self._timeout,
            )
            response.raise_for_status()
            claims = response.json()
        except httpx.HTTPStatusError as exc:
            raise SessionError(
                f"Session rejected with status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"Cannot reach {url}: {exc}") from exc
        except ValueError as exc:
            raise SessionError("Session validation returned a non-JSON body") from exc

        if not isinstance(claims, dict):
            raise SessionError("Session validation returned an unexpected JSON document")
        return claims

    def refresh_session(self, refresh_token: str) -> TokenRecord:
        if not refresh_token:
            raise SessionError("No refresh token available")
        try:
            return refresh_tokens(
                self._settings.token_endpoint,
                client_id=self._settings.tenant_id,
                refresh_token=refresh_token,
                timeout=self._timeout,
            )
        except ExchangeRejected as exc:
            raise SessionError(f"Session refresh failed: {exc}") from exc
