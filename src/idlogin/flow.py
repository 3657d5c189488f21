"""Login flow orchestration.

:class:`LoginFlow` wires the pieces of a browser login together for one
tenant:

1. Reuse the cached :class:`~idlogin.models.TokenRecord` when the provider
   still accepts its session token.
2. Otherwise generate PKCE parameters and build the authorization URL.
3. Start the :class:`~idlogin.listener.CallbackListener` (before the
   browser, so an early redirect cannot be lost).
4. Open the browser through a :class:`~idlogin.browser.BrowserLauncher`.
5. Exchange the authorization code and save the record to the cache.

Every collaborator can be passed in, which is how the tests replace the
browser and the provider. :func:`login` is the one-call convenience
wrapper.
"""

from __future__ import annotations

from typing import Any, Optional
from urllib.parse import urlencode

from pydantic import ValidationError

from idlogin import pkce as pkce_generator
from idlogin.browser import BrowserLauncher, select_launcher
from idlogin.exceptions import ConfigurationError, NotLoggedInError
from idlogin.exchange import exchange_code
from idlogin.listener import CallbackListener
from idlogin.models import (
    DEFAULT_BASE_URL,
    DEFAULT_CALLBACK_PORT,
    DEFAULT_TIMEOUT,
    LoginSettings,
    PkceParams,
    TokenRecord,
)
from idlogin.output import debug, info, success, warning
from idlogin.provider import IdentityProvider, OAuthIdentityProvider
from idlogin.token_cache import TokenCache


def build_authorization_url(settings: LoginSettings, params: PkceParams) -> str:
    """Return the provider authorization URL for one attempt."""
    query = {
        "response_type": "code",
        "client_id": settings.tenant_id,
        "redirect_uri": settings.redirect_uri,
        "scope": " ".join(settings.scopes),
        "state": params.state,
        "code_challenge": params.code_challenge,
        "code_challenge_method": "S256",
        "flow": "sign-in",
    }
    return f"{settings.authorization_endpoint}?{urlencode(query)}"


class LoginFlow:
    """Browser login and session management for one tenant.

    Args:
        settings: Resolved settings (tenant, base URL, port, timeout).
        cache: Token cache; defaults to the per-user cache directory.
        provider: Session validation / refresh capability; defaults to
            :class:`~idlogin.provider.OAuthIdentityProvider`.
        launcher: Browser launcher; defaults to the platform launcher.
    """

    def __init__(
        self,
        settings: LoginSettings,
        cache: Optional[TokenCache] = None,
        provider: Optional[IdentityProvider] = None,
        launcher: Optional[BrowserLauncher] = None,
    ) -> None:
        self.settings = settings
        self.cache = cache if cache is not None else TokenCache()
        self.provider = provider if provider is not None else OAuthIdentityProvider(settings)
        self.launcher = launcher if launcher is not None else select_launcher()
        self._listener: Optional[CallbackListener] = None

    @property
    def tenant_id(self) -> str:
        return self.settings.tenant_id

    def cached_session(self) -> Optional[TokenRecord]:
        """Return the cached record if the provider still accepts it.

        Any failure -- no record, an unusable record, a rejected session, or
        the validation call itself failing -- yields ``None``.
        """
        record = self.cache.load(self.tenant_id)
        if record is None or not record.ok or not record.session_token:
            return None
        try:
            self.provider.validate_session(record.session_token)
        except Exception as exc:  # validation failure of any kind is a cache miss
            debug(f"Cached session for {self.tenant_id!r} not usable: {exc}")
            return None
        return record

    def login(self) -> TokenRecord:
        """Return a valid token record, running the browser flow if needed.

        Raises:
            PortBindError: If the callback port is taken (no browser is opened).
            ProviderRejected, StateMismatch, MissingCode: From the callback.
            LoginTimeout, LoginCancelled: If no callback arrived.
            NetworkError, ExchangeRejected: From the code exchange.
            CacheWriteError: If the new record cannot be saved.
        """
        cached = self.cached_session()
        if cached is not None:
            success("✓ Using cached authentication token")
            return cached

        info("Starting OAuth2 login flow...")
        params = pkce_generator.generate()
        auth_url = build_authorization_url(self.settings, params)

        listener = CallbackListener(
            params.state,
            port=self.settings.callback_port,
            callback_path=self.settings.callback_path,
        )
        listener.start()
        self._listener = listener
        try:
            info(f"Opening browser to sign in at {self.settings.authorization_endpoint}")
            if not self.launcher.open(auth_url):
                warning(f"Open this URL in your browser to continue:\n{auth_url}")
            info(f"Waiting for the login callback on {self.settings.redirect_uri} ...")
            code = listener.wait(timeout=self.settings.timeout)
        finally:
            listener.close()
            self._listener = None

        record = exchange_code(
            self.settings.token_endpoint,
            client_id=self.tenant_id,
            code=code,
            redirect_uri=self.settings.redirect_uri,
            code_verifier=params.code_verifier,
        )
        self.cache.save(self.tenant_id, record)
        success("✓ OAuth login successful!")
        return record

    def cancel(self) -> bool:
        """Abort an in-progress :meth:`login` from another thread.

        Returns:
            ``True`` if a pending attempt was cancelled.
        """
        listener = self._listener
        return listener.cancel() if listener is not None else False

    def current_session(self) -> TokenRecord:
        """Return the cached, still-valid record without starting a login.

        Raises:
            NotLoggedInError: If there is no usable cached session.
        """
        record = self.cached_session()
        if record is None:
            raise NotLoggedInError(
                f"No valid session for tenant '{self.tenant_id}'. "
                "Run 'idlogin login' first."
            )
        return record

    def user_info(self) -> dict[str, Any]:
        """Validate the cached session and return the provider's claims.

        Raises:
            NotLoggedInError: If nothing is cached for the tenant.
            SessionError, NetworkError: If validation fails.
        """
        record = self.cache.load(self.tenant_id)
        if record is None or not record.session_token:
            raise NotLoggedInError(
                f"No stored session for tenant '{self.tenant_id}'. "
                "Run 'idlogin login' first."
            )
        return self.provider.validate_session(record.session_token)

    def refresh(self) -> TokenRecord:
        """Refresh the cached session and save the new record.

        Raises:
            NotLoggedInError: If no refresh token is cached.
            SessionError, NetworkError: If the refresh fails.
            CacheWriteError: If the new record cannot be saved.
        """
        record = self.cache.load(self.tenant_id)
        if record is None or not record.refresh_token:
            raise NotLoggedInError(
                f"No refresh token stored for tenant '{self.tenant_id}'. "
                "Run 'idlogin login' first."
            )
        refreshed = self.provider.refresh_session(record.refresh_token)
        return self.cache.save(self.tenant_id, refreshed)

    def logout(self) -> bool:
        """Remove the tenant's cached record. Returns ``True`` if one existed."""
        return self.cache.clear(self.tenant_id)


def login(
    tenant_id: str,
    base_url: str = DEFAULT_BASE_URL,
    callback_port: int = DEFAULT_CALLBACK_PORT,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    cache: Optional[TokenCache] = None,
    provider: Optional[IdentityProvider] = None,
    launcher: Optional[BrowserLauncher] = None,
) -> TokenRecord:
    """Log in to *tenant_id* and return its token record.

    Example::

        record = login("proj_123", "https://api.example.com", 8088)
        print(record.session_token)

    Raises:
        ConfigurationError: If *tenant_id* is empty or a setting is invalid.
        LoginError: Any failure of the attempt (see :meth:`LoginFlow.login`).
    """
    if not tenant_id:
        raise ConfigurationError("A tenant identifier is required")
    try:
        settings = LoginSettings(
            tenant_id=tenant_id,
            base_url=base_url,
            callback_port=callback_port,
            timeout=timeout,
        )
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid login settings: {exc}") from exc
    flow = LoginFlow(settings, cache=cache, provider=provider, launcher=launcher)
    return flow.login()
