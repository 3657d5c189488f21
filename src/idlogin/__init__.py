"""idlogin -- browser-based OAuth2 (PKCE) login for command-line tools.

A login opens the identity provider's hosted sign-in page in the user's
browser, receives the authorization code on a short-lived loopback
listener, exchanges it for session and refresh tokens, and caches the
result per tenant so that later runs are silent.

Typical use::

    from idlogin.flow import login

    record = login("proj_123")
    headers = {"Authorization": f"Bearer {record.session_token}"}

or from a shell::

    TOKEN=$(idlogin login -p proj_123)

Modules:
    app: Typer application and CLI entry point.
    flow: Login orchestration (:class:`~idlogin.flow.LoginFlow`).
    listener: One-shot loopback callback listener.
    pkce: PKCE verifier/challenge and state generation.
    exchange: Token endpoint calls (code exchange, refresh).
    provider: Session validation and refresh against the provider.
    token_cache: Per-tenant token persistence.
    browser: Platform browser launchers.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration and settings resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
