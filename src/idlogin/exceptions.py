"""Exception hierarchy for idlogin.

All exceptions inherit from :class:`IdloginError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`idlogin.exit_codes`.
The top-level error handler in :func:`idlogin.app.main` catches
``IdloginError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    IdloginError (exit 1)
    +-- ConfigurationError     (exit 2)
    +-- PortBindError          (exit 6)
    +-- CacheReadError         (exit 1, recovered as a cache miss)
    +-- CacheWriteError        (exit 7)
    +-- LoginError             (exit 3)
        +-- ProviderRejected
        +-- StateMismatch
        +-- MissingCode
        +-- ExchangeRejected
        +-- SessionError
        +-- NotLoggedInError
        +-- NetworkError       (exit 5)
        +-- LoginTimeout       (exit 4)
        +-- LoginCancelled     (exit 130)
"""

from __future__ import annotations

from typing import Optional

from idlogin.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CACHE_ERROR,
    EXIT_CANCELLED,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_PORT_UNAVAILABLE,
    EXIT_TIMEOUT,
)


class IdloginError(Exception):
    """Base exception for all idlogin errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`idlogin.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigurationError(IdloginError):
    """Raised for missing or invalid configuration (e.g. no tenant identifier)."""

    exit_code = EXIT_INVALID_USAGE


class PortBindError(IdloginError):
    """Raised when the local callback listener cannot bind its port."""

    exit_code = EXIT_PORT_UNAVAILABLE

    def __init__(self, port: int, reason: str):
        super().__init__(f"Cannot listen on 127.0.0.1:{port}: {reason}")
        self.port = port


class CacheReadError(IdloginError):
    """A cached token record could not be read or parsed.

    :class:`~idlogin.token_cache.TokenCache` recovers from this internally
    and reports a cache miss; it never reaches the caller of ``load``.
    """


class CacheWriteError(IdloginError):
    """Raised when a token record cannot be persisted to the cache directory."""

    exit_code = EXIT_CACHE_ERROR


class LoginError(IdloginError):
    """Base class for failures that abort a login attempt."""

    exit_code = EXIT_AUTH_FAILURE


class ProviderRejected(LoginError):
    """The identity provider redirected back with an ``error`` parameter.

    Args:
        error: The OAuth2 ``error`` code, verbatim.
        description: The optional ``error_description``, verbatim.
    """

    def __init__(self, error: str, description: Optional[str] = None):
        message = f"Identity provider returned an error: {error}"
        if description:
            message += f" - {description}"
        super().__init__(message)
        self.error = error
        self.description = description


class StateMismatch(LoginError):
    """The callback ``state`` did not match the value issued for this attempt."""

    def __init__(self) -> None:
        super().__init__(
            "Invalid state parameter in callback (possible cross-site request forgery)"
        )


class MissingCode(LoginError):
    """The callback carried a valid ``state`` but no authorization code."""

    def __init__(self) -> None:
        super().__init__("Missing authorization code in callback")


class ExchangeRejected(LoginError):
    """The token endpoint answered with a non-2xx status or an unusable body.

    Args:
        message: Human-readable description.
        status_code: HTTP status of the token endpoint response, if any.
        body: Raw response text, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class SessionError(LoginError):
    """The provider rejected a session validation or refresh request."""


class NotLoggedInError(LoginError):
    """No valid cached session exists for the tenant."""


class NetworkError(LoginError):
    """Raised on transport failures (DNS, TLS, connection refused, timeout)."""

    exit_code = EXIT_CONNECTION_ERROR


class LoginTimeout(LoginError):
    """No callback arrived before the login timeout expired."""

    exit_code = EXIT_TIMEOUT


class LoginCancelled(LoginError):
    """The login attempt was aborted before a callback arrived."""

    exit_code = EXIT_CANCELLED
