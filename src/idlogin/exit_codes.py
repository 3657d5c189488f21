"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~idlogin.exceptions.IdloginError` subclass.
Shell wrappers can inspect the exit code to tell a rejected login from a
busy callback port without parsing stderr.

Example::

    $ idlogin login -p proj_123
    $ echo $?
    6   # EXIT_PORT_UNAVAILABLE -- the callback port is already in use
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""Invalid arguments or missing required configuration (e.g. no tenant id)."""

EXIT_AUTH_FAILURE = 3
"""The identity provider rejected the login, or the callback was invalid."""

EXIT_TIMEOUT = 4
"""No callback arrived before the login timeout expired."""

EXIT_CONNECTION_ERROR = 5
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_PORT_UNAVAILABLE = 6
"""The local callback port could not be bound."""

EXIT_CACHE_ERROR = 7
"""The token cache could not be written."""

EXIT_CANCELLED = 130
"""The login was cancelled (Ctrl-C or explicit abort)."""
