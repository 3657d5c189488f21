"""Built-in CLI commands for idlogin.

* :mod:`~idlogin.commands.auth` -- ``login``, ``logout``, ``whoami``,
  ``status`` and ``refresh``, registered directly on the root app.
* :mod:`~idlogin.commands.cache` -- inspect and clear the token cache.
* :mod:`~idlogin.commands.config` -- view and modify global settings.

Commands report :class:`~idlogin.exceptions.IdloginError` failures through
:func:`cli_errors`, which prints the message to stderr and exits with the
error's code.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import typer

from idlogin.exceptions import IdloginError
from idlogin.output import error


@contextmanager
def cli_errors() -> Iterator[None]:
    """Turn an :class:`IdloginError` into an error message and exit code."""
    try:
        yield
    except IdloginError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
