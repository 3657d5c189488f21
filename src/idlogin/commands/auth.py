"""Auth commands -- log in, log out, inspect and refresh sessions.

The token selected with ``--output`` is the only thing written to stdout,
so the commands compose with shell capture::

    export TOKEN=$(idlogin login -p proj_123)
    idlogin whoami -p proj_123 | jq .email
    idlogin logout -p proj_123

Everything else (progress, warnings, errors) goes to stderr.
"""

from __future__ import annotations

from typing import Optional

import typer

from idlogin.commands import cli_errors
from idlogin.config import load_global_config, resolve_settings
from idlogin.exceptions import ConfigurationError
from idlogin.flow import LoginFlow
from idlogin.models import TokenRecord
from idlogin.output import info, mask, print_data, print_json, success, suggest

_OUTPUT_CHOICES = ("session", "refresh", "json")

_TENANT_HELP = "Tenant / project identifier (or IDLOGIN_TENANT_ID)."
_OUTPUT_HELP = "What to print to stdout: session, refresh or json."


def _resolve_output(output: Optional[str]) -> str:
    """Return the output selector, falling back to the configured default.

    Called before any login work so that a bad selector fails without side
    effects.

    Raises:
        ConfigurationError: If the selector is not one of the known choices.
    """
    selected = output or load_global_config().output.token
    if selected not in _OUTPUT_CHOICES:
        raise ConfigurationError(
            f"Unknown output '{selected}'; expected one of: {', '.join(_OUTPUT_CHOICES)}"
        )
    return selected


def _print_record(record: TokenRecord, selected: str) -> None:
    """Write the selected part of *record* to stdout."""
    if selected == "json":
        print_json(record.to_json_dict())
    elif selected == "refresh":
        print_data(record.refresh_token)
    else:
        print_data(record.session_token)


def login_command(
    tenant: Optional[str] = typer.Option(None, "--tenant", "-p", help=_TENANT_HELP),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="Identity provider base URL."
    ),
    port: Optional[int] = typer.Option(
        None, "--port", help="Local port for the OAuth2 redirect."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Seconds to wait for the browser callback."
    ),
    output: Optional[str] = typer.Option(None, "--output", "-o", help=_OUTPUT_HELP),
) -> None:
    """Log in through the browser and print the session token.

    A still-valid cached session is reused without opening the browser.

    Example::

        idlogin login -p proj_123
        idlogin login -p proj_123 --port 9000 -o json
    """
    with cli_errors():
        selected = _resolve_output(output)
        settings = resolve_settings(
            cli_tenant_id=tenant,
            cli_base_url=base_url,
            cli_callback_port=port,
            cli_timeout=timeout,
        )
        record = LoginFlow(settings).login()
        _print_record(record, selected)


def logout_command(
    tenant: Optional[str] = typer.Option(None, "--tenant", "-p", help=_TENANT_HELP),
) -> None:
    """Remove the cached session of a tenant."""
    with cli_errors():
        settings = resolve_settings(cli_tenant_id=tenant)
        if LoginFlow(settings).logout():
            success(f"Logged out of '{settings.tenant_id}'.")
        else:
            info(f"No cached session for '{settings.tenant_id}'.")


def whoami_command(
    tenant: Optional[str] = typer.Option(None, "--tenant", "-p", help=_TENANT_HELP),
) -> None:
    """Validate the cached session and print the user's claims as JSON."""
    with cli_errors():
        settings = resolve_settings(cli_tenant_id=tenant)
        print_json(LoginFlow(settings).user_info())


def status_command(
    tenant: Optional[str] = typer.Option(None, "--tenant", "-p", help=_TENANT_HELP),
) -> None:
    """Check that a valid session is cached and show a short preview of it.

    Nothing is written to stdout; use ``login`` to print the token itself.

    Example::

        idlogin status -p proj_123
    """
    with cli_errors():
        settings = resolve_settings(cli_tenant_id=tenant)
        record = LoginFlow(settings).current_session()
    token = record.session_token
    success(f"Logged in to '{settings.tenant_id}'.")
    info(f"Session token: {mask(token)} ({len(token)} characters)")


def refresh_command(
    tenant: Optional[str] = typer.Option(None, "--tenant", "-p", help=_TENANT_HELP),
    output: Optional[str] = typer.Option(None, "--output", "-o", help=_OUTPUT_HELP),
) -> None:
    """Mint a new session token from the cached refresh token."""
    with cli_errors():
        selected = _resolve_output(output)
        settings = resolve_settings(cli_tenant_id=tenant)
        record = LoginFlow(settings).refresh()
        success("Session refreshed.")
        _print_record(record, selected)
    suggest("Check it: idlogin whoami")
