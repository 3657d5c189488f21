"""Cache commands -- inspect and clear the per-tenant token cache."""

from __future__ import annotations

from typing import Optional

import typer

from idlogin.commands import cli_errors
from idlogin.output import info, print_table, success
from idlogin.token_cache import TokenCache


cache_app = typer.Typer(no_args_is_help=True)


@cache_app.command("list")
def cache_list() -> None:
    """List tenants with a cached session.

    Example::

        idlogin cache list
    """
    cache = TokenCache()
    tenants = cache.list_tenants()
    if not tenants:
        info(f"No cached sessions in {cache.directory}")
        return
    print_table(
        ["Tenant", "File"],
        [[tenant, str(cache.path_for(tenant))] for tenant in tenants],
        title="Cached sessions",
    )


@cache_app.command("clear")
def cache_clear(
    tenant: Optional[str] = typer.Option(
        None, "--tenant", "-p", help="Only clear this tenant."
    ),
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Do not ask for confirmation."
    ),
) -> None:
    """Delete cached sessions (all tenants unless --tenant is given).

    Example::

        idlogin cache clear -p proj_123
        idlogin cache clear --yes
    """
    cache = TokenCache()
    with cli_errors():
        if tenant:
            if cache.clear(tenant):
                success(f"Cleared cached session for '{tenant}'.")
            else:
                info(f"No cached session for '{tenant}'.")
            return

        if not yes and not typer.confirm("Clear all cached sessions?"):
            info("Cancelled.")
            raise typer.Exit()
        removed = cache.clear_all()
        success(f"Cleared {removed} cached session(s).")
