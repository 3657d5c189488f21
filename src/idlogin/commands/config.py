"""Config commands -- view and modify global configuration.

Provides the ``idlogin config`` sub-command group for reading, updating,
and resetting the user's global configuration file
(:class:`~idlogin.models.GlobalConfig`). These are the lowest-precedence
defaults for every login: environment variables and CLI flags override
them.
"""

from __future__ import annotations

import typer
from pydantic import ValidationError

from idlogin.commands import cli_errors
from idlogin.output import error, info, print_json, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show current configuration.

    Example::

        idlogin config show
    """
    from idlogin.config import get_config_dir, load_global_config

    with cli_errors():
        config = load_global_config()
    info(f"Config directory: {get_config_dir()}")
    print_json(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'output.token')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    The value is coerced to the type of the existing field and the result
    is validated before it is saved.

    Example::

        idlogin config set tenant_id proj_123
        idlogin config set callback_port 9000
        idlogin config set output.token json
    """
    from idlogin.config import load_global_config, save_global_config
    from idlogin.models import GlobalConfig

    with cli_errors():
        config = load_global_config()
    data = config.model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    current = target[final_key]
    coerced: object = value
    try:
        if isinstance(current, int):
            coerced = int(value)
        elif isinstance(current, float):
            coerced = float(value)
    except ValueError:
        error(f"Expected a number for {key}, got: {value}")
        raise typer.Exit(code=2) from None

    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    with cli_errors():
        save_global_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Do not ask for confirmation."
    ),
) -> None:
    """Reset configuration to defaults.

    Example::

        idlogin config reset --yes
    """
    from idlogin.config import save_global_config
    from idlogin.models import GlobalConfig

    if not yes and not typer.confirm("Reset all config to defaults?"):
        info("Cancelled.")
        raise typer.Exit()

    with cli_errors():
        save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")
