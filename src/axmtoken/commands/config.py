"""Config commands -- view and modify the global configuration file."""

from __future__ import annotations

import typer

from axmtoken.output import error, format_response, info, success

config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show the effective configuration.

    Environment overrides (``AXMTOKEN_TOKEN_URL``, ``AXMTOKEN_TIMEOUT``)
    are applied to what is shown.

    Example::

        axmtoken config show
        axmtoken --json config show
    """
    from axmtoken.commands import reporting_errors
    from axmtoken.config import get_config_dir, resolve_config

    with reporting_errors():
        config = resolve_config()
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Config key (dot notation, e.g. 'request.timeout')."),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    The value is coerced to the type of the current setting.

    Example::

        axmtoken config set expiring_threshold_minutes 30
        axmtoken config set request.timeout 10
        axmtoken config set token_url https://account.apple.com/auth/oauth2/token
    """
    from pydantic import ValidationError

    from axmtoken.commands import reporting_errors
    from axmtoken.config import load_global_config, save_global_config
    from axmtoken.models import GlobalConfig

    with reporting_errors():
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
    if isinstance(current, bool):
        coerced = value.lower() in ("true", "1", "yes")
    elif isinstance(current, (int, float)):
        try:
            coerced = type(current)(value)
        except ValueError:
            error(f"Expected {type(current).__name__} for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_global_config(new_config)
    success(f"Set {key} = {coerced}")
