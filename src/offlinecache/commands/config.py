"""Config commands -- view and modify global configuration.

Provides the ``offlinecache config`` sub-command group for reading,
updating, and resetting the user's global configuration file
(:class:`~offlinecache.models.GlobalConfig`). The ``engine`` section is the
fallback engine configuration used when no project file, environment
variable or ``--config`` flag points elsewhere.
"""

from __future__ import annotations

from typing import Any

import typer
from pydantic import ValidationError

from offlinecache.exit_codes import EXIT_INVALID_USAGE
from offlinecache.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


def _coerce(current: Any, value: str) -> Any:
    """Convert *value* to the type of the field it replaces."""
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes")
    if isinstance(current, int):
        return int(value)
    if isinstance(current, float):
        return float(value)
    if isinstance(current, list):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


@config_app.command("show")
def config_show() -> None:
    """Show current configuration.

    Example::

        offlinecache config show
        offlinecache --json config show
    """
    from offlinecache.config import get_config_dir, load_global_config

    config = load_global_config()
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'engine.version')."
    ),
    value: str = typer.Argument(help="Value to set. Lists are comma-separated."),
) -> None:
    """Set a configuration value.

    Uses dot notation for nested keys. The value is coerced to the type of
    the existing field (bool, int, float, comma-separated list or str) and
    the result is validated before saving.

    Raises:
        typer.Exit: With code 2 if the key path is invalid, the value
            cannot be coerced, or validation fails.

    Example::

        offlinecache config set engine.version v1.1.0
        offlinecache config set engine.precache /,/song/,/song/index.html
        offlinecache config set engine.request.max_retries 2
    """
    from offlinecache.config import load_global_config, save_global_config
    from offlinecache.models import GlobalConfig

    config = load_global_config()
    data = config.model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    try:
        coerced = _coerce(target[final_key], value)
    except ValueError:
        error(f"Expected {type(target[final_key]).__name__} for {key}, got: {value}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None
    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    save_global_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Reset configuration to defaults.

    Asks for confirmation unless ``--force`` is active.
    """
    from offlinecache.config import save_global_config
    from offlinecache.models import GlobalConfig

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force and not typer.confirm("Reset all config to defaults?"):
        info("Cancelled.")
        raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")
