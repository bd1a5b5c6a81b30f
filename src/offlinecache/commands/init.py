"""Init command -- write a project-local engine config file.

``offlinecache init`` writes ``offlinecache.json`` in the working
directory. The file holds a complete :class:`~offlinecache.models.EngineConfig`
with the default manifest, exclusion patterns and static extensions, ready
to be edited; later commands pick it up automatically.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError

from offlinecache.exit_codes import EXIT_INVALID_USAGE
from offlinecache.output import error, info, success

PROJECT_CONFIG_FILENAME = "offlinecache.json"


def init_command(
    ctx: typer.Context,
    origin: Optional[str] = typer.Option(
        None, "--origin", "-o", help="Origin the manifest paths resolve against."
    ),
    version: Optional[str] = typer.Option(
        None, "--version", help="Cache version tag (e.g. v1.0.0)."
    ),
    namespace: Optional[str] = typer.Option(
        None, "--namespace", "-n", help="Store name prefix (e.g. guitar-song-)."
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file."),
) -> None:
    """Create ``offlinecache.json`` in the current directory.

    Raises:
        typer.Exit: With code 2 if the file exists (without ``--force``) or
            the values are invalid.

    Example::

        offlinecache init --origin https://songs.example.com
        offlinecache init --origin http://localhost:5000 --version v1.1.0
    """
    from offlinecache.config import save_engine_config
    from offlinecache.models import EngineConfig

    path = Path.cwd() / PROJECT_CONFIG_FILENAME
    overwrite = force or (ctx.obj.get("force", False) if ctx.obj else False)
    if path.exists() and not overwrite:
        error(f"{path} already exists. Use --force to overwrite.")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    values: dict[str, str] = {}
    if origin is not None:
        values["origin"] = origin
    if version is not None:
        values["version"] = version
    if namespace is not None:
        values["namespace"] = namespace

    try:
        config = EngineConfig.model_validate(values)
    except ValidationError as exc:
        error(f"Invalid configuration: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    save_engine_config(config, path)
    success(f"Wrote {path}")
    info(f"Cache version: {config.cache_version.store_name}")
    if config.origin is None:
        info("No origin set; pass --origin or set OFFLINECACHE_ORIGIN before installing.")
