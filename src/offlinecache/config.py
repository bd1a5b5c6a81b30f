"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for offlinecache:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.offlinecache/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir` and :func:`get_stores_dir`.
* **Global config** -- a single :class:`~offlinecache.models.GlobalConfig`
  JSON file storing defaults (output format, engine settings).
* **Engine config files** -- JSON or YAML documents deserialised into an
  :class:`~offlinecache.models.EngineConfig`, either pointed at explicitly
  or found as ``offlinecache.json`` / ``offlinecache.yaml`` in the working
  directory.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, the project file and the global config into the
  effective engine configuration.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`).
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from offlinecache.exceptions import ConfigError
from offlinecache.models import EngineConfig, GlobalConfig

_APP_NAME = "offlinecache"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAMES = ("offlinecache.json", "offlinecache.yaml", "offlinecache.yml")


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/offlinecache/`` (default
    ``~/.config/offlinecache/``). On macOS/Windows: ``~/.offlinecache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CACHE_HOME/offlinecache/`` (default
    ``~/.cache/offlinecache/``). On macOS/Windows: ``~/.offlinecache/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary."""
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_stores_dir() -> Path:
    """Return ``<cache_dir>/stores/``, where disk-backed stores live."""
    path = get_cache_dir() / "stores"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created next to *path* so that ``os.replace`` is
    an atomic rename on POSIX. On failure the temp file is removed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Global config ---


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~offlinecache.models.GlobalConfig`, or a
        default instance if the file does not exist.

    Raises:
        ConfigError: If the file contains invalid JSON or fails validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk."""
    data = config.model_dump(mode="json")
    _atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Engine config files ---


def _parse_document(path: Path) -> dict[str, Any]:
    """Parse a JSON or YAML document, choosing by extension."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc

    try:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Invalid config file {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
    return data


def load_engine_config(path: str | Path) -> EngineConfig:
    """Load an :class:`~offlinecache.models.EngineConfig` from a JSON/YAML file.

    Raises:
        ConfigError: If the file is missing, unparsable, or invalid.
    """
    path = Path(path).expanduser()
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")
    data = _parse_document(path)
    try:
        return EngineConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid engine config at {path}: {exc}") from exc


def save_engine_config(config: EngineConfig, path: str | Path) -> None:
    """Write *config* to *path* as JSON or YAML (chosen by extension)."""
    path = Path(path)
    data = config.model_dump(mode="json")
    if path.suffix in (".yaml", ".yml"):
        text = yaml.safe_dump(data, sort_keys=False)
    else:
        text = json.dumps(data, indent=2) + "\n"
    _atomic_write(path, text)


def find_project_config() -> Optional[Path]:
    """Return the first project-local config file in the working directory."""
    for name in _PROJECT_CONFIG_FILENAMES:
        candidate = Path.cwd() / name
        if candidate.is_file():
            return candidate
    return None


# --- Precedence resolution ---


def resolve_config(
    cli_config: Optional[str] = None,
    cli_version: Optional[str] = None,
    cli_origin: Optional[str] = None,
) -> tuple[GlobalConfig, EngineConfig]:
    """Resolve the effective engine configuration.

    Precedence (high to low):
        1. CLI flags (``cli_config``, ``cli_version``, ``cli_origin``)
        2. Environment variables (``OFFLINECACHE_CONFIG``,
           ``OFFLINECACHE_VERSION``, ``OFFLINECACHE_ORIGIN``)
        3. Project config (``./offlinecache.json`` or ``.yaml``)
        4. User config (``~/.config/offlinecache/config.json``)
        5. Defaults

    Returns:
        A tuple of ``(global_config, engine_config)``.
    """
    global_cfg = load_global_config()
    engine_cfg = global_cfg.engine

    config_path: Optional[Path] = find_project_config()
    env_config = os.environ.get("OFFLINECACHE_CONFIG")
    if env_config:
        config_path = Path(env_config)
    if cli_config is not None:
        config_path = Path(cli_config)
    if config_path is not None:
        engine_cfg = load_engine_config(config_path)

    overrides: dict[str, Any] = {}
    env_version = os.environ.get("OFFLINECACHE_VERSION")
    if cli_version is not None:
        overrides["version"] = cli_version
    elif env_version:
        overrides["version"] = env_version

    env_origin = os.environ.get("OFFLINECACHE_ORIGIN")
    if cli_origin is not None:
        overrides["origin"] = cli_origin
    elif env_origin:
        overrides["origin"] = env_origin

    if overrides:
        try:
            engine_cfg = EngineConfig.model_validate(
                {**engine_cfg.model_dump(mode="json"), **overrides}
            )
        except ValidationError as exc:
            raise ConfigError(f"Invalid override: {exc}") from exc

    return global_cfg, engine_cfg
