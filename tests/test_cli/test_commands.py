"""Tests for the offlinecache CLI (init, config, install, fetch, classify, stores)."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from offlinecache import __version__
from offlinecache.app import app
from offlinecache.engine import OfflineCacheEngine
from offlinecache.exit_codes import EXIT_INVALID_USAGE, EXIT_PRECACHE_FAILURE

ORIGIN = "https://songs.example.com"


@pytest.fixture
def wired(isolated_config: Path, site, monkeypatch: pytest.MonkeyPatch):
    """Route CLI engines to the fake site, with the origin set via the environment."""
    monkeypatch.setenv("OFFLINECACHE_ORIGIN", ORIGIN)
    monkeypatch.setattr(
        "offlinecache.commands.engine._make_engine",
        lambda config: OfflineCacheEngine(config, transport=site.transport),
    )
    return site


def _json(result) -> object:
    return json.loads(result.output)


# ------------------------------------------------------------------ #
# Root
# ------------------------------------------------------------------ #


class TestRoot:
    def test_version(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"offlinecache {__version__}" in result.output

    def test_no_args_shows_help(self, cli_runner) -> None:
        result = cli_runner.invoke(app, [])
        assert "install" in result.output


# ------------------------------------------------------------------ #
# init
# ------------------------------------------------------------------ #


class TestInit:
    def test_writes_project_file(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["init", "--origin", ORIGIN, "--version", "v2.0.0"])
        assert result.exit_code == 0, result.output
        data = json.loads((isolated_config / "offlinecache.json").read_text())
        assert data["origin"] == ORIGIN
        assert data["version"] == "v2.0.0"
        assert data["namespace"] == "guitar-song-"

    def test_refuses_to_overwrite(self, cli_runner, isolated_config: Path) -> None:
        (isolated_config / "offlinecache.json").write_text("{}")
        result = cli_runner.invoke(app, ["init", "--origin", ORIGIN])
        assert result.exit_code == EXIT_INVALID_USAGE
        assert (isolated_config / "offlinecache.json").read_text() == "{}"

    def test_force_overwrites(self, cli_runner, isolated_config: Path) -> None:
        (isolated_config / "offlinecache.json").write_text("{}")
        result = cli_runner.invoke(app, ["init", "--origin", ORIGIN, "--force"])
        assert result.exit_code == 0
        assert json.loads((isolated_config / "offlinecache.json").read_text())["origin"] == ORIGIN

    def test_invalid_version(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["init", "--version", "a/b"])
        assert result.exit_code == EXIT_INVALID_USAGE


# ------------------------------------------------------------------ #
# config
# ------------------------------------------------------------------ #


class TestConfigCommands:
    def test_show(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["--json", "--quiet", "config", "show"])
        assert result.exit_code == 0
        assert _json(result)["engine"]["version"] == "v1.0.0"

    def test_set_and_show(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["config", "set", "engine.version", "v1.1.0"])
        assert result.exit_code == 0, result.output
        result = cli_runner.invoke(app, ["--json", "--quiet", "config", "show"])
        assert _json(result)["engine"]["version"] == "v1.1.0"

    def test_set_list_value(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["config", "set", "engine.precache", "/,/song/"])
        assert result.exit_code == 0
        from offlinecache.config import load_global_config

        assert load_global_config().engine.precache == ["/", "/song/"]

    def test_set_int_value(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["config", "set", "engine.request.max_retries", "2"])
        assert result.exit_code == 0
        from offlinecache.config import load_global_config

        assert load_global_config().engine.request.max_retries == 2

    def test_unknown_key(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["config", "set", "engine.nope", "x"])
        assert result.exit_code == EXIT_INVALID_USAGE

    def test_invalid_value(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["config", "set", "engine.storage", "tape"])
        assert result.exit_code == EXIT_INVALID_USAGE

    def test_reset_with_force(self, cli_runner, isolated_config: Path) -> None:
        cli_runner.invoke(app, ["config", "set", "engine.version", "v9"])
        result = cli_runner.invoke(app, ["--force", "config", "reset"])
        assert result.exit_code == 0
        from offlinecache.config import load_global_config

        assert load_global_config().engine.version == "v1.0.0"

    def test_reset_declined(self, cli_runner, isolated_config: Path) -> None:
        cli_runner.invoke(app, ["config", "set", "engine.version", "v9"])
        result = cli_runner.invoke(app, ["config", "reset"], input="n\n")
        assert result.exit_code == 0
        from offlinecache.config import load_global_config

        assert load_global_config().engine.version == "v9"


# ------------------------------------------------------------------ #
# install / fetch / classify
# ------------------------------------------------------------------ #


class TestInstall:
    def test_install_activates(self, cli_runner, wired) -> None:
        result = cli_runner.invoke(app, ["--json", "--quiet", "install"])
        assert result.exit_code == 0, result.output
        summary = _json(result)
        assert summary["store"] == "guitar-song-v1.0.0"
        assert summary["state"] == "active"
        assert summary["entries"] == 5

    def test_install_failure_exit_code(self, cli_runner, wired) -> None:
        del wired.pages["/song/playground.png"]
        result = cli_runner.invoke(app, ["--plain", "--no-color", "install"])
        assert result.exit_code == EXIT_PRECACHE_FAILURE
        assert "/song/playground.png" in result.output

    def test_install_requires_origin(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["install"])
        assert result.exit_code == EXIT_INVALID_USAGE

    def test_new_version_deletes_old_generation(self, cli_runner, wired, monkeypatch) -> None:
        cli_runner.invoke(app, ["--quiet", "install"])
        monkeypatch.setenv("OFFLINECACHE_VERSION", "v1.1.0")
        result = cli_runner.invoke(app, ["--json", "--quiet", "install"])
        summary = _json(result)
        assert summary["deleted"] == ["guitar-song-v1.0.0"]
        assert summary["update_available"] is True


class TestFetch:
    def test_fetch_static_asset(self, cli_runner, wired) -> None:
        result = cli_runner.invoke(app, ["--json", "--quiet", "fetch", "/app.js"])
        assert result.exit_code == 0, result.output
        data = _json(result)
        assert data["status"] == 200
        assert data["route"] == "cache-first"
        assert data["body"] == "console.log('a')"

    def test_fetch_excluded(self, cli_runner, wired) -> None:
        result = cli_runner.invoke(
            app, ["--json", "--quiet", "fetch", "https://firestore.googleapis.com/v1/x"]
        )
        assert _json(result)["route"] == "bypass (excluded)"

    def test_fetch_navigation(self, cli_runner, wired) -> None:
        result = cli_runner.invoke(app, ["--json", "--quiet", "fetch", "/song/", "--navigate"])
        data = _json(result)
        assert data["route"] == "network-first"
        assert data["body"] == "<html>home</html>"

    def test_fetch_offline_after_install(self, cli_runner, wired) -> None:
        cli_runner.invoke(app, ["--quiet", "install"])
        wired.online = False
        result = cli_runner.invoke(app, ["--json", "--quiet", "fetch", "/song/", "--navigate"])
        assert result.exit_code == 0, result.output
        data = _json(result)
        assert data["route"] == "network-first"
        assert data["from_cache"] is True
        assert data["body"] == "<html>home</html>"


class TestClassify:
    @pytest.mark.parametrize(
        ("args", "decision"),
        [
            (["/app.js"], "cache-first"),
            (["/song/42", "--navigate"], "network-first"),
            (["/song/42", "--accept", "text/html"], "network-first"),
            (["/api/songs"], "stale-while-revalidate"),
        ],
    )
    def test_strategies(self, cli_runner, wired, args: list[str], decision: str) -> None:
        result = cli_runner.invoke(app, ["--json", "--quiet", "classify", *args])
        assert result.exit_code == 0, result.output
        assert _json(result)["decision"] == decision

    def test_bypass_reason(self, cli_runner, wired) -> None:
        result = cli_runner.invoke(app, ["--json", "--quiet", "classify", "/api/songs", "--method", "POST"])
        data = _json(result)
        assert data["decision"] == "bypass"
        assert data["reason"] == "method"

    def test_relative_url_needs_origin(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["classify", "/app.js"])
        assert result.exit_code == EXIT_INVALID_USAGE

    def test_absolute_url_without_origin(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["--json", "--quiet", "classify", "https://cdn.example.net/x.css"])
        assert _json(result)["decision"] == "cache-first"

    def test_config_flag(self, cli_runner, isolated_config: Path) -> None:
        path = isolated_config / "custom.yaml"
        path.write_text(f"origin: {ORIGIN}\nstatic_extensions: [.mp3]\n")
        result = cli_runner.invoke(
            app, ["--json", "--quiet", "--config", str(path), "classify", "/riff.mp3"]
        )
        assert _json(result)["decision"] == "cache-first"


# ------------------------------------------------------------------ #
# stores
# ------------------------------------------------------------------ #


class TestStores:
    def test_list_after_install(self, cli_runner, wired) -> None:
        cli_runner.invoke(app, ["--quiet", "install"])
        result = cli_runner.invoke(app, ["--json", "--quiet", "stores", "list"])
        assert result.exit_code == 0, result.output
        assert _json(result) == [{"name": "guitar-song-v1.0.0", "status": "current", "entries": "5"}]

    def test_list_empty(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["stores", "list"])
        assert result.exit_code == 0
        assert "No cache stores" in result.output

    def test_purge_orphans(self, cli_runner, wired, monkeypatch) -> None:
        cli_runner.invoke(app, ["--quiet", "install"])
        monkeypatch.setenv("OFFLINECACHE_VERSION", "v1.1.0")
        listing = _json(cli_runner.invoke(app, ["--json", "--quiet", "stores", "list"]))
        assert listing[0]["status"] == "orphan"

        result = cli_runner.invoke(app, ["--force", "stores", "purge"])
        assert result.exit_code == 0
        assert "Deleted guitar-song-v1.0.0" in result.output
        assert "No cache stores" in cli_runner.invoke(app, ["stores", "list"]).output

    def test_clear(self, cli_runner, wired) -> None:
        cli_runner.invoke(app, ["--quiet", "install"])
        result = cli_runner.invoke(app, ["--force", "stores", "clear", "guitar-song-v1.0.0"])
        assert result.exit_code == 0
        assert "No cache stores" in cli_runner.invoke(app, ["stores", "list"]).output

    def test_clear_unknown(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["--force", "stores", "clear", "nope"])
        assert result.exit_code == EXIT_INVALID_USAGE
