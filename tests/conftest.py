"""Shared test fixtures for offlinecache.

Provides a simulated origin (:class:`FakeSite`) served through
:class:`httpx.MockTransport`, isolated config environments, output state
management and a CLI runner. These fixtures are automatically discovered
by pytest and available to all test modules without explicit imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import httpx
import pytest

from offlinecache.models import EngineConfig
from offlinecache.output import OutputFormat, OutputManager, reset_output, set_output
from offlinecache.store import MemoryCacheStorage


ORIGIN = "https://songs.example.com"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    Resetting forces a fresh manager to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Simulated origin
# ---------------------------------------------------------------------------


class FakeSite:
    """An origin whose pages can be changed and which can go offline.

    Every request that reaches the site is recorded in :attr:`calls`, so
    tests can count network round trips per path.
    """

    def __init__(self) -> None:
        self.pages: dict[str, tuple[int, bytes, str]] = {}
        self.online = True
        self.calls: list[httpx.Request] = []

    def add(self, path: str, body: str | bytes, status: int = 200, content_type: str = "text/plain") -> None:
        if isinstance(body, str):
            body = body.encode()
        self.pages[path] = (status, body, content_type)

    def count(self, path: str) -> int:
        return sum(1 for r in self.calls if r.url.path == path)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if not self.online:
            raise httpx.ConnectError("connection refused", request=request)
        page = self.pages.get(request.url.path)
        if page is None:
            return httpx.Response(404, text="not found")
        status, body, content_type = page
        return httpx.Response(status, content=body, headers={"content-type": content_type})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def site() -> FakeSite:
    """A site serving the default precache manifest plus a few assets."""
    s = FakeSite()
    s.add("/song/", "<html>home</html>", content_type="text/html")
    s.add("/song/index.html", "<html>shell</html>", content_type="text/html")
    s.add("/song/favicon.ico", b"\x00\x01", content_type="image/x-icon")
    s.add("/song/playground.png", b"\x89PNG", content_type="image/png")
    s.add("/song/manifest.json", '{"name": "songs"}', content_type="application/json")
    s.add("/app.js", "console.log('a')", content_type="application/javascript")
    s.add("/data.json", "A", content_type="application/json")
    return s


@pytest.fixture
def storage() -> MemoryCacheStorage:
    return MemoryCacheStorage()


@pytest.fixture
def engine_config() -> EngineConfig:
    """Default engine config rooted at the fake origin, with memory storage."""
    return EngineConfig(origin=ORIGIN, storage="memory")


def _make_request(
    path: str,
    method: str = "GET",
    accept: Optional[str] = None,
    navigate: bool = False,
) -> httpx.Request:
    url = path if "://" in path else f"{ORIGIN}{path}"
    headers: dict[str, str] = {}
    if accept:
        headers["Accept"] = accept
    if navigate:
        headers["Sec-Fetch-Mode"] = "navigate"
    return httpx.Request(method, url, headers=headers)


@pytest.fixture
def make_request():
    """Factory building requests against the fake origin (absolute URLs pass through)."""
    return _make_request


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration and stores to a temporary directory.

    Sets XDG_CONFIG_HOME, XDG_CACHE_HOME, and XDG_DATA_HOME to
    subdirectories of tmp_path, clears all OFFLINECACHE_* environment
    variables and changes the working directory to tmp_path.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("offlinecache.config._is_xdg_platform", lambda: True)

    for var in ["OFFLINECACHE_CONFIG", "OFFLINECACHE_VERSION", "OFFLINECACHE_ORIGIN"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def json_output() -> OutputManager:
    """Install a JSON-format OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.JSON)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
