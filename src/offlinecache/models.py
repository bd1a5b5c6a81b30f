"""Canonical Pydantic models and enumerations shared across offlinecache.

This is the single source of truth for data shapes in the project. The
models fall into two groups:

**Configuration models** -- serialised as JSON (or YAML) on disk:
    :class:`RequestConfig`, :class:`EngineConfig`, :class:`OutputConfig`
    and :class:`GlobalConfig`.

**Engine vocabulary** -- immutable values the engine computes with:
    :class:`CacheVersion`, :class:`Strategy` and :class:`LifecycleState`.

The defaults of :class:`EngineConfig` describe the deployment the engine
was first built for (the ``guitar-song-`` namespace served under
``/song/``), so a bare ``EngineConfig(origin=...)`` is a working setup.
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_NAMESPACE = "guitar-song-"
DEFAULT_VERSION = "v1.0.0"
DEFAULT_SHELL_PATH = "/song/index.html"

DEFAULT_PRECACHE = [
    "/song/",
    "/song/index.html",
    "/song/favicon.ico",
    "/song/playground.png",
    "/song/manifest.json",
]

DEFAULT_EXCLUDE_PATTERNS = [
    r"firestore\.googleapis\.com",
    r"firebaseinstallations\.googleapis\.com",
    r"identitytoolkit\.googleapis\.com",
    r"securetoken\.googleapis\.com",
    r"@vite",
    r"\.hot-update\.",
    r"sockjs-node",
]

DEFAULT_STATIC_EXTENSIONS = [
    ".js",
    ".css",
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".svg",
    ".ico",
    ".woff",
    ".woff2",
    ".ttf",
    ".eot",
]


# --- Engine vocabulary ---


class Strategy(str, enum.Enum):
    """Retrieval strategy chosen per request by the classifier.

    Never stored; recomputed for every request from its shape.
    """

    NETWORK_FIRST = "network-first"
    CACHE_FIRST = "cache-first"
    STALE_WHILE_REVALIDATE = "stale-while-revalidate"


class LifecycleState(str, enum.Enum):
    """States of :class:`~offlinecache.lifecycle.VersionLifecycleManager`.

    ``INSTALLING -> WAITING -> ACTIVE``; ``FAILED`` is reachable only from
    ``INSTALLING``.
    """

    INSTALLING = "installing"
    WAITING = "waiting"
    ACTIVE = "active"
    FAILED = "failed"


class CacheVersion(BaseModel):
    """A cache generation: namespace prefix plus version identifier.

    Example::

        >>> CacheVersion(namespace="guitar-song-", version="v1.0.0").store_name
        'guitar-song-v1.0.0'
    """

    model_config = ConfigDict(frozen=True)

    namespace: str
    version: str

    @property
    def store_name(self) -> str:
        """Name of the store holding this generation's entries."""
        return f"{self.namespace}{self.version}"

    def owns(self, store_name: str) -> bool:
        """Return ``True`` if *store_name* belongs to this namespace."""
        return store_name.startswith(self.namespace)

    def is_orphan(self, store_name: str) -> bool:
        """Return ``True`` for a namespaced store of any other version."""
        return self.owns(store_name) and store_name != self.store_name


# --- Configuration models ---


class RequestConfig(BaseModel):
    """Settings for live network fetches issued by the engine."""

    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    max_retries: int = Field(
        default=0,
        ge=0,
        description="Retries on transport errors before a fetch counts as failed",
    )


class EngineConfig(BaseModel):
    """Build-time configuration of one engine instance.

    Everything here is fixed for the lifetime of the process: the current
    cache version, the precache manifest, the exclusion patterns and the
    static-asset extension set.

    Example::

        EngineConfig(
            origin="https://example.com",
            version="v1.1.0",
            precache=["/song/", "/song/index.html"],
        )
    """

    namespace: str = Field(
        default=DEFAULT_NAMESPACE, description="Prefix shared by every store generation"
    )
    version: str = Field(default=DEFAULT_VERSION, description="Current cache version")
    origin: Optional[str] = Field(
        default=None,
        description="Origin that manifest and shell paths are resolved against",
    )
    precache: list[str] = Field(
        default_factory=lambda: list(DEFAULT_PRECACHE),
        description="Paths that must be stored before the version is ready",
    )
    exclude_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS),
        description="Regular expressions over full URLs that are never intercepted",
    )
    static_extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_STATIC_EXTENSIONS),
        description="Path extensions served cache-first",
    )
    shell_path: str = Field(
        default=DEFAULT_SHELL_PATH,
        description="Document served when a navigation fails with no cached copy",
    )
    auto_skip_waiting: bool = Field(
        default=True, description="Activate as soon as install succeeds"
    )
    enabled: bool = Field(default=True, description="Intercept requests at all")
    storage: str = Field(default="disk", description="Store backend: disk or memory")
    request: RequestConfig = Field(default_factory=RequestConfig)

    @field_validator("namespace", "version")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        if "/" in value or "\\" in value:
            raise ValueError("must not contain path separators")
        return value

    @field_validator("storage")
    @classmethod
    def _known_storage(cls, value: str) -> str:
        if value not in ("disk", "memory"):
            raise ValueError("storage must be 'disk' or 'memory'")
        return value

    @field_validator("static_extensions")
    @classmethod
    def _normalise_extensions(cls, value: list[str]) -> list[str]:
        return [ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in value]

    @property
    def cache_version(self) -> CacheVersion:
        """The immutable :class:`CacheVersion` this engine writes to."""
        return CacheVersion(namespace=self.namespace, version=self.version)


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(default="auto", description="Output format: auto, json, plain, rich")


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/offlinecache/config.json``.

    Fields here have the lowest precedence; see
    :func:`~offlinecache.config.resolve_config` for the full chain.
    """

    output: OutputConfig = Field(default_factory=OutputConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
