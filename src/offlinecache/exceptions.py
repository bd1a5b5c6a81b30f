"""Exception hierarchy for offlinecache.

All exceptions inherit from :class:`OfflineCacheError`, which carries an
``exit_code`` attribute mapped to a constant from
:mod:`offlinecache.exit_codes`. The CLI entry point in
:func:`offlinecache.app.main` catches ``OfflineCacheError`` and exits with
that code.

Inside the engine the classes double as the failure vocabulary of the
strategies: a :class:`NetworkFailure` is recoverable depending on the
strategy, a :class:`StoreFailure` is never shown to the caller, and a
:class:`PrecacheFailure` aborts one install attempt.

Subclass hierarchy::

    OfflineCacheError   (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- NetworkFailure      (exit 6)
    +-- PrecacheFailure     (exit 7)
    +-- StoreFailure        (exit 8)
    +-- LifecycleError      (exit 9)
    +-- ConfigError         (exit 1)
"""

from offlinecache.exit_codes import (
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_LIFECYCLE_ERROR,
    EXIT_NETWORK_FAILURE,
    EXIT_PRECACHE_FAILURE,
    EXIT_STORE_FAILURE,
)


class OfflineCacheError(Exception):
    """Base exception for all offlinecache errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(OfflineCacheError):
    """Raised for invalid CLI arguments."""

    exit_code = EXIT_INVALID_USAGE


class NetworkFailure(OfflineCacheError):
    """Raised when a live fetch is rejected or times out.

    Args:
        message: Error description.
        url: The URL that could not be fetched, when known.
    """

    exit_code = EXIT_NETWORK_FAILURE

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url


class PrecacheFailure(OfflineCacheError):
    """Raised when a manifest resource cannot be fetched during install.

    Attributes:
        failed: Manifest paths that did not resolve with a storable response.
    """

    exit_code = EXIT_PRECACHE_FAILURE

    def __init__(self, message: str, failed: list[str] | None = None):
        super().__init__(message)
        self.failed = list(failed or [])


class StoreFailure(OfflineCacheError):
    """Raised when the underlying cache store is unavailable for read or write."""

    exit_code = EXIT_STORE_FAILURE


class LifecycleError(OfflineCacheError):
    """Raised for a lifecycle transition that is illegal in the current state."""

    exit_code = EXIT_LIFECYCLE_ERROR


class ConfigError(OfflineCacheError):
    """Raised for configuration problems (invalid JSON/YAML, bad values)."""

    exit_code = EXIT_GENERIC_FAILURE
