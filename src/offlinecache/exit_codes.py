"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a failure category and is carried by the matching
:class:`~offlinecache.exceptions.OfflineCacheError` subclass, so shell
wrappers can tell an offline origin apart from a broken store without
parsing stderr.

Example::

    $ offlinecache install
    $ echo $?
    7   # EXIT_PRECACHE_FAILURE -- a manifest resource could not be fetched
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_NETWORK_FAILURE = 6
"""A live fetch failed at the network level (timeout, DNS, connection refused)."""

EXIT_PRECACHE_FAILURE = 7
"""Installing a cache version failed because a manifest resource was unavailable."""

EXIT_STORE_FAILURE = 8
"""The cache store backend could not be read or written."""

EXIT_LIFECYCLE_ERROR = 9
"""A lifecycle transition was requested from a state that does not allow it."""
