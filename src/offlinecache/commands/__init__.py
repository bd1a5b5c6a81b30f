"""Built-in CLI sub-commands for offlinecache.

This package groups the Typer sub-command modules that form the CLI's
top-level command tree:

* :mod:`~offlinecache.commands.init` -- write a project config file.
* :mod:`~offlinecache.commands.config` -- view and modify global settings.
* :mod:`~offlinecache.commands.engine` -- ``install``, ``fetch`` and
  ``classify``, which drive an engine against the configured origin.
* :mod:`~offlinecache.commands.stores` -- inspect and clean up the cache
  stores on disk.

Each module either exports a :class:`typer.Typer` sub-application (for
multi-command groups like ``config`` and ``stores``) or plain callback
functions registered directly on the root app.
"""
