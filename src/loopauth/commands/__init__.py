"""Built-in CLI sub-commands for loopauth.

This package groups the Typer command modules that form the CLI's
top-level command tree:

* :mod:`~loopauth.commands.listen` -- capture a redirect, allocate a port,
  print a redirect URI.
* :mod:`~loopauth.commands.config` -- view and modify global settings.

Each module either exports a :class:`typer.Typer` sub-application (for
multi-command groups like ``config``) or plain callback functions
registered directly on the root app (``listen``, ``port``,
``redirect-uri``).
"""
