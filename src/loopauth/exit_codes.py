"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~loopauth.exceptions.LoopauthError` subclass.
Shell wrappers can inspect the exit code to tell "the plumbing failed"
apart from "the handshake was rejected" without parsing stderr.

Example::

    $ loopauth listen https://idp.example.com/authorize?... --state abc
    $ echo $?
    3   # EXIT_AUTHORIZATION_REJECTED -- provider error or state mismatch
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or the API was misused."""

EXIT_AUTHORIZATION_REJECTED = 3
"""The identity provider redirected back, but the handshake was rejected."""

EXIT_BIND_FAILURE = 6
"""The loopback redirect endpoint could not be bound (port in use, permission denied)."""
