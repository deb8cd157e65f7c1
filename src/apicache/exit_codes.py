"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~apicache.exceptions.ApicacheError` subclass.
Shell wrappers and cron jobs running ``apicache cache purge`` can inspect
the exit code to determine the failure class without parsing stderr.

Example::

    $ apicache fetch https://api.example.com/users
    $ echo $?
    6   # EXIT_NO_RESPONSE -- upstream failed and no backup was cached
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or an incomplete host registration."""

EXIT_STORE_ERROR = 5
"""The cache store could not be read, written, or swept."""

EXIT_NO_RESPONSE = 6
"""Neither a live response nor a cached backup was available."""
