"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~axmtoken.exceptions.AxmTokenError` subclass.
Scripts wrapping ``axmtoken`` can inspect the exit code to decide whether
a failed refresh is worth retrying without parsing stderr.

Example::

    $ axmtoken generate "Acme ABM"
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- Apple rejected the client assertion
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_AUTH_FAILURE = 3
"""Credentials were missing or rejected by the token endpoint."""

EXIT_NOT_FOUND = 4
"""The requested configuration or resource was not found."""

EXIT_SERVER_ERROR = 5
"""The remote API returned an HTTP 5xx server error."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_KEY_ERROR = 7
"""The private key could not be parsed or could not sign the assertion."""

EXIT_STORAGE_ERROR = 8
"""The secret vault could not be read or written."""
