"""Numeric process exit codes used by the ``tearoute`` CLI.

Each constant maps to one failure class of the request pipeline and is
referenced by the corresponding :class:`~tearoute.exceptions.TearouteError`
subclass, so shell wrappers can tell a validation failure from a network
outage without parsing stderr.

Example::

    $ tearoute call myapi.routes:ROUTES getUser -p id=42
    $ echo $?
    6   # EXIT_NETWORK_ERROR -- the host could not be reached
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""Bad arguments: unknown route, missing path parameter, invalid request input."""

EXIT_HTTP_ERROR = 5
"""The remote API answered with a non-2xx status."""

EXIT_NETWORK_ERROR = 6
"""A transport-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_PARSE_ERROR = 7
"""The response body was not valid JSON."""

EXIT_VALIDATION_ERROR = 8
"""The response body did not match the route's declared schema."""
