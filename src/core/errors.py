"""Error taxonomy for catalog queries.

Invalid input is normalized, never raised. Malformed records are recovered
per record by the assembler. Only store failures reach callers.
"""


class QueryError(Exception):
    """Base class for failures that abort a whole query."""


class StoreUnavailableError(QueryError):
    """The catalog store could not answer; no partial result is returned."""
