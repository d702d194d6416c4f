"""Error taxonomy for the precheck engine.

Only FatalEnvironmentError escapes a run. The others are absorbed where they
occur: a failed statement or an unparseable result becomes a FAIL outcome or an
empty inventory category, and a failed structured serialization falls back to
the manual renderer.
"""

from typing import Union


class PrecheckError(Exception):
    """Base class for engine errors."""


class FatalEnvironmentError(PrecheckError):
    """Required tooling (driver, command line processor, instance) is missing."""


class QueryConnectionError(PrecheckError):
    """A single statement could not be executed against the target."""

    def __init__(self, database: str, statement: str, cause: Union[Exception, str]):
        self.database = database
        self.statement = statement
        self.cause = cause
        super().__init__(f"Query against {database} failed: {cause}")


class ParseError(PrecheckError):
    """A query result could not be interpreted as the expected type."""

    def __init__(self, raw: str, expected: str = "integer"):
        self.raw = raw
        self.expected = expected
        super().__init__(f"Expected {expected}, got {raw!r}")


class DegradedSerialization(UserWarning):
    """Structured serialization failed; the manual renderer was used instead."""
