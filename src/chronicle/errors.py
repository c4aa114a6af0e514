"""Exceptions raised by the chronicle core."""


class ChronicleError(Exception):
    """Base exception for chronicle."""

    pass


class MalformedTermError(ChronicleError):
    """Raised when a term is non-ground where it must be ground, or ill-shaped."""

    pass


class RuleRecordError(MalformedTermError):
    """Raised when an externally supplied rule record cannot be compiled."""

    pass


class InvalidTimestampError(ChronicleError):
    """Raised when a timestamp is unparsable or not in a sortable encoding."""

    pass


class QueryError(ChronicleError):
    """Raised when a fluent pattern is not a well-formed query."""

    pass
