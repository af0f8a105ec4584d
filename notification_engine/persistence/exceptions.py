"""Persistence layer exceptions.

All persistence exceptions inherit from PersistenceError so callers can catch
every storage failure with a single except clause.
"""


class PersistenceError(Exception):
    """Base exception for all persistence layer errors."""

    pass


class DatabaseConnectionError(PersistenceError):
    """Raised when database connection or initialization fails.

    Examples:
    - Invalid database URL format
    - Database file not accessible
    - Database not initialized before use
    """

    pass


class RecordNotFoundError(PersistenceError):
    """Raised when a required database record is not found.

    Optional lookups return None instead of raising this.
    """

    pass


class DataIntegrityError(PersistenceError):
    """Raised when a constraint violation is not an expected idempotent conflict.

    Duplicate delivery records and rate-limit counters are resolved with
    conflict-aware upserts and never surface as this error.
    """

    pass
