"""Persistence layer for dispatch state using SQLAlchemy.

Public API:
    # Database initialization and session management
    - init_database(database_url: str) -> None
    - get_session() -> ContextManager[Session]
    - close_database() -> None
    - get_engine() -> Engine

    # Repository classes
    - SettingsRepository: institution notification overrides
    - GuardianRepository: guardians and student links (read side of collaborators)
    - PreferenceRepository: per-channel opt-in state
    - DeliveryRecordRepository: the delivery ledger
    - RateLimitRepository: per-day send counters
    - DomainEventRepository: domain events awaiting notification
    - InAppNotificationRepository: guardian portal inbox

    # Exceptions
    - PersistenceError, DatabaseConnectionError, RecordNotFoundError, DataIntegrityError

Example usage:
    >>> from notification_engine.persistence import init_database, get_session, SettingsRepository
    >>> init_database("sqlite:///./data/notifications.db")
    >>> with get_session() as session:
    ...     SettingsRepository(session).get("I1", "attendance_absent")
"""

from .database import close_database, get_engine, get_session, init_database
from .exceptions import (
    DatabaseConnectionError,
    DataIntegrityError,
    PersistenceError,
    RecordNotFoundError,
)
from .repositories import (
    DeliveryRecordRepository,
    DomainEventRepository,
    GuardianRepository,
    InAppNotificationRepository,
    PreferenceRepository,
    RateLimitRepository,
    SettingsRepository,
)

__all__ = [
    # Database functions
    "init_database",
    "get_session",
    "close_database",
    "get_engine",
    # Repositories
    "SettingsRepository",
    "GuardianRepository",
    "PreferenceRepository",
    "DeliveryRecordRepository",
    "RateLimitRepository",
    "DomainEventRepository",
    "InAppNotificationRepository",
    # Exceptions
    "PersistenceError",
    "DatabaseConnectionError",
    "RecordNotFoundError",
    "DataIntegrityError",
]
