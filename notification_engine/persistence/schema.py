"""Database schema definition and ORM models.

This module defines SQLAlchemy ORM models for the engine's own tables (settings,
delivery ledger, rate-limit counters, preferences, in-app inbox) and for the
collaborator tables it reads (guardians, domain events). Timestamps are stored
as ISO 8601 UTC strings and calendar days as ``YYYY-MM-DD``.
"""

import logging
from datetime import date, datetime, timezone
from typing import Mapping, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    inspect,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base

from ..domain.models import (
    DeliveryRecord,
    DispatchMode,
    DomainEvent,
    InstitutionNotificationSetting,
    NotificationCategory,
)
from ..utils.timestamps import format_day, parse_day

logger = logging.getLogger(__name__)

Base = declarative_base()

RATE_LIMIT_KEY = ("institution_id", "recipient_type", "recipient_id", "channel", "notification_date")
DELIVERY_KEY = ("event_type", "reference_id", "recipient_id")


class NotificationCategoryModel(Base):
    """Seed copy of the static category catalog, for reporting tools."""

    __tablename__ = "notification_categories"

    id = Column(String(64), primary_key=True)
    label = Column(String(255), nullable=False)
    default_channels = Column(JSON, nullable=False)
    cadence = Column(String(20), nullable=False)
    default_template = Column(Text, nullable=False)


class InstitutionNotificationSettingModel(Base):
    """ORM model for institution_notification_settings.

    NULL in an overridable column means "use the category default".
    """

    __tablename__ = "institution_notification_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    institution_id = Column(String(64), nullable=False)
    category_id = Column(String(64), nullable=False)
    is_enabled = Column(Boolean, nullable=True)
    channels = Column(JSON, nullable=True)
    schedule_time = Column(String(5), nullable=True)
    schedule_days = Column(JSON, nullable=True)
    custom_template = Column(Text, nullable=True)
    updated_at = Column(String(50), nullable=True)

    __table_args__ = (
        UniqueConstraint("institution_id", "category_id", name="uq_settings_institution_category"),
    )

    def to_domain(self) -> InstitutionNotificationSetting:
        return InstitutionNotificationSetting(
            institution_id=self.institution_id,
            category_id=self.category_id,
            is_enabled=self.is_enabled,
            channels=self.channels,
            schedule_time=self.schedule_time,
            schedule_days=self.schedule_days,
            custom_template=self.custom_template,
            updated_at=_parse_datetime(self.updated_at),
        )

    def apply(self, setting: InstitutionNotificationSetting) -> None:
        """Copy overridable fields from a domain setting."""
        self.is_enabled = setting.is_enabled
        self.channels = (
            [channel.value for channel in setting.channels] if setting.channels is not None else None
        )
        self.schedule_time = setting.schedule_time
        self.schedule_days = list(setting.schedule_days) if setting.schedule_days is not None else None
        self.custom_template = setting.custom_template
        self.updated_at = _format_datetime(setting.updated_at or datetime.now(timezone.utc))


class CommunicationEventModel(Base):
    """ORM model for communication_events, the delivery ledger.

    The unique constraint on (event_type, reference_id, recipient_id) is what
    guarantees at most one record per recipient per event.
    """

    __tablename__ = "communication_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_type = Column(String(64), nullable=False)
    reference_id = Column(String(128), nullable=False)
    recipient_id = Column(String(64), nullable=False)
    institution_id = Column(String(64), nullable=False)
    subject_id = Column(String(64), nullable=True)
    trigger_source = Column(String(20), nullable=False)
    channels_used = Column(JSON, nullable=False)
    message_content = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="sent")
    processed_at = Column(String(50), nullable=False)

    __table_args__ = (
        UniqueConstraint(*DELIVERY_KEY, name="uq_communication_events_event_recipient"),
        Index("idx_communication_events_institution", "institution_id", "processed_at"),
    )

    def to_domain(self) -> DeliveryRecord:
        return DeliveryRecord(
            event_type=self.event_type,
            reference_id=self.reference_id,
            recipient_id=self.recipient_id,
            institution_id=self.institution_id,
            subject_id=self.subject_id,
            channels_used=self.channels_used,
            message=self.message_content,
            trigger_source=DispatchMode(self.trigger_source),
            status=self.status,
            processed_at=_parse_datetime(self.processed_at),
        )

    @staticmethod
    def values_from_domain(record: DeliveryRecord) -> dict:
        """Column values for a Core insert."""
        return {
            "event_type": record.event_type,
            "reference_id": record.reference_id,
            "recipient_id": record.recipient_id,
            "institution_id": record.institution_id,
            "subject_id": record.subject_id,
            "trigger_source": record.trigger_source.value,
            "channels_used": [channel.value for channel in record.channels_used],
            "message_content": record.message,
            "status": record.status,
            "processed_at": _format_datetime(record.processed_at),
        }


class RateLimitModel(Base):
    """ORM model for notification_rate_limits."""

    __tablename__ = "notification_rate_limits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    institution_id = Column(String(64), nullable=False)
    recipient_type = Column(String(20), nullable=False, default="parent")
    recipient_id = Column(String(64), nullable=False)
    channel = Column(String(20), nullable=False)
    notification_date = Column(String(10), nullable=False)
    count = Column(Integer, nullable=False, default=0)
    last_sent_at = Column(String(50), nullable=True)

    __table_args__ = (UniqueConstraint(*RATE_LIMIT_KEY, name="uq_rate_limits_key"),)


class NotificationPreferenceModel(Base):
    """ORM model for notification_preferences (per-channel opt-in)."""

    __tablename__ = "notification_preferences"

    id = Column(Integer, primary_key=True, autoincrement=True)
    recipient_id = Column(String(64), nullable=False)
    institution_id = Column(String(64), nullable=False)
    channel = Column(String(20), nullable=False)
    is_opted_in = Column(Boolean, nullable=False, default=True)
    updated_at = Column(String(50), nullable=True)

    __table_args__ = (
        UniqueConstraint("recipient_id", "institution_id", "channel", name="uq_preferences_key"),
    )


class GuardianModel(Base):
    """Collaborator table: guardians on file for an institution."""

    __tablename__ = "guardians"

    id = Column(String(64), primary_key=True)
    institution_id = Column(String(64), nullable=False)
    full_name = Column(String(255), nullable=False, default="")
    phone = Column(String(32), nullable=True)
    email = Column(String(255), nullable=True)
    portal_user_id = Column(String(64), nullable=True)  # set once invited to the parent portal


class StudentGuardianModel(Base):
    """Collaborator table: links students to their guardians."""

    __tablename__ = "student_guardians"

    student_id = Column(String(64), primary_key=True)
    guardian_id = Column(String(64), ForeignKey("guardians.id"), primary_key=True)
    relationship = Column(String(50), nullable=True)
    is_primary = Column(Boolean, nullable=False, default=False)


class DomainEventModel(Base):
    """Collaborator table: domain events awaiting notification."""

    __tablename__ = "domain_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_type = Column(String(64), nullable=False)
    reference_id = Column(String(128), nullable=False)
    institution_id = Column(String(64), nullable=False)
    subject_id = Column(String(64), nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    event_date = Column(String(10), nullable=False)
    created_at = Column(String(50), nullable=True)

    __table_args__ = (
        UniqueConstraint("event_type", "reference_id", name="uq_domain_events_reference"),
        Index("idx_domain_events_date_type", "event_date", "event_type"),
    )

    def to_domain(self) -> DomainEvent:
        return DomainEvent(
            event_type=self.event_type,
            reference_id=self.reference_id,
            institution_id=self.institution_id,
            subject_id=self.subject_id,
            payload=self.payload or {},
            event_date=_parse_date(self.event_date),
        )

    @classmethod
    def from_domain(cls, event: DomainEvent, event_date: date) -> "DomainEventModel":
        return cls(
            event_type=event.event_type,
            reference_id=event.reference_id,
            institution_id=event.institution_id,
            subject_id=event.subject_id,
            payload=dict(event.payload),
            event_date=_format_date(event.event_date or event_date),
            created_at=_format_datetime(datetime.now(timezone.utc)),
        )


class InAppNotificationModel(Base):
    """ORM model for in_app_notifications, the guardian portal inbox."""

    __tablename__ = "in_app_notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    institution_id = Column(String(64), nullable=False)
    recipient_id = Column(String(64), nullable=False)
    user_type = Column(String(20), nullable=False, default="parent")
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    notification_type = Column(String(64), nullable=False)
    reference_type = Column(String(64), nullable=True)
    reference_id = Column(String(128), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(String(50), nullable=False)

    __table_args__ = (Index("idx_in_app_recipient", "recipient_id", "created_at"),)


def _format_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Format datetime as ISO 8601 UTC string for storage."""
    if dt is None:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)

    return dt.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _parse_datetime(dt_str: Optional[str]) -> Optional[datetime]:
    """Parse a stored ISO 8601 string back to an aware UTC datetime."""
    if not dt_str:
        return None

    dt_str = dt_str.rstrip("Z")

    try:
        dt = datetime.strptime(dt_str, "%Y-%m-%dT%H:%M:%S.%f")
    except ValueError:
        dt = datetime.strptime(dt_str, "%Y-%m-%dT%H:%M:%S")

    return dt.replace(tzinfo=timezone.utc)


def _format_date(day: date) -> str:
    return format_day(day)


def _parse_date(day_str: Optional[str]) -> Optional[date]:
    if not day_str:
        return None
    return parse_day(day_str)


def seed_categories(engine: Engine, catalog: Mapping[str, NotificationCategory]) -> int:
    """Insert catalog categories missing from notification_categories.

    Returns:
        Number of rows inserted
    """
    inserted = 0
    with Session(engine) as session:
        existing = set(session.execute(select(NotificationCategoryModel.id)).scalars())
        for category in catalog.values():
            if category.id in existing:
                continue
            session.add(
                NotificationCategoryModel(
                    id=category.id,
                    label=category.label,
                    default_channels=[c.value for c in category.default_channels],
                    cadence=category.cadence.value,
                    default_template=category.default_template,
                )
            )
            inserted += 1
        session.commit()
    return inserted


def create_schema(engine: Engine) -> None:
    """Create all tables and indexes if they don't exist, then seed categories.

    Safe to call multiple times.
    """
    from ..domain.catalog import CATALOG

    logger.info("Creating database schema if not exists")

    try:
        Base.metadata.create_all(engine, checkfirst=True)
        seeded = seed_categories(engine, CATALOG)

        tables = inspect(engine).get_table_names()
        logger.info(
            f"Database schema ready. Tables: {', '.join(tables)}",
            extra={"event": "database.schema.ready", "categories_seeded": seeded},
        )

    except Exception as e:
        logger.error(f"Failed to create database schema: {e}", exc_info=True)
        raise


__all__ = [
    "Base",
    "CommunicationEventModel",
    "DomainEventModel",
    "GuardianModel",
    "InAppNotificationModel",
    "InstitutionNotificationSettingModel",
    "NotificationCategoryModel",
    "NotificationPreferenceModel",
    "RateLimitModel",
    "StudentGuardianModel",
    "create_schema",
    "seed_categories",
]
