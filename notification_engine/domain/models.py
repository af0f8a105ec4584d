"""Core domain models for notification dispatch.

This module defines the data structures shared by every dispatch component:
- NotificationCategory: static behavior record for one kind of notification
- InstitutionNotificationSetting: an institution's saved override row
- EffectiveSetting: override merged over category defaults
- DomainEvent: a fact produced elsewhere that may warrant a notification
- Recipient: a guardian with contact addresses and per-channel opt-in state
- DeliveryRecord: the idempotency ledger entry
- DeliveryReceipt: provider acknowledgement of a successful send
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator


class Channel(str, Enum):
    """Delivery media."""

    SMS = "sms"
    EMAIL = "email"
    IN_APP = "in_app"


class Cadence(str, Enum):
    """When a category is triggered."""

    REALTIME = "realtime"
    DAILY = "daily"
    WEEKLY = "weekly"


class DispatchMode(str, Enum):
    """Invocation mode, recorded for audit only."""

    REALTIME = "realtime"
    BATCH = "batch"


class EventOutcome(str, Enum):
    """Terminal states of one domain event within a run."""

    SKIPPED = "skipped"
    PARTIALLY_SENT = "partially_sent"
    SENT = "sent"
    FAILED = "failed"


class SkipReason(str, Enum):
    """Why an event, recipient, or channel was not sent. None of these are errors."""

    CATEGORY_DISABLED = "category_disabled"
    NO_RECIPIENTS = "no_recipients"
    ALREADY_NOTIFIED = "already_notified"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    OPTED_OUT = "opted_out"
    NO_ADDRESS = "no_address"
    CHANNEL_UNAVAILABLE = "channel_unavailable"
    DEMO_INSTITUTION = "demo_institution"


def _ensure_utc(v: Optional[datetime]) -> Optional[datetime]:
    if v is None:
        return None
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v.astimezone(timezone.utc)


class NotificationCategory(BaseModel):
    """Behavior record for one notification category.

    Categories are defined in code (see ``catalog``) and never mutated at
    runtime. The label is kept because it becomes the e-mail subject and the
    in-app title.
    """

    id: str = Field(..., min_length=1, description="Category identifier, e.g. attendance_absent")
    label: str = Field(..., description="Human label used in message titles")
    default_channels: Tuple[Channel, ...] = Field(..., description="Channels used when not overridden")
    cadence: Cadence = Field(..., description="Trigger cadence")
    default_template: str = Field(..., description="Template with {field_name} placeholders")

    model_config = {"frozen": True}


class Schedule(BaseModel):
    """Time-of-day and days-of-week for daily/weekly categories.

    Days follow ISO numbering (1 = Monday ... 7 = Sunday).
    """

    time_of_day: str = Field("09:00", pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    days_of_week: Tuple[int, ...] = Field((1, 2, 3, 4, 5))

    @field_validator("days_of_week")
    @classmethod
    def validate_days(cls, v: Tuple[int, ...]) -> Tuple[int, ...]:
        for day in v:
            if day < 1 or day > 7:
                raise ValueError(f"days_of_week entries must be between 1 and 7, got: {day}")
        return tuple(sorted(set(v)))

    model_config = {"frozen": True}


class InstitutionNotificationSetting(BaseModel):
    """An institution's saved configuration for one category.

    Every overridable field is optional: ``None`` means "use the category
    default". At most one row exists per (institution_id, category_id).
    """

    institution_id: str
    category_id: str
    is_enabled: Optional[bool] = None
    channels: Optional[List[Channel]] = None
    schedule_time: Optional[str] = None
    schedule_days: Optional[List[int]] = None
    custom_template: Optional[str] = None
    updated_at: Optional[datetime] = None

    @field_validator("custom_template")
    @classmethod
    def blank_template_is_absent(cls, v: Optional[str]) -> Optional[str]:
        """A blank custom template means no override."""
        if v is None or not v.strip():
            return None
        return v

    @field_validator("updated_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _ensure_utc(v)


class EffectiveSetting(BaseModel):
    """Fully resolved configuration for one institution and category."""

    institution_id: str
    category: NotificationCategory
    enabled: bool
    channels: Tuple[Channel, ...]
    schedule: Schedule
    template: str

    model_config = {"frozen": True}

    @property
    def category_id(self) -> str:
        return self.category.id

    def allows(self, channel: Channel) -> bool:
        return channel in self.channels


class DomainEvent(BaseModel):
    """A domain fact that may warrant notifying guardians.

    The event type maps 1:1 to a category id; the reference id is unique
    within the producing source.
    """

    event_type: str = Field(..., min_length=1)
    reference_id: str = Field(..., min_length=1)
    institution_id: str = Field(..., min_length=1)
    subject_id: str = Field(..., min_length=1, description="Usually a student id")
    payload: Dict[str, Any] = Field(default_factory=dict)
    event_date: Optional[date] = None

    model_config = {"frozen": True}


class Recipient(BaseModel):
    """A guardian entitled to notifications about a subject."""

    id: str
    display_name: str = ""
    phone: Optional[str] = None
    email: Optional[str] = None
    portal_user_id: Optional[str] = None
    relationship: Optional[str] = None
    is_primary: bool = False
    opted_out: FrozenSet[Channel] = Field(default_factory=frozenset)

    @field_validator("phone", "email", "portal_user_id")
    @classmethod
    def blank_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        stripped = v.strip()
        return stripped or None

    @property
    def has_portal_access(self) -> bool:
        return self.portal_user_id is not None

    @property
    def first_name(self) -> str:
        parts = self.display_name.split()
        return parts[0] if parts else ""

    def is_opted_in(self, channel: Channel) -> bool:
        """Opted in unless an explicit opt-out exists for the channel."""
        return channel not in self.opted_out

    def address_for(self, channel: Channel) -> Optional[str]:
        """Contact address for a channel.

        In-app messages land in the guardian's portal inbox, keyed by guardian
        id; guardians never invited to the portal have no in-app address.
        """
        if channel == Channel.SMS:
            return self.phone
        if channel == Channel.EMAIL:
            return self.email
        return self.id if self.has_portal_access else None


class DeliveryRecord(BaseModel):
    """One row per (event_type, reference_id, recipient_id) once any channel succeeds."""

    event_type: str
    reference_id: str
    recipient_id: str
    institution_id: str
    subject_id: Optional[str] = None
    channels_used: List[Channel] = Field(..., min_length=1)
    message: str
    trigger_source: DispatchMode = DispatchMode.BATCH
    status: str = "sent"
    processed_at: datetime

    @field_validator("processed_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return _ensure_utc(v)


class DeliveryReceipt(BaseModel):
    """Successful provider acknowledgement."""

    channel: Channel
    address: str
    provider_reference: Optional[str] = None
    sent_at: datetime

    @field_validator("sent_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return _ensure_utc(v)
