"""Domain models and the static category catalog."""

from .catalog import CATALOG, build_catalog, get_category
from .models import (
    Cadence,
    Channel,
    DeliveryReceipt,
    DeliveryRecord,
    DispatchMode,
    DomainEvent,
    EffectiveSetting,
    EventOutcome,
    InstitutionNotificationSetting,
    NotificationCategory,
    Recipient,
    Schedule,
    SkipReason,
)

__all__ = [
    "CATALOG",
    "build_catalog",
    "get_category",
    "Cadence",
    "Channel",
    "DeliveryReceipt",
    "DeliveryRecord",
    "DispatchMode",
    "DomainEvent",
    "EffectiveSetting",
    "EventOutcome",
    "InstitutionNotificationSetting",
    "NotificationCategory",
    "Recipient",
    "Schedule",
    "SkipReason",
]
