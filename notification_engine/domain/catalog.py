"""Static catalog of notification categories.

Behavior only: default channels, cadence, and default template per category.
Loaded once at import and treated as immutable.
"""

from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional

from .models import Cadence, Channel, NotificationCategory

SMS = Channel.SMS
EMAIL = Channel.EMAIL
IN_APP = Channel.IN_APP


def _category(id, label, channels, cadence, template) -> NotificationCategory:
    return NotificationCategory(
        id=id,
        label=label,
        default_channels=tuple(channels),
        cadence=cadence,
        default_template=template,
    )


_CATEGORIES = [
    # Student life
    _category(
        "birthday", "Birthday Wishes", (SMS, IN_APP), Cadence.DAILY,
        "🎂 Happy Birthday {student_name}! {school_name} wishes you a wonderful day "
        "filled with joy. May this year bring you great success!",
    ),
    # Attendance
    _category(
        "attendance_absent", "Absence Alert", (SMS, IN_APP), Cadence.REALTIME,
        "⚠️ {school_name}: {student_name} was marked absent on {attendance_date}. "
        "Please contact the school if this is unexpected.",
    ),
    _category(
        "attendance_late", "Late Arrival", (SMS,), Cadence.REALTIME,
        "⏰ {school_name}: {student_name} arrived late today ({attendance_date}). "
        "Status: {attendance_status}.",
    ),
    _category(
        "attendance_summary", "Weekly Attendance Summary", (IN_APP,), Cadence.WEEKLY,
        "📋 Weekly attendance summary for {student_name}: Present {present_days} days, "
        "Absent {absent_days} days, Late {late_days} days.",
    ),
    # Finance
    _category(
        "payment_confirmation", "Payment Confirmation", (SMS, IN_APP), Cadence.REALTIME,
        "✅ {school_name}: Payment of {amount} received for {student_name}. "
        "Receipt: {receipt_number}. Balance: {balance}.",
    ),
    _category(
        "fee_reminder", "Fee Reminder", (SMS,), Cadence.DAILY,
        "📢 {school_name}: Reminder - Fee balance of {balance} for {student_name} is due "
        "on {due_date}. Please make payment to avoid penalties.",
    ),
    _category(
        "commitment_reminder", "Payment Commitment Reminder", (SMS, IN_APP), Cadence.DAILY,
        "📅 {school_name}: Reminder - Your payment commitment of {amount} for "
        "{student_name} is due on {due_date}.",
    ),
    # Academics
    _category(
        "assignment_due", "Assignment Due", (SMS, IN_APP), Cadence.DAILY,
        "📝 {school_name}: Assignment \"{assignment_title}\" for {student_name} is due "
        "tomorrow. Please ensure it is submitted on time.",
    ),
    _category(
        "grade_published", "Grades Published", (SMS, EMAIL), Cadence.REALTIME,
        "📊 {school_name}: Exam results for {student_name} have been published. "
        "Log in to the parent portal to view grades.",
    ),
    _category(
        "report_ready", "Report Card Ready", (SMS, EMAIL), Cadence.REALTIME,
        "📄 {school_name}: The report card for {student_name} is now ready. "
        "Please log in to the parent portal to download.",
    ),
    # Activities
    _category(
        "activity_reminder", "Activity Reminder", (SMS, IN_APP), Cadence.DAILY,
        "📅 {school_name}: Reminder - {event_name} is scheduled for {event_date}. "
        "Please ensure {student_name} is prepared.",
    ),
    # Library
    _category(
        "library_due", "Library Book Due", (SMS,), Cadence.DAILY,
        "📖 {school_name}: Reminder - \"{book_title}\" borrowed by {student_name} is due "
        "tomorrow ({return_date}). Please return to avoid fines.",
    ),
    _category(
        "library_overdue", "Library Book Overdue", (SMS, IN_APP), Cadence.DAILY,
        "📕 {school_name}: \"{book_title}\" borrowed by {student_name} is OVERDUE. "
        "Please return immediately to avoid additional fines.",
    ),
    # Transport
    _category(
        "bus_departure", "Bus Departure", (SMS,), Cadence.REALTIME,
        "🚌 {school_name}: The school bus on route {route_name} has departed. Expected "
        "arrival at {student_name}'s stop in approximately {eta} minutes.",
    ),
    _category(
        "pickup_dropoff", "Pickup / Drop-off Confirmation", (SMS,), Cadence.REALTIME,
        "✅ {school_name}: {student_name} has been safely {action} at {location} on {date}.",
    ),
    _category(
        "route_change", "Route Change", (SMS, IN_APP), Cadence.REALTIME,
        "🚌 {school_name}: Important - There has been a change to the transport route "
        "for {student_name}. {change_details}",
    ),
]

CATALOG: Mapping[str, NotificationCategory] = MappingProxyType(
    {category.id: category for category in _CATEGORIES}
)


def get_category(category_id: str) -> Optional[NotificationCategory]:
    """Look up a category by id, returning None when it is not defined."""
    return CATALOG.get(category_id)


def build_catalog(categories: Iterable[NotificationCategory]) -> Mapping[str, NotificationCategory]:
    """Build an immutable catalog from custom categories (used by tests and embedders)."""
    mapping: Dict[str, NotificationCategory] = {}
    for category in categories:
        if category.id in mapping:
            raise ValueError(f"Duplicate category id: {category.id}")
        mapping[category.id] = category
    return MappingProxyType(mapping)
