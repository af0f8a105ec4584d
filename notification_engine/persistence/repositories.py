"""Data access layer (repositories) for persistence operations.

Repositories encapsulate database operations and return domain models rather
than ORM models. The two write paths that must be safe under concurrent
invocations (delivery ledger insert and rate-limit increment) are single
conflict-aware statements, never read-then-write sequences.
"""

import logging
from datetime import date, datetime, timezone
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import func, insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..domain.models import (
    Channel,
    DeliveryRecord,
    DomainEvent,
    InstitutionNotificationSetting,
)
from .exceptions import DataIntegrityError, PersistenceError, RecordNotFoundError
from .schema import (
    DELIVERY_KEY,
    RATE_LIMIT_KEY,
    CommunicationEventModel,
    DomainEventModel,
    GuardianModel,
    InAppNotificationModel,
    InstitutionNotificationSettingModel,
    NotificationPreferenceModel,
    RateLimitModel,
    StudentGuardianModel,
    _format_date,
    _format_datetime,
)

logger = logging.getLogger(__name__)


def _dialect_insert(session: Session, model):
    """Return an INSERT construct that supports ON CONFLICT, or None for other dialects."""
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        return sqlite.insert(model)
    if dialect == "postgresql":
        return postgresql.insert(model)
    return None


class SettingsRepository:
    """Repository for institution notification settings."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, institution_id: str, category_id: str) -> Optional[InstitutionNotificationSetting]:
        """Retrieve the saved override for one institution and category.

        Returns:
            The setting if a row exists, None otherwise

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            stmt = select(InstitutionNotificationSettingModel).where(
                InstitutionNotificationSettingModel.institution_id == institution_id,
                InstitutionNotificationSettingModel.category_id == category_id,
            )
            model = self.session.execute(stmt).scalar_one_or_none()
            return model.to_domain() if model is not None else None

        except SQLAlchemyError as e:
            logger.error(
                f"Error retrieving setting {institution_id}/{category_id}: {e}", exc_info=True
            )
            raise PersistenceError(f"Failed to retrieve notification setting: {e}") from e

    def list_for_institution(self, institution_id: str) -> List[InstitutionNotificationSetting]:
        """All saved overrides for an institution."""
        try:
            stmt = (
                select(InstitutionNotificationSettingModel)
                .where(InstitutionNotificationSettingModel.institution_id == institution_id)
                .order_by(InstitutionNotificationSettingModel.category_id)
            )
            return [model.to_domain() for model in self.session.execute(stmt).scalars()]

        except SQLAlchemyError as e:
            logger.error(f"Error listing settings for {institution_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to list notification settings: {e}") from e

    def upsert(self, setting: InstitutionNotificationSetting) -> InstitutionNotificationSetting:
        """Insert or replace the override row for (institution, category).

        The engine itself never writes settings; this is for the settings
        screens and for seeding.
        """
        try:
            stmt = select(InstitutionNotificationSettingModel).where(
                InstitutionNotificationSettingModel.institution_id == setting.institution_id,
                InstitutionNotificationSettingModel.category_id == setting.category_id,
            )
            model = self.session.execute(stmt).scalar_one_or_none()
            if model is None:
                model = InstitutionNotificationSettingModel(
                    institution_id=setting.institution_id,
                    category_id=setting.category_id,
                )
                self.session.add(model)
            model.apply(setting)
            self.session.flush()
            return model.to_domain()

        except IntegrityError as e:
            raise DataIntegrityError(f"Failed to save notification setting: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error saving setting: {e}", exc_info=True)
            raise PersistenceError(f"Failed to save notification setting: {e}") from e


class GuardianRepository:
    """Read access to guardians and their links to students."""

    def __init__(self, session: Session):
        self.session = session

    def list_for_student(
        self, student_id: str, institution_id: Optional[str] = None
    ) -> List[Tuple[GuardianModel, StudentGuardianModel]]:
        """Guardians linked to a student, primary guardian first.

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            stmt = (
                select(GuardianModel, StudentGuardianModel)
                .join(StudentGuardianModel, StudentGuardianModel.guardian_id == GuardianModel.id)
                .where(StudentGuardianModel.student_id == student_id)
                .order_by(StudentGuardianModel.is_primary.desc(), GuardianModel.id)
            )
            if institution_id is not None:
                stmt = stmt.where(GuardianModel.institution_id == institution_id)
            return [(guardian, link) for guardian, link in self.session.execute(stmt).all()]

        except SQLAlchemyError as e:
            logger.error(f"Error retrieving guardians for student {student_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve guardians: {e}") from e

    def add(
        self,
        guardian_id: str,
        institution_id: str,
        full_name: str,
        phone: Optional[str] = None,
        email: Optional[str] = None,
        portal_user_id: Optional[str] = None,
    ) -> None:
        try:
            self.session.add(
                GuardianModel(
                    id=guardian_id,
                    institution_id=institution_id,
                    full_name=full_name,
                    phone=phone,
                    email=email,
                    portal_user_id=portal_user_id,
                )
            )
            self.session.flush()
        except IntegrityError as e:
            raise DataIntegrityError(f"Guardian {guardian_id} already exists") from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to add guardian: {e}") from e

    def link(
        self,
        student_id: str,
        guardian_id: str,
        relationship: Optional[str] = None,
        is_primary: bool = False,
    ) -> None:
        try:
            self.session.add(
                StudentGuardianModel(
                    student_id=student_id,
                    guardian_id=guardian_id,
                    relationship=relationship,
                    is_primary=is_primary,
                )
            )
            self.session.flush()
        except IntegrityError as e:
            raise DataIntegrityError(
                f"Failed to link guardian {guardian_id} to student {student_id}: {e}"
            ) from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to link guardian: {e}") from e


class PreferenceRepository:
    """Per-channel opt-in state for guardians."""

    def __init__(self, session: Session):
        self.session = session

    def opted_out_channels(
        self, recipient_ids: Iterable[str], institution_id: str
    ) -> Dict[str, FrozenSet[Channel]]:
        """Map each recipient id to the channels it explicitly opted out of.

        Recipients without opt-out rows are absent from the result.
        """
        ids = list(recipient_ids)
        if not ids:
            return {}

        try:
            stmt = select(
                NotificationPreferenceModel.recipient_id, NotificationPreferenceModel.channel
            ).where(
                NotificationPreferenceModel.recipient_id.in_(ids),
                NotificationPreferenceModel.institution_id == institution_id,
                NotificationPreferenceModel.is_opted_in.is_(False),
            )
            opted_out: Dict[str, set] = {}
            for recipient_id, channel in self.session.execute(stmt).all():
                try:
                    opted_out.setdefault(recipient_id, set()).add(Channel(channel))
                except ValueError:
                    logger.warning(
                        f"Ignoring preference for unknown channel '{channel}'",
                        extra={"event": "preferences.unknown_channel", "channel": channel},
                    )
            return {key: frozenset(value) for key, value in opted_out.items()}

        except SQLAlchemyError as e:
            logger.error(f"Error retrieving preferences: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve notification preferences: {e}") from e

    def set_opt_in(
        self, recipient_id: str, institution_id: str, channel: Channel, opted_in: bool
    ) -> None:
        try:
            stmt = select(NotificationPreferenceModel).where(
                NotificationPreferenceModel.recipient_id == recipient_id,
                NotificationPreferenceModel.institution_id == institution_id,
                NotificationPreferenceModel.channel == channel.value,
            )
            model = self.session.execute(stmt).scalar_one_or_none()
            if model is None:
                model = NotificationPreferenceModel(
                    recipient_id=recipient_id,
                    institution_id=institution_id,
                    channel=channel.value,
                )
                self.session.add(model)
            model.is_opted_in = opted_in
            model.updated_at = _format_datetime(datetime.now(timezone.utc))
            self.session.flush()

        except SQLAlchemyError as e:
            logger.error(f"Error saving preference: {e}", exc_info=True)
            raise PersistenceError(f"Failed to save notification preference: {e}") from e


class DeliveryRecordRepository:
    """The delivery ledger (communication_events)."""

    def __init__(self, session: Session):
        self.session = session

    def exists(self, event_type: str, reference_id: str, recipient_id: str) -> bool:
        try:
            stmt = select(CommunicationEventModel.id).where(
                CommunicationEventModel.event_type == event_type,
                CommunicationEventModel.reference_id == reference_id,
                CommunicationEventModel.recipient_id == recipient_id,
            )
            return self.session.execute(stmt.limit(1)).first() is not None

        except SQLAlchemyError as e:
            logger.error(
                f"Error checking ledger for {event_type}/{reference_id}/{recipient_id}: {e}",
                exc_info=True,
            )
            raise PersistenceError(f"Failed to check delivery ledger: {e}") from e

    def insert_if_absent(self, record: DeliveryRecord) -> bool:
        """Insert a record unless its natural key already exists.

        Returns:
            True if this call wrote the row, False if it was already recorded
        """
        values = CommunicationEventModel.values_from_domain(record)
        try:
            stmt = _dialect_insert(self.session, CommunicationEventModel)
            if stmt is not None:
                stmt = stmt.values(**values).on_conflict_do_nothing(index_elements=list(DELIVERY_KEY))
                result = self.session.execute(stmt)
                return result.rowcount == 1

            # Other dialects: rely on the unique constraint inside a savepoint
            try:
                with self.session.begin_nested():
                    self.session.execute(insert(CommunicationEventModel).values(**values))
                return True
            except IntegrityError:
                return False

        except SQLAlchemyError as e:
            logger.error(f"Error writing delivery record: {e}", exc_info=True)
            raise PersistenceError(f"Failed to write delivery record: {e}") from e

    def get(self, event_type: str, reference_id: str, recipient_id: str) -> Optional[DeliveryRecord]:
        try:
            stmt = select(CommunicationEventModel).where(
                CommunicationEventModel.event_type == event_type,
                CommunicationEventModel.reference_id == reference_id,
                CommunicationEventModel.recipient_id == recipient_id,
            )
            model = self.session.execute(stmt).scalar_one_or_none()
            return model.to_domain() if model is not None else None

        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read delivery record: {e}") from e

    def count(self, event_type: Optional[str] = None, reference_id: Optional[str] = None) -> int:
        try:
            stmt = select(func.count()).select_from(CommunicationEventModel)
            if event_type is not None:
                stmt = stmt.where(CommunicationEventModel.event_type == event_type)
            if reference_id is not None:
                stmt = stmt.where(CommunicationEventModel.reference_id == reference_id)
            return self.session.execute(stmt).scalar_one()

        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to count delivery records: {e}") from e


class RateLimitRepository:
    """Per-day send counters (notification_rate_limits)."""

    def __init__(self, session: Session):
        self.session = session

    def get_count(
        self,
        institution_id: str,
        recipient_type: str,
        recipient_id: str,
        channel: Channel,
        day: date,
    ) -> int:
        """Current count for the key, 0 when no row exists yet."""
        try:
            stmt = select(RateLimitModel.count).where(
                RateLimitModel.institution_id == institution_id,
                RateLimitModel.recipient_type == recipient_type,
                RateLimitModel.recipient_id == recipient_id,
                RateLimitModel.channel == channel.value,
                RateLimitModel.notification_date == _format_date(day),
            )
            count = self.session.execute(stmt).scalar_one_or_none()
            return count or 0

        except SQLAlchemyError as e:
            logger.error(f"Error reading rate limit for {recipient_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to read rate limit: {e}") from e

    def increment(
        self,
        institution_id: str,
        recipient_type: str,
        recipient_id: str,
        channel: Channel,
        day: date,
        ceiling: Optional[int] = None,
    ) -> bool:
        """Atomically add one to the counter, inserting it at 1 if absent.

        When ``ceiling`` is given the update only applies while the stored count
        is below it, so concurrent callers can never push the count past the
        ceiling.

        Returns:
            True if the counter was incremented, False if the ceiling was reached
        """
        if ceiling is not None and ceiling <= 0:
            return False

        values = {
            "institution_id": institution_id,
            "recipient_type": recipient_type,
            "recipient_id": recipient_id,
            "channel": channel.value,
            "notification_date": _format_date(day),
            "count": 1,
            "last_sent_at": _format_datetime(datetime.now(timezone.utc)),
        }

        try:
            stmt = _dialect_insert(self.session, RateLimitModel)
            if stmt is None:
                raise PersistenceError(
                    f"Atomic rate-limit upsert is not supported on dialect "
                    f"'{self.session.get_bind().dialect.name}'"
                )

            stmt = stmt.values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=list(RATE_LIMIT_KEY),
                set_={
                    "count": RateLimitModel.count + 1,
                    "last_sent_at": stmt.excluded.last_sent_at,
                },
                where=(RateLimitModel.count < ceiling) if ceiling is not None else None,
            )
            result = self.session.execute(stmt)
            return result.rowcount == 1

        except PersistenceError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error incrementing rate limit for {recipient_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to increment rate limit: {e}") from e


class DomainEventRepository:
    """Read access to the domain_events collaborator table."""

    def __init__(self, session: Session):
        self.session = session

    def fetch(
        self,
        day: date,
        event_types: Sequence[str],
        institution_id: Optional[str] = None,
        reference_ids: Optional[Sequence[str]] = None,
    ) -> List[DomainEvent]:
        """Events of the given types on ``day``, oldest first.

        Raises:
            PersistenceError: If database error occurs
        """
        if not event_types:
            return []

        try:
            stmt = (
                select(DomainEventModel)
                .where(
                    DomainEventModel.event_date == _format_date(day),
                    DomainEventModel.event_type.in_(list(event_types)),
                )
                .order_by(DomainEventModel.id)
            )
            if institution_id is not None:
                stmt = stmt.where(DomainEventModel.institution_id == institution_id)
            if reference_ids:
                stmt = stmt.where(DomainEventModel.reference_id.in_(list(reference_ids)))

            return [model.to_domain() for model in self.session.execute(stmt).scalars()]

        except SQLAlchemyError as e:
            logger.error(f"Error fetching domain events for {day}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to fetch domain events: {e}") from e

    def add(self, event: DomainEvent, event_date: date) -> None:
        try:
            self.session.add(DomainEventModel.from_domain(event, event_date))
            self.session.flush()
        except IntegrityError as e:
            raise DataIntegrityError(
                f"Domain event {event.event_type}/{event.reference_id} already exists"
            ) from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to add domain event: {e}") from e


class InAppNotificationRepository:
    """Writes to the guardian portal inbox."""

    def __init__(self, session: Session):
        self.session = session

    def add(
        self,
        institution_id: str,
        recipient_id: str,
        title: str,
        message: str,
        notification_type: str,
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
    ) -> int:
        """Insert an inbox row and return its id."""
        try:
            model = InAppNotificationModel(
                institution_id=institution_id,
                recipient_id=recipient_id,
                user_type="parent",
                title=title,
                message=message,
                notification_type=notification_type,
                reference_type=reference_type,
                reference_id=reference_id,
                is_read=False,
                created_at=_format_datetime(datetime.now(timezone.utc)),
            )
            self.session.add(model)
            self.session.flush()
            return model.id

        except SQLAlchemyError as e:
            logger.error(f"Error writing in-app notification for {recipient_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to write in-app notification: {e}") from e

    def list_for_recipient(self, recipient_id: str) -> List[InAppNotificationModel]:
        try:
            stmt = (
                select(InAppNotificationModel)
                .where(InAppNotificationModel.recipient_id == recipient_id)
                .order_by(InAppNotificationModel.id)
            )
            return list(self.session.execute(stmt).scalars())
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list in-app notifications: {e}") from e

    def mark_read(self, notification_id: int) -> None:
        """Flag an inbox row as read.

        Raises:
            RecordNotFoundError: If no row has that id
        """
        try:
            model = self.session.get(InAppNotificationModel, notification_id)
            if model is None:
                raise RecordNotFoundError(f"In-app notification {notification_id} not found")
            model.is_read = True
            self.session.flush()

        except RecordNotFoundError:
            raise
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to update in-app notification: {e}") from e
