"""Recipient Resolver.

Given a subject (student), returns the guardians entitled to notification with
their contact addresses and per-channel opt-outs. Channels default to opted
in; an explicit opt-out suppresses only that channel.
"""

from typing import List, Optional

from ..domain.models import Recipient
from ..logging import get_logger
from ..persistence.database import get_session
from ..persistence.repositories import GuardianRepository, PreferenceRepository

logger = get_logger(__name__, component="recipients")


class RecipientResolver:
    """Resolve guardians from the guardian tables and the preferences table."""

    def __init__(self, session_factory=get_session):
        self._session_factory = session_factory

    def resolve_guardians(self, subject_id: str, institution_id: Optional[str] = None) -> List[Recipient]:
        """Return zero or more recipients for a subject, primary guardian first.

        Args:
            subject_id: The student the event is about
            institution_id: Restricts guardians and preferences to one tenant

        Raises:
            PersistenceError: If the guardian or preference lookup fails
        """
        with self._session_factory() as session:
            rows = GuardianRepository(session).list_for_student(subject_id, institution_id)
            if not rows:
                logger.info(
                    "No guardians on file",
                    extra={"event": "recipients.none", "subject_id": subject_id},
                )
                return []

            opted_out = {}
            if institution_id is not None:
                opted_out = PreferenceRepository(session).opted_out_channels(
                    (guardian.id for guardian, _ in rows), institution_id
                )

        recipients = []
        seen = set()
        for guardian, link in rows:
            if guardian.id in seen:
                continue
            seen.add(guardian.id)
            recipients.append(
                Recipient(
                    id=guardian.id,
                    display_name=guardian.full_name or "",
                    phone=guardian.phone,
                    email=guardian.email,
                    portal_user_id=guardian.portal_user_id,
                    relationship=link.relationship,
                    is_primary=bool(link.is_primary),
                    opted_out=opted_out.get(guardian.id, frozenset()),
                )
            )

        logger.debug(
            f"Resolved {len(recipients)} guardian(s)",
            extra={
                "event": "recipients.resolved",
                "subject_id": subject_id,
                "recipient_count": len(recipients),
            },
        )
        return recipients
