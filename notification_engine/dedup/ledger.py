"""Dedup Ledger.

``has_been_sent`` and ``record`` are separate calls and the pair is not atomic.
The unique key on (event_type, reference_id, recipient_id) is what keeps a
concurrent duplicate from being recorded twice; ``record`` reports that case
as ``False`` instead of raising.
"""

from typing import Iterable, Optional

from ..domain.models import Channel, DeliveryRecord, DispatchMode
from ..logging import get_logger
from ..persistence.database import get_session
from ..persistence.repositories import DeliveryRecordRepository
from ..utils.timestamps import utc_now

logger = get_logger(__name__, component="dedup")


class DedupLedger:
    def __init__(self, session_factory=get_session):
        self._session_factory = session_factory

    def has_been_sent(self, event_type: str, reference_id: str, recipient_id: str) -> bool:
        with self._session_factory() as session:
            return DeliveryRecordRepository(session).exists(event_type, reference_id, recipient_id)

    def record(
        self,
        event_type: str,
        reference_id: str,
        recipient_id: str,
        channels_used: Iterable[Channel],
        message: str,
        institution_id: str,
        subject_id: Optional[str] = None,
        trigger_source: DispatchMode = DispatchMode.BATCH,
    ) -> bool:
        """Write the delivery record for one recipient.

        Returns:
            True if written, False if the key was already recorded
        """
        record = DeliveryRecord(
            event_type=event_type,
            reference_id=reference_id,
            recipient_id=recipient_id,
            institution_id=institution_id,
            subject_id=subject_id,
            channels_used=list(channels_used),
            message=message,
            trigger_source=trigger_source,
            status="sent",
            processed_at=utc_now(),
        )

        with self._session_factory() as session:
            written = DeliveryRecordRepository(session).insert_if_absent(record)

        if written:
            logger.info(
                "Delivery recorded",
                extra={
                    "event": "dedup.recorded",
                    "channels_used": [c.value for c in record.channels_used],
                },
            )
        else:
            logger.debug("Delivery already recorded", extra={"event": "dedup.duplicate"})
        return written
