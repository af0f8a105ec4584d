"""Rate Limiter.

Counts sends per (institution, recipient, channel, calendar day). ``admit`` is
a cheap pre-check; ``increment`` is the authoritative atomic upsert, called
only after a successful send. A channel without a ceiling is unconstrained.
"""

from datetime import date
from typing import Mapping, Optional

from ..domain.models import Channel
from ..logging import get_logger
from ..persistence.database import get_session
from ..persistence.repositories import RateLimitRepository

logger = get_logger(__name__, component="ratelimit")

RECIPIENT_TYPE = "parent"


class RateLimiter:
    """Admit/deny sends against per-channel daily ceilings.

    Args:
        ceilings: Channel to daily ceiling; None or a missing channel means unlimited
        session_factory: Context manager yielding a session
    """

    def __init__(self, ceilings: Mapping[Channel, Optional[int]], session_factory=get_session):
        self.ceilings = dict(ceilings)
        self._session_factory = session_factory

    def ceiling_for(self, channel: Channel) -> Optional[int]:
        return self.ceilings.get(channel)

    def admit(self, institution_id: str, recipient_id: str, channel: Channel, day: date) -> bool:
        """True while today's count is strictly below the channel's ceiling."""
        ceiling = self.ceiling_for(channel)
        if ceiling is None:
            return True

        with self._session_factory() as session:
            count = RateLimitRepository(session).get_count(
                institution_id, RECIPIENT_TYPE, recipient_id, channel, day
            )

        admitted = count < ceiling
        if not admitted:
            logger.info(
                "Rate limit reached",
                extra={
                    "event": "ratelimit.denied",
                    "channel": channel.value,
                    "count": count,
                    "ceiling": ceiling,
                },
            )
        return admitted

    def increment(self, institution_id: str, recipient_id: str, channel: Channel, day: date) -> bool:
        """Record one successful send.

        Returns:
            False when a concurrent invocation already consumed the last slot;
            the stored count never exceeds the ceiling
        """
        ceiling = self.ceiling_for(channel)
        with self._session_factory() as session:
            incremented = RateLimitRepository(session).increment(
                institution_id, RECIPIENT_TYPE, recipient_id, channel, day, ceiling=ceiling
            )

        if not incremented:
            logger.warning(
                "Rate limit reached after send; counter left at ceiling",
                extra={
                    "event": "ratelimit.overrun",
                    "channel": channel.value,
                    "ceiling": ceiling,
                },
            )
        return incremented

    def count(self, institution_id: str, recipient_id: str, channel: Channel, day: date) -> int:
        with self._session_factory() as session:
            return RateLimitRepository(session).get_count(
                institution_id, RECIPIENT_TYPE, recipient_id, channel, day
            )
