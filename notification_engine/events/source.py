"""Event sources.

The evaluator only depends on ``EventSource.fetch_events``. A fetch failure is
the one error that aborts a run, so every implementation reports it as
``EventSourceError``.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Iterable, List, Optional, Sequence

from ..domain.models import DomainEvent
from ..logging import get_logger
from ..persistence.database import get_session
from ..persistence.exceptions import PersistenceError
from ..persistence.repositories import DomainEventRepository

logger = get_logger(__name__, component="events")


class EventSourceError(Exception):
    """The candidate event list could not be fetched."""

    pass


class EventSource(ABC):
    """Supplier of candidate domain events for a run."""

    @abstractmethod
    def fetch_events(
        self,
        day: date,
        event_types: Sequence[str],
        institution_id: Optional[str] = None,
        reference_ids: Optional[Sequence[str]] = None,
    ) -> List[DomainEvent]:
        """Return the events of ``event_types`` dated ``day``.

        Args:
            day: Calendar day of the run window
            event_types: Category ids to include
            institution_id: Restrict to one institution
            reference_ids: Restrict to an explicit id list (targeted re-run)

        Raises:
            EventSourceError: If the collaborator store cannot be read
        """


class DatabaseEventSource(EventSource):
    """Reads the ``domain_events`` table."""

    def __init__(self, session_factory=get_session):
        self._session_factory = session_factory

    def fetch_events(self, day, event_types, institution_id=None, reference_ids=None):
        try:
            with self._session_factory() as session:
                events = DomainEventRepository(session).fetch(
                    day, event_types, institution_id=institution_id, reference_ids=reference_ids
                )
        except PersistenceError as e:
            raise EventSourceError(f"Failed to fetch domain events: {e}") from e

        logger.info(
            f"Fetched {len(events)} candidate events",
            extra={
                "event": "events.fetched",
                "day": day.isoformat(),
                "event_type_count": len(event_types),
                "candidate_count": len(events),
            },
        )
        return events


class StaticEventSource(EventSource):
    """In-memory source for producers that push events directly.

    Applies the same filters as the database source.
    """

    def __init__(self, events: Iterable[DomainEvent] = ()):
        self._events = list(events)

    def add(self, event: DomainEvent) -> None:
        self._events.append(event)

    def fetch_events(self, day, event_types, institution_id=None, reference_ids=None):
        wanted_types = set(event_types)
        wanted_refs = set(reference_ids) if reference_ids else None
        return [
            event
            for event in self._events
            if event.event_type in wanted_types
            and (event.event_date is None or event.event_date == day)
            and (institution_id is None or event.institution_id == institution_id)
            and (wanted_refs is None or event.reference_id in wanted_refs)
        ]
