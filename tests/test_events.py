"""Tests for event sources."""

from datetime import date
from unittest.mock import MagicMock

import pytest

from notification_engine.domain.models import DomainEvent
from notification_engine.events import DatabaseEventSource, EventSourceError, StaticEventSource
from notification_engine.persistence import PersistenceError
from tests.helpers import seed_event

DAY = date(2024, 5, 1)


def event(reference_id, event_type="birthday", institution_id="I1", event_date=None):
    return DomainEvent(
        event_type=event_type,
        reference_id=reference_id,
        institution_id=institution_id,
        subject_id="S1",
        event_date=event_date,
    )


class TestStaticEventSource:
    def test_filters(self):
        source = StaticEventSource(
            [
                event("b1"),
                event("b2", institution_id="I2"),
                event("a1", event_type="attendance_absent"),
                event("b3", event_date=date(2024, 4, 30)),
            ]
        )
        source.add(event("b4", event_date=DAY))

        assert [e.reference_id for e in source.fetch_events(DAY, ["birthday"])] == ["b1", "b2", "b4"]
        assert [e.reference_id for e in source.fetch_events(DAY, ["birthday"], institution_id="I2")] == ["b2"]
        assert [e.reference_id for e in source.fetch_events(DAY, ["birthday"], reference_ids=["b4"])] == ["b4"]
        assert source.fetch_events(DAY, []) == []


class TestDatabaseEventSource:
    def test_reads_domain_events(self, db):
        seed_event("birthday", "b1", "S1", DAY, student_name="Amina")

        events = DatabaseEventSource().fetch_events(DAY, ["birthday"])

        assert len(events) == 1
        assert events[0].payload == {"student_name": "Amina"}

    def test_persistence_failure_becomes_event_source_error(self):
        session_factory = MagicMock(side_effect=PersistenceError("unreachable"))

        with pytest.raises(EventSourceError, match="unreachable"):
            DatabaseEventSource(session_factory=session_factory).fetch_events(DAY, ["birthday"])
