"""Tests for the channel dispatcher and the in-app sender."""

import pytest

from notification_engine.channels import (
    ChannelDispatcher,
    ConfigurationMissing,
    InAppSender,
    InvalidAddress,
    ProviderError,
    ProviderTimeout,
    RenderedMessage,
)
from notification_engine.config.environment import EnvironmentConfig
from notification_engine.config.models import AppConfig
from notification_engine.domain.models import Channel
from notification_engine.persistence import InAppNotificationRepository, PersistenceError, get_session
from tests.helpers import StubSender


@pytest.fixture
def message():
    return RenderedMessage(
        body="The school bus has departed.",
        title="Bus Departure",
        category_id="bus_departure",
        institution_id="I1",
        reference_id="trip-9",
        recipient_id="G1",
    )


class TestChannelDispatcher:
    """Every outcome comes back as a SendResult; nothing is raised."""

    def test_success(self, message):
        sms = StubSender(Channel.SMS)
        dispatcher = ChannelDispatcher([sms])

        result = dispatcher.send(Channel.SMS, "0700000001", message)

        assert result.ok
        assert result.error is None
        assert result.receipt.provider_reference == "sms-1"
        assert sms.addresses == ["0700000001"]
        dispatcher.close()

    def test_send_error_returned(self, message):
        dispatcher = ChannelDispatcher([StubSender(Channel.SMS, error=InvalidAddress("bad number"))])

        result = dispatcher.send(Channel.SMS, "x", message)

        assert not result.ok
        assert isinstance(result.error, InvalidAddress)
        assert result.error_message == "InvalidAddress: bad number"
        dispatcher.close()

    def test_unexpected_exception_wrapped(self, message):
        dispatcher = ChannelDispatcher([StubSender(Channel.SMS, error=KeyError("boom"))])

        result = dispatcher.send(Channel.SMS, "x", message)

        assert isinstance(result.error, ProviderError)
        assert "boom" in str(result.error)
        dispatcher.close()

    def test_timeout(self, message):
        dispatcher = ChannelDispatcher([StubSender(Channel.EMAIL, delay=1.0)], timeout_seconds=0.05)

        result = dispatcher.send(Channel.EMAIL, "jane@example.com", message)

        assert isinstance(result.error, ProviderTimeout)
        assert result.error.timeout == 0.05
        dispatcher.close()

    def test_unconfigured_sender_disabled_once(self, message, caplog):
        sms = StubSender(Channel.SMS, missing=["SMS_GATEWAY_TOKEN"])
        in_app = StubSender(Channel.IN_APP)

        with caplog.at_level("WARNING"):
            dispatcher = ChannelDispatcher([sms, in_app])

        assert not dispatcher.is_available(Channel.SMS)
        assert not dispatcher.is_available(Channel.EMAIL)
        assert dispatcher.is_available(Channel.IN_APP)
        assert dispatcher.unavailable[Channel.SMS].missing == ["SMS_GATEWAY_TOKEN"]
        assert [r.event for r in caplog.records if getattr(r, "event", None) == "channel.disabled"] == [
            "channel.disabled"
        ]

        result = dispatcher.send(Channel.SMS, "0700000001", message)
        assert isinstance(result.error, ConfigurationMissing)
        assert sms.calls == []
        dispatcher.close()

    def test_close_closes_senders(self):
        sms = StubSender(Channel.SMS)
        ChannelDispatcher([sms]).close()
        assert sms.closed

    def test_from_config_without_credentials(self, db):
        dispatcher = ChannelDispatcher.from_config(AppConfig(), EnvironmentConfig())

        assert dispatcher.is_available(Channel.IN_APP)
        assert not dispatcher.is_available(Channel.SMS)
        assert not dispatcher.is_available(Channel.EMAIL)
        assert dispatcher.timeout_seconds == 15
        dispatcher.close()

    def test_from_config_with_credentials(self, db):
        env = EnvironmentConfig(
            sms_gateway_token="tok", smtp_host="smtp.example.com", email_from_address="s@example.com"
        )
        dispatcher = ChannelDispatcher.from_config(AppConfig(), env)

        assert all(dispatcher.is_available(channel) for channel in Channel)
        dispatcher.close()


class TestInAppSender:
    def test_writes_inbox_row(self, db, message):
        receipt = InAppSender().send("G1", message)

        with get_session() as session:
            rows = InAppNotificationRepository(session).list_for_recipient("G1")

        assert len(rows) == 1
        row = rows[0]
        assert row.title == "Bus Departure"
        assert row.message == "The school bus has departed."
        assert row.notification_type == "bus_departure"
        assert row.reference_type == "domain_event"
        assert row.reference_id == "trip-9"
        assert row.institution_id == "I1"
        assert receipt.channel == Channel.IN_APP
        assert receipt.provider_reference == str(row.id)

    def test_database_failure_is_provider_error(self, message):
        def broken_session():
            raise PersistenceError("disk full")

        with pytest.raises(ProviderError, match="disk full"):
            InAppSender(session_factory=broken_session).send("G1", message)
