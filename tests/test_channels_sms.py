"""Tests for the bulk SMS gateway sender."""

from unittest.mock import MagicMock, Mock

import pytest
import requests

from notification_engine.channels import (
    InvalidAddress,
    ProviderError,
    ProviderTimeout,
    RenderedMessage,
    SmsGatewaySender,
)
from notification_engine.config.models import SmsGatewayConfig
from notification_engine.domain.models import Channel


@pytest.fixture
def message():
    return RenderedMessage(
        body="Amani was marked absent on 2024-05-06.",
        title="Absence Alert",
        category_id="attendance_absent",
        institution_id="I1",
        reference_id="att-001",
        recipient_id="G1",
    )


@pytest.fixture
def session():
    http = MagicMock(spec=requests.Session)
    http.headers = {}
    http.post.return_value = Mock(status_code=200, text='{"status": "ok"}')
    return http


@pytest.fixture
def sender(session):
    return SmsGatewaySender(SmsGatewayConfig(), token="secret-token", timeout=5, session=session)


class TestSmsGatewaySender:
    def test_missing_token(self, session):
        sender = SmsGatewaySender(SmsGatewayConfig(), token=None, session=session)
        assert sender.missing_configuration() == ["SMS_GATEWAY_TOKEN"]
        assert not sender.is_configured()

    def test_payload_shape(self, sender):
        payload = sender.build_payload("254700000001", "Hello")

        entry = payload["dataSet"][0]
        assert entry["username"] == "ZIRA TECH"
        assert entry["sender_name"] == "ZIRA TECH"
        assert entry["phone_number"] == "254700000001"
        assert entry["message"] == "Hello"
        assert entry["sender_type"] == 0
        assert 10000 <= int(entry["unique_identifier"]) <= 99999
        assert isinstance(payload["timeStamp"], int)

    def test_send_posts_normalized_number(self, sender, session, message):
        receipt = sender.send("0700 000 001", message)

        args, kwargs = session.post.call_args
        assert args[0] == SmsGatewayConfig().api_url
        assert kwargs["headers"] == {"Authorization": "Token secret-token"}
        assert kwargs["timeout"] == 5
        assert kwargs["json"]["dataSet"][0]["phone_number"] == "254700000001"
        assert kwargs["json"]["dataSet"][0]["message"] == message.body

        assert receipt.channel == Channel.SMS
        assert receipt.address == "254700000001"
        assert receipt.provider_reference == kwargs["json"]["dataSet"][0]["unique_identifier"]

    def test_any_2xx_is_accepted(self, sender, session, message):
        session.post.return_value = Mock(status_code=202, text="")
        assert sender.send("0700000001", message).channel == Channel.SMS

    def test_non_2xx_is_provider_error(self, sender, session, message):
        session.post.return_value = Mock(status_code=401, text="Invalid token")

        with pytest.raises(ProviderError) as exc_info:
            sender.send("0700000001", message)

        assert exc_info.value.status_code == 401
        assert "Invalid token" in str(exc_info.value)

    def test_timeout(self, sender, session, message):
        session.post.side_effect = requests.exceptions.Timeout("read timed out")
        with pytest.raises(ProviderTimeout):
            sender.send("0700000001", message)

    def test_connection_error(self, sender, session, message):
        session.post.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(ProviderError, match="refused"):
            sender.send("0700000001", message)

    def test_unusable_number(self, sender, session, message):
        with pytest.raises(InvalidAddress):
            sender.send("n/a", message)
        session.post.assert_not_called()

    def test_close_closes_session(self, sender, session):
        sender.close()
        session.close.assert_called_once()
