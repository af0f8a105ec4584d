"""SMS delivery through the bulk SMS gateway's JSON API."""

import random
import time
from typing import Any, Dict, List, Optional

import requests

from ..config.models import SmsGatewayConfig
from ..domain.models import Channel, DeliveryReceipt
from ..logging import get_logger
from ..utils.masking import mask_address
from ..utils.phone import normalize_phone
from ..utils.timestamps import utc_now
from .base import ChannelSender
from .exceptions import InvalidAddress, ProviderError, ProviderTimeout
from .models import RenderedMessage

logger = get_logger(__name__, component="channel.sms")


class SmsGatewaySender(ChannelSender):
    """Send one SMS per call to the bulk gateway.

    Any 2xx response counts as accepted; the gateway's own delivery reports are
    not consulted.

    Args:
        config: Gateway URL, username and sender identity
        token: API token; the sender reports itself unconfigured without one
        timeout: HTTP timeout in seconds
        session: Optional requests session (injected in tests)
    """

    channel = Channel.SMS

    def __init__(
        self,
        config: SmsGatewayConfig,
        token: Optional[str],
        timeout: float = 15,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.config = config
        self.token = token
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {"Content-Type": "application/json", "Accept": "application/json"}
        )

    def missing_configuration(self) -> List[str]:
        return [] if self.token else ["SMS_GATEWAY_TOKEN"]

    def build_payload(self, phone_number: str, text: str) -> Dict[str, Any]:
        """Gateway request body for a single message."""
        return {
            "dataSet": [
                {
                    "username": self.config.username,
                    "phone_number": phone_number,
                    "unique_identifier": str(random.randint(10000, 99999)),
                    "sender_name": self.config.sender_name,
                    "message": text,
                    "sender_type": self.config.sender_type,
                }
            ],
            "timeStamp": int(time.time()),
        }

    def send(self, address: str, message: RenderedMessage) -> DeliveryReceipt:
        phone_number = normalize_phone(address)
        if not phone_number:
            raise InvalidAddress(f"Unusable phone number: '{address}'", channel=self.name)

        payload = self.build_payload(phone_number, message.body)
        identifier = payload["dataSet"][0]["unique_identifier"]

        try:
            response = self._session.post(
                self.config.api_url,
                json=payload,
                headers={"Authorization": f"Token {self.token}"},
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise ProviderTimeout(
                f"SMS gateway timed out after {self.timeout}s", channel=self.name, timeout=self.timeout
            ) from e
        except requests.exceptions.RequestException as e:
            raise ProviderError(f"SMS gateway request failed: {e}", channel=self.name) from e

        if not 200 <= response.status_code < 300:
            logger.warning(
                f"SMS gateway returned HTTP {response.status_code}",
                extra={
                    "event": "channel.sms.rejected",
                    "status_code": response.status_code,
                    "phone": mask_address(phone_number),
                },
            )
            raise ProviderError(
                f"SMS gateway returned HTTP {response.status_code}: {response.text[:200]}",
                channel=self.name,
                status_code=response.status_code,
            )

        logger.debug(
            "SMS accepted by gateway",
            extra={
                "event": "channel.sms.accepted",
                "status_code": response.status_code,
                "phone": mask_address(phone_number),
                "unique_identifier": identifier,
            },
        )
        return DeliveryReceipt(
            channel=self.channel,
            address=phone_number,
            provider_reference=identifier,
            sent_at=utc_now(),
        )

    def close(self) -> None:
        self._session.close()
