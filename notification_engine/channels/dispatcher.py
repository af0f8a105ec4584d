"""Channel Dispatcher.

Routes a rendered message to the sender for a channel, enforces the per-call
timeout, and converts every failure into a ``SendResult``. No retries.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Dict, Iterable, Mapping

from ..config.environment import EnvironmentConfig
from ..config.models import AppConfig
from ..domain.models import Channel
from ..logging import get_logger
from ..logging.context import context_bound
from ..persistence.database import get_session
from ..utils.masking import mask_address
from .base import ChannelSender
from .email_sender import EmailSender
from .exceptions import ConfigurationMissing, ProviderError, ProviderTimeout, SendError
from .in_app import InAppSender
from .models import RenderedMessage, SendResult
from .sms import SmsGatewaySender

logger = get_logger(__name__, component="dispatcher")


class ChannelDispatcher:
    """Send messages through per-channel senders with a hard timeout.

    Senders whose credentials are missing are disabled at construction; the
    condition is logged once here and never per recipient.

    Args:
        senders: Sender instances; each registers under its own ``channel``
        timeout_seconds: Upper bound on a single send call
        max_concurrent_sends: Size of the pool that runs provider calls
    """

    def __init__(
        self,
        senders: Iterable[ChannelSender],
        timeout_seconds: float = 15,
        max_concurrent_sends: int = 10,
    ):
        self.timeout_seconds = timeout_seconds
        self._senders: Dict[Channel, ChannelSender] = {}
        self._unavailable: Dict[Channel, ConfigurationMissing] = {}

        for sender in senders:
            missing = sender.missing_configuration()
            if missing:
                self._unavailable[sender.channel] = ConfigurationMissing(
                    f"{sender.name} disabled: missing {', '.join(missing)}",
                    channel=sender.name,
                    missing=missing,
                )
                logger.warning(
                    f"Channel {sender.name} disabled: missing {', '.join(missing)}",
                    extra={
                        "event": "channel.disabled",
                        "channel": sender.name,
                        "missing": missing,
                    },
                )
            else:
                self._senders[sender.channel] = sender

        for channel in Channel:
            if channel not in self._senders and channel not in self._unavailable:
                self._unavailable[channel] = ConfigurationMissing(
                    f"No sender registered for {channel.value}", channel=channel.value
                )

        self._executor = ThreadPoolExecutor(
            max_workers=max_concurrent_sends, thread_name_prefix="send"
        )

    @classmethod
    def from_config(
        cls,
        app_config: AppConfig,
        env_config: EnvironmentConfig,
        session_factory=get_session,
    ) -> "ChannelDispatcher":
        """Build the SMS, e-mail and in-app senders from configuration."""
        timeout = app_config.dispatch.send_timeout_seconds
        senders = [
            SmsGatewaySender(app_config.sms, env_config.sms_gateway_token, timeout=timeout),
            EmailSender(env_config, app_config.email, timeout=timeout),
            InAppSender(session_factory=session_factory),
        ]
        return cls(
            senders,
            timeout_seconds=timeout,
            max_concurrent_sends=app_config.dispatch.max_workers * 2,
        )

    def is_available(self, channel: Channel) -> bool:
        return channel in self._senders

    @property
    def unavailable(self) -> Mapping[Channel, ConfigurationMissing]:
        return dict(self._unavailable)

    def send(self, channel: Channel, address: str, message: RenderedMessage) -> SendResult:
        """Make one delivery attempt. Never raises."""
        started = time.monotonic()
        sender = self._senders.get(channel)
        if sender is None:
            return SendResult(channel=channel, error=self._unavailable[channel])

        future = self._executor.submit(context_bound(sender.send), address, message)
        try:
            receipt = future.result(timeout=self.timeout_seconds)
            result = SendResult(channel=channel, receipt=receipt)
        except FutureTimeoutError:
            future.cancel()
            result = SendResult(
                channel=channel,
                error=ProviderTimeout(
                    f"{channel.value} send exceeded {self.timeout_seconds}s",
                    channel=channel.value,
                    timeout=self.timeout_seconds,
                ),
            )
        except SendError as e:
            result = SendResult(channel=channel, error=e)
        except Exception as e:
            logger.error(
                f"Unexpected error from {channel.value} sender: {e}",
                extra={"event": "channel.send.crashed", "channel": channel.value},
                exc_info=True,
            )
            result = SendResult(
                channel=channel,
                error=ProviderError(f"Unexpected sender error: {e}", channel=channel.value),
            )

        result.duration_ms = int((time.monotonic() - started) * 1000)

        if result.ok:
            logger.info(
                f"Sent via {channel.value}",
                extra={
                    "event": "channel.send.succeeded",
                    "channel": channel.value,
                    "address": mask_address(address),
                    "duration_ms": result.duration_ms,
                },
            )
        else:
            logger.warning(
                f"Send via {channel.value} failed: {result.error}",
                extra={
                    "event": "channel.send.failed",
                    "channel": channel.value,
                    "address": mask_address(address),
                    "error_type": type(result.error).__name__,
                    "duration_ms": result.duration_ms,
                },
            )
        return result

    def close(self) -> None:
        """Stop the send pool without waiting for hung provider calls."""
        self._executor.shutdown(wait=False, cancel_futures=True)
        for sender in self._senders.values():
            sender.close()
