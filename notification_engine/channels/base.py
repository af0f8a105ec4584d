"""Base class for channel senders."""

from abc import ABC, abstractmethod
from typing import List

from ..domain.models import Channel, DeliveryReceipt
from .models import RenderedMessage


class ChannelSender(ABC):
    """A provider-backed sender for one channel.

    Subclasses perform exactly one attempt per call and raise a ``SendError``
    subclass on failure. Retries are not their concern.
    """

    channel: Channel

    @property
    def name(self) -> str:
        return self.channel.value

    def missing_configuration(self) -> List[str]:
        """Names of absent credentials; empty when the sender is usable."""
        return []

    def is_configured(self) -> bool:
        return not self.missing_configuration()

    @abstractmethod
    def send(self, address: str, message: RenderedMessage) -> DeliveryReceipt:
        """Deliver ``message`` to ``address``.

        Raises:
            SendError: On any failure
        """

    def close(self) -> None:
        """Release provider resources (HTTP sessions and the like)."""
