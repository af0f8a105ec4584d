"""In-app delivery: a row in the guardian portal inbox."""

from ..domain.models import Channel, DeliveryReceipt
from ..persistence.database import get_session
from ..persistence.exceptions import PersistenceError
from ..persistence.repositories import InAppNotificationRepository
from ..utils.timestamps import utc_now
from .base import ChannelSender
from .exceptions import ProviderError
from .models import RenderedMessage


class InAppSender(ChannelSender):
    """Write the message to ``in_app_notifications`` in its own transaction."""

    channel = Channel.IN_APP

    def __init__(self, session_factory=get_session, reference_type: str = "domain_event") -> None:
        self._session_factory = session_factory
        self.reference_type = reference_type

    def send(self, address: str, message: RenderedMessage) -> DeliveryReceipt:
        try:
            with self._session_factory() as session:
                notification_id = InAppNotificationRepository(session).add(
                    institution_id=message.institution_id,
                    recipient_id=address,
                    title=message.title,
                    message=message.body,
                    notification_type=message.category_id,
                    reference_type=self.reference_type,
                    reference_id=message.reference_id,
                )
        except PersistenceError as e:
            raise ProviderError(f"In-app notification write failed: {e}", channel=self.name) from e

        return DeliveryReceipt(
            channel=self.channel,
            address=address,
            provider_reference=str(notification_id),
            sent_at=utc_now(),
        )
