"""Message and result types passed between the evaluator and channel senders."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..domain.models import Channel, DeliveryReceipt
from .exceptions import SendError


@dataclass(frozen=True)
class RenderedMessage:
    """A message ready to send, identical across channels for one recipient.

    Attributes:
        body: Template rendered against the event payload
        title: Category label, used as in-app title and e-mail subject prefix
        category_id: Category (event type) the message belongs to
        institution_id: Tenant sending the message
        reference_id: Domain event reference id
        recipient_id: Guardian id
        context: Payload fields available to channel-specific wrappers
    """

    body: str
    title: str
    category_id: str
    institution_id: str
    reference_id: str
    recipient_id: str
    context: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SendResult:
    """Outcome of one dispatch call: a receipt on success, a SendError otherwise."""

    channel: Channel
    receipt: Optional[DeliveryReceipt] = None
    error: Optional[SendError] = None
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.receipt is not None and self.error is None

    @property
    def error_message(self) -> Optional[str]:
        if self.error is None:
            return None
        return f"{type(self.error).__name__}: {self.error}"
