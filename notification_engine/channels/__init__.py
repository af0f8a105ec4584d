"""Channel senders and the dispatcher that routes messages to them."""

from .base import ChannelSender
from .dispatcher import ChannelDispatcher
from .email_sender import EmailSender
from .exceptions import (
    ConfigurationMissing,
    InvalidAddress,
    MessageRenderError,
    ProviderError,
    ProviderTimeout,
    SendError,
)
from .in_app import InAppSender
from .models import RenderedMessage, SendResult
from .sms import SmsGatewaySender

__all__ = [
    "ChannelDispatcher",
    "ChannelSender",
    "EmailSender",
    "InAppSender",
    "SmsGatewaySender",
    "RenderedMessage",
    "SendResult",
    "SendError",
    "ProviderError",
    "ProviderTimeout",
    "ConfigurationMissing",
    "InvalidAddress",
    "MessageRenderError",
]
