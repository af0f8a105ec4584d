"""Exceptions raised by channel senders.

Senders raise these; the dispatcher turns every one of them into a failed
``SendResult`` so they never reach the evaluator.
"""

from typing import List, Optional


class SendError(Exception):
    """Base exception for a failed send on one channel.

    Catching this catches every failure that should be contained to a single
    channel for a single recipient.
    """

    def __init__(self, message: str, channel: Optional[str] = None) -> None:
        super().__init__(message)
        self.channel = channel


class ProviderError(SendError):
    """The provider rejected the message or could not be reached."""

    def __init__(
        self, message: str, channel: Optional[str] = None, status_code: Optional[int] = None
    ) -> None:
        super().__init__(message, channel)
        self.status_code = status_code


class ProviderTimeout(SendError):
    """The provider call did not complete within the send timeout."""

    def __init__(self, message: str, channel: Optional[str] = None, timeout: Optional[float] = None) -> None:
        super().__init__(message, channel)
        self.timeout = timeout


class ConfigurationMissing(SendError):
    """Provider credentials are absent; the channel is disabled for the run."""

    def __init__(self, message: str, channel: Optional[str] = None, missing: Optional[List[str]] = None) -> None:
        super().__init__(message, channel)
        self.missing = missing or []


class InvalidAddress(SendError):
    """The recipient address cannot be used on this channel."""

    pass


class MessageRenderError(SendError):
    """A channel-specific wrapper (e.g. the e-mail HTML body) failed to render."""

    pass
