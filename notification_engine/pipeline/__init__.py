"""Dispatch pipeline: evaluation of domain events into notifications."""

from .models import ChannelAttempt, EventResult, RecipientResult, RunRequest, RunSummary
from .request import handle_request
from .runner import DispatchPipeline

__all__ = [
    "DispatchPipeline",
    "RunRequest",
    "RunSummary",
    "EventResult",
    "RecipientResult",
    "ChannelAttempt",
    "handle_request",
]
