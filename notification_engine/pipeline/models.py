"""Data models for dispatch runs: the request and per-run/event/recipient results."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from ..domain.models import Channel, DispatchMode, EventOutcome, SkipReason


class RunRequest(BaseModel):
    """Parameters of one invocation.

    Every field is optional: an empty request sweeps today's events of every
    configured type across all institutions. camelCase keys are accepted for
    callers that post JSON from the web tier.
    """

    institution_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("institution_id", "institutionId")
    )
    reference_ids: Optional[List[str]] = Field(
        None, validation_alias=AliasChoices("reference_ids", "referenceIds")
    )
    event_types: Optional[List[str]] = Field(
        None, validation_alias=AliasChoices("event_types", "eventTypes")
    )
    day: Optional[date] = None
    mode: DispatchMode = DispatchMode.BATCH

    model_config = {"extra": "forbid"}

    @field_validator("institution_id")
    @classmethod
    def strip_institution(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        stripped = v.strip()
        return stripped or None

    @field_validator("reference_ids", "event_types")
    @classmethod
    def clean_ids(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        """Strip entries, drop blanks and duplicates; an empty list means no filter."""
        if v is None:
            return None
        cleaned = list(dict.fromkeys(item.strip() for item in v if item and item.strip()))
        return cleaned or None


@dataclass
class ChannelAttempt:
    """What happened on one channel for one recipient."""

    channel: Channel
    status: str  # "sent", "failed", "skipped"
    reason: Optional[SkipReason] = None
    error: Optional[str] = None


@dataclass
class RecipientResult:
    """Processing result for one recipient of one event.

    Attributes:
        recipient_id: Guardian id
        attempts: One entry per channel considered, in preference order
        skipped_reason: Set when the recipient was skipped as a whole
        recorded: Whether this run wrote the delivery record
        message: Rendered message body, when one was rendered
        error: Unexpected failure that stopped processing this recipient
    """

    recipient_id: str
    attempts: List[ChannelAttempt] = field(default_factory=list)
    skipped_reason: Optional[SkipReason] = None
    recorded: bool = False
    message: Optional[str] = None
    error: Optional[str] = None

    @property
    def channels_used(self) -> List[Channel]:
        return [a.channel for a in self.attempts if a.status == "sent"]

    @property
    def failed_channels(self) -> List[Channel]:
        return [a.channel for a in self.attempts if a.status == "failed"]


@dataclass
class EventResult:
    """Terminal state of one domain event within a run."""

    event_type: str
    reference_id: str
    institution_id: str
    outcome: EventOutcome = EventOutcome.SKIPPED
    reason: Optional[SkipReason] = None
    recipients: List[RecipientResult] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def settle(self) -> "EventResult":
        """Derive the outcome from recipient results.

        Successes only: sent. Successes and failures: partially sent. Failures
        only: failed. Neither: skipped.
        """
        any_sent = any(r.channels_used for r in self.recipients)
        any_failed = bool(self.errors) or any(r.failed_channels for r in self.recipients)

        if any_sent and any_failed:
            self.outcome = EventOutcome.PARTIALLY_SENT
        elif any_sent:
            self.outcome = EventOutcome.SENT
        elif any_failed:
            self.outcome = EventOutcome.FAILED
        else:
            self.outcome = EventOutcome.SKIPPED
            if self.reason is None and self.recipients:
                reasons = {r.skipped_reason for r in self.recipients}
                if len(reasons) == 1:
                    self.reason = reasons.pop()
        return self


@dataclass
class RunSummary:
    """
    Aggregate results of one invocation.

    Attributes:
        run_id: Identifier stamped on every log line of the run
        mode: Invocation mode, recorded for audit
        day: Calendar day of the run window
        started_at / finished_at: UTC timestamps
        success: False only when the candidate fetch failed
        error: Fatal error text when success is False
        events: Per-event results
        sent / failed: Channel successes and failures across the run
        errors: One string per failed send or failed event
    """

    run_id: str
    mode: DispatchMode
    day: date
    started_at: datetime
    finished_at: datetime
    success: bool = True
    error: Optional[str] = None
    events: List[EventResult] = field(default_factory=list)
    sent: Dict[str, int] = field(default_factory=dict)
    failed: Dict[str, int] = field(default_factory=dict)
    outcomes: Dict[str, int] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    records_written: int = 0
    duration_ms: int = 0

    def __post_init__(self):
        """Compute aggregates from event results."""
        self.sent = {channel.value: 0 for channel in Channel}
        self.failed = {channel.value: 0 for channel in Channel}
        self.outcomes = {outcome.value: 0 for outcome in EventOutcome}
        self.errors = list(self.errors)

        for event in self.events:
            self.outcomes[event.outcome.value] += 1
            self.errors.extend(event.errors)
            for recipient in event.recipients:
                if recipient.recorded:
                    self.records_written += 1
                for attempt in recipient.attempts:
                    if attempt.status == "sent":
                        self.sent[attempt.channel.value] += 1
                    elif attempt.status == "failed":
                        self.failed[attempt.channel.value] += 1

        if self.duration_ms == 0:
            delta = self.finished_at - self.started_at
            self.duration_ms = int(delta.total_seconds() * 1000)

    @property
    def total(self) -> int:
        return len(self.events)

    @property
    def skipped(self) -> int:
        return self.outcomes.get(EventOutcome.SKIPPED.value, 0)

    def to_dict(self) -> Dict[str, Any]:
        """JSON summary returned to the caller."""
        summary: Dict[str, Any] = {
            "success": self.success,
            "run_id": self.run_id,
            "mode": self.mode.value,
            "day": self.day.isoformat(),
            "total": self.total,
            "sent": dict(self.sent),
            "failed": dict(self.failed),
            "skipped": self.skipped,
            "outcomes": dict(self.outcomes),
            "records_written": self.records_written,
            "errors": list(self.errors),
            "duration_ms": self.duration_ms,
        }
        if self.error is not None:
            summary["error"] = self.error
        return summary
