"""Trigger Evaluator: orchestration of one dispatch run."""

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import Callable, List, Mapping, Optional
from uuid import uuid4

from ..channels.dispatcher import ChannelDispatcher
from ..channels.models import RenderedMessage
from ..config.environment import EnvironmentConfig
from ..config.models import AppConfig
from ..dedup.ledger import DedupLedger
from ..domain.catalog import CATALOG
from ..domain.models import (
    Channel,
    DomainEvent,
    EffectiveSetting,
    InstitutionNotificationSetting,
    NotificationCategory,
    Recipient,
    SkipReason,
)
from ..events.source import DatabaseEventSource, EventSource, EventSourceError
from ..logging import get_logger
from ..logging.context import context_bound, log_context
from ..persistence.database import get_session
from ..persistence.exceptions import PersistenceError
from ..persistence.repositories import SettingsRepository
from ..ratelimit.limiter import RateLimiter
from ..recipients.resolver import RecipientResolver
from ..settings.resolver import SettingsResolver, UnknownCategory
from ..utils.placeholders import render_template
from ..utils.timestamps import today_in, utc_now
from .models import ChannelAttempt, EventResult, RecipientResult, RunRequest, RunSummary

logger = get_logger(__name__, component="pipeline")

EXTERNAL_CHANNELS = (Channel.SMS, Channel.EMAIL)


def load_saved_setting(institution_id: str, category_id: str) -> Optional[InstitutionNotificationSetting]:
    with get_session() as session:
        return SettingsRepository(session).get(institution_id, category_id)


class DispatchPipeline:
    """
    Evaluates candidate domain events and notifies guardians.

    For each event: resolve settings, resolve recipients, and for each
    recipient check the ledger, walk the enabled channels in preference order
    (opt-in, rate limit, send, increment) and record the delivery once any
    channel succeeds. Events run in parallel on a bounded pool; failures are
    contained to the smallest scope that produced them.
    """

    def __init__(
        self,
        app_config: AppConfig,
        event_source: EventSource,
        dispatcher: ChannelDispatcher,
        recipient_resolver: RecipientResolver,
        rate_limiter: RateLimiter,
        ledger: DedupLedger,
        settings_loader: Callable[[str, str], Optional[InstitutionNotificationSetting]] = load_saved_setting,
        catalog: Mapping[str, NotificationCategory] = CATALOG,
    ):
        self.app_config = app_config
        self.event_source = event_source
        self.dispatcher = dispatcher
        self.recipient_resolver = recipient_resolver
        self.rate_limiter = rate_limiter
        self.ledger = ledger
        self.settings_loader = settings_loader
        self.catalog = catalog

    @classmethod
    def from_config(cls, app_config: AppConfig, env_config: EnvironmentConfig) -> "DispatchPipeline":
        """Wire the database-backed components. ``init_database`` must have run."""
        return cls(
            app_config=app_config,
            event_source=DatabaseEventSource(),
            dispatcher=ChannelDispatcher.from_config(app_config, env_config),
            recipient_resolver=RecipientResolver(),
            rate_limiter=RateLimiter(app_config.channels.rate_limits),
            ledger=DedupLedger(),
        )

    def close(self) -> None:
        self.dispatcher.close()

    def run(self, request: Optional[RunRequest] = None) -> RunSummary:
        """
        Execute one invocation.

        Returns:
            RunSummary; ``success`` is False only when the candidate fetch
            failed, in which case nothing was processed
        """
        request = request or RunRequest()
        started_at = utc_now()
        run_id = uuid4().hex
        day = request.day or today_in(self.app_config.dispatch.timezone)
        event_types = request.event_types or self.app_config.dispatch.event_types

        with log_context(run_id=run_id, mode=request.mode.value):
            logger.info(
                "Dispatch run started",
                extra={
                    "event": "dispatch.run.started",
                    "day": day.isoformat(),
                    "institution_id": request.institution_id,
                    "event_types": event_types,
                    "reference_id_count": len(request.reference_ids or []),
                },
            )

            try:
                events = self.event_source.fetch_events(
                    day,
                    event_types,
                    institution_id=request.institution_id,
                    reference_ids=request.reference_ids,
                )
            except EventSourceError as e:
                logger.error(
                    f"Dispatch run aborted: {e}",
                    extra={"event": "dispatch.run.aborted", "error_type": type(e).__name__},
                    exc_info=True,
                )
                return RunSummary(
                    run_id=run_id,
                    mode=request.mode,
                    day=day,
                    started_at=started_at,
                    finished_at=utc_now(),
                    success=False,
                    error=str(e),
                )

            resolver = SettingsResolver(self.catalog, self.settings_loader)
            results = self._process_events(events, resolver, request, day)

            summary = RunSummary(
                run_id=run_id,
                mode=request.mode,
                day=day,
                started_at=started_at,
                finished_at=utc_now(),
                events=results,
            )

            logger.info(
                "Dispatch run completed",
                extra={
                    "event": "dispatch.run.completed",
                    "duration_ms": summary.duration_ms,
                    "total": summary.total,
                    "sent": summary.sent,
                    "failed": summary.failed,
                    "outcomes": summary.outcomes,
                    "error_count": len(summary.errors),
                },
            )
            return summary

    def _process_events(
        self,
        events: List[DomainEvent],
        resolver: SettingsResolver,
        request: RunRequest,
        day: date,
    ) -> List[EventResult]:
        if not events:
            return []

        workers = min(self.app_config.dispatch.max_workers, len(events))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="dispatch") as pool:
            futures = [
                pool.submit(context_bound(self._evaluate_event), event, resolver, request, day)
                for event in events
            ]
            return [future.result() for future in futures]

    def _evaluate_event(
        self, event: DomainEvent, resolver: SettingsResolver, request: RunRequest, day: date
    ) -> EventResult:
        """Run one event to a terminal state. Never raises."""
        result = EventResult(
            event_type=event.event_type,
            reference_id=event.reference_id,
            institution_id=event.institution_id,
        )

        with log_context(
            event_type=event.event_type,
            reference_id=event.reference_id,
            institution_id=event.institution_id,
        ):
            try:
                self._process_event(event, resolver, request, day, result)
            except UnknownCategory as e:
                result.errors.append(f"{event.event_type}/{event.reference_id}: {e}")
                logger.error(str(e), extra={"event": "dispatch.event.unknown_category"})
            except Exception as e:
                result.errors.append(
                    f"{event.event_type}/{event.reference_id}: {type(e).__name__}: {e}"
                )
                logger.error(
                    f"Event processing failed: {e}",
                    extra={"event": "dispatch.event.failed", "error_type": type(e).__name__},
                    exc_info=True,
                )

            result.settle()
            logger.info(
                f"Event {result.outcome.value}",
                extra={
                    "event": f"dispatch.event.{result.outcome.value}",
                    "reason": result.reason.value if result.reason else None,
                    "recipient_count": len(result.recipients),
                },
            )
        return result

    def _process_event(
        self,
        event: DomainEvent,
        resolver: SettingsResolver,
        request: RunRequest,
        day: date,
        result: EventResult,
    ) -> None:
        setting = resolver.resolve(event.institution_id, event.event_type)
        if not setting.enabled:
            result.reason = SkipReason.CATEGORY_DISABLED
            return

        recipients = self.recipient_resolver.resolve_guardians(event.subject_id, event.institution_id)
        if not recipients:
            result.reason = SkipReason.NO_RECIPIENTS
            return

        channels = [c for c in self.app_config.channels.preference_order if setting.allows(c)]

        for recipient in recipients:
            recipient_result = RecipientResult(recipient_id=recipient.id)
            with log_context(recipient_id=recipient.id):
                try:
                    self._process_recipient(event, setting, channels, recipient, request, day, recipient_result)
                except Exception as e:
                    recipient_result.error = f"{type(e).__name__}: {e}"
                    logger.error(
                        f"Recipient processing failed: {e}",
                        extra={"event": "dispatch.recipient.failed", "error_type": type(e).__name__},
                        exc_info=True,
                    )
            result.recipients.append(recipient_result)
            if recipient_result.error:
                result.errors.append(
                    f"{event.event_type}/{event.reference_id} -> {recipient.id}: {recipient_result.error}"
                )
            for attempt in recipient_result.attempts:
                if attempt.status == "failed":
                    result.errors.append(
                        f"{event.event_type}/{event.reference_id} -> {recipient.id} "
                        f"[{attempt.channel.value}] {attempt.error}"
                    )

    def _process_recipient(
        self,
        event: DomainEvent,
        setting: EffectiveSetting,
        channels: List[Channel],
        recipient: Recipient,
        request: RunRequest,
        day: date,
        outcome: RecipientResult,
    ) -> None:
        """Walk the channels for one recipient, filling in ``outcome`` as it goes.

        Attempts made before an exception stay on ``outcome``.
        """
        if self.ledger.has_been_sent(event.event_type, event.reference_id, recipient.id):
            outcome.skipped_reason = SkipReason.ALREADY_NOTIFIED
            logger.debug("Recipient already notified", extra={"event": "dedup.already_notified"})
            return

        message: Optional[RenderedMessage] = None
        is_demo = self.app_config.is_demo_institution(event.institution_id)

        for channel in channels:
            reason = self._channel_skip_reason(channel, recipient, is_demo)
            if reason is None and not self.rate_limiter.admit(
                event.institution_id, recipient.id, channel, day
            ):
                reason = SkipReason.RATE_LIMIT_EXCEEDED
            if reason is not None:
                outcome.attempts.append(ChannelAttempt(channel=channel, status="skipped", reason=reason))
                continue

            if message is None:
                message = self._render(event, setting, recipient)
                outcome.message = message.body

            send_result = self.dispatcher.send(channel, recipient.address_for(channel), message)
            if send_result.ok:
                outcome.attempts.append(ChannelAttempt(channel=channel, status="sent"))
                self._count_send(event.institution_id, recipient.id, channel, day)
            else:
                outcome.attempts.append(
                    ChannelAttempt(channel=channel, status="failed", error=send_result.error_message)
                )

        if outcome.channels_used:
            outcome.recorded = self.ledger.record(
                event.event_type,
                event.reference_id,
                recipient.id,
                outcome.channels_used,
                message.body,
                institution_id=event.institution_id,
                subject_id=event.subject_id,
                trigger_source=request.mode,
            )
        elif not outcome.failed_channels:
            reasons = {a.reason for a in outcome.attempts}
            outcome.skipped_reason = reasons.pop() if len(reasons) == 1 else None

    def _count_send(self, institution_id: str, recipient_id: str, channel: Channel, day: date) -> None:
        # The message is already out; losing the count must not lose the delivery record.
        try:
            self.rate_limiter.increment(institution_id, recipient_id, channel, day)
        except PersistenceError as e:
            logger.error(
                f"Rate limit increment failed after send: {e}",
                extra={
                    "event": "ratelimit.increment_failed",
                    "channel": channel.value,
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )

    def _channel_skip_reason(
        self, channel: Channel, recipient: Recipient, is_demo: bool
    ) -> Optional[SkipReason]:
        if not recipient.is_opted_in(channel):
            return SkipReason.OPTED_OUT
        if not recipient.address_for(channel):
            return SkipReason.NO_ADDRESS
        if not self.dispatcher.is_available(channel):
            return SkipReason.CHANNEL_UNAVAILABLE
        if is_demo and channel in EXTERNAL_CHANNELS:
            return SkipReason.DEMO_INSTITUTION
        return None

    def _render(self, event: DomainEvent, setting: EffectiveSetting, recipient: Recipient) -> RenderedMessage:
        context = {
            "guardian_name": recipient.display_name,
            "guardian_first_name": recipient.first_name,
            **event.payload,
        }
        return RenderedMessage(
            body=render_template(setting.template, context),
            title=setting.category.label,
            category_id=setting.category_id,
            institution_id=event.institution_id,
            reference_id=event.reference_id,
            recipient_id=recipient.id,
            context=context,
        )
