"""
Tracker service: one observation per tick.

This module provides:
- Tick orchestration (fetch, classify, persist, notify, report failures)
- An in-flight guard so ticks never overlap
- Cron scheduling with APScheduler
"""

import asyncio
import signal
import time
import uuid
from datetime import datetime
from typing import List, Optional

import structlog
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from notifications.telegram_client import TelegramClient
from tracker.diff_engine import classify, filter_disabled, format_message
from tracker.failure_reporter import FailureReporter, ReasonLike
from tracker.models import Classification, FailureReason, TickOutcome, TickResult
from tracker.snapshot_store import SnapshotStore, SnapshotStoreError
from tracker.sources import ObservationError, ObservationSource
from utilities.logger import TickLogger

logger = structlog.get_logger(__name__)

PARSE_MODE = "MarkdownV2"


class TrackerService:
    """Runs ticks against one source, one store, and one failure reporter."""

    def __init__(
        self,
        source: ObservationSource,
        store: SnapshotStore,
        failure_reporter: FailureReporter,
        notifier: Optional[TelegramClient] = None,
        chat_ids: Optional[List[str]] = None,
        cron_expression: Optional[str] = None,
        timezone: str = "UTC"
    ):
        """
        Initialize tracker service.

        Args:
            source: Observation source
            store: Snapshot store holding the baseline
            failure_reporter: Dedup front for diagnostic reports
            notifier: Client used for value notifications
            chat_ids: Chats receiving value notifications
            cron_expression: Tick schedule, required only for start()
            timezone: Timezone for the cron schedule
        """
        self.source = source
        self.store = store
        self.failure_reporter = failure_reporter
        self.notifier = notifier
        self.chat_ids = chat_ids or []
        self.cron_expression = cron_expression
        self.timezone = timezone
        self.scheduler = AsyncIOScheduler(timezone=timezone)
        self.logger = logger.bind(component="tracker_service")

        self._tick_in_progress = False
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def tick_in_progress(self) -> bool:
        return self._tick_in_progress

    async def tick(self) -> TickResult:
        """Run one observation cycle; never raises."""
        tick_id = str(uuid.uuid4())
        if self._tick_in_progress:
            self.logger.warning("Previous tick still running, skipping", tick_id=tick_id)
            return TickResult(tick_id=tick_id, outcome=TickOutcome.SKIPPED_OVERLAP)

        self._tick_in_progress = True
        start = time.monotonic()
        tick_logger = TickLogger(tick_id)
        try:
            result = await self._run_tick(tick_id, tick_logger)
        except Exception as e:
            self.logger.error("Tick failed unexpectedly", tick_id=tick_id, error=str(e), exc_info=True)
            result = TickResult(tick_id=tick_id, outcome=TickOutcome.FAILED, error=str(e))
        finally:
            self._tick_in_progress = False

        result.duration_seconds = time.monotonic() - start
        tick_logger.log_tick_complete(result.outcome.value, result.duration_seconds)
        return result

    async def _run_tick(self, tick_id: str, tick_logger: TickLogger) -> TickResult:
        known = self.store.get_last_known_values()
        tick_logger.log_tick_start(len(known))

        try:
            observation = await self.source.fetch()
        except ObservationError as e:
            self.logger.error("Error getting values", tick_id=tick_id, reason=e.reason, error=str(e))
            return await self._fail(tick_id, tick_logger, e.reason, error=str(e))
        except Exception as e:
            self.logger.error("Error getting values", tick_id=tick_id, error=str(e), exc_info=True)
            return await self._fail(tick_id, tick_logger, FailureReason.ERROR_GETTING_VALUES, error=str(e))

        if not observation.values:
            self.logger.warning("No values received", tick_id=tick_id)
            return await self._fail(tick_id, tick_logger, FailureReason.NO_VALUES)

        classification = classify(observation.values, known, observation.raw_count)
        tick_logger.log_classification(classification.value, len(observation.values))

        if classification == Classification.INCOMPLETE:
            self.logger.warning("Some values are missing", tick_id=tick_id)
            return await self._fail(
                tick_id, tick_logger, FailureReason.MISSING_VALUES, classification=classification
            )

        if classification == Classification.IDENTICAL:
            self.logger.debug("Already known values", tick_id=tick_id)
            self.failure_reporter.clear()
            return TickResult(tick_id=tick_id, outcome=TickOutcome.NO_CHANGE, classification=classification)

        if classification == Classification.REGRESSIVE:
            self.logger.warning(
                "Received lower values",
                tick_id=tick_id,
                values={name: record.model_dump() for name, record in observation.values.items()},
                known={name: record.model_dump() for name, record in known.items()}
            )
            return TickResult(tick_id=tick_id, outcome=TickOutcome.REJECTED, classification=classification)

        self.logger.info("These values are new", tick_id=tick_id, items=len(observation.values))
        values = filter_disabled(observation.values)
        message = format_message(values, known)

        try:
            await self.store.add_values(values)
        except SnapshotStoreError as e:
            return TickResult(
                tick_id=tick_id,
                outcome=TickOutcome.PERSIST_FAILED,
                classification=classification,
                error=str(e)
            )

        self.failure_reporter.clear()
        await self._notify(tick_id, message)
        return TickResult(
            tick_id=tick_id,
            outcome=TickOutcome.NOTIFIED,
            classification=classification,
            message=message
        )

    async def _fail(
        self,
        tick_id: str,
        tick_logger: TickLogger,
        reason: ReasonLike,
        classification: Optional[Classification] = None,
        error: Optional[str] = None
    ) -> TickResult:
        report_outcome = await self.failure_reporter.report(reason)
        reason_value = self.failure_reporter.current_reason
        tick_logger.log_failure(reason_value, report_outcome.value)
        return TickResult(
            tick_id=tick_id,
            outcome=TickOutcome.FAILED,
            classification=classification,
            failure_reason=reason_value,
            report_outcome=report_outcome,
            error=error
        )

    async def _notify(self, tick_id: str, message: str) -> None:
        if not self.notifier or not self.chat_ids:
            self.logger.debug("No chats configured, skipping message", tick_id=tick_id)
            return
        self.logger.info("Sending a message", tick_id=tick_id, chats=len(self.chat_ids))
        await self.notifier.broadcast(self.chat_ids, message, parse_mode=PARSE_MODE)

    async def run_once(self) -> TickResult:
        """Run a single tick and return its result."""
        self.logger.info("Running single tick")
        return await self.tick()

    def _setup_scheduler_listeners(self) -> None:
        def job_executed_listener(event):
            retval = event.retval
            self.logger.debug(
                "Job executed",
                job_id=event.job_id,
                outcome=retval.outcome.value if isinstance(retval, TickResult) else None
            )

        def job_error_listener(event):
            self.logger.error("Job execution failed", job_id=event.job_id, error=str(event.exception))

        self.scheduler.add_listener(job_executed_listener, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(job_error_listener, EVENT_JOB_ERROR)

    def _setup_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self._stop_event.set)
            except NotImplementedError:
                # Windows event loops do not support signal handlers
                pass

    async def start(self) -> None:
        """Schedule ticks on the cron expression and run until stopped."""
        if not self.cron_expression:
            raise ValueError("A cron expression is required to start the scheduler")

        self._stop_event = asyncio.Event()
        self._setup_signal_handlers()
        self._setup_scheduler_listeners()

        self.scheduler.add_job(
            func=self.tick,
            trigger=CronTrigger.from_crontab(self.cron_expression, timezone=self.timezone),
            id='observation_tick',
            name='Observation Tick',
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self.scheduler.start()
        self.logger.info(
            "Tracker service started",
            cron_expression=self.cron_expression,
            timezone=self.timezone,
            started_at=datetime.utcnow().isoformat()
        )

        try:
            await self._stop_event.wait()
        finally:
            await self.stop()

    def request_stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    async def stop(self) -> None:
        """Stop scheduling and release the source and HTTP clients."""
        self.logger.info("Stopping tracker service")
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

        try:
            await self.source.close()
        except Exception as e:
            self.logger.error("Error closing observation source", error=str(e))

        if self.notifier:
            await self.notifier.close()
        self.logger.info("Tracker service stopped")
