"""
Failure reporter that sends one diagnostic per distinct failure condition.

Failures recur on every tick until their cause goes away; only a change of
reason (or a clear() after a good tick) lets the next report through.
"""

from typing import Awaitable, Callable, Union

import structlog

from tracker.models import FailureReason, ReportOutcome

logger = structlog.get_logger(__name__)

ReasonLike = Union[FailureReason, str]
ReportAction = Callable[[str], Awaitable[None]]


def normalize_reason(reason: ReasonLike) -> str:
    """Map enum members and their names to the canonical value; keep ad hoc labels as is."""
    if isinstance(reason, FailureReason):
        return reason.value
    if reason in FailureReason.__members__:
        return FailureReason[reason].value
    return reason


class FailureReporter:
    """Single-slot dedup state machine in front of a side-effecting report action."""

    def __init__(self, action: ReportAction):
        """
        Args:
            action: Coroutine function receiving the reason, e.g. a diagnostic capture
        """
        self.action = action
        self._reason = FailureReason.NONE.value
        self.logger = logger.bind(component="failure_reporter")

    @property
    def current_reason(self) -> str:
        return self._reason

    async def report(self, reason: ReasonLike) -> ReportOutcome:
        """
        Report a failure unless it repeats the last reported one.

        The reason is recorded before the action runs, so a failing action is
        not retried for the same condition.
        """
        reason = normalize_reason(reason)
        if reason == self._reason:
            self.logger.debug("Skipping report - repetitive reason", reason=reason)
            return ReportOutcome.SKIPPED

        self._reason = reason
        try:
            await self.action(reason)
        except Exception as e:
            self.logger.error("Failure report action failed", reason=reason, error=str(e), exc_info=True)
            return ReportOutcome.FAILED

        self.logger.info("Failure reported", reason=reason)
        return ReportOutcome.SENT

    def clear(self) -> bool:
        """Re-arm the reporter; returns False when there was nothing to clear."""
        if self._reason == FailureReason.NONE.value:
            return False
        self._reason = FailureReason.NONE.value
        self.logger.debug("Failure reason cleared")
        return True
