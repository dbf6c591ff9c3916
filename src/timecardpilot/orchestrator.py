"""Pipeline coordinator — Authenticate → Poll → Process → Report.

The run is an explicit state machine over :class:`PipelineState`. Each state
has one handler that performs its work and returns the next state; the loop
ends in DONE or FATAL. Row handles never outlive a single attempt: every
poll and every retry re-queries the table.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable

from timecardpilot.auth.session_manager import SessionManager
from timecardpilot.browser.base import BrowserAdapter
from timecardpilot.discovery.row_scanner import find_flagged_rows, first_unsubmitted, locate_row
from timecardpilot.evaluation.error_classifier import build_should_retry, classify
from timecardpilot.exceptions import ErrorKind, ProcessingError, SessionTimeoutError
from timecardpilot.models import (
    TERMINAL_STATES,
    PipelineState,
    ProcessingResult,
    ResultKind,
    RunContext,
    RunMetrics,
    SubmissionOutcome,
)
from timecardpilot.reporting.console import (
    print_banner,
    print_fatal,
    print_result,
    print_run_report,
)
from timecardpilot.reporting.tracker import HistoryTracker
from timecardpilot.retry import RetryPolicy, with_retry
from timecardpilot.settings import AppSettings
from timecardpilot.submission.row_processor import RowProcessor

logger = logging.getLogger(__name__)


class FailureAction(str, Enum):
    """What the pipeline does with a row failure once retries are exhausted."""

    SKIP = "skip"
    REAUTHENTICATE = "reauthenticate"
    FATAL = "fatal"


def resolve_failure(exc: BaseException) -> FailureAction:
    """Decide how a row failure that survived the retry layer is handled."""
    kind = classify(exc).kind
    if kind is ErrorKind.ELEMENT_NOT_FOUND:
        return FailureAction.SKIP
    if kind is ErrorKind.SESSION_TIMEOUT:
        return FailureAction.REAUTHENTICATE
    return FailureAction.FATAL


_OUTCOME_MESSAGES = {
    SubmissionOutcome.SUBMITTED: "Submitted clock-stamp application",
    SubmissionOutcome.DRY_RUN: "Would submit clock-stamp application (dry run)",
    SubmissionOutcome.ALREADY_SUBMITTED: "Row already carries a request",
}


class CorrectionPipeline:
    """Wires together all pipeline stages and drives the run."""

    _MAX_CONSECUTIVE_REAUTHS = 3

    def __init__(
        self,
        settings: AppSettings,
        adapter: BrowserAdapter | None = None,
        tracker: HistoryTracker | None = None,
    ) -> None:
        if adapter is None:
            from timecardpilot.browser.playwright_adapter import PlaywrightAdapter

            adapter = PlaywrightAdapter()
        self._settings = settings
        self._adapter = adapter
        self._tracker = tracker or HistoryTracker(Path(settings.state_dir) / "history.db")
        self._session = SessionManager(adapter, settings)
        self._processor = RowProcessor(adapter, settings)
        self._row_policy = RetryPolicy(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
            backoff_factor=settings.retry_backoff_factor,
            should_retry=build_should_retry(
                allow_missing_element=settings.retry_missing_elements
            ),
        )
        self._ctx = RunContext()
        self._launched = False
        self._handlers: dict[PipelineState, Callable[[], Awaitable[PipelineState]]] = {
            PipelineState.INIT: self._init,
            PipelineState.AUTHENTICATING: self._authenticate,
            PipelineState.POLLING: self._poll,
            PipelineState.PROCESSING: self._process,
        }

    @property
    def context(self) -> RunContext:
        return self._ctx

    @property
    def metrics(self) -> RunMetrics:
        return self._ctx.metrics

    async def run(self) -> RunMetrics:
        """Execute the full pipeline.

        Returns the run metrics on DONE; raises the terminating
        :class:`DomainError` on FATAL.
        """
        print_banner(self._settings.dry_run)
        state = PipelineState.INIT
        try:
            while state not in TERMINAL_STATES:
                logger.debug("State: %s.", state.value)
                try:
                    state = await self._handlers[state]()
                except Exception as exc:
                    self._ctx.error = classify(exc)
                    state = PipelineState.FATAL
        finally:
            if self._launched:
                await self._adapter.close()
                self._launched = False

        try:
            if state is PipelineState.DONE:
                self._finish("done")
                return self._ctx.metrics
            self._finish("fatal")
            error = self._ctx.error or ProcessingError("Run ended without a recorded error.")
            print_fatal(error)
            raise error
        finally:
            self._tracker.close()

    # ---- state handlers ----

    async def _init(self) -> PipelineState:
        await self._adapter.launch(
            headless=self._settings.headless, slow_mo=self._settings.slow_mo
        )
        self._launched = True
        self._tracker.start_session(self._ctx.metrics, self._settings.dry_run)
        logger.info("Session %s started.", self._ctx.metrics.session_id)
        return PipelineState.AUTHENTICATING

    async def _authenticate(self) -> PipelineState:
        await self._session.ensure_authenticated()
        return PipelineState.POLLING

    async def _poll(self) -> PipelineState:
        if await self._session.is_session_expired():
            self._ctx.reauth_streak += 1
            if self._ctx.reauth_streak > self._MAX_CONSECUTIVE_REAUTHS:
                raise SessionTimeoutError(
                    "Session keeps expiring without progress.",
                    {"reauth_attempts": self._ctx.reauth_streak - 1},
                )
            return PipelineState.AUTHENTICATING

        cap = self._settings.max_rows
        if cap > 0 and self._ctx.metrics.processed >= cap:
            logger.info("Row cap of %d reached — stopping.", cap)
            return PipelineState.DONE

        logger.debug("Waiting for page to stabilize…")
        await self._adapter.wait_settle(self._settings.poll_wait_time)

        rows = await find_flagged_rows(self._adapter)
        if not rows:
            logger.info("No more flagged rows to process.")
            return PipelineState.DONE

        target = first_unsubmitted(rows, exclude=self._ctx.passed_positions)
        if target is None:
            logger.info("No unsubmitted flagged rows left (%d flagged).", len(rows))
            return PipelineState.DONE

        logger.info("Found unsubmitted flagged row at position %d.", target.position)
        self._ctx.target_position = target.position
        return PipelineState.PROCESSING

    async def _process(self) -> PipelineState:
        position = self._ctx.target_position
        if position is None:
            raise ProcessingError("No flagged row selected for processing.")
        self._ctx.target_position = None

        try:
            outcome = await with_retry(lambda: self._attempt_row(position), self._row_policy)
        except Exception as exc:
            return await self._handle_row_failure(exc, position)

        self._ctx.metrics.processed += 1
        self._ctx.reauth_streak = 0
        if outcome is SubmissionOutcome.DRY_RUN:
            # Dry-run rows stay unsubmitted on the page.
            self._ctx.passed_positions.add(position)
        self._record(
            ResultKind.SUCCESS,
            _OUTCOME_MESSAGES[outcome],
            {"position": position, "outcome": outcome.value},
        )
        return PipelineState.POLLING

    # ---- helpers ----

    async def _attempt_row(self, position: int) -> SubmissionOutcome:
        if await self._session.is_session_expired():
            raise SessionTimeoutError(
                "Session expired while processing a row.", {"position": position}
            )
        row = await locate_row(self._adapter, position)
        if row.submitted:
            logger.info("Row %d already requested — not submitting again.", position)
            return SubmissionOutcome.ALREADY_SUBMITTED
        return await self._processor.process(row)

    async def _handle_row_failure(
        self, exc: Exception, position: int
    ) -> PipelineState:
        error = classify(exc)
        action = resolve_failure(error)
        if (
            action is not FailureAction.REAUTHENTICATE
            and await self._session.is_session_expired()
        ):
            # Controls vanish once the page bounces to the login form.
            error = SessionTimeoutError(
                f"Session expired while processing a row: {error.message}",
                {"position": position, "cause": error.kind.value},
            )
            action = FailureAction.REAUTHENTICATE
        detail: dict[str, Any] = {"position": position, **error.to_dict()}

        if action is FailureAction.SKIP:
            self._ctx.metrics.skipped += 1
            self._ctx.passed_positions.add(position)
            self._record(ResultKind.SKIPPED, f"Skipped row: {error.message}", detail)
            await self._adapter.wait_settle(self._settings.after_submit_wait_time)
            return PipelineState.POLLING

        if action is FailureAction.REAUTHENTICATE:
            logger.warning("Session timed out while processing row %d.", position)
            self._ctx.reauth_streak += 1
            if self._ctx.reauth_streak <= self._MAX_CONSECUTIVE_REAUTHS:
                self._session.mark_expired()
                return PipelineState.AUTHENTICATING

        self._ctx.metrics.errored += 1
        self._record(ResultKind.FAILED, f"Failed row: {error.message}", detail)
        self._ctx.error = error
        return PipelineState.FATAL

    def _record(
        self,
        kind: ResultKind,
        message: str,
        detail: dict[str, Any],
    ) -> None:
        """Persist a processing result and print progress.

        Ordinals are assigned here so a row interrupted by re-authentication
        keeps the same number when it is retried.
        """
        self._ctx.ordinal += 1
        result = ProcessingResult(
            kind=kind, ordinal=self._ctx.ordinal, message=message, detail=detail
        )
        self._ctx.results.append(result)
        self._tracker.record_result(self._ctx.metrics.session_id, result)
        if kind is ResultKind.FAILED:
            logger.error("%s %s", message, detail)
        elif kind is ResultKind.SKIPPED:
            logger.warning("%s %s", message, detail)
        else:
            logger.info("%s (row %d).", message, detail.get("position", -1))
        print_result(result)

    def _finish(self, status: str) -> None:
        metrics = self._ctx.metrics
        metrics.finalize()
        self._tracker.end_session(metrics, status)
        logger.info(
            "Session ended: processed=%d errored=%d skipped=%d duration=%.1fs.",
            metrics.processed,
            metrics.errored,
            metrics.skipped,
            metrics.elapsed_seconds,
        )
        print_run_report(metrics, status)
