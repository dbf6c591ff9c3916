"""Clock-stamp application form for a single flagged row."""

from __future__ import annotations

import logging
from typing import Any

from timecardpilot.browser.base import BrowserAdapter
from timecardpilot.exceptions import ElementNotFoundError
from timecardpilot.models import RowReference, SubmissionOutcome
from timecardpilot.settings import AppSettings

logger = logging.getLogger(__name__)

_ACTION_SELECT = "select.htBlock-selectOther"
_CLOCK_STAMP_OPTION = "打刻申請"
_APPLY_BUTTON_CANDIDATES = 'input[type="button"]'
_APPLY_BUTTON_ID_PREFIX = "button_"
_SCHEDULE_VARIANT_MARKER = "schedule"
_CONFIRM_BUTTON = "#button_01"

_RECORD_TYPE_SELECT = "#recording_type_code_{n}"
_RECORD_TIME_INPUT = "#recording_timestamp_time_{n}"
_REMARK_INPUT = 'input[name="request_remark_{n}"]'

# Record-type option values used by the form.
_CLOCK_IN_TYPE = "1"
_CLOCK_OUT_TYPE = "2"

_OPTION_SETTLE_MS = 1_000

# Assign the value in-page and fire the events the form's own scripts
# listen for; Playwright's select_option alone does not trigger them.
_SET_RECORD_TYPE_JS = """
    ([selector, value]) => {
        const select = document.querySelector(selector);
        if (!select) return false;
        select.value = value;
        select.dispatchEvent(new Event('change', { bubbles: true }));
        select.dispatchEvent(new Event('input', { bubbles: true }));
        return true;
    }
"""


class RowProcessor:
    """Fills and submits the clock-stamp application for one row.

    The whole sequence is one unit: a failure part-way leaves the form half
    filled, and the caller retries from the first step.
    """

    def __init__(self, adapter: BrowserAdapter, settings: AppSettings) -> None:
        self._adapter = adapter
        self._settings = settings

    async def process(self, row: RowReference) -> SubmissionOutcome:
        await self._select_application_type(row)
        await self._open_application_form(row)

        logger.debug("Waiting %d ms for form to appear…", self._settings.form_wait_time)
        await self._adapter.wait_settle(self._settings.form_wait_time)

        await self._program_entry(
            1, _CLOCK_IN_TYPE, self._settings.clock_in_time, "clock-in entry"
        )
        await self._program_entry(
            2, _CLOCK_OUT_TYPE, self._settings.clock_out_time, "clock-out entry"
        )
        return await self._submit(row)

    # ---- steps ----

    async def _select_application_type(self, row: RowReference) -> None:
        select = await self._adapter.query(_ACTION_SELECT, within=row.handle)
        if select is None:
            raise ElementNotFoundError(
                _ACTION_SELECT, step="select application type", context={"position": row.position}
            )
        await self._adapter.select_option(select, _CLOCK_STAMP_OPTION)
        await self._adapter.wait_settle(_OPTION_SETTLE_MS)

    async def _open_application_form(self, row: RowReference) -> None:
        button = await self._find_apply_button(row)
        if button is None:
            raise ElementNotFoundError(
                f"{_APPLY_BUTTON_CANDIDATES}[id^={_APPLY_BUTTON_ID_PREFIX}]",
                step="open application form",
                context={"position": row.position},
            )
        await self._adapter.click(button)

    async def _find_apply_button(self, row: RowReference) -> Any | None:
        candidates = await self._adapter.query_all(_APPLY_BUTTON_CANDIDATES, within=row.handle)
        for candidate in candidates:
            button_id = await self._adapter.get_attribute(candidate, "id")
            if (
                button_id
                and button_id.startswith(_APPLY_BUTTON_ID_PREFIX)
                and _SCHEDULE_VARIANT_MARKER not in button_id
            ):
                logger.debug("Found application button %s.", button_id)
                return candidate
        return None

    async def _program_entry(self, n: int, record_type: str, hhmm: str, step: str) -> None:
        type_selector = _RECORD_TYPE_SELECT.format(n=n)
        found = await self._adapter.evaluate(_SET_RECORD_TYPE_JS, [type_selector, record_type])
        if not found:
            raise ElementNotFoundError(type_selector, step=step)
        await self._adapter.wait_settle(_OPTION_SETTLE_MS)

        timeout = self._settings.element_timeout
        time_input = await self._wait_for(_RECORD_TIME_INPUT.format(n=n), step, timeout)
        await self._adapter.fill(time_input, hhmm)
        remark_input = await self._wait_for(_REMARK_INPUT.format(n=n), step, timeout)
        await self._adapter.fill(remark_input, self._settings.application_reason)
        logger.debug("Programmed %s: %s.", step, hhmm)

    async def _submit(self, row: RowReference) -> SubmissionOutcome:
        confirm = await self._wait_for(
            _CONFIRM_BUTTON, "submit application", self._settings.element_timeout
        )
        if self._settings.dry_run:
            logger.info(
                "[Dry run] Would submit clock-stamp application for row %d (%s-%s).",
                row.position,
                self._settings.clock_in_time,
                self._settings.clock_out_time,
            )
            return SubmissionOutcome.DRY_RUN

        await self._adapter.click(confirm)
        logger.debug(
            "Submitted; waiting %d ms for page refresh…", self._settings.after_submit_wait_time
        )
        await self._adapter.wait_settle(self._settings.after_submit_wait_time)
        return SubmissionOutcome.SUBMITTED

    async def _wait_for(self, selector: str, step: str, timeout: float) -> Any:
        try:
            return await self._adapter.wait_for_visible(selector, timeout=timeout)
        except ElementNotFoundError as exc:
            raise ElementNotFoundError(selector, step=step, context=exc.context) from exc
