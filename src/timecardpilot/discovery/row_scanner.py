"""Locate error-flagged rows in the King of Time timecard table."""

from __future__ import annotations

import logging
from typing import Collection

from timecardpilot.browser.base import BrowserAdapter
from timecardpilot.exceptions import ElementNotFoundError
from timecardpilot.models import RowReference

logger = logging.getLogger(__name__)

FLAGGED_ROW_SELECTOR = 'tr:has(td[title="エラー勤務です。"])'
SUBMITTED_MARKER_SELECTOR = "td.start_end_timerecord span.specific-requested"


async def find_flagged_rows(adapter: BrowserAdapter) -> list[RowReference]:
    """Return every flagged row on the current page, in rendered order."""
    handles = await adapter.query_all(FLAGGED_ROW_SELECTOR)
    rows: list[RowReference] = []
    for position, handle in enumerate(handles):
        marker = await adapter.query(SUBMITTED_MARKER_SELECTOR, within=handle)
        rows.append(RowReference(position=position, handle=handle, submitted=marker is not None))
    logger.debug(
        "Found %d flagged row(s), %d already requested.",
        len(rows),
        sum(1 for r in rows if r.submitted),
    )
    return rows


def first_unsubmitted(
    rows: list[RowReference], exclude: Collection[int] = ()
) -> RowReference | None:
    """Return the first row without a submission marker, skipping *exclude* positions."""
    for row in rows:
        if row.submitted or row.position in exclude:
            continue
        return row
    return None


async def locate_row(adapter: BrowserAdapter, position: int) -> RowReference:
    """Re-acquire the flagged row at *position* from a fresh snapshot."""
    rows = await find_flagged_rows(adapter)
    if position >= len(rows):
        raise ElementNotFoundError(
            FLAGGED_ROW_SELECTOR,
            step="locate row",
            context={"position": position, "flagged_rows": len(rows)},
        )
    return rows[position]
