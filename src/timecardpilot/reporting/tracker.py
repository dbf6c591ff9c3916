"""SQLite-backed history of processing results and run sessions."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from timecardpilot.models import ProcessingResult, RunMetrics

logger = logging.getLogger(__name__)

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS sessions (
    id              TEXT PRIMARY KEY,
    started_at      TEXT NOT NULL,
    ended_at        TEXT,
    status          TEXT DEFAULT 'running',
    dry_run         INTEGER DEFAULT 0,
    processed       INTEGER DEFAULT 0,
    errored         INTEGER DEFAULT 0,
    skipped         INTEGER DEFAULT 0,
    elapsed_seconds REAL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS results (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id      TEXT NOT NULL REFERENCES sessions(id),
    ordinal         INTEGER NOT NULL,
    kind            TEXT NOT NULL,
    message         TEXT DEFAULT '',
    detail          TEXT DEFAULT '{}',
    recorded_at     TEXT NOT NULL
);
"""


class HistoryTracker:
    """Persistent run history stored in SQLite."""

    def __init__(self, db_path: str | Path) -> None:
        db_path = Path(db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(db_path))
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        logger.info("History database ready at %s.", db_path)

    # ---- session lifecycle ----

    def start_session(self, metrics: RunMetrics, dry_run: bool) -> None:
        self._conn.execute(
            "INSERT INTO sessions (id, started_at, dry_run) VALUES (?, ?, ?)",
            (metrics.session_id, metrics.started_at, int(dry_run)),
        )
        self._conn.commit()

    def end_session(self, metrics: RunMetrics, status: str) -> None:
        self._conn.execute(
            "UPDATE sessions SET ended_at=?, status=?, processed=?, errored=?, "
            "skipped=?, elapsed_seconds=? WHERE id=?",
            (
                metrics.ended_at or datetime.now(timezone.utc).isoformat(),
                status,
                metrics.processed,
                metrics.errored,
                metrics.skipped,
                metrics.elapsed_seconds,
                metrics.session_id,
            ),
        )
        self._conn.commit()

    # ---- results ----

    def record_result(self, session_id: str, result: ProcessingResult) -> None:
        self._conn.execute(
            "INSERT INTO results (session_id, ordinal, kind, message, detail, recorded_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                session_id,
                result.ordinal,
                result.kind.value,
                result.message,
                json.dumps(result.detail, ensure_ascii=False, default=str),
                result.recorded_at,
            ),
        )
        self._conn.commit()

    # ---- queries ----

    def get_recent_results(self, limit: int = 20) -> list[dict]:
        cur = self._conn.execute(
            "SELECT session_id, ordinal, kind, message, detail, recorded_at "
            "FROM results ORDER BY id DESC LIMIT ?",
            (limit,),
        )
        rows = [dict(r) for r in cur.fetchall()]
        for row in rows:
            row["detail"] = json.loads(row["detail"] or "{}")
        return rows

    def get_session_summary(self, session_id: str) -> dict | None:
        cur = self._conn.execute("SELECT * FROM sessions WHERE id=?", (session_id,))
        row = cur.fetchone()
        return dict(row) if row else None

    def close(self) -> None:
        self._conn.close()
