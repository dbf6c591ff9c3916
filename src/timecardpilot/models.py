"""Domain models for TimecardPilot."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from timecardpilot.exceptions import DomainError


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    EXPIRED = "expired"


class PipelineState(str, Enum):
    INIT = "init"
    AUTHENTICATING = "authenticating"
    POLLING = "polling"
    PROCESSING = "processing"
    DONE = "done"
    FATAL = "fatal"


TERMINAL_STATES = frozenset({PipelineState.DONE, PipelineState.FATAL})


class ResultKind(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


class SubmissionOutcome(str, Enum):
    """What the row processor did with a single row."""

    SUBMITTED = "submitted"
    DRY_RUN = "dry_run"
    ALREADY_SUBMITTED = "already_submitted"


@dataclass(frozen=True)
class RowReference:
    """Short-lived handle to one flagged row in the current page snapshot.

    ``position`` is the row's index among flagged rows in rendered order;
    ``handle`` becomes stale after the next DOM mutation.
    """

    position: int
    handle: Any
    submitted: bool = False


@dataclass(frozen=True)
class ProcessingResult:
    """Outcome of a single row, as recorded in the run history."""

    kind: ResultKind
    ordinal: int
    message: str
    detail: dict[str, Any] = field(default_factory=dict)
    recorded_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


@dataclass
class RunMetrics:
    """Aggregated counters for one run."""

    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    started_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    ended_at: str = ""
    processed: int = 0
    errored: int = 0
    skipped: int = 0
    elapsed_seconds: float = 0.0
    _started_monotonic: float = field(default_factory=time.monotonic, repr=False)

    def finalize(self) -> None:
        self.ended_at = datetime.now(timezone.utc).isoformat()
        self.elapsed_seconds = round(time.monotonic() - self._started_monotonic, 3)


@dataclass
class RunContext:
    """Mutable loop state threaded through the pipeline's state handlers."""

    metrics: RunMetrics = field(default_factory=RunMetrics)
    ordinal: int = 0
    target_position: int | None = None
    # Positions of rows that stay flagged but must not be picked again
    # (skipped rows, dry-run rows).
    passed_positions: set[int] = field(default_factory=set)
    error: DomainError | None = None
    reauth_streak: int = 0
    results: list[ProcessingResult] = field(default_factory=list)
