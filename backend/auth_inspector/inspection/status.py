"""Inspection status tracker — lock-guarded progress of the current / last run.

begin() is the single-concurrent-run guard: it flips running to True only if
it was False, and resets every per-run field in the same critical section.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone

from auth_inspector.models.inspection import InspectionStatus

logger = logging.getLogger(__name__)

RECENT_CHECKED_LIMIT = 10


def append_recent_checked(prev: list[str], names: list[str], limit: int = RECENT_CHECKED_LIMIT) -> list[str]:
    """Merge names into prev, keeping the last `limit` distinct names, most recent last."""
    if limit <= 0:
        limit = RECENT_CHECKED_LIMIT

    dedup: list[str] = []
    seen: set[str] = set()
    for raw in reversed([*prev, *names]):
        name = (raw or "").strip()
        if not name or name in seen:
            continue
        seen.add(name)
        dedup.append(name)
        if len(dedup) >= limit:
            break
    dedup.reverse()
    return dedup


class InspectionStatusTracker:
    """Owns the process-wide InspectionStatus.

    All mutations and snapshots happen under one lock, so the scheduler loop
    and API handlers (possibly on other threads) see consistent values.
    """

    def __init__(self, recent_limit: int = RECENT_CHECKED_LIMIT) -> None:
        self._lock = threading.Lock()
        self._status = InspectionStatus()
        self._recent_limit = recent_limit

    def begin(self, trigger: str) -> bool:
        """Start a run. Returns False (and changes nothing) if one is in flight."""
        with self._lock:
            if self._status.running:
                return False
            s = self._status
            s.running = True
            s.trigger = (trigger or "").strip()
            s.current_file = ""
            s.recent_checked = []
            s.checked = 0
            s.valid = 0
            s.invalid = 0
            s.deleted = 0
            s.total = 0
            s.round = 0
            s.last_error = ""
            s.last_run_started_at = datetime.now(timezone.utc)
            s.last_run_finished = None
            return True

    def update_progress(
        self,
        total: int,
        checked: int,
        valid: int,
        invalid: int,
        round: int,
        current_name: str = "",
        batch_names: list[str] | None = None,
    ) -> None:
        with self._lock:
            s = self._status
            s.total = total
            # counters only grow within a run
            s.checked = max(s.checked, checked)
            s.valid = max(s.valid, valid)
            s.invalid = max(s.invalid, invalid)
            s.round = max(s.round, round)
            if current_name and current_name.strip():
                s.current_file = current_name.strip()
            if batch_names:
                s.recent_checked = append_recent_checked(s.recent_checked, batch_names, self._recent_limit)

    def finish(self, deleted: int = 0, error: BaseException | str | None = None) -> None:
        with self._lock:
            s = self._status
            s.running = False
            s.deleted = deleted
            if error:
                s.last_error = str(error).strip() or type(error).__name__
            s.last_run_finished = datetime.now(timezone.utc)

    def set_next_run(self, next_run: datetime | None) -> None:
        with self._lock:
            self._status.next_run_at = next_run

    @property
    def next_run_at(self) -> datetime | None:
        with self._lock:
            return self._status.next_run_at

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._status.running

    def snapshot(self) -> InspectionStatus:
        """Read-only copy for reporting."""
        with self._lock:
            return self._status.model_copy(deep=True)
