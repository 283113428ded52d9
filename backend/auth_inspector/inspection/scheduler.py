"""Inspection Scheduler — periodic and on-demand auth inspection using asyncio.

Follows the background-scheduler pattern: start() spawns a single control
loop task, stop() cancels it. The loop ticks once per second and on each tick:

1. consumes a pending manual trigger, runs it, recomputes the next run
2. adopts a next-run time set from outside (config update)
3. clears the next run when inspection is disabled
4. schedules now + interval when no next run is set
5. runs a "scheduled" inspection once the next run has elapsed

Manual triggers go through a single-slot mailbox: a request made while the
slot is full is dropped, not queued. Manual and scheduled runs share
run_inspection() and therefore the tracker's begin() guard.

Usage:
    scheduler = InspectionScheduler(verifier=verifier, config_store=store)
    await scheduler.start()
    # ... app runs ...
    scheduler.stop()
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

from auth_inspector.config import settings
from auth_inspector.inspection.config_store import (
    MAX_INTERVAL_SECONDS,
    MIN_INTERVAL_SECONDS,
    InspectionConfigStore,
)
from auth_inspector.inspection.remediation import delete_auth_files
from auth_inspector.inspection.status import InspectionStatusTracker
from auth_inspector.inspection.verifier import BatchVerifier
from auth_inspector.models.inspection import InspectionConfig

logger = logging.getLogger(__name__)

TICK_SECONDS = 1.0
RUN_CONCURRENCY = 40
RUN_BATCH_SIZE = 100
MAX_ROUNDS = 20000
RUN_TIMEOUT_SECONDS = 2 * 3600


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InspectionScheduler:
    """Owns the inspection control loop, the trigger slot, and run orchestration."""

    def __init__(
        self,
        verifier: BatchVerifier,
        config_store: InspectionConfigStore,
        tracker: InspectionStatusTracker | None = None,
        auth_dir: str | Path | None = None,
        provider: str | None = None,
        tick_seconds: float = TICK_SECONDS,
        run_timeout_seconds: float = RUN_TIMEOUT_SECONDS,
        max_rounds: int = MAX_ROUNDS,
    ) -> None:
        self.verifier = verifier
        self.config_store = config_store
        self.tracker = tracker or InspectionStatusTracker()
        self.auth_dir = Path(auth_dir or settings.auth_dir)
        self.provider = provider if provider is not None else settings.inspection_provider
        self.tick_seconds = tick_seconds
        self.run_timeout_seconds = run_timeout_seconds
        self.max_rounds = max_rounds
        self._trigger: asyncio.Queue[str] = asyncio.Queue(maxsize=1)
        self._next_run: datetime | None = None
        self._task: asyncio.Task | None = None
        self._running = False

    async def start(self) -> None:
        """Start the control loop as a background task."""
        if self._running:
            logger.warning("Inspection scheduler already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._loop())
        cfg = self.config_store.effective()
        logger.info(
            "Inspection scheduler started (enabled: %s, interval: %ds)",
            cfg.enabled, cfg.interval_seconds,
        )

    def stop(self) -> None:
        """Stop the control loop."""
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            logger.info("Inspection scheduler stopped")

    async def _loop(self) -> None:
        """Main control loop."""
        while self._running:
            try:
                await asyncio.sleep(self.tick_seconds)
                if not self._running:
                    break
                await self.tick()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Inspection scheduler error: %s", e, exc_info=True)

    async def tick(self) -> None:
        """One pass of the scheduling state machine."""
        try:
            trigger = self._trigger.get_nowait()
        except asyncio.QueueEmpty:
            trigger = None

        if trigger is not None:
            cfg = self.config_store.effective()
            await self.run_inspection(trigger.strip() or "manual", cfg.auto_delete_invalid)
            self._set_next_run(self._after_interval(cfg) if cfg.enabled else None)

        cfg = self.config_store.effective()
        status_next = self.tracker.next_run_at
        if status_next is not None and status_next != self._next_run:
            self._next_run = status_next

        if not cfg.enabled:
            self._set_next_run(None)
            return
        if self._next_run is None:
            self._set_next_run(self._after_interval(cfg))
        if _utcnow() < self._next_run:
            return

        await self.run_inspection("scheduled", cfg.auto_delete_invalid)
        self._set_next_run(self._after_interval(cfg))

    def request_run(self) -> tuple[bool, str]:
        """Ask the loop for a manual run.

        Returns (started, reason). The request is dropped when a run is
        already in flight or another request is already waiting.
        """
        if self.tracker.is_running:
            return False, "inspection already running"
        try:
            self._trigger.put_nowait("manual")
        except asyncio.QueueFull:
            logger.info("Manual inspection request dropped: trigger slot busy")
            return False, "inspection trigger queue is busy"
        logger.info("Manual inspection requested")
        return True, ""

    def update_config(
        self,
        enabled: bool | None = None,
        interval_seconds: int | None = None,
        auto_delete_invalid: bool | None = None,
    ) -> InspectionConfig:
        """Persist a config change and reschedule the next run accordingly."""
        cfg = self.config_store.update(
            enabled=enabled,
            interval_seconds=interval_seconds,
            auto_delete_invalid=auto_delete_invalid,
        )
        self.tracker.set_next_run(self._after_interval(cfg) if cfg.enabled else None)
        return cfg

    async def run_inspection(self, trigger: str, auto_delete_invalid: bool) -> bool:
        """Run one full inspection. Returns False if another run was in flight."""
        if not self.tracker.begin(trigger):
            logger.info("Inspection (%s) not started: already running", trigger)
            return False

        logger.info("Auth inspection started (trigger: %s, provider: %s)", trigger, self.provider)
        deleted = 0
        run_error: str | None = None
        try:
            try:
                await asyncio.wait_for(self._run_rounds(), timeout=self.run_timeout_seconds)
            except asyncio.TimeoutError:
                run_error = f"auth inspection timed out after {int(self.run_timeout_seconds)}s"
                logger.warning("Auth inspection timed out after %ds", int(self.run_timeout_seconds))
            except asyncio.CancelledError:
                run_error = "auth inspection cancelled"
                logger.warning("Auth inspection (%s) cancelled", trigger)
                raise
            except Exception as e:
                logger.error("Auth inspection failed: %s", e, exc_info=True)
                run_error = str(e) or type(e).__name__

            if run_error is None and auto_delete_invalid:
                deleted, run_error = await self._auto_delete_invalid()
        finally:
            self.tracker.finish(deleted, run_error)

        snap = self.tracker.snapshot()
        logger.info(
            "Auth inspection finished (trigger: %s): %d/%d checked, %d valid, %d invalid, %d deleted",
            trigger, snap.checked, snap.total, snap.valid, snap.invalid, snap.deleted,
        )
        return True

    async def _run_rounds(self) -> None:
        """Page through the run's id snapshot until done or the round cap."""
        ids = self.verifier.snapshot_ids(self.provider)
        cursor = 0
        rounds = 0
        checked = valid = invalid = 0
        done = False

        while not done and rounds < self.max_rounds:
            res = await self.verifier.verify_batch(
                provider=self.provider,
                concurrency=RUN_CONCURRENCY,
                batch_size=RUN_BATCH_SIZE,
                cursor=cursor,
                ids=ids,
            )
            checked += res.checked
            valid += res.valid
            invalid += res.invalid
            rounds += 1

            names = [n for n in ((i.name or i.id).strip() for i in res.results) if n]
            self.tracker.update_progress(
                total=res.total,
                checked=checked,
                valid=valid,
                invalid=invalid,
                round=rounds,
                current_name=names[-1] if names else "",
                batch_names=names,
            )

            previous = cursor
            cursor = res.next_cursor
            done = res.done or cursor <= previous or (res.total > 0 and cursor >= res.total)

        if not done:
            logger.warning(
                "Auth inspection stopped at round cap %d (cursor %d of %d)",
                self.max_rounds, cursor, len(ids),
            )

    async def _auto_delete_invalid(self) -> tuple[int, str | None]:
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(
                None, delete_auth_files, self.verifier.manager, self.auth_dir, False, True
            )
        except OSError as e:
            return 0, f"auto delete invalid failed: {e}"
        if result.errors:
            return result.deleted, "auto delete invalid failed: " + "; ".join(result.errors)
        return result.deleted, None

    def _after_interval(self, cfg: InspectionConfig) -> datetime:
        return _utcnow() + timedelta(seconds=cfg.interval_seconds)

    def _set_next_run(self, next_run: datetime | None) -> None:
        self._next_run = next_run
        self.tracker.set_next_run(next_run)

    @property
    def is_running(self) -> bool:
        return self._running and self._task is not None and not self._task.done()

    def get_status(self) -> dict:
        """Config merged with the latest run snapshot, for reporting."""
        cfg = self.config_store.effective()
        snap = self.tracker.snapshot()
        return {
            "enabled": cfg.enabled,
            "interval_seconds": cfg.interval_seconds,
            "auto_delete_invalid": cfg.auto_delete_invalid,
            "min_interval_seconds": MIN_INTERVAL_SECONDS,
            "max_interval_seconds": MAX_INTERVAL_SECONDS,
            "scheduler_running": self.is_running,
            **snap.model_dump(mode="json"),
        }
