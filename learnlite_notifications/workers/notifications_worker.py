"""Polling worker that drains the notifications outbox.

Each cycle claims up to ``batch_size`` unprocessed events with
``FOR UPDATE SKIP LOCKED``, hands them to the sink oldest first and marks the
whole batch processed in the same transaction. Any failure rolls the batch
back so every event in it is claimed and delivered again on a later tick.
Several worker processes can poll the same table; the row locks keep their
batches disjoint.
"""
import threading
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional

from learnlite_notifications.adapters.postgres.db import PostgresPool
from learnlite_notifications.adapters.queue import outbox
from learnlite_notifications.adapters.sinks.base import Sink
from learnlite_notifications.config.settings import NotificationsConfig
from learnlite_notifications.domain.models.events import CycleResult, OutboxEvent, WorkerStatus
from learnlite_notifications.utils.logging import configure_logging


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NotificationsWorker:
    def __init__(
        self,
        pg_pool: PostgresPool,
        sink: Sink,
        config: Optional[NotificationsConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.pg_pool = pg_pool
        self.sink = sink
        self.config = config or NotificationsConfig(enabled=True)
        self.log = configure_logging("notifications_worker")
        self._clock = clock or _utcnow

        self._state_lock = threading.Lock()
        self._cycle_lock = threading.Lock()
        self._cycle_owner: Optional[int] = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self._last_run_at: Optional[datetime] = None
        self._pending_estimate = 0

    @property
    def running(self) -> bool:
        return self._thread is not None

    @property
    def sink_name(self) -> str:
        return self.sink.name

    def start(self) -> None:
        with self._state_lock:
            if self._thread is not None:
                self.log.warning("Notifications worker already running")
                return
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run,
                args=(stop_event,),
                name="notifications-worker",
                daemon=True,
            )
            self._stop_event = stop_event
            self._thread = thread
            try:
                thread.start()
            except RuntimeError:
                self._thread = None
                self.log.exception("Could not start notifications worker thread")
                return

        self.log.info(
            "Notifications worker started",
            extra={
                "sink": self.sink_name,
                "interval_ms": self.config.interval_ms,
                "batch_size": self.config.batch_size,
            },
        )

    def stop(self) -> None:
        """Stop polling and wait for an in-flight cycle to commit or roll back."""
        with self._state_lock:
            thread = self._thread
            self._thread = None
            self._stop_event.set()
            cycle_owner = self._cycle_owner

        current = threading.current_thread()
        if thread is not None and thread is not current:
            thread.join()

        # A cycle may also be running from a direct process_events() call.
        if cycle_owner != current.ident:
            with self._cycle_lock:
                pass

        if thread is not None:
            self.log.info("Notifications worker stopped")

    def _run(self, stop_event: threading.Event) -> None:
        interval = self.config.interval_ms / 1000.0
        next_tick = time.monotonic()
        while not stop_event.is_set():
            self.process_events()

            next_tick += interval
            now = time.monotonic()
            if now >= next_tick:
                # Ticks that came due during a long cycle are dropped.
                missed = int((now - next_tick) // interval) + 1
                next_tick += missed * interval
                self.log.debug("Skipped overlapping ticks", extra={"skipped": missed})

            if stop_event.wait(max(0.0, next_tick - time.monotonic())):
                break

    def process_events(self) -> CycleResult:
        """Run one claim/deliver/commit cycle. Never raises."""
        if not self._cycle_lock.acquire(blocking=False):
            self.log.debug("Previous cycle still running; skipping tick")
            return CycleResult(skipped=True)

        with self._state_lock:
            self._cycle_owner = threading.get_ident()
        try:
            result = self._process_batch()
            self._last_run_at = self._clock()
            self._refresh_pending_estimate()
            return result
        finally:
            with self._state_lock:
                self._cycle_owner = None
            self._cycle_lock.release()

    def _process_batch(self) -> CycleResult:
        events: List[OutboxEvent] = []
        delivered = 0
        try:
            with self.pg_pool.transaction() as conn:
                events = outbox.claim_pending_events(conn, self.config.batch_size)
                for event in events:
                    self.sink.deliver(event)
                    delivered += 1
                outbox.mark_processed(conn, [event.id for event in events])
        except Exception:
            self.log.exception(
                "Error processing notification events; batch rolled back",
                extra={"claimed": len(events), "delivered": delivered},
            )
            return CycleResult(claimed=len(events), delivered=delivered, committed=False)

        if events:
            self.log.info("Processed notification events", extra={"count": len(events)})
        return CycleResult(claimed=len(events), delivered=delivered, committed=True)

    def _refresh_pending_estimate(self) -> None:
        try:
            with self.pg_pool.transaction() as conn:
                self._pending_estimate = outbox.count_pending(conn)
        except Exception:
            self.log.exception("Failed to update pending notification count")

    def get_status(self) -> WorkerStatus:
        return WorkerStatus(
            enabled=True,
            interval=self.config.interval_ms,
            last_run_at=self._last_run_at,
            pending_estimate=self._pending_estimate,
            sink=self.sink_name,
        )
