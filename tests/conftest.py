import json
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

import psycopg2
import pytest

from learnlite_notifications.adapters.postgres import db as db_module
from learnlite_notifications.adapters.postgres.db import PostgresPool
from learnlite_notifications.adapters.sinks.base import Sink
from learnlite_notifications.config.settings import NotificationsConfig
from learnlite_notifications.domain.models.events import OutboxEvent
from learnlite_notifications.services.publisher import Publisher
from learnlite_notifications.workers.notifications_worker import NotificationsWorker


BASE_TIME = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)


class FakeDatabase:
    """In-memory stand-in for the outbox_events table.

    Understands the statements issued by the outbox adapter, stages writes per
    connection until commit, honours SKIP LOCKED claims across connections, and
    records every statement executed.
    """

    def __init__(self):
        self.rows: Dict[int, Dict[str, Any]] = {}
        self.statements: List[tuple] = []
        self.locked: Set[int] = set()
        self._next_id = 1
        self._tick = 0
        self._failures: Dict[str, Exception] = {}
        self._lock = threading.RLock()

    def now(self) -> datetime:
        self._tick += 1
        return BASE_TIME + timedelta(seconds=self._tick)

    def fail_next(self, kind: str, exc: Optional[Exception] = None) -> None:
        self._failures[kind] = exc or psycopg2.OperationalError(f"simulated {kind} failure")

    def maybe_fail(self, kind: str) -> None:
        exc = self._failures.pop(kind, None)
        if exc is not None:
            raise exc

    def allocate_id(self) -> int:
        with self._lock:
            event_id = self._next_id
            self._next_id += 1
            return event_id

    def insert_direct(self, topic: str, payload: Any, created_at: Optional[datetime] = None) -> int:
        """Insert a committed row, bypassing the publisher."""
        with self._lock:
            event_id = self.allocate_id()
            self.rows[event_id] = {
                "id": event_id,
                "topic": topic,
                "payload": payload,
                "created_at": created_at or self.now(),
                "processed": False,
                "processed_at": None,
            }
            return event_id

    def pending_ids(self) -> List[int]:
        return sorted(i for i, row in self.rows.items() if not row["processed"])

    def queries(self, fragment: str) -> List[tuple]:
        return [(sql, params) for sql, params in self.statements if fragment in sql]


class FakeCursor:
    def __init__(self, conn: "FakeConnection"):
        self.conn = conn
        self._result: List[Dict[str, Any]] = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql: str, params: Iterable = ()) -> None:
        params = tuple(params or ())
        db = self.conn.db
        with db._lock:
            db.statements.append((sql, params))
            normalized = " ".join(sql.split())

            if normalized.startswith("INSERT INTO outbox_events"):
                db.maybe_fail("insert")
                topic, document = params
                event_id = db.allocate_id()
                self.conn.staged_inserts[event_id] = {
                    "id": event_id,
                    "topic": topic,
                    "payload": json.loads(document),
                    "created_at": db.now(),
                    "processed": False,
                    "processed_at": None,
                }
                self._result = [{"id": event_id}]
            elif "FOR UPDATE SKIP LOCKED" in normalized:
                db.maybe_fail("claim")
                (limit,) = params
                candidates = sorted(
                    (
                        row
                        for row in db.rows.values()
                        if not row["processed"] and row["id"] not in db.locked
                    ),
                    key=lambda row: row["created_at"],
                )[:limit]
                for row in candidates:
                    db.locked.add(row["id"])
                    self.conn.locks.add(row["id"])
                self._result = [
                    {k: row[k] for k in ("id", "topic", "payload", "created_at")} for row in candidates
                ]
            elif normalized.startswith("UPDATE outbox_events"):
                db.maybe_fail("update")
                (ids,) = params
                self.conn.staged_updates.update(ids)
                self._result = []
            elif normalized.startswith("SELECT COUNT(*)"):
                db.maybe_fail("count")
                self._result = [{"count": len(db.pending_ids())}]
            elif "CREATE TABLE" in normalized:
                self._result = []
            else:
                raise psycopg2.ProgrammingError(f"unexpected statement: {normalized}")

    def fetchone(self):
        return self._result[0] if self._result else None

    def fetchall(self):
        return list(self._result)


class FakeConnection:
    def __init__(self, db: FakeDatabase):
        self.db = db
        self.closed = 0
        self.commits = 0
        self.rollbacks = 0
        self.staged_inserts: Dict[int, Dict[str, Any]] = {}
        self.staged_updates: Set[int] = set()
        self.locks: Set[int] = set()

    def cursor(self, cursor_factory=None):
        return FakeCursor(self)

    def commit(self) -> None:
        db = self.db
        with db._lock:
            db.maybe_fail("commit")
            db.rows.update(self.staged_inserts)
            processed_at = db.now()
            for event_id in self.staged_updates:
                db.rows[event_id]["processed"] = True
                db.rows[event_id]["processed_at"] = processed_at
            self.commits += 1
            self._reset()

    def rollback(self) -> None:
        with self.db._lock:
            self.rollbacks += 1
            self._reset()

    def _reset(self) -> None:
        self.db.locked.difference_update(self.locks)
        self.locks.clear()
        self.staged_inserts.clear()
        self.staged_updates.clear()


class FakeConnectionPool:
    """Replaces psycopg2's ThreadedConnectionPool inside PostgresPool."""

    def __init__(self, db: FakeDatabase):
        self.db = db
        self.connections: List[FakeConnection] = []
        self.discarded: List[FakeConnection] = []
        self.closed = False

    def getconn(self) -> FakeConnection:
        self.db.maybe_fail("connect")
        conn = FakeConnection(self.db)
        self.connections.append(conn)
        return conn

    def putconn(self, conn: FakeConnection, close: bool = False) -> None:
        if close:
            self.discarded.append(conn)
        elif conn.locks or conn.staged_inserts or conn.staged_updates:
            # psycopg2 rolls back connections returned mid-transaction.
            conn.rollback()

    def closeall(self) -> None:
        self.closed = True
        for conn in self.connections:
            conn.closed = 1


class RecordingSink(Sink):
    name = "recording"

    def __init__(
        self,
        fail_on_ids: Iterable[int] = (),
        on_deliver: Optional[Callable[[OutboxEvent], None]] = None,
    ):
        self.fail_on_ids = set(fail_on_ids)
        self.on_deliver = on_deliver
        self.calls: List[OutboxEvent] = []
        self.delivered: List[OutboxEvent] = []

    def deliver(self, event: OutboxEvent) -> None:
        self.calls.append(event)
        if self.on_deliver is not None:
            self.on_deliver(event)
        if event.id in self.fail_on_ids:
            raise RuntimeError(f"sink rejected event {event.id}")
        self.delivered.append(event)

    @property
    def delivered_ids(self) -> List[int]:
        return [event.id for event in self.delivered]


def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def pg_pool(fake_db, monkeypatch) -> PostgresPool:
    monkeypatch.setattr(
        db_module,
        "ThreadedConnectionPool",
        lambda minconn, maxconn, **kwargs: FakeConnectionPool(fake_db),
    )
    pool = PostgresPool("postgresql://fake/learnlite_test")
    yield pool
    pool.close()


@pytest.fixture
def publisher(pg_pool) -> Publisher:
    return Publisher(pg_pool)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def sink_factory():
    return RecordingSink


@pytest.fixture
def wait_until():
    return wait_for


@pytest.fixture
def make_worker(pg_pool):
    workers: List[NotificationsWorker] = []

    def _make(sink: Sink, interval_ms: int = 5000, batch_size: int = 50, **kwargs) -> NotificationsWorker:
        config = NotificationsConfig(enabled=True, interval_ms=interval_ms, batch_size=batch_size)
        worker = NotificationsWorker(pg_pool, sink, config, **kwargs)
        workers.append(worker)
        return worker

    yield _make
    for worker in workers:
        worker.stop()
