import json
from typing import Any, List, Sequence

from psycopg2.extras import RealDictCursor

from learnlite_notifications.adapters.postgres import db as pg
from learnlite_notifications.domain.models.events import OutboxEvent


INSERT_EVENT_SQL = """
INSERT INTO outbox_events (topic, payload, processed)
VALUES (%s, %s::jsonb, false)
RETURNING id;
"""

CLAIM_EVENTS_SQL = """
SELECT id, topic, payload, created_at
FROM outbox_events
WHERE processed = false
ORDER BY created_at ASC
LIMIT %s
FOR UPDATE SKIP LOCKED;
"""

MARK_PROCESSED_SQL = """
UPDATE outbox_events
SET processed = true, processed_at = NOW()
WHERE id = ANY(%s);
"""

COUNT_PENDING_SQL = "SELECT COUNT(*) AS count FROM outbox_events WHERE processed = false;"


def insert_event(conn, topic: str, payload: Any) -> int:
    """Insert one unprocessed event on ``conn`` without committing."""
    document = json.dumps(payload)
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(INSERT_EVENT_SQL, (topic, document))
        row = cur.fetchone()
    return row["id"]


def claim_pending_events(conn, batch_size: int) -> List[OutboxEvent]:
    """Lock a batch of unprocessed events, oldest first, skipping rows other workers hold."""
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(CLAIM_EVENTS_SQL, (batch_size,))
        rows = cur.fetchall()
    return [OutboxEvent(**row) for row in rows]


def mark_processed(conn, event_ids: Sequence[int]) -> None:
    if not event_ids:
        return
    with conn.cursor() as cur:
        cur.execute(MARK_PROCESSED_SQL, (list(event_ids),))


def count_pending(conn) -> int:
    row = pg.fetch_one(conn, COUNT_PENDING_SQL)
    return int(row["count"]) if row else 0
