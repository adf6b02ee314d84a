from learnlite_notifications.adapters.postgres import db as pg


OUTBOX_EVENTS_DDL = """
CREATE TABLE IF NOT EXISTS outbox_events (
    id           serial PRIMARY KEY,
    topic        text NOT NULL,
    payload      jsonb NOT NULL,
    created_at   timestamptz NOT NULL DEFAULT now(),
    processed    boolean NOT NULL DEFAULT false,
    processed_at timestamptz NULL,
    CONSTRAINT outbox_events_processed_at_chk
        CHECK ((processed AND processed_at IS NOT NULL) OR (NOT processed AND processed_at IS NULL))
);
CREATE INDEX IF NOT EXISTS outbox_events_processed_idx ON outbox_events (processed);
CREATE INDEX IF NOT EXISTS outbox_events_topic_created_at_idx ON outbox_events (topic, created_at);
"""


def ensure_schema(conn) -> None:
    """Create the outbox table and its indexes if they are missing."""
    pg.execute(conn, OUTBOX_EVENTS_DDL)
