from typing import Any, Optional

from learnlite_notifications.adapters.postgres.db import PostgresPool
from learnlite_notifications.adapters.queue import outbox
from learnlite_notifications.config.settings import Settings
from learnlite_notifications.utils.logging import configure_logging


def notifications_enabled(settings: Settings) -> bool:
    return settings.notifications_enabled


class Publisher:
    """Appends events to the outbox for the notifications worker.

    ``publish`` runs in its own transaction after the caller's business write
    has committed and never raises: a lost notification must not undo the
    caller's work. Callers that need the event to commit atomically with their
    own write use ``publish_in_transaction`` on their open connection.
    """

    def __init__(self, pg_pool: PostgresPool):
        self.pg_pool = pg_pool
        self.log = configure_logging("notifications_publisher")

    def publish(self, topic: str, payload: Any) -> Optional[int]:
        if not isinstance(topic, str) or not topic.strip():
            self.log.error("Refusing to publish event without a topic", extra={"topic": topic})
            return None

        try:
            with self.pg_pool.transaction() as conn:
                event_id = outbox.insert_event(conn, topic, payload)
        except Exception:
            self.log.exception("Failed to publish event to outbox", extra={"topic": topic})
            return None

        self.log.debug("Published outbox event", extra={"topic": topic, "event_id": event_id})
        return event_id

    def publish_in_transaction(self, conn, topic: str, payload: Any) -> int:
        """Insert the event on ``conn``; the caller commits or rolls back."""
        if not isinstance(topic, str) or not topic.strip():
            raise ValueError("topic must be a non-empty string")
        return outbox.insert_event(conn, topic, payload)
