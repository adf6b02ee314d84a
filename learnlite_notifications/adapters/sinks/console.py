import json
import sys
from datetime import datetime, timezone
from typing import Optional, TextIO

from learnlite_notifications.adapters.sinks.base import Sink
from learnlite_notifications.domain.models.events import OutboxEvent


class ConsoleSink(Sink):
    """Writes one human-readable line per event."""

    name = "console"

    def __init__(self, stream: Optional[TextIO] = None):
        self._stream = stream

    def deliver(self, event: OutboxEvent) -> None:
        stream = self._stream or sys.stdout
        timestamp = datetime.now(timezone.utc).isoformat()
        stream.write(f"[{timestamp}] {event.topic}: {json.dumps(event.payload, default=str)}\n")
        stream.flush()
