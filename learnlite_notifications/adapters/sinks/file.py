import json
from pathlib import Path
from typing import Union

from learnlite_notifications.adapters.sinks.base import Sink
from learnlite_notifications.domain.models.events import OutboxEvent


class FileSink(Sink):
    """Appends events as JSON lines to an append-only log file."""

    name = "file"

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._dir_ready = False

    def deliver(self, event: OutboxEvent) -> None:
        if not self._dir_ready:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._dir_ready = True

        line = json.dumps(event.to_record(), default=str)
        with self.path.open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")
