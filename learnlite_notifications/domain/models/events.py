from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class OutboxEvent:
    id: int
    topic: str
    payload: Any
    created_at: datetime
    processed: bool = False
    processed_at: Optional[datetime] = None

    def to_record(self) -> Dict[str, Any]:
        """JSON-line shape used by the file sink."""
        return {
            "id": self.id,
            "topic": self.topic,
            "payload": self.payload,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class WorkerStatus:
    """Snapshot of worker health for the notifications health endpoint."""

    enabled: bool
    interval: int
    last_run_at: Optional[datetime]
    pending_estimate: int
    sink: str

    def as_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "interval": self.interval,
            "lastRunAt": self.last_run_at.isoformat() if self.last_run_at else None,
            "pendingEstimate": self.pending_estimate,
            "sink": self.sink,
        }


@dataclass(frozen=True)
class CycleResult:
    claimed: int = 0
    delivered: int = 0
    committed: bool = False
    skipped: bool = False
