from abc import ABC, abstractmethod

from learnlite_notifications.domain.models.events import OutboxEvent


class Sink(ABC):
    """Delivery target for claimed outbox events.

    Implementations deliver synchronously and let errors propagate; the worker
    rolls the whole batch back when ``deliver`` raises.
    """

    name: str = ""

    @abstractmethod
    def deliver(self, event: OutboxEvent) -> None:
        ...

    def close(self) -> None:
        """Release any resources held by the sink."""
