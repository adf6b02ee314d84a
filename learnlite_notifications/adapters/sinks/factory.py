from learnlite_notifications.adapters.sinks.base import Sink
from learnlite_notifications.adapters.sinks.console import ConsoleSink
from learnlite_notifications.adapters.sinks.file import FileSink
from learnlite_notifications.config.settings import NotificationsConfig, SinkKind


def build_sink(config: NotificationsConfig) -> Sink:
    if config.sink == SinkKind.FILE:
        return FileSink(config.log_path)
    return ConsoleSink()
