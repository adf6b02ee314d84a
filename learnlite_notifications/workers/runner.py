import argparse
import signal
import sys
import threading
from typing import List, Optional

from learnlite_notifications.adapters.postgres.db import PostgresPool
from learnlite_notifications.adapters.queue.schema import ensure_schema
from learnlite_notifications.adapters.sinks.factory import build_sink
from learnlite_notifications.config.settings import Settings
from learnlite_notifications.utils.logging import configure_logging, set_level
from learnlite_notifications.workers.notifications_worker import NotificationsWorker


def build_worker(settings: Settings, pg_pool: PostgresPool) -> Optional[NotificationsWorker]:
    """Construct the worker, or None when notifications are disabled."""
    config = settings.notifications()
    if not config.enabled:
        return None
    return NotificationsWorker(pg_pool, build_sink(config), config)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="LearnLite notifications outbox worker")
    parser.add_argument(
        "--init-schema",
        action="store_true",
        help="create the outbox_events table before polling",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = Settings()
    log = configure_logging("notifications_runner", settings.log_level)
    set_level(settings.log_level, "notifications_worker", "notifications_publisher")
    log.info("Starting notifications runner", extra=settings.summary())

    pg_pool = PostgresPool(settings.database_dsn)
    try:
        if args.init_schema:
            with pg_pool.connection() as conn:
                ensure_schema(conn)
            log.info("Outbox schema ready")

        worker = build_worker(settings, pg_pool)
        if worker is None:
            log.info("Notifications worker: disabled")
            return 0

        shutdown = threading.Event()

        def _request_shutdown(signum, _frame):
            log.info("Received signal, starting graceful shutdown", extra={"signal": signum})
            shutdown.set()

        signal.signal(signal.SIGTERM, _request_shutdown)
        signal.signal(signal.SIGINT, _request_shutdown)

        worker.start()
        while not shutdown.wait(1.0):
            pass

        worker.stop()
        worker.sink.close()
        log.info("Graceful shutdown completed")
        return 0
    finally:
        pg_pool.close()


if __name__ == "__main__":
    sys.exit(main())
