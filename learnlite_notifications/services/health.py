from typing import Any, Dict, Optional

from learnlite_notifications.config.settings import Settings
from learnlite_notifications.workers.notifications_worker import NotificationsWorker
from learnlite_notifications.utils.logging import configure_logging


DISABLED_MESSAGE = "Notifications worker is disabled"
HEALTH_ERROR = "Failed to get notifications health status"

log = configure_logging("notifications_health")


def notifications_health(settings: Settings, worker: Optional[NotificationsWorker]) -> Dict[str, Any]:
    """Body for ``GET /api/notifications/health``.

    When notifications are disabled the worker is never consulted, and callers
    are expected not to have built one.
    """
    if not settings.notifications_enabled:
        return {
            "ok": True,
            "version": settings.version,
            "enabled": False,
            "message": DISABLED_MESSAGE,
        }

    if worker is None:
        log.error("Notifications enabled but no worker was started")
        return {"ok": False, "error": HEALTH_ERROR}

    try:
        status = worker.get_status()
    except Exception:
        log.exception("Error getting notifications health")
        return {"ok": False, "error": HEALTH_ERROR}

    return {"ok": True, "version": settings.version, **status.as_dict()}
