import logging
from datetime import datetime, timezone

from fastapi import Depends

from fundflow.realtime import SubscriptionHub, get_hub, notifications_topic

logger = logging.getLogger(__name__)


class Notifier:
    """Toasts fire-and-forget: loga e publica em `notifications:<uid>`; nunca levanta."""

    def __init__(self, hub: SubscriptionHub):
        self.hub = hub

    def _emit(self, user_id: str | None, level: str, message: str, **extra) -> None:
        log = logger.warning if level == "error" else logger.info
        log("notify user=%s level=%s msg=%s", user_id, level, message)
        if not user_id:
            return
        try:
            self.hub.publish(
                notifications_topic(user_id),
                {
                    "type": "notification",
                    "level": level,
                    "message": message,
                    "at": datetime.now(timezone.utc).isoformat(),
                    **extra,
                },
            )
        except Exception:
            logger.exception("falha ao publicar notificação user=%s", user_id)

    def success(self, user_id: str | None, message: str) -> None:
        self._emit(user_id, "success", message)

    def error(self, user_id: str | None, message: str) -> None:
        self._emit(user_id, "error", message)

    def progress(self, user_id: str | None, file_name: str, fraction: float) -> None:
        if not user_id:
            return
        try:
            self.hub.publish(
                notifications_topic(user_id),
                {"type": "upload_progress", "file": file_name, "progress": round(float(fraction), 4)},
            )
        except Exception:
            logger.exception("falha ao publicar progresso user=%s", user_id)


def get_notifier(hub: SubscriptionHub = Depends(get_hub)) -> Notifier:
    return Notifier(hub)
