from __future__ import annotations

import logging
import os
from typing import Tuple

logger = logging.getLogger(__name__)


class NotificationProvider:
    def deliver(
        self,
        *,
        notification_id: str,
        recipient_id: str,
        title: str,
        message: str,
        priority: str,
    ) -> None:
        raise NotImplementedError


class NoopProvider(NotificationProvider):
    def deliver(
        self,
        *,
        notification_id: str,
        recipient_id: str,
        title: str,
        message: str,
        priority: str,
    ) -> None:
        return None


class LogProvider(NotificationProvider):
    """Writes each delivery to the application log; useful in staging."""

    def deliver(
        self,
        *,
        notification_id: str,
        recipient_id: str,
        title: str,
        message: str,
        priority: str,
    ) -> None:
        logger.info(
            "Notification delivered",
            extra={
                "notification_id": notification_id,
                "recipient_id": recipient_id,
                "title": title,
                "priority": priority,
            },
        )


def get_notification_provider() -> Tuple[NotificationProvider, bool]:
    provider_name = (os.getenv("NOTIFICATIONS_PROVIDER") or "").strip().lower()
    if not provider_name or provider_name in {"none", "noop", "disabled"}:
        return NoopProvider(), False
    if provider_name == "log":
        return LogProvider(), True
    raise ValueError(f"Unsupported notification provider: {provider_name}")
