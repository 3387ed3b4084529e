"""Best-effort admin notifications for failed scheduled reports."""

from __future__ import annotations

import asyncio
import json
import logging
import time
import urllib.request
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, List, Optional

logger = logging.getLogger(__name__)

DirectSender = Callable[[int, str], Awaitable[None]]


@dataclass
class AlertPayload:
    """Structured payload for admin notifications."""

    event: str
    message: str
    severity: str = "error"
    timestamp: float = field(default_factory=time.time)


class AdminNotifier:
    """Sends failure notices to admins by direct message and optional webhook.

    Delivery failures are logged and dropped; nothing here is retried and
    nothing is raised back to the caller.
    """

    def __init__(
        self,
        admin_ids: Iterable[int],
        send_direct: Optional[DirectSender] = None,
        *,
        webhook_url: Optional[str] = None,
        timeout: float = 5.0,
    ) -> None:
        self._admin_ids: List[int] = list(admin_ids)
        self._send_direct = send_direct
        self._webhook_url = webhook_url
        self._timeout = timeout

    @property
    def admin_ids(self) -> List[int]:
        return list(self._admin_ids)

    def is_admin(self, user_id: Optional[int]) -> bool:
        return user_id is not None and user_id in self._admin_ids

    async def notify(self, message: str, *, event: str = "report_failed") -> int:
        """Deliver ``message`` to every admin; return how many deliveries worked."""

        delivered = 0
        if self._send_direct is not None:
            for admin_id in self._admin_ids:
                try:
                    await self._send_direct(admin_id, message)
                    delivered += 1
                except Exception:
                    logger.exception("Failed to notify admin %s", admin_id)

        if self._webhook_url:
            payload = AlertPayload(event=event, message=message)
            loop = asyncio.get_running_loop()
            if await loop.run_in_executor(None, self._post_webhook, payload, self._webhook_url):
                delivered += 1

        if not delivered:
            logger.warning("Admin notification not delivered anywhere: %s", message)
        return delivered

    def _post_webhook(self, payload: AlertPayload, webhook_url: str) -> bool:
        text_message = f"[{payload.severity.upper()}] {payload.message}"
        body = {
            "event": payload.event,
            "severity": payload.severity,
            "message": payload.message,
            "timestamp": payload.timestamp,
            "content": text_message,
            "username": "Pixotchi Reports",
        }
        request = urllib.request.Request(
            webhook_url,
            data=json.dumps(body).encode("utf-8"),
            headers={"Content-Type": "application/json"},
        )
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                logger.debug("Admin webhook response %s for %s", response.status, payload.event)
            return True
        except Exception:  # pragma: no cover - network errors are logged for ops visibility.
            logger.exception("Failed to deliver admin webhook for %s", payload.event)
            return False


__all__ = ["AdminNotifier", "AlertPayload", "DirectSender"]
