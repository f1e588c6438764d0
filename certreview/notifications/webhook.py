"""Approval webhook - fire-and-forget notification."""

import asyncio
import json
import logging
from typing import Any
from urllib.parse import quote

import httpx

from certreview.config import Settings, settings
from certreview.models import ValidatedReport

logger = logging.getLogger(__name__)
dead_letter_logger = logging.getLogger("certreview.webhook.deadletter")


def build_report_url(base_url: str, cert_no: str) -> str:
    return f"{base_url.rstrip('/')}/dashboard/report-viewer/{quote(cert_no, safe='')}"


class WebhookNotifier:
    """
    Posts approval events on detached tasks. Delivery has its own timeout and
    never reports back to the caller; failed payloads go to the dead-letter logger.
    """

    def __init__(
        self,
        config: Settings = settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._transport = transport
        self._inflight: set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return self.config.webhook_enabled and bool(self.config.webhook_url)

    def approval_payload(self, record: ValidatedReport) -> dict[str, Any]:
        return {
            "event": "certificate.approved",
            "cert_no": record.cert_no,
            "approved_by": record.approved_by,
            "approved_at": record.approved_at.isoformat() if record.approved_at else None,
            "report_url": build_report_url(self.config.report_viewer_base_url, record.cert_no),
        }

    def dispatch(self, payload: dict[str, Any]) -> asyncio.Task | None:
        """Schedule delivery and return immediately."""
        if not self.enabled:
            return None
        task = asyncio.create_task(self.deliver(payload))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _post(self, payload: dict[str, Any]) -> None:
        async with httpx.AsyncClient(
            transport=self._transport, timeout=self.config.webhook_timeout_seconds
        ) as http:
            response = await http.post(self.config.webhook_url, json=payload)
        response.raise_for_status()

    async def deliver(self, payload: dict[str, Any]) -> bool:
        try:
            await asyncio.wait_for(
                self._post(payload), timeout=self.config.webhook_timeout_seconds
            )
        except Exception:
            dead_letter_logger.warning(
                "Webhook delivery failed for %s: %s",
                payload.get("cert_no"),
                json.dumps(payload),
                exc_info=True,
            )
            return False
        logger.info("Webhook delivered for %s", payload.get("cert_no"))
        return True

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown and tests)."""
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)


webhook_notifier = WebhookNotifier()


def get_webhook_notifier() -> WebhookNotifier:
    return webhook_notifier
