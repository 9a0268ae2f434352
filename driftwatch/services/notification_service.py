# driftwatch/services/notification_service.py
"""
Drift Notifications
-------------------
Sends drift alerts to a Slack compatible webhook. Delivery failures are
logged and reported through the return value, never raised: an alert that
cannot be sent must not fail the audit run.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from driftwatch.core.config import settings
from driftwatch.core.drift.types import DriftNotice

logger = logging.getLogger(__name__)

ALERT_COLOR = "#f85149"


class SlackNotifier:
    """Posts drift notices to a chat webhook."""

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls) -> Optional["SlackNotifier"]:
        """Build a notifier from settings, or None when alerts are disabled."""
        if not settings.DRIFT_ALERT_ENABLED:
            return None
        return cls(webhook_url=settings.DRIFT_ALERT_WEBHOOK, timeout=settings.DRIFT_ALERT_TIMEOUT)

    def build_payload(self, notices: List[DriftNotice]) -> Dict[str, Any]:
        drift_list = "\n".join(
            f"• *{notice.resource}*: {notice.issue} "
            f"(expected {notice.expected}, actual {notice.actual})"
            for notice in notices
        )
        return {
            "text": "🚨 *DriftWatch: Infrastructure Alert*",
            "attachments": [{
                "color": ALERT_COLOR,
                "blocks": [
                    {
                        "type": "section",
                        "text": {
                            "type": "mrkdwn",
                            "text": f"*Drift Detected:* {len(notices)} items out of sync.\n\n{drift_list}"
                        }
                    },
                    {
                        "type": "context",
                        "elements": [{"type": "mrkdwn", "text": "Verified by *DriftWatch Engine*"}]
                    }
                ]
            }]
        }

    async def notify(self, notices: List[DriftNotice]) -> bool:
        """
        Send an alert for the given notices.

        Returns:
            True if the webhook accepted the alert
        """
        if not self.webhook_url:
            logger.info("No webhook URL configured, skipping drift alert")
            return False
        if not notices:
            return False

        payload = self.build_payload(notices)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.webhook_url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Failed to dispatch drift alert: {str(e)}")
            return False

        logger.info(f"Drift alert dispatched for {len(notices)} issues")
        return True
