import logging
from typing import Any
from datetime import datetime, timezone

import httpx

from wishlist_payments.core.config import Settings

logger = logging.getLogger(__name__)


class SlackService:
    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.slack_url = settings.SLACK_ALERTS_URL
        self.environment = settings.ENVIRONMENT
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.slack_url)

    async def _execute_query(
        self,
        endpoint: str,
        payload: dict[str, Any]
    ) -> dict[str, Any]:
        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(
                endpoint,
                json=payload,
                timeout=10.0
            )
            response.raise_for_status()

            # Slack webhooks answer plain text "ok"
            response_text = response.text.strip()
            return {"status": "ok", "message": response_text or "Message sent successfully"}

    async def send_critical_alert(
        self,
        title: str,
        alert: str,
        platform: str | None = None,
    ) -> dict[str, Any] | None:
        if not self.enabled:
            logger.debug("Slack alerts disabled, dropping alert: %s", title)
            return None

        timestamp = datetime.now(timezone.utc).strftime("%b %d, %Y at %I:%M %p UTC")
        env = self.environment.title()

        fields = [
            {"type": "mrkdwn", "text": "*Severity*\n🔴 Critical"},
            {"type": "mrkdwn", "text": f"*Environment*\n{env}"},
        ]
        if platform:
            fields.append({"type": "mrkdwn", "text": f"*Platform*\n{platform}"})
        fields.append({"type": "mrkdwn", "text": f"*Timestamp*\n{timestamp}"})

        payload: dict[str, Any] = {
            "blocks": [
                {
                    "type": "header",
                    "text": {
                        "type": "plain_text",
                        "text": f"🚨  {title}",
                        "emoji": True,
                    },
                },
            ],
            "attachments": [
                {
                    "color": "#E01E5A",
                    "blocks": [
                        {"type": "section", "text": {"type": "mrkdwn", "text": alert}},
                        {"type": "divider"},
                        {"type": "section", "fields": fields},
                    ],
                }
            ],
        }

        return await self._execute_query(
            endpoint=self.slack_url,
            payload=payload,
        )

    async def alert_quietly(self, title: str, alert: str, platform: str | None = None) -> None:
        """send_critical_alert for error paths: never raises."""
        try:
            await self.send_critical_alert(title=title, alert=alert, platform=platform)
        except Exception as slack_err:
            logger.error("Failed to send Slack alert: %s", slack_err)
