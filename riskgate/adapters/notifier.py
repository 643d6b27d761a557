"""Fire-and-forget notification sinks."""

from typing import Dict, Optional, Protocol

import aiohttp

from ..config import get_settings
from ..logging import get_logger

logger = get_logger(__name__)


class Notifier(Protocol):
    async def notify(self, title: str, message: str, fields: Optional[Dict[str, str]] = None) -> None:
        ...


class NullNotifier:
    """Drops every notification."""

    async def notify(self, title: str, message: str, fields: Optional[Dict[str, str]] = None) -> None:
        logger.debug("Notification dropped", title=title)


class SlackNotifier:
    """Posts notifications to a Slack incoming webhook.

    Delivery failures are logged and never raised to the caller.
    """

    def __init__(self, webhook_url: Optional[str] = None, *, channel: Optional[str] = None, timeout: float = 10):
        settings = get_settings()
        self.webhook_url = webhook_url or settings.slack_webhook_url
        self.channel = channel or settings.slack_channel
        self._timeout = timeout

        if not self.webhook_url:
            raise ValueError("Slack webhook URL not configured")

    def _build_payload(self, title: str, message: str, fields: Optional[Dict[str, str]]) -> dict:
        blocks = [
            {"type": "header", "text": {"type": "plain_text", "text": title, "emoji": True}},
            {"type": "section", "text": {"type": "mrkdwn", "text": message}},
        ]
        if fields:
            blocks.append({
                "type": "context",
                "elements": [
                    {"type": "mrkdwn", "text": f"*{key}:* {value}"} for key, value in fields.items()
                ],
            })

        payload = {"text": title, "blocks": blocks}
        if self.channel:
            payload["channel"] = self.channel
        return payload

    async def notify(self, title: str, message: str, fields: Optional[Dict[str, str]] = None) -> None:
        payload = self._build_payload(title, message, fields)
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self.webhook_url,
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=self._timeout),
                ) as response:
                    response.raise_for_status()
            logger.info("Notification sent", title=title)
        except Exception as e:
            logger.warning("Notification failed", title=title, error=str(e))


def resolve_notifier() -> Notifier:
    """Slack if a webhook is configured, otherwise a no-op sink."""
    settings = get_settings()
    if settings.slack_webhook_url:
        return SlackNotifier()
    return NullNotifier()


async def safe_notify(
    notifier: Notifier,
    title: str,
    message: str,
    fields: Optional[Dict[str, str]] = None,
) -> None:
    """Deliver through any sink; its errors are logged, not raised."""
    try:
        await notifier.notify(title, message, fields)
    except Exception as e:
        logger.warning("Notification failed", title=title, error=str(e))
