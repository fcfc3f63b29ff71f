"""RSS Relay — Notification Broadcaster.

Formats one feed event and delivers it to every user and channel in the
recipient directory. Delivery is best-effort: every recipient gets exactly
one attempt, a failure never stops the others, and nothing is retried.
"""

from __future__ import annotations

import asyncio
from datetime import tzinfo

from rss_relay.models import DeliveryResult, FeedEvent, RecipientDirectory, RecipientId
from rss_relay.notifier.formatters import format_feed_event
from rss_relay.notifier.telegram_bot import TelegramNotifier
from rss_relay.stats import MessageStats
from rss_relay.utils.logger import get_logger

logger = get_logger(__name__)


class Broadcaster:
    """Fan-out of feed events to the recipient directory.

    Attributes:
        recipients: Users and channels to deliver to.
        tz: Display timezone for publish times.
    """

    def __init__(
        self,
        notifier: TelegramNotifier,
        recipients: RecipientDirectory,
        stats: MessageStats,
        tz: tzinfo,
    ) -> None:
        self.notifier = notifier
        self.recipients = recipients
        self.stats = stats
        self.tz = tz

    async def broadcast(self, event: FeedEvent) -> list[DeliveryResult]:
        """Deliver one event to every recipient.

        Sends run concurrently. The result list follows directory order:
        users first, then channels.

        Args:
            event: The matched feed item.

        Returns:
            One DeliveryResult per recipient.
        """
        text = format_feed_event(event, self.tz)
        logger.info("Broadcasting %r to %d recipients", event.title, len(self.recipients))
        logger.debug("Message text: %s", text)

        targets: list[tuple[RecipientId, str]] = [
            *((user, "user") for user in self.recipients.users),
            *((channel, "channel") for channel in self.recipients.channels),
        ]
        results = await asyncio.gather(
            *(self._deliver(recipient, kind, text) for recipient, kind in targets)
        )

        delivered = sum(1 for r in results if r.ok)
        logger.info("Broadcast %r: %d/%d delivered", event.title, delivered, len(results))
        return list(results)

    async def __call__(self, event: FeedEvent) -> None:
        await self.broadcast(event)

    async def _deliver(self, recipient: RecipientId, kind: str, text: str) -> DeliveryResult:
        try:
            error = await self.notifier.send_text(recipient, text)
        except Exception as e:
            # Transport bugs must not cancel the rest of the fan-out
            logger.exception("Unexpected error sending to %s %s", kind, recipient)
            error = str(e) or type(e).__name__

        if error is not None:
            logger.error("Failed to deliver to %s %s: %s", kind, recipient, error)
            return DeliveryResult(recipient=recipient, kind=kind, ok=False, error=error)

        logger.info("Delivered to %s %s", kind, recipient)
        try:
            await self.stats.increment_message_count()
        except Exception as e:
            logger.error("Failed to count delivery to %s %s: %s", kind, recipient, e)
        return DeliveryResult(recipient=recipient, kind=kind, ok=True)
