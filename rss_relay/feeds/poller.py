"""RSS Relay — Feed Poller.

Schedules one APScheduler job per subscription at its own interval.
Each poll fetches the feed, skips items already in the seen-item ledger,
applies the keyword filter and hands matches to the event handler.

The first poll of a feed with no ledger history only records the items
that are already there, so adding a feed does not flood recipients with
its backlog.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from rss_relay.bot.store import SubscriptionStore
from rss_relay.config import FeedSubscription
from rss_relay.database.db import Database
from rss_relay.database import queries
from rss_relay.feeds.client import FeedClient
from rss_relay.feeds.parser import match_keywords, parse_feed
from rss_relay.models import FeedEvent
from rss_relay.utils.logger import get_logger

logger = get_logger(__name__)

# ── Constants ─────────────────────────────────────────────
MIN_INTERVAL_SECONDS = 30
SEEN_RETENTION_DAYS = 90
# Weekly stats look back at most 7 days
DELIVERY_RETENTION_DAYS = 14
_JOB_PREFIX = "feed:"

EventHandler = Callable[[FeedEvent], Awaitable[object]]


def ledger_key(sub: FeedSubscription) -> str:
    """Seen-item ledger key of a subscription.

    Includes the keywords so two subscriptions to the same URL with
    different filters keep separate ledgers.
    """
    return f"{sub.url}|{','.join(sub.keywords)}"


class FeedPoller:
    """Periodic fetcher feeding matched items to the broadcaster.

    Attributes:
        store: Live subscription store, read on every reschedule().
        db: Database holding the seen-item ledger.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        db: Database,
        client: FeedClient,
        handler: EventHandler,
        scheduler: Optional[AsyncIOScheduler] = None,
    ) -> None:
        """Initialize the poller.

        Args:
            store: Live subscription store.
            db: Active database instance.
            client: HTTP client for feed documents.
            handler: Awaitable called once per matched item.
            scheduler: Scheduler to use; a new AsyncIOScheduler by default.
        """
        self.store = store
        self.db = db
        self.client = client
        self.handler = handler
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)

    # ── Lifecycle ─────────────────────────────────────────

    def start(self) -> None:
        """Schedule every subscription and start the scheduler.

        Must be called from inside the running event loop.
        """
        self._scheduler.add_job(
            self._run_maintenance,
            CronTrigger(hour=3, minute=0),
            id="maintenance",
            max_instances=1,
            replace_existing=True,
            name="Ledger and delivery cleanup (03:00 UTC)",
        )
        self.reschedule()
        self._scheduler.start()
        logger.info("Feed poller started")

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Feed poller stopped")

    def reschedule(self) -> None:
        """Replace all feed jobs with one per current subscription.

        Registered as the "subscriptions changed" callback of the dialog
        engine. Every feed is polled once right away.
        """
        for job in self._scheduler.get_jobs():
            if job.id.startswith(_JOB_PREFIX):
                self._scheduler.remove_job(job.id)

        now = datetime.now(timezone.utc)
        for i, sub in enumerate(self.store.subscriptions, 1):
            interval = max(sub.interval, MIN_INTERVAL_SECONDS)
            if interval != sub.interval:
                logger.warning(
                    "Subscription #%d %s: interval %ds raised to %ds",
                    i, sub.url, sub.interval, interval,
                )
            self._scheduler.add_job(
                self._poll_job,
                IntervalTrigger(seconds=interval),
                args=[sub.copy()],
                id=f"{_JOB_PREFIX}{i}",
                name=f"Poll {sub.url} (every {interval}s)",
                max_instances=1,
                coalesce=True,
                misfire_grace_time=interval,
                next_run_time=now,
            )

        logger.info("Scheduled %d feeds", self.store.size)

    # ── Polling ───────────────────────────────────────────

    async def poll(self, sub: FeedSubscription) -> int:
        """Poll one subscription.

        Args:
            sub: Snapshot of the subscription taken at schedule time.

        Returns:
            Number of events handed to the handler.
        """
        text = await self.client.fetch(sub.url)
        if text is None:
            return 0

        items = parse_feed(text)
        key = ledger_key(sub)

        if not await queries.feed_has_history(self.db, key):
            await queries.mark_feed_seeded(self.db, key)
            await queries.mark_items_seen(self.db, key, [item.item_id for item in items])
            logger.info("Seeded %d existing items for %s", len(items), sub.url)
            return 0

        # Older items may have left the ledger already; never resend them
        cutoff = datetime.now(timezone.utc) - timedelta(days=SEEN_RETENTION_DAYS)
        sent = 0
        # Feeds list newest first; deliver oldest first
        for item in reversed(items):
            if item.published < cutoff:
                continue
            if await queries.is_item_seen(self.db, key, item.item_id):
                continue
            await queries.mark_items_seen(self.db, key, [item.item_id])

            matched = match_keywords(item, sub.keywords)
            if matched is None:
                logger.debug("No keyword match for %r", item.title)
                continue

            await self.handler(FeedEvent(
                title=item.title,
                url=item.link,
                group=sub.group,
                published=item.published,
                matched_keywords=tuple(matched),
            ))
            sent += 1

        if sent:
            logger.info("%s: %d new matching items", sub.url, sent)
        return sent

    async def _poll_job(self, sub: FeedSubscription) -> None:
        try:
            await self.poll(sub)
        except Exception as e:
            logger.error("Polling %s failed: %s", sub.url, e)

    async def _run_maintenance(self) -> None:
        now = datetime.now(timezone.utc)
        try:
            seen = await queries.cleanup_seen_items(
                self.db, now - timedelta(days=SEEN_RETENTION_DAYS),
            )
            deliveries = await queries.cleanup_deliveries(
                self.db, now - timedelta(days=DELIVERY_RETENTION_DAYS),
            )
            logger.info(
                "Maintenance: removed %d old seen items, %d old delivery records",
                seen, deliveries,
            )
        except Exception as e:
            logger.error("Maintenance error: %s", e)
