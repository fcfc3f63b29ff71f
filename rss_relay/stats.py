"""RSS Relay — Delivery Statistics.

Counts successful deliveries and reports today's and this week's totals.
Day and week boundaries follow the display timezone; weeks start on Monday.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Callable, Optional

from rss_relay.database.db import Database
from rss_relay.database import queries
from rss_relay.utils.logger import get_logger

logger = get_logger(__name__)


class MessageStats:
    """Delivery counter backed by the deliveries table.

    Attributes:
        db: Active database instance.
        tz: Timezone used for the daily/weekly boundaries.
    """

    def __init__(
        self,
        db: Database,
        tz: tzinfo,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Initialize the collector.

        Args:
            db: Active database instance.
            tz: Display timezone.
            clock: Returns the current aware datetime; tests inject a fixed one.
        """
        self.db = db
        self.tz = tz
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def increment_message_count(self) -> None:
        """Record one successful delivery."""
        await queries.record_delivery(self.db, self._clock())

    async def get_message_counts(self) -> tuple[int, int]:
        """Return (today, this week) delivery counts."""
        day_start, week_start = self.period_starts()
        daily = await queries.count_deliveries_since(self.db, day_start)
        weekly = await queries.count_deliveries_since(self.db, week_start)
        return daily, weekly

    def period_starts(self) -> tuple[datetime, datetime]:
        """Local midnight today and Monday 00:00 of the current week."""
        now = self._clock().astimezone(self.tz)
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        week_start = day_start - timedelta(days=day_start.weekday())
        return day_start, week_start
