"""RSS Relay — Database Query Operations.

All async read/write operations. Every function uses parameterized
queries, commits after writes and logs at DEBUG level. Timestamps are
stored as UTC ISO-8601 strings, which sort lexicographically.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional

from rss_relay.database.db import Database
from rss_relay.utils.logger import get_logger

logger = get_logger(__name__)

# Ledger row recording that a feed was seeded; parsed items never have an empty id
SEED_MARKER = ""


def _iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


# ═══════════════════════════════════════════════════════════
# Delivery Counters
# ═══════════════════════════════════════════════════════════


async def record_delivery(db: Database, at: Optional[datetime] = None) -> None:
    """Record one successful delivery.

    Args:
        db: Active database instance.
        at: Delivery time; defaults to now.
    """
    conn = await db.get_connection()
    await conn.execute(
        "INSERT INTO deliveries (delivered_at) VALUES (?)",
        (_iso(at or datetime.now(timezone.utc)),),
    )
    await conn.commit()


async def count_deliveries_since(db: Database, since: datetime) -> int:
    """Count deliveries at or after the given moment.

    Args:
        db: Active database instance.
        since: Timezone-aware lower bound.

    Returns:
        Number of delivery rows.
    """
    conn = await db.get_connection()
    cursor = await conn.execute(
        "SELECT COUNT(*) AS n FROM deliveries WHERE delivered_at >= ?",
        (_iso(since),),
    )
    row = await cursor.fetchone()
    count = row["n"] if row else 0
    logger.debug("count_deliveries_since(%s) = %d", since, count)
    return count


async def cleanup_deliveries(db: Database, before: datetime) -> int:
    """Delete delivery rows older than the given moment.

    Returns:
        Number of rows deleted.
    """
    conn = await db.get_connection()
    cursor = await conn.execute(
        "DELETE FROM deliveries WHERE delivered_at < ?",
        (_iso(before),),
    )
    await conn.commit()
    deleted = cursor.rowcount or 0
    logger.debug("cleanup_deliveries removed %d rows", deleted)
    return deleted


# ═══════════════════════════════════════════════════════════
# Seen Items
# ═══════════════════════════════════════════════════════════


async def feed_has_history(db: Database, feed_url: str) -> bool:
    """Whether any item of this feed has been recorded before."""
    conn = await db.get_connection()
    cursor = await conn.execute(
        "SELECT 1 FROM seen_items WHERE feed_url = ? LIMIT 1",
        (feed_url,),
    )
    row = await cursor.fetchone()
    return row is not None


async def mark_feed_seeded(db: Database, feed_url: str) -> None:
    """Record that a feed was seeded, even if it had no items yet."""
    await mark_items_seen(db, feed_url, [SEED_MARKER])


async def is_item_seen(db: Database, feed_url: str, item_id: str) -> bool:
    """Whether the item was already processed for this feed."""
    conn = await db.get_connection()
    cursor = await conn.execute(
        "SELECT 1 FROM seen_items WHERE feed_url = ? AND item_id = ? LIMIT 1",
        (feed_url, item_id),
    )
    row = await cursor.fetchone()
    logger.debug("is_item_seen(%s, %s) = %s", feed_url, item_id, row is not None)
    return row is not None


async def mark_items_seen(
    db: Database, feed_url: str, item_ids: Iterable[str],
) -> int:
    """Record items as processed. Duplicates are ignored.

    Returns:
        Number of item ids submitted.
    """
    now = _iso(datetime.now(timezone.utc))
    rows = [(feed_url, item_id, now) for item_id in item_ids]
    if not rows:
        return 0

    conn = await db.get_connection()
    await conn.executemany(
        "INSERT OR IGNORE INTO seen_items (feed_url, item_id, seen_at) VALUES (?, ?, ?)",
        rows,
    )
    await conn.commit()
    logger.debug("Marked %d items seen for %s", len(rows), feed_url)
    return len(rows)


async def cleanup_seen_items(db: Database, before: datetime) -> int:
    """Delete seen-item rows older than the given moment.

    Seed markers are kept so a quiet feed is never seeded twice.

    Returns:
        Number of rows deleted.
    """
    conn = await db.get_connection()
    cursor = await conn.execute(
        "DELETE FROM seen_items WHERE seen_at < ? AND item_id != ?",
        (_iso(before), SEED_MARKER),
    )
    await conn.commit()
    deleted = cursor.rowcount or 0
    logger.debug("cleanup_seen_items removed %d rows", deleted)
    return deleted
