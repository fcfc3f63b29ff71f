"""RSS Relay — SQLite Connection Manager.

Async SQLite connection management using aiosqlite. Creates the two
tables the relay needs and owns the connection lifecycle.
"""

from __future__ import annotations

from pathlib import Path

import aiosqlite

from rss_relay.utils.logger import get_logger

logger = get_logger(__name__)

# ── Schema Definitions ────────────────────────────────────
SCHEMA_SQL = """
-- ═══ Deliveries Table ═══
-- One row per message successfully delivered to a recipient.
CREATE TABLE IF NOT EXISTS deliveries (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    delivered_at TEXT    NOT NULL
);

-- ═══ Seen Items Table ═══
-- Feed items already processed, keyed by feed URL and item id.
CREATE TABLE IF NOT EXISTS seen_items (
    feed_url TEXT NOT NULL,
    item_id  TEXT NOT NULL,
    seen_at  TEXT NOT NULL,
    PRIMARY KEY (feed_url, item_id)
);

CREATE INDEX IF NOT EXISTS idx_deliveries_delivered_at ON deliveries(delivered_at);
CREATE INDEX IF NOT EXISTS idx_seen_items_seen_at      ON seen_items(seen_at);
"""


class Database:
    """Async SQLite database connection manager.

    Attributes:
        db_path: Resolved path to the SQLite file, or ":memory:".
    """

    def __init__(self, db_path: str) -> None:
        """Initialize the database manager.

        Args:
            db_path: Path to the SQLite file. Parent directories are created
                     on initialize(). ":memory:" gives a throwaway database.
        """
        self.db_path = db_path if db_path == ":memory:" else Path(db_path).resolve()
        self._connection: aiosqlite.Connection | None = None
        logger.debug("Database manager initialized with path: %s", self.db_path)

    async def initialize(self) -> None:
        """Open the connection, set pragmas and create the schema."""
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        logger.info("Connecting to database: %s", self.db_path)
        self._connection = await aiosqlite.connect(str(self.db_path))

        if isinstance(self.db_path, Path):
            await self._connection.execute("PRAGMA journal_mode=WAL")
        self._connection.row_factory = aiosqlite.Row

        await self._connection.executescript(SCHEMA_SQL)
        await self._connection.commit()

        logger.info("Database initialized — all tables ready")

    async def get_connection(self) -> aiosqlite.Connection:
        """Get the active connection, initializing on first use."""
        if self._connection is None:
            await self.initialize()
        return self._connection

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("Database connection closed")

    async def __aenter__(self) -> "Database":
        await self.initialize()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
