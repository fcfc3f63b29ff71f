"""RSS Relay — Database Package.

aiosqlite-backed storage for delivery counters and the seen-item ledger.
"""

from rss_relay.database.db import Database

__all__ = ["Database"]
