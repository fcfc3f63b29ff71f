"""RSS Relay — Subscription Store.

In-memory view of feeds.yaml shared by the dialog engine, the command
handlers and the feed poller. Mutations stay in memory until save().
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from rss_relay.config import (
    FeedSubscription,
    SubscriptionConfig,
    load_subscriptions,
    save_subscriptions,
)
from rss_relay.models import parse_int
from rss_relay.utils.logger import get_logger

logger = get_logger(__name__)


class SubscriptionStore:
    """Owner of the live subscription list.

    Attributes:
        path: Location of feeds.yaml.
        config: The current SubscriptionConfig. reload() replaces it.
    """

    def __init__(self, path: str | Path, config: Optional[SubscriptionConfig] = None) -> None:
        self.path = Path(path)
        self.config = config if config is not None else SubscriptionConfig()

    @classmethod
    def open(cls, path: str | Path) -> "SubscriptionStore":
        """Create a store from feeds.yaml, starting empty if the file is missing."""
        path = Path(path)
        if not path.exists():
            logger.warning("Subscription file %s not found, starting empty", path)
            return cls(path)
        return cls(path, load_subscriptions(path))

    # ── Persistence ───────────────────────────────────────

    def reload(self) -> None:
        """Replace the in-memory config with the file contents.

        Raises:
            Whatever load_subscriptions raises; the current config is kept.
        """
        self.config = load_subscriptions(self.path)
        logger.info("Reloaded %d subscriptions from %s", self.size, self.path)

    def save(self) -> None:
        """Write the in-memory config to disk.

        Raises:
            OSError: If the file cannot be written.
        """
        save_subscriptions(self.config, self.path)
        logger.info("Saved %d subscriptions to %s", self.size, self.path)

    # ── Access ────────────────────────────────────────────

    @property
    def subscriptions(self) -> tuple[FeedSubscription, ...]:
        return tuple(self.config.rss)

    @property
    def size(self) -> int:
        return len(self.config.rss)

    def get(self, index: int) -> FeedSubscription:
        """Return the record at a 0-based index.

        Raises:
            IndexError: If the index is out of range.
        """
        self._check(index)
        return self.config.rss[index]

    def resolve_index(self, text: str) -> Optional[int]:
        """Turn 1-based user input into a 0-based index.

        Returns:
            The 0-based index, or None if the text is not an integer
            in [1, size].
        """
        number = parse_int(text)
        if number is None or not 1 <= number <= self.size:
            return None
        return number - 1

    # ── Mutation ──────────────────────────────────────────

    def append(self, record: FeedSubscription) -> None:
        self.config.rss.append(record)

    def replace(self, index: int, record: FeedSubscription) -> None:
        self._check(index)
        self.config.rss[index] = record

    def remove(self, index: int) -> FeedSubscription:
        self._check(index)
        return self.config.rss.pop(index)

    def _check(self, index: int) -> None:
        if not 0 <= index < self.size:
            raise IndexError(f"Subscription index {index} out of range (size {self.size})")
