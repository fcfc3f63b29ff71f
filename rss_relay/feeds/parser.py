"""RSS Relay — Feed Parsing and Keyword Matching.

Turns a raw RSS/Atom document into FeedItem values with feedparser and
decides which of a subscription's keywords an item matches.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence

import feedparser

from rss_relay.utils.logger import get_logger

logger = get_logger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")


@dataclass(frozen=True)
class FeedItem:
    """One entry of a parsed feed.

    Attributes:
        item_id: Stable identifier (guid/id, else link, else title).
        title: Entry title.
        link: Entry link.
        summary: Entry summary with HTML tags removed.
        published: Publish (or update) time in UTC.
    """

    item_id: str
    title: str
    link: str
    summary: str
    published: datetime


def _entry_time(entry: feedparser.FeedParserDict) -> Optional[datetime]:
    for key in ("published_parsed", "updated_parsed", "created_parsed"):
        parsed = entry.get(key)
        if parsed:
            return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)
    return None


def parse_feed(text: str, now: Optional[datetime] = None) -> list[FeedItem]:
    """Parse a feed document.

    Entries without any identifier are skipped. Entries without a date
    get `now`.

    Args:
        text: Raw RSS/Atom XML.
        now: Fallback publish time; defaults to the current time.

    Returns:
        Items in document order.
    """
    parsed = feedparser.parse(text)
    if parsed.bozo and not parsed.entries:
        logger.warning("Unparseable feed: %s", parsed.get("bozo_exception"))
        return []

    fallback = now or datetime.now(timezone.utc)
    items: list[FeedItem] = []
    for entry in parsed.entries:
        title = (entry.get("title") or "").strip()
        link = (entry.get("link") or "").strip()
        item_id = (entry.get("id") or link or title).strip()
        if not item_id:
            continue
        summary = _TAG_RE.sub("", entry.get("summary") or "").strip()
        items.append(FeedItem(
            item_id=item_id,
            title=title,
            link=link,
            summary=summary,
            published=_entry_time(entry) or fallback,
        ))

    logger.debug("Parsed %d items", len(items))
    return items


def match_keywords(item: FeedItem, keywords: Sequence[str]) -> Optional[list[str]]:
    """Return the keywords found in an item's title or summary.

    Matching is a case-insensitive substring test. Blank keywords are
    ignored, so a subscription whose keywords are all blank behaves like
    one without keywords.

    Returns:
        The matched keywords in subscription order; an empty list when the
        subscription has no keywords (everything matches); None when no
        keyword matched.
    """
    active = [k.strip() for k in keywords if k.strip()]
    if not active:
        return []

    haystack = f"{item.title}\n{item.summary}".casefold()
    matched = [k for k in active if k.casefold() in haystack]
    return matched or None
