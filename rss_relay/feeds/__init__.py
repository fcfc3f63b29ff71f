"""RSS Relay — Feeds Package.

Fetching, parsing and scheduled polling of subscribed feeds.
"""

from rss_relay.feeds.client import FeedClient
from rss_relay.feeds.parser import FeedItem, match_keywords, parse_feed
from rss_relay.feeds.poller import FeedPoller

__all__ = ["FeedClient", "FeedItem", "FeedPoller", "match_keywords", "parse_feed"]
