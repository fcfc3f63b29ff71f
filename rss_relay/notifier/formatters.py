"""RSS Relay — Telegram Message Formatters.

Builds the text of feed notifications (Markdown parse mode) and the
plain-text replies of the /config, /list and /stats commands. Every
function here is pure: the same input always yields the same text.
"""

from __future__ import annotations

from datetime import tzinfo
from typing import Sequence

from rss_relay.config import FeedSubscription
from rss_relay.models import FeedEvent, RecipientDirectory

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def _bold(text: str) -> str:
    return f"*{text}*"


def format_feed_event(event: FeedEvent, tz: tzinfo) -> str:
    """Format a matched feed item for broadcast.

    Args:
        event: The delivery event.
        tz: Display timezone for the publish time.

    Returns:
        Markdown text: title, link, matched keywords, group and time.
    """
    keywords = ", ".join(_bold(k) for k in event.matched_keywords)
    published = event.published.astimezone(tz).strftime(TIME_FORMAT)
    return (
        f"{_bold(event.title)}\n"
        f"📡  {event.url}\n"
        f"🔍  {keywords}\n"
        f"🏷️  {_bold(event.group)}\n"
        f"🕒  {_bold(published)}"
    )


def _format_entries(subscriptions: Sequence[FeedSubscription]) -> str:
    lines = []
    for i, sub in enumerate(subscriptions, 1):
        lines.append(
            f"{i}. 📡  URL: {sub.url}\n"
            f"   ⏱️  间隔: {sub.interval}秒\n"
            f"   🔑  关键词: [{' '.join(sub.keywords)}]\n"
            f"   🏷️  组名: {sub.group}\n"
        )
    return "".join(lines)


def format_subscription_list(subscriptions: Sequence[FeedSubscription]) -> str:
    """Numbered subscription list for /list."""
    return "当前RSS订阅列表:\n" + _format_entries(subscriptions)


def format_config(
    recipients: RecipientDirectory,
    subscriptions: Sequence[FeedSubscription],
) -> str:
    """Recipients plus the numbered subscription list for /config."""
    users = " ".join(str(u) for u in recipients.users)
    channels = " ".join(recipients.channels)
    return (
        "当前配置信息：\n"
        f"用户: [{users}]\n"
        f"频道: [{channels}]\n"
        "RSS订阅:\n"
        + _format_entries(subscriptions)
    )


def format_stats(daily: int, weekly: int) -> str:
    """Delivery counts for /stats."""
    return f"推送统计:\n📊  今日推送: {daily}\n📈  本周推送: {weekly}"
