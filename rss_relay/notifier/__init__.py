"""RSS Relay — Notifier Package.

Components:
  - formatters: notification and command reply text
  - telegram_bot: single-attempt Telegram send with timeout
  - broadcaster: best-effort fan-out to the recipient directory
"""

from rss_relay.notifier.broadcaster import Broadcaster
from rss_relay.notifier.formatters import (
    format_config,
    format_feed_event,
    format_stats,
    format_subscription_list,
)
from rss_relay.notifier.telegram_bot import TelegramNotifier

__all__ = [
    "Broadcaster",
    "TelegramNotifier",
    "format_config",
    "format_feed_event",
    "format_stats",
    "format_subscription_list",
]
