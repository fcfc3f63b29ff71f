"""RSS Relay — Telegram Integration Test.

Sends real messages to every configured recipient to verify formatting
and delivery, and prints the per-recipient outcome.

Requires TELEGRAM_BOT_TOKEN in .env and recipients in config/settings.yaml.

Run: python scripts/test_telegram.py
"""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from telegram import Bot

from rss_relay.config import load_config
from rss_relay.database.db import Database
from rss_relay.models import FeedEvent, RecipientDirectory
from rss_relay.notifier.broadcaster import Broadcaster
from rss_relay.notifier.formatters import format_feed_event
from rss_relay.notifier.telegram_bot import TelegramNotifier
from rss_relay.stats import MessageStats
from rss_relay.utils.logger import get_logger

logger = get_logger(__name__)

_passed = 0
_failed = 0


def check(label: str, condition: bool) -> None:
    """Track test pass/fail."""
    global _passed, _failed
    if condition:
        _passed += 1
        logger.info("  ✅ %s", label)
    else:
        _failed += 1
        logger.error("  ❌ FAILED: %s", label)


async def run_test() -> None:
    """Run all Telegram integration tests."""
    logger.info("═══ RSS Relay — Telegram Integration Test ═══")

    config = load_config()
    tz = ZoneInfo(config.display_timezone)
    recipients = RecipientDirectory.from_strings(config.telegram.users, config.telegram.channels)
    check("Recipients configured", len(recipients) > 0)

    async with Bot(config.telegram.bot_token) as bot:
        notifier = TelegramNotifier(bot, config.telegram.send_timeout_seconds)

        # ═══ Test 1: Bot Connection ═══
        logger.info("═══ Test 1: Bot Connection ═══")
        connected = await notifier.initialize()
        check("Bot connected", connected)
        if not connected:
            logger.error("Cannot proceed without bot connection.")
            sys.exit(1)

        # ═══ Test 2: Formatting ═══
        logger.info("═══ Test 2: Formatting ═══")
        event = FeedEvent(
            title="RSS Relay test item",
            url="https://example.com/feed/item-1",
            group="smoke-test",
            published=datetime.now(timezone.utc),
            matched_keywords=("python", "telegram"),
        )
        text = format_feed_event(event, tz)
        check("Keywords bolded", "*python*, *telegram*" in text)
        check("Formatting is stable", text == format_feed_event(event, tz))

        # ═══ Test 3: Broadcast ═══
        logger.info("═══ Test 3: Broadcast ═══")
        async with Database(":memory:") as db:
            stats = MessageStats(db, tz)
            broadcaster = Broadcaster(notifier, recipients, stats, tz)
            results = await broadcaster.broadcast(event)
            for result in results:
                check(f"Delivered to {result.kind} {result.recipient}", result.ok)

            daily, _ = await stats.get_message_counts()
            check("Counter matches deliveries", daily == sum(1 for r in results if r.ok))

    logger.info("")
    logger.info("  Results: %d passed, %d failed", _passed, _failed)

    if _failed > 0:
        logger.error("Some tests failed!")
        sys.exit(1)
    else:
        logger.info("🎉 All Telegram tests passed! Check your chats for the message.")


if __name__ == "__main__":
    asyncio.run(run_test())
