"""RSS Relay — Main Orchestrator.

Wires configuration, storage, the Telegram application, the dialog
engine, the broadcaster and the feed poller together, then runs the bot
with long polling until interrupted.

Usage:
    python -m rss_relay.main
    python scripts/run.py
"""

from __future__ import annotations

import sys
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from telegram import Update
from telegram.error import TelegramError
from telegram.ext import Application

from rss_relay.bot.commands import CommandDispatcher, bot_commands
from rss_relay.bot.dialog import DialogEngine
from rss_relay.bot.sessions import SessionStore
from rss_relay.bot.store import SubscriptionStore
from rss_relay.config import AppConfig, load_config
from rss_relay.database.db import Database
from rss_relay.feeds.client import FeedClient
from rss_relay.feeds.poller import FeedPoller
from rss_relay.models import RecipientDirectory
from rss_relay.notifier.broadcaster import Broadcaster
from rss_relay.notifier.telegram_bot import TelegramNotifier
from rss_relay.stats import MessageStats
from rss_relay.utils.logger import get_logger, set_level

logger = get_logger(__name__)


class RelayApp:
    """Main application object.

    Construction validates the recipient directory and timezone, so a
    bad configuration fails before anything connects.

    Attributes:
        config: Full application configuration.
        application: python-telegram-bot Application.
    """

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self.recipients = RecipientDirectory.from_strings(
            config.telegram.users, config.telegram.channels,
        )
        self.tz = ZoneInfo(config.display_timezone)

        self.db = Database(config.database_path)
        self.store = SubscriptionStore.open(config.feeds.subscriptions_path)
        self.sessions = SessionStore()
        self.stats = MessageStats(self.db, self.tz)

        self.application = (
            Application.builder()
            .token(config.telegram.bot_token)
            .post_init(self._post_init)
            .post_shutdown(self._post_shutdown)
            .build()
        )

        self.notifier = TelegramNotifier(
            self.application.bot, config.telegram.send_timeout_seconds,
        )
        self.broadcaster = Broadcaster(self.notifier, self.recipients, self.stats, self.tz)
        self.client = FeedClient(config.feeds)
        self.poller = FeedPoller(self.store, self.db, self.client, self.broadcaster)
        self.engine = DialogEngine(self.store, self.sessions, self.poller.reschedule)
        self.dispatcher = CommandDispatcher(self.store, self.engine, self.recipients, self.stats)
        self.dispatcher.register(self.application)

        logger.info(
            "Relay configured: %d subscriptions, %d users, %d channels",
            self.store.size, len(self.recipients.users), len(self.recipients.channels),
        )

    async def _post_init(self, application: Application) -> None:
        """Startup sequence, run by python-telegram-bot inside its loop."""
        logger.info("═══ Initializing database ═══")
        await self.db.initialize()

        logger.info("═══ Connecting to Telegram ═══")
        if not await self.notifier.initialize():
            logger.error("Telegram bot connection failed! Continuing anyway...")
        try:
            await application.bot.set_my_commands(bot_commands())
        except TelegramError as e:
            logger.error("Setting bot commands failed: %s", e)

        logger.info("═══ Starting feed poller ═══")
        self.poller.start()

    async def _post_shutdown(self, application: Application) -> None:
        """Graceful shutdown: stop polling feeds and close connections."""
        logger.info("═══ Shutting down ═══")
        self.poller.shutdown()
        await self.client.close()
        await self.db.close()
        logger.info("Shutdown complete")

    def run(self) -> None:
        """Run until SIGINT/SIGTERM. Updates are processed one at a time."""
        logger.info("Bot started")
        self.application.run_polling(allowed_updates=Update.ALL_TYPES)


def main() -> None:
    """Application entry point."""
    Path("data").mkdir(exist_ok=True)
    Path("logs").mkdir(exist_ok=True)

    try:
        config = load_config()
        set_level(config.log_level)
        app = RelayApp(config)
    except (FileNotFoundError, ValueError, ZoneInfoNotFoundError) as e:
        logger.critical("Startup failed: %s", e)
        sys.exit(1)

    app.run()


if __name__ == "__main__":
    main()
