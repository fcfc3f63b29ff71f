"""RSS Relay — Telegram Transport.

Thin async wrapper around python-telegram-bot's Bot for sending text to
one chat. A send is a single attempt bounded by a timeout; failures are
logged and returned as a short error string (None on success), never
raised.
"""

from __future__ import annotations

import asyncio
from typing import Optional, Union

from telegram import Bot
from telegram.constants import ParseMode
from telegram.error import Forbidden, RetryAfter, TelegramError

from rss_relay.utils.logger import get_logger

logger = get_logger(__name__)


class TelegramNotifier:
    """Sends text messages through a Telegram Bot.

    Attributes:
        send_timeout: Upper bound in seconds for one send call.
    """

    def __init__(self, bot: Bot, send_timeout: float = 30.0) -> None:
        """Initialize the notifier.

        Args:
            bot: python-telegram-bot Bot (usually application.bot).
            send_timeout: Seconds before a send is abandoned.
        """
        self._bot = bot
        self.send_timeout = send_timeout

    async def initialize(self) -> bool:
        """Verify the token with getMe.

        Returns:
            True if connected successfully, False otherwise.
        """
        try:
            me = await self._bot.get_me()
            logger.info("Telegram bot connected: @%s", me.username)
            return True
        except TelegramError as e:
            logger.error("Telegram bot connection failed: %s", e)
            return False

    async def send_text(
        self,
        chat_id: Union[int, str],
        text: str,
        parse_mode: Optional[str] = ParseMode.MARKDOWN,
    ) -> Optional[str]:
        """Send one message to one chat.

        Args:
            chat_id: Numeric user/group id or "@channel" username.
            text: Message text.
            parse_mode: Telegram parse mode, None for plain text.

        Returns:
            None if Telegram accepted the message, otherwise a short
            description of the failure.
        """
        try:
            await asyncio.wait_for(
                self._bot.send_message(chat_id=chat_id, text=text, parse_mode=parse_mode),
                timeout=self.send_timeout,
            )
            return None
        except asyncio.TimeoutError:
            error = f"timed out after {self.send_timeout:.0f}s"
        except RetryAfter as e:
            error = f"rate limited, retry after {e.retry_after}s"
        except Forbidden as e:
            error = f"forbidden: {e.message}"
        except TelegramError as e:
            error = e.message

        logger.warning("Send to %s failed: %s", chat_id, error)
        return error
