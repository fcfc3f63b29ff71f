"""RSS Relay — Telegram Command Handlers.

Interactive commands via Telegram bot:
  /start  — welcome message
  /help   — command list
  /config — reload and show recipients and subscriptions
  /add    — add a subscription (multi-step dialog)
  /edit   — edit a subscription (multi-step dialog)
  /delete — delete a subscription
  /list   — reload and list subscriptions
  /stats  — today's and this week's delivery counts

Plain text messages are routed to the dialog engine. Updates are handled
one at a time, so the dialog state and the store never see concurrent writes.
"""

from __future__ import annotations

import yaml
from telegram import BotCommand, Update
from telegram.ext import Application, CommandHandler as TgCmdHandler, ContextTypes, MessageHandler, filters

from rss_relay.bot.dialog import DialogEngine
from rss_relay.bot.store import SubscriptionStore
from rss_relay.models import RecipientDirectory
from rss_relay.notifier.formatters import format_config, format_stats, format_subscription_list
from rss_relay.stats import MessageStats
from rss_relay.utils.logger import get_logger

logger = get_logger(__name__)

START_TEXT = "欢迎使用RSS订阅机器人！使用 /help 查看可用命令。"
HELP_TEXT = (
    "可用命令：\n"
    "/config - 查看当前配置\n"
    "/add - 添加RSS订阅\n"
    "/edit - 编辑RSS订阅\n"
    "/delete - 删除RSS订阅\n"
    "/list - 列出所有RSS订阅\n"
    "/stats - 查看推送统计"
)
UNKNOWN_TEXT = "未知命令，请使用 /help 查看可用命令。"
RELOAD_ERROR = "加载配置时出错：{error}"
STATS_ERROR = "读取统计时出错：{error}"

COMMANDS = [
    ("start", "开始使用机器人"),
    ("help", "获取帮助信息"),
    ("config", "查看当前配置"),
    ("add", "添加RSS订阅"),
    ("edit", "编辑RSS订阅"),
    ("delete", "删除RSS订阅"),
    ("list", "列出所有RSS订阅"),
    ("stats", "查看推送统计"),
]


def bot_commands() -> list[BotCommand]:
    """The command table published to Telegram with set_my_commands."""
    return [BotCommand(name, description) for name, description in COMMANDS]


class CommandDispatcher:
    """Routes Telegram updates to command handlers and the dialog engine.

    Attributes:
        store: Live subscription store.
        engine: Dialog engine owning the per-user sessions.
        recipients: Directory shown by /config.
        stats: Delivery counter read by /stats.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        engine: DialogEngine,
        recipients: RecipientDirectory,
        stats: MessageStats,
    ) -> None:
        self.store = store
        self.engine = engine
        self.recipients = recipients
        self.stats = stats

    def register(self, tg_app: Application) -> None:
        """Register every handler with the Telegram Application.

        Args:
            tg_app: python-telegram-bot Application instance.
        """
        handlers = {
            "start": self._cmd_start,
            "help": self._cmd_help,
            "config": self._cmd_config,
            "add": self._cmd_add,
            "edit": self._cmd_edit,
            "delete": self._cmd_delete,
            "list": self._cmd_list,
            "stats": self._cmd_stats,
        }
        # Channel posts and edited messages are ignored
        new_messages = filters.UpdateType.MESSAGE
        for name, callback in handlers.items():
            tg_app.add_handler(TgCmdHandler(name, callback, filters=new_messages))
        tg_app.add_handler(MessageHandler(new_messages & filters.COMMAND, self._cmd_unknown))
        tg_app.add_handler(MessageHandler(
            new_messages & filters.TEXT & ~filters.COMMAND,
            self._on_text,
        ))
        logger.info("Registered %d Telegram commands", len(handlers))

    # ── Simple commands ───────────────────────────────────

    async def _cmd_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /start — welcome message."""
        await update.effective_message.reply_text(START_TEXT)

    async def _cmd_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /help — list the commands."""
        await update.effective_message.reply_text(HELP_TEXT)

    async def _cmd_unknown(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await update.effective_message.reply_text(UNKNOWN_TEXT)

    async def _cmd_config(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /config — reload feeds.yaml, show recipients and subscriptions."""
        if not await self._reload(update):
            return
        await update.effective_message.reply_text(
            format_config(self.recipients, self.store.subscriptions)
        )

    async def _cmd_list(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /list — reload feeds.yaml and list subscriptions."""
        if not await self._reload(update):
            return
        await update.effective_message.reply_text(
            format_subscription_list(self.store.subscriptions)
        )

    async def _cmd_stats(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /stats — delivery counts for today and this week."""
        try:
            daily, weekly = await self.stats.get_message_counts()
        except Exception as e:
            logger.error("Reading delivery stats failed: %s", e)
            await update.effective_message.reply_text(STATS_ERROR.format(error=e))
            return
        await update.effective_message.reply_text(format_stats(daily, weekly))

    # ── Dialog commands ───────────────────────────────────

    async def _cmd_add(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /add — start the add dialog."""
        await update.effective_message.reply_text(
            self.engine.start_add(update.effective_user.id)
        )

    async def _cmd_edit(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /edit — start the edit dialog."""
        await update.effective_message.reply_text(
            self.engine.start_edit(update.effective_user.id)
        )

    async def _cmd_delete(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /delete — start the delete dialog."""
        await update.effective_message.reply_text(
            self.engine.start_delete(update.effective_user.id)
        )

    async def _on_text(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Feed non-command text to the dialog engine.

        Users without an open dialog get no reply.
        """
        message = update.effective_message
        reply = self.engine.handle(update.effective_user.id, message.text)
        if reply is not None:
            await message.reply_text(reply)

    # ── Helpers ───────────────────────────────────────────

    async def _reload(self, update: Update) -> bool:
        """Reload the store; on failure tell the user and return False."""
        try:
            self.store.reload()
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.error("Reloading subscriptions failed: %s", e)
            await update.effective_message.reply_text(RELOAD_ERROR.format(error=e))
            return False
        return True
