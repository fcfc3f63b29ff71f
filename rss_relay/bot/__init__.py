"""RSS Relay — Bot Package.

Telegram command handling and the subscription management dialog.
"""

from rss_relay.bot.commands import CommandDispatcher
from rss_relay.bot.dialog import DialogEngine
from rss_relay.bot.sessions import DialogState, DialogStep, SessionStore
from rss_relay.bot.store import SubscriptionStore

__all__ = [
    "CommandDispatcher",
    "DialogEngine",
    "DialogState",
    "DialogStep",
    "SessionStore",
    "SubscriptionStore",
]
