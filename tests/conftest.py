"""Pytest configuration and fixtures."""

import sys
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock, Mock
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from rss_relay.bot.dialog import DialogEngine
from rss_relay.bot.sessions import SessionStore
from rss_relay.bot.store import SubscriptionStore
from rss_relay.config import FeedSubscription, SubscriptionConfig, save_subscriptions
from rss_relay.database.db import Database
from rss_relay.stats import MessageStats

SHANGHAI = ZoneInfo("Asia/Shanghai")
# Wednesday 2024-01-10 12:00 in Shanghai
FIXED_NOW = datetime(2024, 1, 10, 4, 0, tzinfo=timezone.utc)


def make_subscriptions() -> list[FeedSubscription]:
    return [
        FeedSubscription(url="https://a.example/feed", interval=300, keywords=["a", "b"], group="alpha"),
        FeedSubscription(url="https://b.example/feed", interval=600, keywords=[], group="beta"),
        FeedSubscription(url="https://c.example/feed", interval=900, keywords=["c"], group="gamma"),
    ]


@pytest.fixture
def feeds_path(tmp_path):
    """feeds.yaml with three subscriptions."""
    path = tmp_path / "feeds.yaml"
    save_subscriptions(SubscriptionConfig(rss=make_subscriptions()), path)
    return path


@pytest.fixture
def store(feeds_path):
    return SubscriptionStore.open(feeds_path)


@pytest.fixture
def sessions():
    return SessionStore()


@pytest.fixture
def on_changed():
    """The "subscriptions changed" callback."""
    return Mock()


@pytest.fixture
def engine(store, sessions, on_changed):
    return DialogEngine(store, sessions, on_changed)


@pytest_asyncio.fixture
async def db():
    """In-memory database for testing."""
    database = Database(":memory:")
    await database.initialize()
    yield database
    await database.close()


@pytest.fixture
def stats(db):
    return MessageStats(db, SHANGHAI, clock=lambda: FIXED_NOW)


def make_update(user_id: int = 42, text: str = "") -> Mock:
    """A Telegram Update stand-in with an awaitable reply_text."""
    message = Mock()
    message.text = text
    message.reply_text = AsyncMock()
    update = Mock()
    update.effective_message = message
    update.effective_user.id = user_id
    return update
