"""Tests for the feed client, parsing, keyword matching and the FeedPoller."""

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from unittest.mock import AsyncMock, Mock

import httpx
import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from rss_relay.config import FeedsConfig, FeedSubscription
from rss_relay.database import queries
from rss_relay.feeds.client import FeedClient
from rss_relay.feeds.parser import FeedItem, match_keywords, parse_feed
from rss_relay.feeds.poller import DELIVERY_RETENTION_DAYS, MIN_INTERVAL_SECONDS, FeedPoller, ledger_key


def _rss(*items):
    """Build an RSS 2.0 document from (guid, title, description, published) tuples."""
    body = "".join(
        f"<item><title>{title}</title><link>https://example.com/{guid}</link>"
        f"<guid>{guid}</guid><description>{description}</description>"
        f"<pubDate>{format_datetime(published)}</pubDate></item>"
        for guid, title, description, published in items
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<rss version="2.0"><channel><title>Test</title>{body}</channel></rss>'
    )


RECENT = datetime.now(timezone.utc).replace(microsecond=0) - timedelta(hours=1)


def _item(title="", summary=""):
    return FeedItem(item_id="x", title=title, link="", summary=summary, published=RECENT)


class TestParseFeed:
    def test_items_and_fields(self):
        text = _rss(
            ("id-2", "Second", "&lt;p&gt;Hello &lt;b&gt;world&lt;/b&gt;&lt;/p&gt;", RECENT),
            ("id-1", "First", "plain", RECENT - timedelta(hours=1)),
        )
        items = parse_feed(text)

        assert [i.item_id for i in items] == ["id-2", "id-1"]
        assert items[0].title == "Second"
        assert items[0].link == "https://example.com/id-2"
        assert items[0].summary == "Hello world"
        assert items[0].published == RECENT
        assert items[1].published.tzinfo is not None

    def test_missing_date_uses_fallback(self):
        text = (
            '<rss version="2.0"><channel><item><title>T</title>'
            "<link>https://example.com/t</link></item></channel></rss>"
        )
        fallback = datetime(2024, 5, 1, tzinfo=timezone.utc)
        items = parse_feed(text, now=fallback)
        assert items[0].item_id == "https://example.com/t"
        assert items[0].published == fallback

    def test_garbage_returns_empty(self):
        assert parse_feed("this is not a feed") == []


class TestMatchKeywords:
    def test_case_insensitive_title_and_summary(self):
        item = _item(title="New PYTHON release", summary="with Rust bindings")
        assert match_keywords(item, ["python", "rust", "go"]) == ["python", "rust"]

    def test_no_keywords_matches_everything(self):
        assert match_keywords(_item(title="anything"), []) == []

    def test_blank_keywords_are_ignored(self):
        assert match_keywords(_item(title="anything"), ["", " "]) == []
        assert match_keywords(_item(title="a b"), [" b", ""]) == ["b"]

    def test_no_match(self):
        assert match_keywords(_item(title="java"), ["python"]) is None


@pytest.fixture
def client():
    fake = Mock()
    fake.fetch = AsyncMock()
    return fake


@pytest.fixture
def handler():
    return AsyncMock()


@pytest.fixture
def poller(store, db, client, handler):
    return FeedPoller(store, db, client, handler, scheduler=AsyncIOScheduler(timezone=timezone.utc))


SUB = FeedSubscription(url="https://feed.example/rss", interval=60, keywords=["python"], group="tech")


class TestPoll:
    @pytest.mark.asyncio
    async def test_first_poll_only_seeds(self, poller, client, handler):
        client.fetch.return_value = _rss(("id-1", "Python news", "", RECENT))
        assert await poller.poll(SUB) == 0
        handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_new_matching_items_are_delivered_once(self, poller, client, handler):
        client.fetch.return_value = _rss(("id-1", "Python news", "", RECENT))
        await poller.poll(SUB)

        client.fetch.return_value = _rss(
            ("id-3", "Java news", "", RECENT),
            ("id-2", "More python", "", RECENT),
            ("id-1", "Python news", "", RECENT),
        )
        assert await poller.poll(SUB) == 1
        event = handler.await_args.args[0]
        assert event.title == "More python"
        assert event.url == "https://example.com/id-2"
        assert event.group == "tech"
        assert event.matched_keywords == ("python",)
        assert event.published == RECENT

        assert await poller.poll(SUB) == 0
        assert handler.await_count == 1

    @pytest.mark.asyncio
    async def test_oldest_first_and_unfiltered(self, poller, client, handler):
        sub = FeedSubscription(url="https://all.example/rss", interval=60)
        client.fetch.return_value = _rss(("old", "Old", "", RECENT))
        await poller.poll(sub)

        client.fetch.return_value = _rss(
            ("b", "B", "", RECENT),
            ("a", "A", "", RECENT),
            ("old", "Old", "", RECENT),
        )
        assert await poller.poll(sub) == 2
        titles = [call.args[0].title for call in handler.await_args_list]
        assert titles == ["A", "B"]
        assert all(call.args[0].matched_keywords == () for call in handler.await_args_list)

    @pytest.mark.asyncio
    async def test_stale_items_are_skipped(self, poller, client, handler):
        client.fetch.return_value = _rss(("seed", "Python", "", RECENT))
        await poller.poll(SUB)
        client.fetch.return_value = _rss(("ancient", "Python", "", RECENT - timedelta(days=365)))
        assert await poller.poll(SUB) == 0

    @pytest.mark.asyncio
    async def test_feed_empty_at_first_poll_delivers_later_items(self, poller, client, handler):
        client.fetch.return_value = _rss()
        assert await poller.poll(SUB) == 0

        client.fetch.return_value = _rss(("id-1", "First python post", "", RECENT))
        assert await poller.poll(SUB) == 1
        assert handler.await_args.args[0].title == "First python post"

    @pytest.mark.asyncio
    async def test_maintenance_prunes_old_records(self, poller, client, db):
        client.fetch.return_value = _rss()
        await poller.poll(SUB)
        now = datetime.now(timezone.utc)
        await queries.record_delivery(db, now - timedelta(days=DELIVERY_RETENTION_DAYS + 1))
        await queries.record_delivery(db, now)

        await poller._run_maintenance()

        assert await queries.count_deliveries_since(db, now - timedelta(days=365)) == 1
        assert await queries.feed_has_history(db, ledger_key(SUB))

    @pytest.mark.asyncio
    async def test_fetch_failure(self, poller, client, handler):
        client.fetch.return_value = None
        assert await poller.poll(SUB) == 0
        handler.assert_not_awaited()


@pytest.fixture
def idle_poller(store, client, handler):
    """Poller on a scheduler that is never started."""
    return FeedPoller(store, Mock(), client, handler, scheduler=AsyncIOScheduler(timezone=timezone.utc))


class TestReschedule:
    def test_one_job_per_subscription(self, idle_poller, store):
        idle_poller.reschedule()
        jobs = idle_poller._scheduler.get_jobs()
        assert sorted(job.id for job in jobs) == ["feed:1", "feed:2", "feed:3"]

    def test_reschedule_replaces_jobs(self, idle_poller, store):
        idle_poller.reschedule()
        store.remove(0)
        idle_poller.reschedule()
        jobs = idle_poller._scheduler.get_jobs()
        assert sorted(job.id for job in jobs) == ["feed:1", "feed:2"]
        assert jobs[0].args[0].url in {"https://b.example/feed", "https://c.example/feed"}

    def test_short_interval_is_raised(self, idle_poller, store):
        store.append(FeedSubscription(url="https://fast.example/", interval=1))
        idle_poller.reschedule()
        job = next(j for j in idle_poller._scheduler.get_jobs() if j.id == "feed:4")
        assert job.trigger.interval == timedelta(seconds=MIN_INTERVAL_SECONDS)


def _client_for(handler, monkeypatch):
    """FeedClient over a mock transport, with retry sleeps disabled."""
    monkeypatch.setattr("rss_relay.feeds.client.asyncio.sleep", AsyncMock())
    config = FeedsConfig(subscriptions_path="unused.yaml", max_retries=3)
    return FeedClient(config, transport=httpx.MockTransport(handler))


class TestFeedClient:
    @pytest.mark.asyncio
    async def test_success(self, monkeypatch):
        seen = []

        def respond(request):
            seen.append(request)
            return httpx.Response(200, text="<rss/>")

        async with _client_for(respond, monkeypatch) as client:
            assert await client.fetch("https://feed.example/rss") == "<rss/>"
        assert seen[0].headers["User-Agent"] == "rss-relay/1.0"

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self, monkeypatch):
        calls = []

        def respond(request):
            calls.append(request)
            return httpx.Response(404)

        async with _client_for(respond, monkeypatch) as client:
            assert await client.fetch("https://feed.example/rss") is None
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_server_error_then_success(self, monkeypatch):
        responses = iter([httpx.Response(503), httpx.Response(429, headers={"Retry-After": "1"}),
                          httpx.Response(200, text="ok")])

        async with _client_for(lambda request: next(responses), monkeypatch) as client:
            assert await client.fetch("https://feed.example/rss") == "ok"
            assert client.total_requests == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, monkeypatch):
        def respond(request):
            raise httpx.ConnectError("refused", request=request)

        async with _client_for(respond, monkeypatch) as client:
            assert await client.fetch("https://feed.example/rss") is None
