"""Tests for configuration loading, the subscription store and recipients."""

import textwrap

import pytest

from rss_relay.bot.store import SubscriptionStore
from rss_relay.config import FeedSubscription, load_config, load_subscriptions
from rss_relay.models import RecipientDirectory, parse_int


def _write(path, text):
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path


class TestParseInt:
    @pytest.mark.parametrize("text,expected", [
        ("300", 300), ("-5", -5), ("+7", 7), ("007", 7),
        ("", None), ("abc", None), (" 1", None), ("1 ", None),
        ("1_000", None), ("٣", None), ("3.5", None), ("-", None),
    ])
    def test_strict_decimal(self, text, expected):
        assert parse_int(text) == expected


class TestSubscriptionStore:
    def test_resolve_index_is_one_based(self, store):
        assert store.resolve_index("1") == 0
        assert store.resolve_index("3") == 2
        assert store.resolve_index("4") is None
        assert store.resolve_index("0") is None

    def test_out_of_range_access_raises(self, store):
        with pytest.raises(IndexError):
            store.get(3)
        with pytest.raises(IndexError):
            store.remove(-1)

    def test_reload_replaces_config(self, store, feeds_path):
        _write(feeds_path, """\
            rss:
              - url: https://only.example/feed
                interval: 60
        """)
        store.reload()
        assert store.subscriptions == (FeedSubscription(url="https://only.example/feed", interval=60),)

    def test_failed_reload_keeps_current(self, store, feeds_path):
        _write(feeds_path, "rss:\n  - interval: 60\n")
        with pytest.raises(ValueError):
            store.reload()
        assert store.size == 3

    def test_open_missing_file_starts_empty(self, tmp_path):
        store = SubscriptionStore.open(tmp_path / "nope.yaml")
        assert store.size == 0

    def test_save_round_trip(self, store, feeds_path):
        store.append(FeedSubscription(url="https://d.example/", interval=30, keywords=["中文"], group="组"))
        store.save()
        assert load_subscriptions(feeds_path).rss == list(store.subscriptions)


class TestLoadSubscriptions:
    def test_empty_file_is_empty_list(self, tmp_path):
        path = _write(tmp_path / "feeds.yaml", "")
        assert load_subscriptions(path).rss == []

    def test_missing_keywords_and_group_default(self, tmp_path):
        path = _write(tmp_path / "feeds.yaml", "rss:\n  - url: u\n    interval: 5\n")
        assert load_subscriptions(path).rss == [FeedSubscription(url="u", interval=5)]

    def test_non_integer_interval_rejected(self, tmp_path):
        path = _write(tmp_path / "feeds.yaml", "rss:\n  - url: u\n    interval: soon\n")
        with pytest.raises(ValueError):
            load_subscriptions(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_subscriptions(tmp_path / "absent.yaml")


class TestLoadConfig:
    SETTINGS = """\
        telegram:
          bot_token: "${TEST_RELAY_TOKEN}"
          users: ["1001", 1002]
          channels: ["@news"]
        feeds:
          subscriptions_path: feeds.yaml
        display_timezone: Europe/Berlin
    """

    def test_resolves_env_and_paths(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_RELAY_TOKEN", "123:abc")
        settings = _write(tmp_path / "settings.yaml", self.SETTINGS)

        config = load_config(settings_path=settings, env_path=tmp_path / ".env")

        assert config.telegram.bot_token == "123:abc"
        assert config.telegram.users == ["1001", "1002"]
        assert config.telegram.channels == ["@news"]
        assert config.feeds.subscriptions_path == str(tmp_path.resolve() / "feeds.yaml")
        assert config.display_timezone == "Europe/Berlin"
        assert config.log_level == "INFO"

    def test_missing_env_var(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TEST_RELAY_TOKEN", raising=False)
        settings = _write(tmp_path / "settings.yaml", self.SETTINGS)
        with pytest.raises(ValueError, match="TEST_RELAY_TOKEN"):
            load_config(settings_path=settings, env_path=tmp_path / ".env")

    def test_missing_section(self, tmp_path):
        settings = _write(tmp_path / "settings.yaml", "telegram:\n  bot_token: t\n")
        with pytest.raises(ValueError, match="feeds"):
            load_config(settings_path=settings, env_path=tmp_path / ".env")


class TestRecipientDirectory:
    def test_from_strings(self):
        directory = RecipientDirectory.from_strings(["1", "-1002"], ["@c"])
        assert directory.users == (1, -1002)
        assert directory.channels == ("@c",)
        assert len(directory) == 3

    def test_invalid_user_id_is_fatal(self):
        with pytest.raises(ValueError, match="@someone"):
            RecipientDirectory.from_strings(["@someone"], [])

    @pytest.mark.parametrize("user", ["1_000", " 2 ", "2\n", "１２", ""])
    def test_loose_integer_forms_are_rejected(self, user):
        with pytest.raises(ValueError, match="Invalid user id"):
            RecipientDirectory.from_strings([user], [])
