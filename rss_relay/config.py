"""RSS Relay — Configuration Loader.

Two YAML documents drive the relay:
  - config/settings.yaml: bot token, recipients, paths, timezone, logging.
    Values may reference environment variables via ${VAR_NAME}.
  - config/feeds.yaml: the subscription list, edited at runtime through
    the /add, /edit and /delete dialogs and written back on every commit.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from rss_relay.utils.logger import get_logger

logger = get_logger(__name__)

# ── Path Constants ────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"
SETTINGS_PATH = CONFIG_DIR / "settings.yaml"
FEEDS_PATH = CONFIG_DIR / "feeds.yaml"

# ── Environment Variable Pattern ─────────────────────────
ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)}")


# ═══════════════════════════════════════════════════════════
# Configuration Dataclasses
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class TelegramConfig:
    """Bot credentials and the recipients of every notification."""

    bot_token: str
    users: list[str]
    channels: list[str]
    send_timeout_seconds: float = 30.0


@dataclass(frozen=True)
class FeedsConfig:
    """Where subscriptions live and how feeds are fetched."""

    subscriptions_path: str
    request_timeout_seconds: float = 20.0
    max_retries: int = 3
    user_agent: str = "rss-relay/1.0"


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration container."""

    telegram: TelegramConfig
    feeds: FeedsConfig
    database_path: str
    display_timezone: str
    log_level: str


@dataclass
class FeedSubscription:
    """One subscribed feed.

    Attributes:
        url: Feed URL.
        interval: Poll interval in seconds.
        keywords: Keyword filters; empty means every item is delivered.
        group: Free-form label shown in notifications.
    """

    url: str
    interval: int = 0
    keywords: list[str] = field(default_factory=list)
    group: str = ""

    def copy(self) -> "FeedSubscription":
        """Return an independent copy (the keyword list is not shared)."""
        return FeedSubscription(
            url=self.url,
            interval=self.interval,
            keywords=list(self.keywords),
            group=self.group,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "interval": self.interval,
            "keywords": list(self.keywords),
            "group": self.group,
        }


@dataclass
class SubscriptionConfig:
    """The persisted subscription document (the `rss:` list)."""

    rss: list[FeedSubscription] = field(default_factory=list)


# ═══════════════════════════════════════════════════════════
# YAML Loading & Environment Variable Resolution
# ═══════════════════════════════════════════════════════════


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ${VAR_NAME} references in YAML values.

    Raises:
        ValueError: If a referenced environment variable is not set.
    """
    if isinstance(value, str):
        for var_name in ENV_VAR_PATTERN.findall(value):
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ValueError(
                    f"Environment variable '${{{var_name}}}' is required but not set. "
                    f"Add it to your .env file or export it in your shell."
                )
            value = value.replace(f"${{{var_name}}}", env_value)
        return value
    elif isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    return value


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load and parse a YAML file with UTF-8 encoding.

    Raises:
        FileNotFoundError: If the YAML file does not exist.
        ValueError: If the file is empty or not a mapping.
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        raise ValueError(f"Configuration file is empty: {path}")
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")

    logger.debug("Loaded configuration from %s", path)
    return data


def _validate_keys(data: dict[str, Any], required: list[str], section: str) -> None:
    """Raise ValueError naming every required key missing from a section."""
    missing = [key for key in required if key not in data]
    if missing:
        raise ValueError(
            f"Missing required configuration keys in '{section}': {', '.join(missing)}"
        )


def _string_list(value: Any, section: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"'{section}' must be a list, got {type(value).__name__}")
    return [str(v) for v in value]


# ═══════════════════════════════════════════════════════════
# Dataclass Builders
# ═══════════════════════════════════════════════════════════


def _build_telegram_config(data: dict[str, Any]) -> TelegramConfig:
    _validate_keys(data, ["bot_token"], "telegram")
    if not data["bot_token"]:
        raise ValueError("telegram.bot_token must not be empty")

    return TelegramConfig(
        bot_token=str(data["bot_token"]),
        users=_string_list(data.get("users"), "telegram.users"),
        channels=_string_list(data.get("channels"), "telegram.channels"),
        send_timeout_seconds=float(data.get("send_timeout_seconds", 30.0)),
    )


def _build_feeds_config(data: dict[str, Any], base_dir: Path) -> FeedsConfig:
    _validate_keys(data, ["subscriptions_path"], "feeds")

    path = Path(data["subscriptions_path"])
    if not path.is_absolute():
        path = base_dir / path

    return FeedsConfig(
        subscriptions_path=str(path),
        request_timeout_seconds=float(data.get("request_timeout_seconds", 20.0)),
        max_retries=int(data.get("max_retries", 3)),
        user_agent=str(data.get("user_agent", "rss-relay/1.0")),
    )


def _build_subscription(data: Any, position: int) -> FeedSubscription:
    """Build one FeedSubscription from a raw `rss:` entry.

    Args:
        data: The raw mapping from feeds.yaml.
        position: 1-based position, used in error messages.

    Raises:
        ValueError: If the entry is malformed.
    """
    section = f"rss[{position}]"
    if not isinstance(data, dict):
        raise ValueError(f"'{section}' must be a mapping")
    _validate_keys(data, ["url"], section)

    interval = data.get("interval", 0)
    if isinstance(interval, bool) or not isinstance(interval, int):
        raise ValueError(f"'{section}.interval' must be an integer, got {interval!r}")

    return FeedSubscription(
        url=str(data["url"]),
        interval=interval,
        keywords=_string_list(data.get("keywords"), f"{section}.keywords"),
        group=str(data.get("group") or ""),
    )


# ═══════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════


def load_subscriptions(path: str | Path) -> SubscriptionConfig:
    """Load the subscription document from disk.

    An empty file yields an empty subscription list.

    Args:
        path: Path to feeds.yaml.

    Returns:
        A SubscriptionConfig with every entry validated.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If an entry is malformed.
        yaml.YAMLError: If the file is not valid YAML.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Subscription file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Subscription file must contain a mapping: {path}")

    entries = data.get("rss") or []
    if not isinstance(entries, list):
        raise ValueError("'rss' must be a list")

    config = SubscriptionConfig(
        rss=[_build_subscription(entry, i) for i, entry in enumerate(entries, 1)],
    )
    logger.debug("Loaded %d subscriptions from %s", len(config.rss), path)
    return config


def save_subscriptions(config: SubscriptionConfig, path: str | Path) -> None:
    """Write the subscription document to disk.

    The file is written to a sibling temp file first and then moved into
    place, so a crash mid-write never leaves a truncated feeds.yaml.

    Raises:
        OSError: If the file cannot be written.
    """
    path = Path(path)
    tmp_path = path.with_name(path.name + ".tmp")
    document = {"rss": [sub.to_dict() for sub in config.rss]}

    with open(tmp_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(document, f, allow_unicode=True, sort_keys=False)
    os.replace(tmp_path, path)

    logger.debug("Saved %d subscriptions to %s", len(config.rss), path)


def load_config(
    settings_path: Path | None = None,
    env_path: Path | None = None,
) -> AppConfig:
    """Load the complete application configuration.

    Loads .env, reads settings.yaml, resolves environment variables,
    validates required fields and returns a typed AppConfig.

    Args:
        settings_path: Override path to settings.yaml.
        env_path: Override path to the .env file.

    Raises:
        FileNotFoundError: If settings.yaml is missing.
        ValueError: If required fields are missing or env vars are unset.
    """
    env_file = env_path or (PROJECT_ROOT / ".env")
    load_dotenv(env_file)
    logger.debug("Loaded environment from %s", env_file)

    settings_file = settings_path or SETTINGS_PATH
    settings = _resolve_env_vars(_load_yaml(settings_file))

    _validate_keys(settings, ["telegram", "feeds"], "settings")

    config = AppConfig(
        telegram=_build_telegram_config(settings["telegram"]),
        feeds=_build_feeds_config(settings["feeds"], Path(settings_file).resolve().parent),
        database_path=str(settings.get("database", {}).get("path", "data/rss_relay.db")),
        display_timezone=str(settings.get("display_timezone", "Asia/Shanghai")),
        log_level=str(settings.get("logging", {}).get("level", "INFO")),
    )

    logger.info("Configuration loaded successfully")
    logger.debug("Subscriptions file: %s", config.feeds.subscriptions_path)
    logger.debug(
        "Recipients: %d users, %d channels",
        len(config.telegram.users), len(config.telegram.channels),
    )
    return config
