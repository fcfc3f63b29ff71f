#!/usr/bin/env python3
"""RSS Relay — Launcher.

Validates the environment and configuration the same way the bot will
read it, prints a short report and starts the relay.

Usage:
    python scripts/run.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

BANNER = r"""
┌──────────────────────────────────────────┐
│   RSS Relay v1.0                         │
│   feeds → keyword filter → Telegram      │
└──────────────────────────────────────────┘
"""

PLACEHOLDER_TOKENS = {"", "your_key_here", "test"}

Check = Callable[[], tuple[bool, str]]


def check_env_file() -> tuple[bool, str]:
    env_path = PROJECT_ROOT / ".env"
    if not env_path.exists():
        return False, ".env not found (copy .env.example and set TELEGRAM_BOT_TOKEN)"
    from dotenv import load_dotenv
    load_dotenv(env_path)
    return True, ".env loaded"


def check_token() -> tuple[bool, str]:
    token = os.environ.get("TELEGRAM_BOT_TOKEN", "")
    if token in PLACEHOLDER_TOKENS:
        return False, "TELEGRAM_BOT_TOKEN missing or still a placeholder"
    return True, f"TELEGRAM_BOT_TOKEN = {token[:6]}...{token[-4:]}"


def check_settings() -> tuple[bool, str]:
    """Load settings.yaml and validate recipients and the timezone."""
    from rss_relay.config import load_config
    from rss_relay.models import RecipientDirectory

    try:
        config = load_config()
        recipients = RecipientDirectory.from_strings(
            config.telegram.users, config.telegram.channels,
        )
        ZoneInfo(config.display_timezone)
    except (FileNotFoundError, ValueError, ZoneInfoNotFoundError) as e:
        return False, f"settings.yaml: {e}"

    if not len(recipients):
        return True, "settings.yaml valid (⚠️  no users or channels, nothing will be delivered)"
    return True, (
        f"settings.yaml valid: {len(recipients.users)} users, "
        f"{len(recipients.channels)} channels, tz {config.display_timezone}"
    )


def check_subscriptions() -> tuple[bool, str]:
    """Parse feeds.yaml; a missing file is allowed."""
    import yaml

    from rss_relay.config import load_config, load_subscriptions

    try:
        path = Path(load_config().feeds.subscriptions_path)
    except (FileNotFoundError, ValueError) as e:
        return False, f"cannot locate feeds.yaml: {e}"
    if not path.exists():
        return True, f"{path.name} not found, starting with no subscriptions (use /add)"
    try:
        subs = load_subscriptions(path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        return False, f"{path.name}: {e}"
    return True, f"{path.name}: {len(subs.rss)} subscriptions"


def prepare_dirs() -> tuple[bool, str]:
    for name in ("data", "logs"):
        (PROJECT_ROOT / name).mkdir(exist_ok=True)
    return True, "data/ and logs/ ready"


CHECKS: list[Check] = [
    check_env_file,
    check_token,
    prepare_dirs,
    check_settings,
    check_subscriptions,
]


def preflight() -> bool:
    """Run every check and report; True if none failed."""
    os.chdir(PROJECT_ROOT)
    failures = 0
    for check in CHECKS:
        ok, message = check()
        print(f"{'✅' if ok else '❌'} {message}")
        failures += not ok
    return failures == 0


def main() -> None:
    print(BANNER)
    if not preflight():
        print("\nStartup aborted, fix the items marked ❌ above.")
        sys.exit(1)

    print("\nStarting relay...\n")
    from rss_relay.main import main as relay_main
    relay_main()


if __name__ == "__main__":
    main()
