"""RSS Relay — Telegram feed notifier with a subscription management dialog."""

__version__ = "1.0.0"
