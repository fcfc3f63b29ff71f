"""RSS Relay — Data Models.

Value types shared by the poller, the broadcaster and the bot:
delivery events, the recipient directory and per-recipient outcomes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence, Union

RecipientId = Union[int, str]


def parse_int(text: str) -> Optional[int]:
    """Parse a strict decimal integer: optional sign, ASCII digits only.

    Surrounding whitespace, underscores and non-ASCII digits are rejected.
    """
    body = text[1:] if text[:1] in ("+", "-") else text
    if not body or not body.isascii() or not body.isdigit():
        return None
    return int(text)


@dataclass(frozen=True)
class FeedEvent:
    """A matched feed item ready to be broadcast.

    Attributes:
        title: Item title.
        url: Item link.
        group: Group label of the subscription that produced it.
        published: Publish time (timezone-aware).
        matched_keywords: Keywords that matched; empty for unfiltered feeds.
    """

    title: str
    url: str
    group: str
    published: datetime
    matched_keywords: tuple[str, ...] = ()


@dataclass(frozen=True)
class RecipientDirectory:
    """Users and channels that receive every notification.

    Fixed for the lifetime of the process. Users are numeric Telegram
    chat ids; channels are usernames such as "@my_channel".
    """

    users: tuple[int, ...] = ()
    channels: tuple[str, ...] = ()

    @classmethod
    def from_strings(
        cls, users: Sequence[str], channels: Sequence[str],
    ) -> "RecipientDirectory":
        """Build a directory from configuration strings.

        Raises:
            ValueError: If a user id is not a plain decimal integer.
        """
        user_ids = []
        for user in users:
            user_id = parse_int(str(user))
            if user_id is None:
                raise ValueError(f"Invalid user id: {user!r}")
            user_ids.append(user_id)
        return cls(users=tuple(user_ids), channels=tuple(str(c) for c in channels))

    def __len__(self) -> int:
        return len(self.users) + len(self.channels)


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of sending one event to one recipient."""

    recipient: RecipientId
    kind: str  # "user" or "channel"
    ok: bool
    error: Optional[str] = field(default=None, compare=False)
