"""RSS Relay — Subscription Dialog Engine.

Interprets free-text replies against each user's open dialog:

  /add     url → interval → keywords → group → commit
  /edit    index → url → interval → keywords → group → commit
  /delete  index → commit

In the edit flow the reply "1" keeps the current value; in the add flow
it means "no keywords". Records are built as drafts inside the session
and reach the store only at the commit step, which also saves feeds.yaml
and notifies the poller.
"""

from __future__ import annotations

from typing import Callable, Optional

import yaml

from rss_relay.bot.sessions import DialogState, DialogStep, SessionStore
from rss_relay.bot.store import SubscriptionStore
from rss_relay.config import FeedSubscription
from rss_relay.models import parse_int
from rss_relay.utils.logger import get_logger

logger = get_logger(__name__)

KEEP_SENTINEL = "1"

# ── Prompts ───────────────────────────────────────────────
PROMPT_ADD_URL = "请输入要添加的RSS订阅URL："
PROMPT_ADD_INTERVAL = "请输入订阅的更新间隔（秒）："
PROMPT_ADD_KEYWORDS = "请输入关键词（用逗号分隔，如果没有可以直接输入1）："
PROMPT_ADD_GROUP = "请输入组名："
PROMPT_EDIT_INDEX = "请输入要编辑的RSS订阅编号："
PROMPT_DELETE_INDEX = "请输入要删除的RSS订阅编号："
PROMPT_EDIT_URL = "当前URL为：{url}\n请输入新的URL（如不修改请输入1）："
PROMPT_EDIT_INTERVAL = "当前间隔为：{interval}秒\n请输入新的间隔时间（秒）（如不修改请输入1）："
PROMPT_EDIT_KEYWORDS = "当前关键词为：{keywords}\n请输入新的关键词（用逗号分隔，如不修改请输入1）："
PROMPT_EDIT_GROUP = "当前组名为：{group}\n请输入新的组名（如不修改请输入1）："

# ── Validation replies ────────────────────────────────────
INVALID_INTERVAL = "无效的间隔时间，请输入一个整数。"
INVALID_EDIT_INTERVAL = "无效的间隔时间，请输入一个整数。不修改请输入1。"
INVALID_EDIT_INDEX = "无效的编号。请使用 /edit 重新开始。"
INVALID_DELETE_INDEX = "无效的编号。请使用 /delete 重新开始。"

# ── Commit replies ────────────────────────────────────────
ADD_OK = "成功添加RSS订阅。"
ADD_SAVE_FAILED = "添加订阅成功，但保存配置失败。"
EDIT_OK = "成功编辑RSS订阅。"
EDIT_SAVE_FAILED = "编辑订阅成功，但保存配置失败。"
DELETE_OK = "成功删除订阅: {url}"
DELETE_SAVE_FAILED = "删除订阅成功，但保存配置失败。"


def split_keywords(text: str) -> list[str]:
    """Split a comma-separated keyword reply. Parts are kept verbatim."""
    return text.split(",")


def format_keywords(keywords: list[str]) -> str:
    return "[" + " ".join(keywords) + "]"


class DialogEngine:
    """Per-user state machine for subscription management.

    Attributes:
        store: The live subscription store.
        sessions: Open dialogs keyed by user id.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        sessions: SessionStore,
        on_subscriptions_changed: Optional[Callable[[], None]] = None,
    ) -> None:
        """Initialize the engine.

        Args:
            store: The live subscription store.
            sessions: Injected per-user session table.
            on_subscriptions_changed: Called after every successfully
                saved add, edit or delete.
        """
        self.store = store
        self.sessions = sessions
        self.on_subscriptions_changed = on_subscriptions_changed or (lambda: None)
        self._handlers: dict[DialogStep, Callable[[int, DialogState, str], str]] = {
            DialogStep.ADD_URL: self._add_url,
            DialogStep.ADD_INTERVAL: self._add_interval,
            DialogStep.ADD_KEYWORDS: self._add_keywords,
            DialogStep.ADD_GROUP: self._add_group,
            DialogStep.EDIT_INDEX: self._edit_index,
            DialogStep.EDIT_URL: self._edit_url,
            DialogStep.EDIT_INTERVAL: self._edit_interval,
            DialogStep.EDIT_KEYWORDS: self._edit_keywords,
            DialogStep.EDIT_GROUP: self._edit_group,
            DialogStep.DELETE: self._delete,
        }

    # ── Dialog entry points ───────────────────────────────

    def start_add(self, user_id: int) -> str:
        self.sessions.begin(user_id, DialogStep.ADD_URL)
        return PROMPT_ADD_URL

    def start_edit(self, user_id: int) -> str:
        self.sessions.begin(user_id, DialogStep.EDIT_INDEX)
        return PROMPT_EDIT_INDEX

    def start_delete(self, user_id: int) -> str:
        self.sessions.begin(user_id, DialogStep.DELETE)
        return PROMPT_DELETE_INDEX

    def handle(self, user_id: int, text: str) -> Optional[str]:
        """Feed one reply into the user's open dialog.

        Args:
            user_id: Telegram user id of the sender.
            text: The message text.

        Returns:
            The reply to send, or None if the user has no open dialog.
        """
        state = self.sessions.get(user_id)
        if state is None:
            return None
        logger.debug("User %s at %s replied %r", user_id, state, text)
        return self._handlers[state.step](user_id, state, text)

    # ── Add flow ──────────────────────────────────────────

    def _add_url(self, user_id: int, state: DialogState, text: str) -> str:
        self.sessions.advance(user_id, DialogStep.ADD_INTERVAL, draft=FeedSubscription(url=text))
        return PROMPT_ADD_INTERVAL

    def _add_interval(self, user_id: int, state: DialogState, text: str) -> str:
        interval = parse_int(text)
        if interval is None:
            return INVALID_INTERVAL
        state.draft.interval = interval
        self.sessions.advance(user_id, DialogStep.ADD_KEYWORDS)
        return PROMPT_ADD_KEYWORDS

    def _add_keywords(self, user_id: int, state: DialogState, text: str) -> str:
        if text != KEEP_SENTINEL:
            state.draft.keywords = split_keywords(text)
        self.sessions.advance(user_id, DialogStep.ADD_GROUP)
        return PROMPT_ADD_GROUP

    def _add_group(self, user_id: int, state: DialogState, text: str) -> str:
        state.draft.group = text
        self.store.append(state.draft)
        logger.info("User %s added subscription %s", user_id, state.draft.url)
        return self._commit(user_id, ADD_OK, ADD_SAVE_FAILED)

    # ── Edit flow ─────────────────────────────────────────

    def _edit_index(self, user_id: int, state: DialogState, text: str) -> str:
        index = self.store.resolve_index(text)
        if index is None:
            self.sessions.clear(user_id)
            return INVALID_EDIT_INDEX
        draft = self.store.get(index).copy()
        self.sessions.advance(user_id, DialogStep.EDIT_URL, index=index, draft=draft)
        return PROMPT_EDIT_URL.format(url=draft.url)

    def _edit_url(self, user_id: int, state: DialogState, text: str) -> str:
        if text != KEEP_SENTINEL:
            state.draft.url = text
        self.sessions.advance(user_id, DialogStep.EDIT_INTERVAL)
        return PROMPT_EDIT_INTERVAL.format(interval=state.draft.interval)

    def _edit_interval(self, user_id: int, state: DialogState, text: str) -> str:
        if text != KEEP_SENTINEL:
            interval = parse_int(text)
            if interval is None:
                return INVALID_EDIT_INTERVAL
            state.draft.interval = interval
        self.sessions.advance(user_id, DialogStep.EDIT_KEYWORDS)
        return PROMPT_EDIT_KEYWORDS.format(keywords=format_keywords(state.draft.keywords))

    def _edit_keywords(self, user_id: int, state: DialogState, text: str) -> str:
        if text != KEEP_SENTINEL:
            state.draft.keywords = split_keywords(text)
        self.sessions.advance(user_id, DialogStep.EDIT_GROUP)
        return PROMPT_EDIT_GROUP.format(group=state.draft.group)

    def _edit_group(self, user_id: int, state: DialogState, text: str) -> str:
        if text != KEEP_SENTINEL:
            state.draft.group = text
        # The store may have been reloaded and shrunk since the index was chosen
        if not 0 <= state.index < self.store.size:
            self.sessions.clear(user_id)
            logger.warning(
                "User %s edit of #%d aborted, store now has %d entries",
                user_id, state.index + 1, self.store.size,
            )
            return INVALID_EDIT_INDEX
        self.store.replace(state.index, state.draft)
        logger.info("User %s edited subscription #%d", user_id, state.index + 1)
        return self._commit(user_id, EDIT_OK, EDIT_SAVE_FAILED)

    # ── Delete flow ───────────────────────────────────────

    def _delete(self, user_id: int, state: DialogState, text: str) -> str:
        index = self.store.resolve_index(text)
        if index is None:
            self.sessions.clear(user_id)
            return INVALID_DELETE_INDEX
        removed = self.store.remove(index)
        logger.info("User %s deleted subscription #%d %s", user_id, index + 1, removed.url)
        return self._commit(user_id, DELETE_OK.format(url=removed.url), DELETE_SAVE_FAILED)

    # ── Commit ────────────────────────────────────────────

    def _commit(self, user_id: int, ok_text: str, failed_text: str) -> str:
        """Close the dialog, save the store and notify on success.

        A failed save keeps the in-memory change; the next successful
        save writes it out.
        """
        self.sessions.clear(user_id)
        try:
            self.store.save()
        except (OSError, yaml.YAMLError) as e:
            logger.error("Saving subscriptions for user %s failed: %s", user_id, e)
            return failed_text
        self.on_subscriptions_changed()
        return ok_text
