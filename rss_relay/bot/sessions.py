"""RSS Relay — Conversation Sessions.

Per-user dialog state for the /add, /edit and /delete flows. A session
carries the current step, the 0-based index of the record being edited
and the pending draft that is merged into the store only on commit.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Optional

from rss_relay.config import FeedSubscription
from rss_relay.utils.logger import get_logger

logger = get_logger(__name__)


class DialogStep(enum.Enum):
    """Every step a dialog can wait on."""

    ADD_URL = "add_url"
    ADD_INTERVAL = "add_interval"
    ADD_KEYWORDS = "add_keywords"
    ADD_GROUP = "add_group"
    EDIT_INDEX = "edit_index"
    EDIT_URL = "edit_url"
    EDIT_INTERVAL = "edit_interval"
    EDIT_KEYWORDS = "edit_keywords"
    EDIT_GROUP = "edit_group"
    DELETE = "delete"


# Steps that operate on an existing record and therefore carry an index
INDEXED_STEPS = frozenset({
    DialogStep.EDIT_URL,
    DialogStep.EDIT_INTERVAL,
    DialogStep.EDIT_KEYWORDS,
    DialogStep.EDIT_GROUP,
})


@dataclass(frozen=True)
class DialogState:
    """The open dialog of one user.

    Attributes:
        step: What the next message from the user answers.
        index: 0-based index of the record being edited (edit steps only).
        draft: Pending record; None until the first field is captured.
    """

    step: DialogStep
    index: Optional[int] = None
    draft: Optional[FeedSubscription] = None

    def __post_init__(self) -> None:
        if (self.step in INDEXED_STEPS) != (self.index is not None):
            raise ValueError(f"Step {self.step.value} with index {self.index!r} is not valid")

    def __str__(self) -> str:
        if self.index is None:
            return self.step.value
        return f"{self.step.value}_{self.index}"


class SessionStore:
    """Dialog state keyed by user id, at most one open dialog per user."""

    def __init__(self) -> None:
        self._states: dict[int, DialogState] = {}

    def get(self, user_id: int) -> Optional[DialogState]:
        return self._states.get(user_id)

    def begin(self, user_id: int, step: DialogStep) -> DialogState:
        """Open a fresh dialog for the user.

        A dialog already open for the same user is discarded.
        """
        previous = self._states.get(user_id)
        if previous is not None:
            logger.info("User %s abandoned dialog at %s", user_id, previous)
        state = DialogState(step=step)
        self._states[user_id] = state
        return state

    def advance(
        self,
        user_id: int,
        step: DialogStep,
        *,
        index: Optional[int] = None,
        draft: Optional[FeedSubscription] = None,
    ) -> DialogState:
        """Move the user's open dialog to the next step.

        Index and draft carry over from the current state unless given.

        Raises:
            KeyError: If the user has no open dialog.
        """
        current = self._states[user_id]
        state = replace(
            current,
            step=step,
            index=current.index if index is None else index,
            draft=current.draft if draft is None else draft,
        )
        self._states[user_id] = state
        return state

    def clear(self, user_id: int) -> None:
        self._states.pop(user_id, None)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._states

    def __len__(self) -> int:
        return len(self._states)
