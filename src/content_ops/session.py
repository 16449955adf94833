"""Chat session state: message log, pending confirmation, command bus."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from .bus import CommandBus
from .confirmation import ConfirmationState
from .models import ActionButton, ChatMessage, ChatRole, utc_now

logger = logging.getLogger(__name__)

DEFAULT_INACTIVITY = timedelta(minutes=30)


def merge_adjacent(messages: Iterable[ChatMessage]) -> List[Dict[str, str]]:
    """
    Collapse consecutive same-role messages into one, newline-joined.

    The classification protocol requires strictly alternating roles.
    """
    merged: List[Dict[str, str]] = []
    for message in messages:
        if merged and merged[-1]["role"] == message.role:
            merged[-1]["text"] = f"{merged[-1]['text']}\n{message.text}"
        else:
            merged.append({"role": message.role, "text": message.text})
    return merged


class ChatSession:
    """
    One user's conversation.

    Created on sign-in and destroyed on sign-out (see SessionRegistry); the
    same session backs every chat surface the user has open.
    """

    def __init__(
        self,
        session_id: Optional[str] = None,
        *,
        inactivity_threshold: timedelta = DEFAULT_INACTIVITY,
    ) -> None:
        self.session_id = session_id or uuid.uuid4().hex
        self.inactivity_threshold = inactivity_threshold
        self.confirmation = ConfirmationState()
        self.bus = CommandBus()
        self.is_processing = False
        self._messages: List[ChatMessage] = []
        # Bumped by start_fresh so in-flight requests can tell they are stale.
        self._generation = 0

    @property
    def messages(self) -> Sequence[ChatMessage]:
        return tuple(self._messages)

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def last_activity(self) -> Optional[datetime]:
        return self._messages[-1].timestamp if self._messages else None

    def append(
        self,
        role: ChatRole,
        text: str,
        buttons: Optional[List[ActionButton]] = None,
        *,
        timestamp: Optional[datetime] = None,
    ) -> ChatMessage:
        message = ChatMessage(
            role=role,
            text=text,
            buttons=buttons or None,
            timestamp=timestamp or utc_now(),
        )
        self._messages.append(message)
        return message

    def should_offer_resume(self, now: Optional[datetime] = None) -> bool:
        """True when returning after the inactivity threshold with history to resume."""
        last = self.last_activity
        if last is None:
            return False
        return (now or utc_now()) - last > self.inactivity_threshold

    def start_fresh(self) -> None:
        """Clear the log and any pending proposal; in-flight replies become stale."""
        self._messages.clear()
        self.confirmation.clear()
        self._generation += 1

    def history_for_classifier(self, limit: Optional[int] = None) -> List[Dict[str, str]]:
        messages = self._messages[-limit:] if limit else self._messages
        return merge_adjacent(messages)

    def close(self) -> None:
        """Tear down on sign-out: nothing survives, subscribers are released."""
        self.start_fresh()
        self.bus.clear()
        self.is_processing = False


class SessionRegistry:
    """Explicit session lifecycle keyed by user; many sessions can coexist."""

    def __init__(self, *, inactivity_threshold: timedelta = DEFAULT_INACTIVITY) -> None:
        self.inactivity_threshold = inactivity_threshold
        self._sessions: Dict[str, ChatSession] = {}

    def sign_in(self, user_id: str) -> ChatSession:
        """Return the user's live session, creating it on first sign-in."""
        session = self._sessions.get(user_id)
        if session is None:
            session = ChatSession(inactivity_threshold=self.inactivity_threshold)
            self._sessions[user_id] = session
            logger.info("Created chat session %s for %s", session.session_id, user_id)
        return session

    def get(self, user_id: str) -> Optional[ChatSession]:
        return self._sessions.get(user_id)

    def sign_out(self, user_id: str) -> bool:
        session = self._sessions.pop(user_id, None)
        if session is None:
            return False
        session.close()
        logger.info("Closed chat session %s for %s", session.session_id, user_id)
        return True

    def __len__(self) -> int:
        return len(self._sessions)
