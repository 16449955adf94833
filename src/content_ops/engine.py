"""Conversational command pipeline.

user text -> classify -> resolve/execute -> synthesize reply -> session log
-> command bus. Classification is the only await; a session processes one
message at a time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Mapping, Optional

from .actions import execute_action
from .bus import ChatCommand, command_from_button
from .classifier import Classifier
from .config import Settings, get_settings
from .confirmation import ConfirmationPolicy, classify_reply, commit_proposal
from .intents import ChatIntent
from .models import ChatMessage, utc_now
from .responses import (
    ResponseDraft,
    build_cancel_response,
    build_commit_response,
    build_reminder_response,
    build_response,
)
from .session import ChatSession
from .store import ContentStore, StoreError

logger = logging.getLogger(__name__)


class SessionBusyError(RuntimeError):
    """A message was submitted while the previous one is still being classified."""


@dataclass
class TurnResult:
    """What one user message or button click produced."""

    response: Optional[ChatMessage] = None
    commands: List[ChatCommand] = field(default_factory=list)
    intent: Optional[ChatIntent] = None
    # True when the session was reset while classifying and the reply was dropped.
    discarded: bool = False


class ChatEngine:
    def __init__(
        self,
        store: ContentStore,
        classifier: Classifier,
        *,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.classifier = classifier
        self.settings = settings or get_settings()
        self.policy = ConfirmationPolicy(self.settings.confirmation_policy)
        self.clock = clock

    # --- Public API -------------------------------------------------------

    async def send_message(self, session: ChatSession, text: str) -> TurnResult:
        """
        Run one user message through the pipeline.

        Raises ValueError for blank text and SessionBusyError while a previous
        message of the same session is still in flight.
        """
        trimmed = text.strip()
        if not trimmed:
            raise ValueError("Message text is empty.")
        if session.is_processing:
            raise SessionBusyError("Still working on the previous message.")

        history = session.history_for_classifier()
        session.append("user", trimmed, timestamp=self.clock())

        if session.confirmation.is_awaiting:
            reply = classify_reply(trimmed)
            if reply == "affirm":
                return self.confirm(session)
            if reply == "deny":
                return self.cancel(session)
            if self.policy is ConfirmationPolicy.STRICT:
                draft = build_reminder_response(session.confirmation.pending.data)
                return TurnResult(response=self._append(session, draft))
            dropped = session.confirmation.clear()
            logger.info("Discarding pending proposal %r for a new request", dropped.data.title)

        generation = session.generation
        session.is_processing = True
        try:
            intent = await self.classifier.classify(
                trimmed, history, self.store.list_articles(), self.store.get_profile()
            )
        finally:
            session.is_processing = False

        if session.generation != generation and self.settings.discard_stale_responses:
            logger.info("Session %s was reset mid-request; dropping reply", session.session_id)
            return TurnResult(intent=intent, discarded=True)
        return self._complete(session, intent)

    def click_button(
        self, session: ChatSession, action: str, payload: Optional[Mapping[str, str]] = None
    ) -> TurnResult:
        """Handle a click on one of the assistant's buttons."""
        if action == "confirm_generate":
            if not session.confirmation.is_awaiting:
                return TurnResult()
            return self.confirm(session)
        if action == "cancel_generate":
            if not session.confirmation.is_awaiting:
                return TurnResult()
            return self.cancel(session)

        command = command_from_button(action, payload)
        if command is None:
            logger.debug("Ignoring button %r with payload %r", action, payload)
            return TurnResult()
        session.bus.dispatch(command)
        return TurnResult(commands=[command])

    def confirm(self, session: ChatSession) -> TurnResult:
        """Commit the pending proposal: AwaitingConfirmation -> Idle."""
        pending = session.confirmation.pending
        if pending is None:
            return TurnResult()
        try:
            article = commit_proposal(pending.data, self.store, now=self.clock())
        except StoreError as exc:
            # Keep the proposal so the user can retry.
            logger.warning("Could not create article %r: %s", pending.data.slug, exc)
            draft = ResponseDraft(
                text="I couldn't create that article just now. Reply \"yes\" to try again or \"cancel\" to drop it."
            )
            return TurnResult(response=self._append(session, draft))

        session.confirmation.clear()
        logger.info("Created article %s from chat", article.id)
        response = self._append(session, build_commit_response(article))
        command = ChatCommand("navigate", {"path": self.settings.content_library_path})
        session.bus.dispatch(command)
        return TurnResult(response=response, commands=[command])

    def cancel(self, session: ChatSession) -> TurnResult:
        """Drop the pending proposal: AwaitingConfirmation -> Idle."""
        session.confirmation.clear()
        return TurnResult(response=self._append(session, build_cancel_response()))

    # --- Internals --------------------------------------------------------

    def _complete(self, session: ChatSession, intent: ChatIntent) -> TurnResult:
        result = execute_action(
            intent,
            self.store,
            now=self.clock(),
            preview_limit=self.settings.query_preview_limit,
        )
        draft = build_response(
            intent,
            result,
            preview_limit=self.settings.query_preview_limit,
            library_path=self.settings.content_library_path,
        )
        response = self._append(session, draft)

        if intent.type == "generate_article" and result.success and result.proposal:
            session.confirmation.propose(result.proposal)

        commands: List[ChatCommand] = []
        if result.success and result.command is not None:
            session.bus.dispatch(result.command)
            commands.append(result.command)
        return TurnResult(response=response, commands=commands, intent=intent)

    def _append(self, session: ChatSession, draft: ResponseDraft) -> ChatMessage:
        return session.append(
            "assistant", draft.text, draft.buttons or None, timestamp=self.clock()
        )
