"""Two-phase confirm/commit for article creation.

A generate request only produces a proposal. The article is written when the
user's next message (or the Confirm button) approves it. The state is a
single optional PendingConfirmation: None means Idle, anything else means
AwaitingConfirmation.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from .models import Article, ArticleProposal, PendingConfirmation, utc_now
from .slug import is_slug_taken
from .store import ContentStore, StoreError

ARTICLE_ORIGIN = "chat"

# A reply phrase optionally followed by filler words only ("yes please do it").
# Anything else after the phrase ("ok list my drafts") is a new request.
_FILLER = (
    r"(?:please|thanks|thank you|do it|go ahead|create it|that|it|thing|to me|"
    r"for now|then|yes|ok|okay|sure)"
)
_TAIL = r"\b(?:[\s,!.]+" + _FILLER + r"\b)*[\s,!.]*$"
_AFFIRMATIVE = re.compile(
    r"^(?:yes|yep|yeah|yup|y|ok|okay|sure|confirm|confirmed|go ahead|go for it|do it|"
    r"sounds good|looks good|create it|please do|absolutely|of course)" + _TAIL,
    re.IGNORECASE,
)
_NEGATIVE = re.compile(
    r"^(?:no|nope|nah|n|cancel|stop|abort|never ?mind|forget it|don'?t|do not|skip it)"
    + _TAIL,
    re.IGNORECASE,
)

Reply = Literal["affirm", "deny"]


class ConfirmationPolicy(str, Enum):
    """How an unrelated message affects a pending proposal."""

    OVERRIDE = "override"  # drop the proposal and handle the new message
    STRICT = "strict"  # keep waiting until the user confirms or cancels


def classify_reply(text: str) -> Optional[Reply]:
    """Return 'affirm' or 'deny' for a yes/no style reply, otherwise None."""
    normalized = " ".join(text.strip().split()).rstrip(".!")
    if _NEGATIVE.match(normalized):
        return "deny"
    if _AFFIRMATIVE.match(normalized):
        return "affirm"
    return None


class ConfirmationState:
    def __init__(self) -> None:
        self._pending: Optional[PendingConfirmation] = None

    @property
    def pending(self) -> Optional[PendingConfirmation]:
        return self._pending

    @property
    def is_awaiting(self) -> bool:
        return self._pending is not None

    def propose(self, proposal: ArticleProposal) -> PendingConfirmation:
        """Enter AwaitingConfirmation, replacing any earlier proposal."""
        self._pending = PendingConfirmation(data=proposal)
        return self._pending

    def clear(self) -> Optional[PendingConfirmation]:
        """Return to Idle; returns the proposal that was dropped, if any."""
        dropped, self._pending = self._pending, None
        return dropped


def new_article_id() -> str:
    return f"art_{uuid.uuid4().hex[:12]}"


def article_from_proposal(
    proposal: ArticleProposal, *, now: Optional[datetime] = None
) -> Article:
    now = now or utc_now()
    return Article(
        id=new_article_id(),
        title=proposal.title,
        keyword=proposal.keyword,
        slug=proposal.slug,
        category=proposal.category,
        status="pending",
        content_path=proposal.content_path,
        created_at=now,
        updated_at=now,
        source="new",
        origin=ARTICLE_ORIGIN,
    )


def commit_proposal(
    proposal: ArticleProposal, store: ContentStore, *, now: Optional[datetime] = None
) -> Article:
    """
    Create the proposed article.

    Raises StoreError if the slug was taken since the proposal was made or the
    store rejects the write.
    """
    if is_slug_taken(proposal.slug, store.list_articles()):
        raise StoreError(f"Slug {proposal.slug!r} is already in use.")
    return store.add_article(article_from_proposal(proposal, now=now))
