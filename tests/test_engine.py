import asyncio

import pytest

from conftest import NOW, FakeClassifier
from content_ops.config import Settings
from content_ops.engine import ChatEngine, SessionBusyError
from content_ops.intents import (
    GenerateArticleIntent,
    HelpIntent,
    PreviewArticleIntent,
    QueryArticlesIntent,
    UnknownIntent,
)
from content_ops.session import ChatSession


def send(engine, session, text):
    return asyncio.run(engine.send_message(session, text))


@pytest.fixture
def classifier():
    return FakeClassifier()


@pytest.fixture
def engine(store, classifier, settings):
    return ChatEngine(store, classifier, settings=settings, clock=lambda: NOW)


@pytest.fixture
def session():
    return ChatSession()


def created_by_chat(store):
    return [a for a in store.list_articles() if a.origin == "chat"]


def test_article_is_only_created_after_yes(engine, classifier, session, store):
    classifier.queue(GenerateArticleIntent(article_ref="best ai tools"))

    turn = send(engine, session, "create an article about best AI tools")
    assert turn.intent.type == "generate_article"
    assert session.confirmation.is_awaiting
    assert created_by_chat(store) == []

    turn = send(engine, session, "yes")
    created = created_by_chat(store)
    assert len(created) == 1
    assert created[0].slug == "best-ai-tools"
    assert created[0].status == "pending"
    assert not session.confirmation.is_awaiting
    assert turn.response.text.startswith("Done! **Best Ai Tools**")
    assert [c.type for c in turn.commands] == ["navigate"]
    assert turn.commands[0].payload == {"path": "/content-library"}
    # The reply is matched locally; only the first message was classified.
    assert len(classifier.calls) == 1


def test_no_cancels_proposal(engine, classifier, session, store):
    classifier.queue(GenerateArticleIntent(article_ref="best ai tools"))
    send(engine, session, "write an article on best ai tools")

    turn = send(engine, session, "no thanks")
    assert turn.response.text == "No problem, I won't create that article."
    assert not session.confirmation.is_awaiting
    assert created_by_chat(store) == []


def test_unrelated_message_overrides_proposal(engine, classifier, session, store):
    classifier.queue(
        GenerateArticleIntent(article_ref="best ai tools"),
        QueryArticlesIntent(status_filter="draft"),
    )
    send(engine, session, "create an article about best ai tools")

    turn = send(engine, session, "show me drafts")
    assert turn.intent.type == "query_articles"
    assert not session.confirmation.is_awaiting
    assert created_by_chat(store) == []

    # A later "yes" is just a message; there is nothing left to confirm.
    send(engine, session, "yes")
    assert created_by_chat(store) == []


def test_strict_policy_keeps_waiting(store, classifier, session):
    settings = Settings(OPENAI_API_KEY="test-key", confirmation_policy="strict")
    engine = ChatEngine(store, classifier, settings=settings, clock=lambda: NOW)
    classifier.queue(GenerateArticleIntent(article_ref="best ai tools"))
    send(engine, session, "create an article about best ai tools")

    turn = send(engine, session, "show me drafts")
    assert "still waiting" in turn.response.text
    assert session.confirmation.is_awaiting
    assert len(classifier.calls) == 1

    send(engine, session, "yes")
    assert len(created_by_chat(store)) == 1


def test_new_proposal_after_start_fresh(engine, classifier, session, store):
    classifier.queue(
        GenerateArticleIntent(article_ref="best ai tools"),
        GenerateArticleIntent(article_ref="crm onboarding"),
    )
    send(engine, session, "create best ai tools")
    session.start_fresh()
    assert not session.confirmation.is_awaiting

    send(engine, session, "create crm onboarding")
    assert session.confirmation.pending.data.slug == "crm-onboarding"
    send(engine, session, "yes")
    assert [a.slug for a in created_by_chat(store)] == ["crm-onboarding"]


def test_create_an_article_without_topic(engine, classifier, session, store):
    # The adapter turns a generic reference into an unknown intent with a follow-up question.
    classifier.queue(UnknownIntent(fallback_text="What should the article be about?"))
    turn = send(engine, session, "create an article")
    assert turn.response.text == "What should the article be about?"
    assert not session.confirmation.is_awaiting
    assert created_by_chat(store) == []


def test_history_excludes_current_message(engine, classifier, session):
    classifier.queue(HelpIntent(), HelpIntent())
    send(engine, session, "help")
    send(engine, session, "what else?")

    first, second = classifier.calls
    assert first["history"] == []
    assert [h["role"] for h in second["history"]] == ["user", "assistant"]
    assert second["text"] == "what else?"


def test_blank_and_busy_messages_are_rejected(engine, session):
    with pytest.raises(ValueError):
        send(engine, session, "   ")

    session.is_processing = True
    with pytest.raises(SessionBusyError):
        send(engine, session, "help")
    assert session.messages == ()


class ResettingClassifier:
    """Simulates the user pressing 'start fresh' while the model is thinking."""

    def __init__(self, session):
        self.session = session

    async def classify(self, user_text, history, articles, profile):
        self.session.start_fresh()
        return HelpIntent()


def test_reply_for_reset_session_is_discarded(store, settings, session):
    engine = ChatEngine(store, ResettingClassifier(session), settings=settings)
    turn = send(engine, session, "help")
    assert turn.discarded
    assert turn.response is None
    assert session.messages == ()
    assert not session.is_processing


def test_stale_reply_kept_when_discard_disabled(store, session):
    settings = Settings(OPENAI_API_KEY="test-key", discard_stale_responses=False)
    engine = ChatEngine(store, ResettingClassifier(session), settings=settings)
    turn = send(engine, session, "help")
    assert not turn.discarded
    assert [m.role for m in session.messages] == ["assistant"]


def test_preview_dispatches_to_subscribers(engine, classifier, session):
    received = []
    session.bus.subscribe(received.append)
    classifier.queue(PreviewArticleIntent(article_ref="best crm"))

    turn = send(engine, session, "preview best crm")
    assert [c.type for c in turn.commands] == ["open_article_preview"]
    assert received == turn.commands


def test_buttons(engine, classifier, session, store):
    received = []
    session.bus.subscribe(received.append)

    turn = engine.click_button(session, "edit", {"articleId": "a1"})
    assert turn.commands[0].type == "open_article_wizard"
    assert received == turn.commands

    assert engine.click_button(session, "confirm_generate").response is None
    assert engine.click_button(session, "bogus").commands == []

    classifier.queue(GenerateArticleIntent(article_ref="seo checklist"))
    send(engine, session, "create seo checklist")
    turn = engine.click_button(session, "confirm_generate")
    assert turn.response.text.startswith("Done!")
    assert [a.slug for a in created_by_chat(store)] == ["seo-checklist"]

    classifier.queue(GenerateArticleIntent(article_ref="link building"))
    send(engine, session, "create link building")
    turn = engine.click_button(session, "cancel_generate")
    assert turn.response.text == "No problem, I won't create that article."
    assert len(created_by_chat(store)) == 1


def test_commit_failure_keeps_proposal(engine, classifier, session, store, make_article):
    classifier.queue(GenerateArticleIntent(article_ref="ai tools"))
    send(engine, session, "create ai tools")
    # Someone else takes the slug before the user confirms.
    store.add_article(make_article("other", "AI Tools", slug="ai-tools"))

    turn = send(engine, session, "yes")
    assert "couldn't create" in turn.response.text
    assert session.confirmation.is_awaiting
    assert turn.commands == []


def test_request_starting_with_ok_is_not_a_confirmation(engine, classifier, session, store):
    classifier.queue(
        GenerateArticleIntent(article_ref="best ai tools"),
        QueryArticlesIntent(status_filter="draft"),
    )
    send(engine, session, "create an article about best ai tools")

    turn = send(engine, session, "ok list my drafts")
    assert turn.intent.type == "query_articles"
    assert len(classifier.calls) == 2
    assert not session.confirmation.is_awaiting
    assert created_by_chat(store) == []
