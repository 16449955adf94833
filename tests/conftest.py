from datetime import datetime, timedelta, timezone

import pytest

from content_ops.config import Settings
from content_ops.intents import UnknownIntent
from content_ops.models import Article, CompanyProfile
from content_ops.store import InMemoryContentStore

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def days_ago(days: int) -> datetime:
    return NOW - timedelta(days=days)


class FakeClassifier:
    """Returns queued intents in order and records what it was asked."""

    def __init__(self, *intents):
        self.intents = list(intents)
        self.calls = []

    def queue(self, *intents):
        self.intents.extend(intents)

    async def classify(self, user_text, history, articles, profile):
        self.calls.append(
            {"text": user_text, "history": list(history), "articles": list(articles)}
        )
        if not self.intents:
            return UnknownIntent()
        return self.intents.pop(0)


@pytest.fixture
def make_article():
    def _make(id, title, *, slug=None, keyword=None, status="draft", created=30, updated=None):
        return Article(
            id=id,
            title=title,
            keyword=keyword if keyword is not None else title.lower(),
            slug=slug if slug is not None else title.lower().replace(" ", "-"),
            status=status,
            created_at=days_ago(created),
            updated_at=days_ago(created if updated is None else updated),
        )

    return _make


@pytest.fixture
def catalog(make_article):
    return [
        make_article("a1", "Best CRM", status="published", created=90),
        make_article(
            "a2",
            "CRM Software Reviews",
            slug="best-crm-software",
            keyword="crm software",
            status="draft",
            created=45,
        ),
        make_article("a3", "How To Write Briefs", status="draft", created=10),
        make_article("a4", "Glossary Of SEO Terms", status="pending", created=2),
    ]


@pytest.fixture
def store(catalog):
    profile = CompanyProfile(name="Acme", content_paths=["/learn"], website_url="https://acme.test")
    return InMemoryContentStore(catalog, profile)


@pytest.fixture
def settings():
    return Settings(OPENAI_API_KEY="test-key")
