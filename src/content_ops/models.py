"""Data models for the content library and the chat session."""

from __future__ import annotations

import itertools
from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

ArticleStatus = Literal["pending", "draft", "published", "generating", "error"]
ArticleCategory = Literal["blog", "landing-page", "comparison", "how-to", "glossary"]
ChatRole = Literal["user", "assistant"]

ARTICLE_STATUSES: tuple[str, ...] = get_args(ArticleStatus)
ARTICLE_CATEGORIES: tuple[str, ...] = get_args(ArticleCategory)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat a naive timestamp as UTC so it compares with aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CamelModel(BaseModel):
    """Base for entities exchanged with the UI, which speaks camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Article(CamelModel):
    """A content library entry, owned by the storage collaborator."""

    id: str
    title: str = ""
    slug: str = ""
    keyword: str = ""
    category: ArticleCategory = "blog"
    status: ArticleStatus = "pending"
    body_html: str = ""
    faq_html: str = ""
    meta_title: str = ""
    meta_description: str = ""
    cta_text: str = ""
    cta_url: str = ""
    author_id: Optional[str] = None
    internal_links: List[str] = Field(default_factory=list)
    selected_questions: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    source: Optional[Literal["new", "sitemap"]] = None
    origin: Optional[str] = None
    content_path: Optional[str] = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @property
    def display_name(self) -> str:
        return self.title or self.keyword or self.slug or self.id


class Competitor(CamelModel):
    id: str
    name: str
    url: str = ""


class CompanyProfile(CamelModel):
    """Brand settings; the chat only touches the defaults used for new articles."""

    name: str = ""
    description: str = ""
    value_prop: str = ""
    website_url: str = ""
    sitemap_url: str = ""
    content_paths: List[str] = Field(default_factory=list)
    cta_text: str = ""
    cta_url: str = ""
    competitors: List[Competitor] = Field(default_factory=list)
    default_category: ArticleCategory = "blog"
    author_assignment_rules: str = ""


# --- Chat -----------------------------------------------------------------

_message_ids = itertools.count(1)


def next_message_id() -> str:
    """Return an id unique for the lifetime of this process."""
    return f"msg_{next(_message_ids)}"


class ActionButton(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    label: str
    action: str
    payload: Optional[Dict[str, str]] = None


class ChatMessage(CamelModel):
    """One entry of the session log; immutable once appended."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(default_factory=next_message_id)
    role: ChatRole
    text: str
    timestamp: datetime = Field(default_factory=utc_now)
    buttons: Optional[List[ActionButton]] = None


class ArticleProposal(CamelModel):
    """Article fields derived from a generate request, not yet committed."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    title: str
    keyword: str
    slug: str
    category: ArticleCategory = "blog"
    content_path: Optional[str] = None


class PendingConfirmation(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    type: Literal["generate_article"] = "generate_article"
    data: ArticleProposal
