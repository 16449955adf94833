"""The closed set of intents a chat message can be classified into."""

from __future__ import annotations

import re
from typing import Annotated, Any, Dict, Literal, Optional, Union, get_args

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from .models import ArticleCategory, ArticleStatus
from .schema import TOOL_NAMES, validate_tool_params

ArticleField = Literal[
    "keyword",
    "title",
    "slug",
    "category",
    "status",
    "metaTitle",
    "metaDescription",
    "ctaText",
    "ctaUrl",
    "authorId",
    "contentPath",
]
DefaultField = Literal["category", "contentPaths", "ctaText", "ctaUrl", "authorAssignmentRules"]


class _Intent(BaseModel):
    # extra="forbid": a variant never carries fields of another variant.
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True, extra="forbid"
    )


class GenerateArticleIntent(_Intent):
    type: Literal["generate_article"] = "generate_article"
    article_ref: str
    category: Optional[ArticleCategory] = None


class TriggerGenerationIntent(_Intent):
    type: Literal["trigger_generation"] = "trigger_generation"
    article_ref: str


class EditArticleFieldIntent(_Intent):
    type: Literal["edit_article_field"] = "edit_article_field"
    article_ref: str
    field: ArticleField
    value: str


class EditDefaultIntent(_Intent):
    type: Literal["edit_default"] = "edit_default"
    field: DefaultField
    value: str


class QueryArticlesIntent(_Intent):
    type: Literal["query_articles"] = "query_articles"
    status_filter: Optional[ArticleStatus] = None
    older_than_days: Optional[int] = Field(None, ge=0)
    newer_than_days: Optional[int] = Field(None, ge=0)


class CountArticlesIntent(_Intent):
    type: Literal["count_articles"] = "count_articles"
    status_filter: Optional[ArticleStatus] = None
    older_than_days: Optional[int] = Field(None, ge=0)
    newer_than_days: Optional[int] = Field(None, ge=0)


class PreviewArticleIntent(_Intent):
    type: Literal["preview_article"] = "preview_article"
    article_ref: str


class HelpIntent(_Intent):
    type: Literal["help"] = "help"


class UnknownIntent(_Intent):
    type: Literal["unknown"] = "unknown"
    fallback_text: Optional[str] = None


ChatIntent = Annotated[
    Union[
        GenerateArticleIntent,
        TriggerGenerationIntent,
        EditArticleFieldIntent,
        EditDefaultIntent,
        QueryArticlesIntent,
        CountArticlesIntent,
        PreviewArticleIntent,
        HelpIntent,
        UnknownIntent,
    ],
    Field(discriminator="type"),
]

INTENT_CLASSES: tuple[type[_Intent], ...] = get_args(get_args(ChatIntent)[0])
INTENT_TYPES: tuple[str, ...] = tuple(
    cls.model_fields["type"].default for cls in INTENT_CLASSES
)

_intent_adapter: TypeAdapter = TypeAdapter(ChatIntent)

ASK_FOR_TOPIC = (
    "Happy to create an article! What should it be about? "
    'For example: "Create an article about best CRM tools for startups".'
)

_QUOTES = "\"'`“”‘’"
# Words that on their own never name a topic ("a new blog post", "some content").
_GENERIC_WORDS = {
    "a", "an", "the", "new", "another", "one", "some", "my", "me", "for",
    "article", "articles", "post", "posts", "blog", "page", "piece", "content",
    "something", "anything", "topic", "title", "untitled", "it", "that", "this",
    "random", "generic", "placeholder", "tbd", "todo",
}
_WORD = re.compile(r"[\w'-]+")


def clean_reference(ref: str) -> str:
    """Strip whitespace and surrounding quotes from a free-text article reference."""
    return ref.strip().strip(_QUOTES).strip()


def is_generic_reference(ref: str | None) -> bool:
    """True when ref is empty or made only of filler words like 'a new article'."""
    if not ref:
        return True
    words = _WORD.findall(clean_reference(ref).lower())
    return not words or all(word in _GENERIC_WORDS for word in words)


def parse_intent(data: Dict[str, Any]) -> ChatIntent:
    """Build an intent from a dict carrying a `type` discriminant."""
    return _intent_adapter.validate_python(data)


def intent_from_tool_call(
    tool_name: str, params: Dict[str, Any] | None, fallback_text: str | None = None
) -> ChatIntent:
    """
    Turn a classifier tool call into a ChatIntent.

    Anything that is not a recognized tool becomes `unknown` carrying the
    model's text reply. A generate request without a concrete topic also
    becomes `unknown`, asking the user for one.

    Raises ValueError when the params do not fit the tool's schema.
    """
    if tool_name not in TOOL_NAMES:
        text = fallback_text.strip() if fallback_text else None
        return UnknownIntent(fallback_text=text or None)

    payload = dict(params or {})
    validate_tool_params(tool_name, payload)
    if tool_name == "generate_article" and is_generic_reference(payload.get("articleRef")):
        return UnknownIntent(fallback_text=ASK_FOR_TOPIC)
    return parse_intent({"type": tool_name, **payload})
