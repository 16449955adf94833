"""Execute a classified intent against the content store.

Every handler either returns a successful ActionResult or raises one of the
ActionError subclasses below; execute_action turns those into a failed result
whose message is safe to show the user. Nothing here raises past
execute_action.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from pydantic import HttpUrl, TypeAdapter, ValidationError

from .bus import ChatCommand
from .intents import (
    INTENT_TYPES,
    ChatIntent,
    CountArticlesIntent,
    EditArticleFieldIntent,
    EditDefaultIntent,
    GenerateArticleIntent,
    PreviewArticleIntent,
    QueryArticlesIntent,
    TriggerGenerationIntent,
    clean_reference,
    is_generic_reference,
)
from .models import (
    ARTICLE_CATEGORIES,
    ARTICLE_STATUSES,
    Article,
    ArticleProposal,
    as_utc,
    utc_now,
)
from .resolver import Ambiguous, NotFound, resolve_article
from .slug import is_slug_taken, slugify
from .store import ContentStore, StoreError

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_PATH = "/blog"

# Wire field name -> Article attribute.
ARTICLE_FIELD_ATTRS: Dict[str, str] = {
    "keyword": "keyword",
    "title": "title",
    "slug": "slug",
    "category": "category",
    "status": "status",
    "metaTitle": "meta_title",
    "metaDescription": "meta_description",
    "ctaText": "cta_text",
    "ctaUrl": "cta_url",
    "authorId": "author_id",
    "contentPath": "content_path",
}

FIELD_LABELS: Dict[str, str] = {
    "metaTitle": "meta title",
    "metaDescription": "meta description",
    "ctaText": "CTA text",
    "ctaUrl": "CTA URL",
    "authorId": "author",
    "contentPath": "content path",
    "contentPaths": "content path",
    "authorAssignmentRules": "author assignment rules",
}


# --- Errors ---------------------------------------------------------------


class ActionError(Exception):
    """A request that cannot be carried out; str(exc) is the user-facing reply."""

    code = "action_error"


class AmbiguousReference(ActionError):
    code = "ambiguous_reference"


class NotFoundReference(ActionError):
    code = "not_found_reference"


class InvalidFieldValue(ActionError):
    code = "invalid_field_value"


class ValidationFailed(ActionError):
    code = "validation_failed"


class PersistenceFailure(ActionError):
    code = "persistence_failure"


# --- Results --------------------------------------------------------------


@dataclass
class ActionResult:
    success: bool
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    proposal: Optional[ArticleProposal] = None
    command: Optional[ChatCommand] = None
    error: Optional[str] = None


@dataclass
class ActionContext:
    store: ContentStore
    now: datetime
    preview_limit: int = 10


# --- Helpers --------------------------------------------------------------

_MARKUP = re.compile(r"[<>*`\[\]\\]")
_url_adapter: TypeAdapter = TypeAdapter(HttpUrl)


def plain_text(text: str, limit: int = 120) -> str:
    """Strip characters that render as markup and cap the length."""
    cleaned = " ".join(_MARKUP.sub("", text).split())
    if len(cleaned) > limit:
        cleaned = cleaned[: limit - 3].rstrip() + "..."
    return cleaned


def field_label(name: str) -> str:
    return FIELD_LABELS.get(name, name)


def filter_articles(
    articles: List[Article],
    status: Optional[str] = None,
    older_than_days: Optional[int] = None,
    newer_than_days: Optional[int] = None,
    now: Optional[datetime] = None,
) -> List[Article]:
    """
    Apply the chat's catalog filters; all given filters must hold.

    older_than_days=N keeps articles created at least N days before now,
    newer_than_days=N keeps those created at most N days before now.
    """
    now = as_utc(now or utc_now())
    matches = list(articles)
    if status:
        matches = [a for a in matches if a.status == status]
    if older_than_days is not None:
        cutoff = now - timedelta(days=older_than_days)
        matches = [a for a in matches if as_utc(a.created_at) <= cutoff]
    if newer_than_days is not None:
        cutoff = now - timedelta(days=newer_than_days)
        matches = [a for a in matches if as_utc(a.created_at) >= cutoff]
    return matches


def _resolve(ref: str, ctx: ActionContext) -> Article:
    resolution = resolve_article(ref, ctx.store.list_articles())
    if isinstance(resolution, NotFound):
        raise NotFoundReference(
            "I couldn't find an article matching that. Try its exact title, keyword, "
            'or slug, or ask me to "list my articles".'
        )
    if isinstance(resolution, Ambiguous):
        names = ", ".join(f"**{plain_text(a.display_name)}**" for a in resolution.candidates[:5])
        raise AmbiguousReference(
            f"That matches more than one article: {names}. Which one did you mean?"
        )
    return resolution.article


def _normalize_category(value: str) -> str:
    category = slugify(value)
    if category not in ARTICLE_CATEGORIES:
        raise InvalidFieldValue(
            f"Category must be one of: {', '.join(ARTICLE_CATEGORIES)}."
        )
    return category


def _normalize_path(value: str) -> str:
    path = clean_reference(value)
    if not path or any(ch.isspace() for ch in path):
        raise InvalidFieldValue("A content path looks like /blog or /learn, without spaces.")
    path = "/" + path.strip("/")
    return path


def _normalize_url(value: str) -> str:
    url = clean_reference(value)
    try:
        _url_adapter.validate_python(url)
    except ValidationError as exc:
        raise InvalidFieldValue(
            "That doesn't look like a valid URL. Use a full address like https://example.com/demo."
        ) from exc
    return url


def _require_text(value: str, label: str) -> str:
    text = clean_reference(value)
    if not text:
        raise InvalidFieldValue(f"The {label} can't be empty.")
    return text


def _article_field_value(field_name: str, value: str, article: Article, ctx: ActionContext) -> Any:
    """Validate and normalize a new value for one article field."""
    if field_name == "status":
        status = clean_reference(value).lower()
        if status not in ARTICLE_STATUSES:
            raise InvalidFieldValue(f"Status must be one of: {', '.join(ARTICLE_STATUSES)}.")
        return status
    if field_name == "category":
        return _normalize_category(value)
    if field_name == "slug":
        slug = slugify(value)
        if not slug:
            raise InvalidFieldValue("A slug needs at least one letter or number.")
        if is_slug_taken(slug, ctx.store.list_articles(), exclude_id=article.id):
            raise InvalidFieldValue(f"The slug `{slug}` is already used by another article.")
        return slug
    if field_name == "ctaUrl":
        return _normalize_url(value)
    if field_name == "contentPath":
        return _normalize_path(value)
    return _require_text(value, field_label(field_name))


def _title_case(keyword: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in keyword.split())


def _write(description: str, fn: Callable[[], Any]) -> Any:
    try:
        return fn()
    except StoreError as exc:
        logger.warning("Store rejected %s: %s", description, exc)
        raise PersistenceFailure(
            "I couldn't save that change just now, so nothing was updated. Please try again."
        ) from exc


# --- Handlers -------------------------------------------------------------


def _generate_article(intent: GenerateArticleIntent, ctx: ActionContext) -> ActionResult:
    if is_generic_reference(intent.article_ref):
        raise ValidationFailed(
            "What should the article be about? Give me a topic or working title."
        )
    keyword = " ".join(clean_reference(intent.article_ref).split())
    slug = slugify(keyword)
    if not slug:
        raise ValidationFailed("That topic needs at least one letter or number.")
    existing = next((a for a in ctx.store.list_articles() if a.slug == slug), None)
    if existing is not None:
        raise ValidationFailed(
            f"You already have **{plain_text(existing.display_name)}** at that slug. "
            "Want to preview or edit it instead?"
        )

    profile = ctx.store.get_profile()
    proposal = ArticleProposal(
        title=_title_case(keyword),
        keyword=keyword,
        slug=slug,
        category=intent.category or profile.default_category,
        content_path=profile.content_paths[0] if profile.content_paths else DEFAULT_CONTENT_PATH,
    )
    return ActionResult(
        success=True,
        message=f"Proposed new article {proposal.title!r}.",
        data={"article": proposal},
        proposal=proposal,
    )


def _trigger_generation(intent: TriggerGenerationIntent, ctx: ActionContext) -> ActionResult:
    article = _resolve(intent.article_ref, ctx)
    return ActionResult(
        success=True,
        message=f"Opening content generation for {article.display_name!r}.",
        data={"article": article, "article_id": article.id},
        command=ChatCommand(
            "open_article_wizard", {"articleId": article.id, "startStep": "generate"}
        ),
    )


def _edit_article_field(intent: EditArticleFieldIntent, ctx: ActionContext) -> ActionResult:
    article = _resolve(intent.article_ref, ctx)
    value = _article_field_value(intent.field, intent.value, article, ctx)
    attr = ARTICLE_FIELD_ATTRS[intent.field]
    updated = _write(
        f"update of {attr} on {article.id}",
        lambda: ctx.store.update_article(article.id, {attr: value, "updated_at": ctx.now}),
    )
    return ActionResult(
        success=True,
        message=f"Updated {field_label(intent.field)} of {article.display_name!r}.",
        data={
            "article": updated,
            "article_id": article.id,
            "field": intent.field,
            "value": value,
        },
    )


def _edit_default(intent: EditDefaultIntent, ctx: ActionContext) -> ActionResult:
    display: str
    if intent.field == "category":
        category = _normalize_category(intent.value)
        changes: Dict[str, Any] = {"default_category": category}
        display = category
    elif intent.field == "contentPaths":
        paths: List[str] = []
        for raw in intent.value.split(","):
            if raw.strip():
                path = _normalize_path(raw)
                if path not in paths:
                    paths.append(path)
        if not paths:
            raise InvalidFieldValue("Tell me which path to publish under, like /blog or /learn.")
        changes = {"content_paths": paths}
        display = ", ".join(paths)
    elif intent.field == "ctaUrl":
        display = _normalize_url(intent.value)
        changes = {"cta_url": display}
    elif intent.field == "ctaText":
        display = _require_text(intent.value, field_label(intent.field))
        changes = {"cta_text": display}
    else:
        display = _require_text(intent.value, field_label(intent.field))
        changes = {"author_assignment_rules": display}

    profile = _write(f"default {intent.field}", lambda: ctx.store.update_profile(changes))
    return ActionResult(
        success=True,
        message=f"Default {field_label(intent.field)} updated.",
        data={"field": intent.field, "value": display, "profile": profile},
    )


def _filter_kwargs(intent: QueryArticlesIntent | CountArticlesIntent) -> Dict[str, Any]:
    return {
        "status": intent.status_filter,
        "older_than_days": intent.older_than_days,
        "newer_than_days": intent.newer_than_days,
    }


def _query_articles(intent: QueryArticlesIntent, ctx: ActionContext) -> ActionResult:
    filters = _filter_kwargs(intent)
    matches = filter_articles(ctx.store.list_articles(), now=ctx.now, **filters)
    matches.sort(key=lambda a: as_utc(a.created_at), reverse=True)
    return ActionResult(
        success=True,
        message=f"Found {len(matches)} articles.",
        data={
            "articles": matches,
            "preview": matches[: ctx.preview_limit],
            "count": len(matches),
            "filters": filters,
        },
    )


def _count_articles(intent: CountArticlesIntent, ctx: ActionContext) -> ActionResult:
    filters = _filter_kwargs(intent)
    count = len(filter_articles(ctx.store.list_articles(), now=ctx.now, **filters))
    return ActionResult(
        success=True,
        message=f"Counted {count} articles.",
        data={"count": count, "filters": filters},
    )


def _preview_article(intent: PreviewArticleIntent, ctx: ActionContext) -> ActionResult:
    article = _resolve(intent.article_ref, ctx)
    return ActionResult(
        success=True,
        message=f"Opening preview for {article.display_name!r}.",
        data={"article": article, "article_id": article.id},
        command=ChatCommand("open_article_preview", {"articleId": article.id}),
    )


def _help(intent, ctx: ActionContext) -> ActionResult:
    return ActionResult(success=True, message="help")


def _unknown(intent, ctx: ActionContext) -> ActionResult:
    return ActionResult(
        success=True,
        message=intent.fallback_text or "unknown",
        data={"fallback_text": intent.fallback_text},
    )


_HANDLERS: Dict[str, Callable[[Any, ActionContext], ActionResult]] = {
    "generate_article": _generate_article,
    "trigger_generation": _trigger_generation,
    "edit_article_field": _edit_article_field,
    "edit_default": _edit_default,
    "query_articles": _query_articles,
    "count_articles": _count_articles,
    "preview_article": _preview_article,
    "help": _help,
    "unknown": _unknown,
}

_unhandled = set(INTENT_TYPES) ^ set(_HANDLERS)
if _unhandled:
    raise RuntimeError(f"Intent handlers out of sync with ChatIntent: {sorted(_unhandled)}")


def execute_action(
    intent: ChatIntent,
    store: ContentStore,
    *,
    now: Optional[datetime] = None,
    preview_limit: int = 10,
) -> ActionResult:
    """Run the handler for intent.type; failures come back as success=False results."""
    ctx = ActionContext(store=store, now=as_utc(now or utc_now()), preview_limit=preview_limit)
    handler = _HANDLERS[intent.type]
    try:
        return handler(intent, ctx)
    except ActionError as exc:
        logger.info("%s failed (%s): %s", intent.type, exc.code, exc)
        return ActionResult(success=False, message=str(exc), error=exc.code)
