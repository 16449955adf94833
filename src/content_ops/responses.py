"""Turn an intent and its action result into the assistant's reply."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .actions import ActionResult, field_label, plain_text
from .intents import ChatIntent
from .models import ActionButton, Article, ArticleProposal

CONTENT_LIBRARY_PATH = "/content-library"

HELP_TEXT = """Here's what I can help you with:

- **Generate articles**: "Create an article about best AI tools"
- **Write content**: "Generate the content for best AI tools"
- **Edit article fields**: "Change the keyword of best AI tools to top AI tools"
- **Update defaults**: "Always publish new articles under /learn"
- **Query your library**: "Show me drafts older than 30 days"
- **Count articles**: "How many published articles do I have?"
- **Preview articles**: "Preview best AI tools"

Just type naturally and I'll figure out what you need!"""

UNKNOWN_TEXT = (
    "I'm not sure I understand. I can help you **generate articles**, **edit article "
    'fields**, **change defaults**, **query your library**, and more. Type "help" to '
    "see everything I can do."
)


@dataclass
class ResponseDraft:
    """Assistant reply before it gets an id and timestamp in the session log."""

    text: str
    buttons: List[ActionButton] = field(default_factory=list)


def article_buttons(article_id: str, *, generate: bool = False) -> List[ActionButton]:
    buttons = [
        ActionButton(label="Preview", action="preview", payload={"articleId": article_id}),
        ActionButton(label="Edit", action="edit", payload={"articleId": article_id}),
    ]
    if generate:
        buttons.append(
            ActionButton(
                label="Generate Content",
                action="generate_content",
                payload={"articleId": article_id},
            )
        )
    return buttons


def _plural(count: int, word: str = "article") -> str:
    return f"{word}{'' if count == 1 else 's'}"


def describe_filters(filters: Dict[str, Any]) -> tuple[str, str]:
    """Return (adjective, suffix) such as ("draft ", " created at least 30 days ago")."""
    status = filters.get("status")
    older = filters.get("older_than_days")
    newer = filters.get("newer_than_days")
    adjective = f"{status} " if status else ""
    clauses = []
    if older is not None:
        clauses.append(f"created at least {older} {_plural(older, 'day')} ago")
    if newer is not None:
        clauses.append(f"created in the last {newer} {_plural(newer, 'day')}")
    suffix = f" {' and '.join(clauses)}" if clauses else ""
    return adjective, suffix


def _generate(result: ActionResult) -> ResponseDraft:
    proposal: Optional[ArticleProposal] = result.proposal
    if proposal is None:
        return ResponseDraft(text="Something went wrong preparing that article.")
    path = (proposal.content_path or "").rstrip("/")
    return ResponseDraft(
        text=(
            f"Sure, I'll create **{plain_text(proposal.title)}** in the "
            f"**{proposal.category.replace('-', ' ').title()}** category at "
            f"`{path}/{proposal.slug}`. Sound good?"
        ),
        buttons=[
            ActionButton(label="Confirm", action="confirm_generate"),
            ActionButton(label="Cancel", action="cancel_generate"),
        ],
    )


def _trigger_generation(result: ActionResult) -> ResponseDraft:
    article: Article = result.data["article"]
    return ResponseDraft(
        text=f"Opening the content generator for **{plain_text(article.display_name)}**..."
    )


def _edit_field(result: ActionResult) -> ResponseDraft:
    article: Article = result.data["article"]
    return ResponseDraft(
        text=(
            f"Updated the **{field_label(result.data['field'])}** of "
            f"**{plain_text(article.display_name)}** to \"{plain_text(str(result.data['value']))}\"."
        ),
        buttons=article_buttons(article.id),
    )


def _edit_default(result: ActionResult) -> ResponseDraft:
    field_name = result.data["field"]
    value = plain_text(str(result.data["value"]))
    if field_name == "contentPaths":
        text = (
            f"Default content path updated to **{value}**. "
            "All future articles will use this path."
        )
    elif field_name == "category":
        text = f"Done! New articles will default to the **{value}** category."
    else:
        text = f"Default **{field_label(field_name)}** updated to \"{value}\"."
    return ResponseDraft(text=text)


def _query(result: ActionResult, preview_limit: int, library_path: str) -> ResponseDraft:
    count: int = result.data["count"]
    preview: List[Article] = result.data["preview"][:preview_limit]
    adjective, suffix = describe_filters(result.data["filters"])
    if count == 0:
        return ResponseDraft(text=f"No {adjective}articles found{suffix}.")
    lines = [f"- **{plain_text(a.display_name)}** ({a.status})" for a in preview]
    if count > len(preview):
        lines.append(f"- ...and {count - len(preview)} more")
    return ResponseDraft(
        text=f"Found **{count}** {adjective}{_plural(count)}{suffix}:\n\n" + "\n".join(lines),
        buttons=[
            ActionButton(
                label="View in Library",
                action="navigate",
                payload={"path": library_path},
            )
        ],
    )


def _count(result: ActionResult) -> ResponseDraft:
    count: int = result.data["count"]
    adjective, suffix = describe_filters(result.data["filters"])
    return ResponseDraft(text=f"You have **{count}** {adjective}{_plural(count)}{suffix}.")


def _preview(result: ActionResult) -> ResponseDraft:
    article: Article = result.data["article"]
    return ResponseDraft(text=f"Opening preview for **{plain_text(article.display_name)}**...")


def build_response(
    intent: ChatIntent,
    result: ActionResult,
    *,
    preview_limit: int = 10,
    library_path: str = CONTENT_LIBRARY_PATH,
) -> ResponseDraft:
    """
    Map an intent and its result to a reply.

    Failed results are shown verbatim. Successful ones use a fixed template per
    intent type, interpolating only data that came out of the store or passed
    validation.
    """
    if not result.success:
        return ResponseDraft(text=result.message)

    kind = intent.type
    if kind == "generate_article":
        return _generate(result)
    if kind == "trigger_generation":
        return _trigger_generation(result)
    if kind == "edit_article_field":
        return _edit_field(result)
    if kind == "edit_default":
        return _edit_default(result)
    if kind == "query_articles":
        return _query(result, preview_limit, library_path)
    if kind == "count_articles":
        return _count(result)
    if kind == "preview_article":
        return _preview(result)
    if kind == "help":
        return ResponseDraft(text=HELP_TEXT)
    fallback = result.data.get("fallback_text")
    return ResponseDraft(text=fallback or UNKNOWN_TEXT)


def build_commit_response(article: Article) -> ResponseDraft:
    return ResponseDraft(
        text=f"Done! **{plain_text(article.display_name)}** has been added to your Content Library.",
        buttons=article_buttons(article.id, generate=True),
    )


def build_cancel_response() -> ResponseDraft:
    return ResponseDraft(text="No problem, I won't create that article.")


def build_reminder_response(proposal: ArticleProposal) -> ResponseDraft:
    return ResponseDraft(
        text=(
            f"I'm still waiting on **{plain_text(proposal.title)}**. Reply \"yes\" to "
            "create it or \"cancel\" to drop it first."
        ),
        buttons=[
            ActionButton(label="Confirm", action="confirm_generate"),
            ActionButton(label="Cancel", action="cancel_generate"),
        ],
    )
