"""Boundary to the tool-calling model that classifies chat messages.

The model sees the user's message, the recent conversation, the titles in the
library and a short company profile, and either calls one of the tools in
schema.TOOL_SCHEMAS or answers in plain text. The adapter turns that into a
ChatIntent. It never raises during classification: any failure becomes an
`unknown` intent without fallback text.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence

from openai import AsyncOpenAI

from .config import Settings, get_settings
from .intents import ChatIntent, UnknownIntent, intent_from_tool_call
from .models import Article, CompanyProfile
from .schema import openai_tools

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are the intent classifier for a content management assistant.
Your job is to understand what the user wants and call the appropriate tool.

AVAILABLE TOOLS:
- generate_article: create/generate/write a NEW article. Extract the topic or title.
- trigger_generation: write/generate the body content of an article that already exists.
- edit_article_field: change one field of an existing article (keyword, title, slug, category, status, metaTitle, metaDescription, ctaText, ctaUrl, authorId, contentPath).
- edit_default: change a default for ALL future articles, triggered by words like "default", "always", "from now on", "all future". Fields: category, contentPaths (publish path/section), ctaText, ctaUrl, authorAssignmentRules.
- query_articles: list/show/find articles, optionally filtered by status and age.
- count_articles: how many articles there are, optionally filtered by status and age.
- preview_article: preview/view/open a specific article.
- help: the user asks what you can do or asks for help.

If the message doesn't match any tool, reply with a short helpful message suggesting what you can do. Do NOT call a tool in that case.

IMPORTANT:
- You receive the conversation history. Use it to resolve references like "it", "that article", "the one I just created", "its keyword".
- For article references, extract the title/keyword/slug the user mentions and strip surrounding quotes.
- Never call generate_article with a placeholder topic such as "an article" or "something". If the user did not name a topic, ask for one in plain text instead.
- Normalize field names to: keyword, title, slug, category, status, metaTitle, metaDescription, ctaText, ctaUrl, authorId, contentPath.
- Normalize statuses to: pending, draft, published, generating, error.
- Express dates as whole day counts: "older than a month" -> olderThanDays=30, "this week" -> newerThanDays=7.
- Be generous in matching: understand synonyms, varied phrasing and typos."""


@dataclass
class ClassificationRequest:
    message: str
    article_titles: List[str] = field(default_factory=list)
    history: List[Dict[str, str]] = field(default_factory=list)
    company_profile: Optional[Dict[str, Any]] = None

    def to_payload(self) -> Dict[str, Any]:
        """Wire form of the request (camelCase keys)."""
        payload: Dict[str, Any] = {
            "message": self.message,
            "articleTitles": list(self.article_titles),
            "history": [dict(item) for item in self.history],
        }
        if self.company_profile is not None:
            payload["companyProfile"] = dict(self.company_profile)
        return payload


@dataclass
class ClassificationResponse:
    intent: str
    params: Dict[str, Any] = field(default_factory=dict)
    fallback_text: Optional[str] = None


class Classifier(Protocol):
    async def classify(
        self,
        user_text: str,
        history: Sequence[Dict[str, str]],
        articles: Sequence[Article],
        profile: Optional[CompanyProfile],
    ) -> ChatIntent: ...


def profile_summary(profile: Optional[CompanyProfile]) -> Optional[Dict[str, Any]]:
    if profile is None or not (profile.name or profile.description or profile.website_url):
        return None
    return {
        "name": profile.name,
        "description": profile.description,
        "valueProp": profile.value_prop,
        "websiteUrl": profile.website_url,
        "competitors": [c.name for c in profile.competitors],
        "contentPaths": list(profile.content_paths),
    }


def build_request(
    user_text: str,
    history: Iterable[Dict[str, str]],
    articles: Iterable[Article],
    profile: Optional[CompanyProfile] = None,
    *,
    max_titles: int = 50,
) -> ClassificationRequest:
    titles = [a.display_name for a in articles][:max_titles]
    return ClassificationRequest(
        message=user_text,
        article_titles=titles,
        history=[{"role": h["role"], "text": h["text"]} for h in history],
        company_profile=profile_summary(profile),
    )


def build_instructions(request: ClassificationRequest) -> str:
    parts = [SYSTEM_PROMPT]
    if request.article_titles:
        parts.append("Existing articles in the library: " + ", ".join(request.article_titles))
    if request.company_profile:
        parts.append("Company profile: " + json.dumps(request.company_profile, ensure_ascii=False))
    return "\n\n".join(parts)


def build_input(request: ClassificationRequest) -> List[Dict[str, str]]:
    """History plus the new message as strictly alternating role turns."""
    turns: List[Dict[str, str]] = []
    for item in [*request.history, {"role": "user", "text": request.message}]:
        role = "user" if item["role"] == "user" else "assistant"
        if turns and turns[-1]["role"] == role:
            turns[-1]["content"] = f"{turns[-1]['content']}\n{item['text']}"
        else:
            turns.append({"role": role, "content": item["text"]})
    return turns


def parse_response(response: object) -> ClassificationResponse:
    """Pick the first function call out of a Responses API result, else its text."""
    for item in getattr(response, "output", None) or []:
        if getattr(item, "type", None) == "function_call":
            arguments = getattr(item, "arguments", None) or "{}"
            params = json.loads(arguments)
            if not isinstance(params, dict):
                raise ValueError(f"Tool arguments must be an object, got {type(params).__name__}")
            return ClassificationResponse(intent=item.name, params=params)
    text = getattr(response, "output_text", None)
    fallback = text.strip() if isinstance(text, str) and text.strip() else None
    return ClassificationResponse(intent="unknown", fallback_text=fallback)


def _require_api_key(settings: Settings) -> str:
    if not settings.openai_api_key:
        raise RuntimeError(
            "OPENAI_API_KEY is required. Set it in the environment or .env file."
        )
    return settings.openai_api_key


class IntentClassifier:
    """Classify chat messages with an OpenAI tool-calling model."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        *,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.client = client or AsyncOpenAI(api_key=_require_api_key(self.settings))

    async def request(self, request: ClassificationRequest) -> ClassificationResponse:
        response = await self.client.responses.create(
            model=self.settings.classifier_model,
            instructions=build_instructions(request),
            input=build_input(request),
            tools=openai_tools(),
            tool_choice="auto",
            max_output_tokens=self.settings.classifier_max_tokens,
            temperature=self.settings.classifier_temperature,
        )
        return parse_response(response)

    async def classify(
        self,
        user_text: str,
        history: Sequence[Dict[str, str]],
        articles: Sequence[Article],
        profile: Optional[CompanyProfile] = None,
    ) -> ChatIntent:
        request = build_request(
            user_text,
            history,
            articles,
            profile,
            max_titles=self.settings.max_article_titles,
        )
        try:
            result = await self.request(request)
            intent = intent_from_tool_call(result.intent, result.params, result.fallback_text)
        except Exception as exc:
            logger.warning("Classification failed, treating message as unknown: %s", exc)
            return UnknownIntent()
        logger.debug("Classified message as %s", intent.type)
        return intent
