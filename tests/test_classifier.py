import asyncio
import json
from types import SimpleNamespace

import pytest

from content_ops.classifier import (
    IntentClassifier,
    build_input,
    build_request,
    parse_response,
)
from content_ops.config import Settings
from content_ops.intents import (
    ASK_FOR_TOPIC,
    CountArticlesIntent,
    EditArticleFieldIntent,
    UnknownIntent,
)
from content_ops.models import CompanyProfile


def tool_call(name, arguments):
    return SimpleNamespace(
        output=[
            SimpleNamespace(type="reasoning"),
            SimpleNamespace(type="function_call", name=name, arguments=json.dumps(arguments)),
        ],
        output_text="",
    )


def text_reply(text):
    return SimpleNamespace(
        output=[SimpleNamespace(type="message")],
        output_text=text,
    )


class FakeResponses:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.result


def make_classifier(result=None, error=None, **overrides):
    responses = FakeResponses(result, error)
    client = SimpleNamespace(responses=responses)
    settings = Settings(OPENAI_API_KEY="test-key", **overrides)
    return IntentClassifier(client, settings=settings), responses


def classify(classifier, text="msg", history=(), articles=(), profile=None):
    return asyncio.run(classifier.classify(text, list(history), list(articles), profile))


def test_tool_call_becomes_intent(catalog):
    classifier, responses = make_classifier(
        tool_call(
            "edit_article_field",
            {"articleRef": "Best CRM", "field": "title", "value": "Best CRMs"},
        )
    )
    intent = classify(classifier, "rename best crm", articles=catalog)
    assert isinstance(intent, EditArticleFieldIntent)

    kwargs = responses.calls[0]
    assert kwargs["model"] == "gpt-4.1-mini"
    assert kwargs["tool_choice"] == "auto"
    assert {t["name"] for t in kwargs["tools"]} >= {"edit_article_field", "help"}
    assert "Best CRM" in kwargs["instructions"]
    assert kwargs["input"] == [{"role": "user", "content": "rename best crm"}]


def test_plain_text_becomes_unknown_with_fallback():
    classifier, _ = make_classifier(text_reply("  I can help you list or create articles.  "))
    intent = classify(classifier)
    assert intent == UnknownIntent(fallback_text="I can help you list or create articles.")


def test_generic_generate_reference_asks_for_topic():
    classifier, _ = make_classifier(tool_call("generate_article", {"articleRef": "an article"}))
    intent = classify(classifier, "create an article")
    assert intent == UnknownIntent(fallback_text=ASK_FOR_TOPIC)


@pytest.mark.parametrize(
    "result, error",
    [
        (None, RuntimeError("connection reset")),
        (SimpleNamespace(output=[SimpleNamespace(type="function_call", name="help", arguments="{oops")]), None),
        (tool_call("count_articles", {"statusFilter": "archived"}), None),
        (tool_call("query_articles", {"olderThanDays": "thirty"}), None),
        (tool_call("delete_everything", {}), None),
    ],
)
def test_failures_degrade_to_unknown_without_text(result, error):
    classifier, _ = make_classifier(result, error)
    assert classify(classifier) == UnknownIntent()


def test_count_call_with_filters():
    classifier, _ = make_classifier(
        tool_call("count_articles", {"statusFilter": "published", "newerThanDays": 7})
    )
    assert classify(classifier) == CountArticlesIntent(status_filter="published", newer_than_days=7)


def test_titles_are_capped(make_article):
    articles = [make_article(f"id{i}", f"Title {i}") for i in range(80)]
    request = build_request("hi", [], articles, max_titles=50)
    assert len(request.article_titles) == 50
    assert request.article_titles[0] == "Title 0"


def test_request_payload_shape():
    profile = CompanyProfile(name="Acme", website_url="https://acme.test", content_paths=["/learn"])
    request = build_request(
        "list drafts", [{"role": "assistant", "text": "Hi!"}], [], profile
    )
    payload = request.to_payload()
    assert payload["message"] == "list drafts"
    assert payload["articleTitles"] == []
    assert payload["history"] == [{"role": "assistant", "text": "Hi!"}]
    assert payload["companyProfile"]["name"] == "Acme"
    assert payload["companyProfile"]["contentPaths"] == ["/learn"]


def test_empty_profile_is_omitted():
    request = build_request("hi", [], [], CompanyProfile())
    assert "companyProfile" not in request.to_payload()


def test_input_turns_alternate():
    request = build_request(
        "and drafts?",
        [
            {"role": "user", "text": "hi"},
            {"role": "assistant", "text": "Hello"},
            {"role": "user", "text": "list published"},
        ],
        [],
    )
    turns = build_input(request)
    assert [t["role"] for t in turns] == ["user", "assistant", "user"]
    assert turns[-1]["content"] == "list published\nand drafts?"


def test_parse_response_rejects_non_object_arguments():
    response = SimpleNamespace(
        output=[SimpleNamespace(type="function_call", name="help", arguments="[1, 2]")]
    )
    with pytest.raises(ValueError):
        parse_response(response)


def test_missing_api_key_is_reported():
    with pytest.raises(RuntimeError, match="OPENAI_API_KEY"):
        IntentClassifier(settings=Settings(OPENAI_API_KEY=None, _env_file=None))
