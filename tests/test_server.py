import inspect

import pytest
from fastapi.testclient import TestClient

from conftest import NOW, FakeClassifier
from content_ops.engine import ChatEngine
from content_ops.intents import GenerateArticleIntent, PreviewArticleIntent
from content_ops.server import app, get_engine, get_registry
from content_ops.session import SessionRegistry


@pytest.fixture
def classifier():
    return FakeClassifier()


@pytest.fixture
def client(store, classifier, settings):
    engine = ChatEngine(store, classifier, settings=settings, clock=lambda: NOW)
    registry = SessionRegistry()
    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_registry] = lambda: registry
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_cors_wildcard_disables_credentials():
    cors = next(m for m in app.user_middleware if m.cls.__name__ == "CORSMiddleware")
    assert cors.kwargs["allow_origins"] == ["*"]
    assert cors.kwargs["allow_credentials"] is False


def test_sign_in_creates_empty_session(client):
    resp = client.post("/sessions/alice")
    assert resp.status_code == 200
    body = resp.json()
    assert body["messages"] == []
    assert body["pending"] is None
    assert body["offerResume"] is False


def test_messages_require_session(client):
    assert client.get("/sessions/nobody/messages").status_code == 404
    resp = client.post("/sessions/nobody/messages", json={"text": "help"})
    assert resp.status_code == 404


def test_generate_and_confirm_flow(client, classifier, store):
    client.post("/sessions/alice")
    classifier.queue(GenerateArticleIntent(article_ref="best ai tools"))

    resp = client.post("/sessions/alice/messages", json={"text": "create best ai tools"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["intent"] == "generate_article"
    assert body["pending"]["data"]["slug"] == "best-ai-tools"
    assert body["pending"]["data"]["contentPath"] == "/learn"
    assert [b["action"] for b in body["message"]["buttons"]] == [
        "confirm_generate",
        "cancel_generate",
    ]

    resp = client.post("/sessions/alice/buttons", json={"action": "confirm_generate"})
    body = resp.json()
    assert body["pending"] is None
    assert body["commands"] == [{"type": "navigate", "payload": {"path": "/content-library"}}]
    assert any(a.slug == "best-ai-tools" for a in store.list_articles())

    messages = client.get("/sessions/alice/messages").json()
    assert [m["role"] for m in messages] == ["user", "assistant", "assistant"]


def test_preview_returns_command(client, classifier):
    client.post("/sessions/alice")
    classifier.queue(PreviewArticleIntent(article_ref="best crm"))
    body = client.post("/sessions/alice/messages", json={"text": "preview best crm"}).json()
    assert body["commands"] == [
        {"type": "open_article_preview", "payload": {"articleId": "a1"}}
    ]


def test_blank_message_is_bad_request(client):
    client.post("/sessions/alice")
    resp = client.post("/sessions/alice/messages", json={"text": "  "})
    assert resp.status_code == 400


def test_reset_and_sign_out(client, classifier):
    client.post("/sessions/alice")
    classifier.queue(GenerateArticleIntent(article_ref="best ai tools"))
    client.post("/sessions/alice/messages", json={"text": "create best ai tools"})

    body = client.post("/sessions/alice/reset").json()
    assert body["messages"] == []
    assert body["pending"] is None

    assert client.delete("/sessions/alice").status_code == 204
    assert client.delete("/sessions/alice").status_code == 404
    assert client.get("/sessions/alice/messages").status_code == 404


def test_session_endpoints_run_on_the_event_loop():
    mutating = {
        ("POST", "/sessions/{user_id}"),
        ("DELETE", "/sessions/{user_id}"),
        ("POST", "/sessions/{user_id}/messages"),
        ("POST", "/sessions/{user_id}/buttons"),
        ("POST", "/sessions/{user_id}/reset"),
    }
    endpoints = [
        route.endpoint
        for route in app.routes
        for method in getattr(route, "methods", ())
        if (method, getattr(route, "path", None)) in mutating
    ]
    assert len(endpoints) == 5
    assert all(inspect.iscoroutinefunction(endpoint) for endpoint in endpoints)
