"""
Tests for the HTTP surface: triage, report, analytics and health endpoints.

Authentication and services are swapped through FastAPI dependency overrides.
Lifespan startup is not run, so no Firebase or Redis connection is attempted.
"""

import pytest
from fastapi.testclient import TestClient

from api.accounting import CostTracker
from api.analytics import AnalyticsTracker
from api.auth import User, get_current_user
from api.dependencies import get_analytics, get_orchestrator
from api.detectors import InstantDetectorBank
from api.faq import FAQSystem
from api.main import app
from api.observability.events import EventBus
from api.orchestrators.triage_orchestrator import TriageOrchestrator
from api.rules import RulesBook
from api.tools.knowledge_base import KnowledgeBase


def override_get_current_user():
    return User(uid="gateway", email="gateway@example.com")


@pytest.fixture
def analytics():
    return AnalyticsTracker()


@pytest.fixture
def api_orchestrator(classifier, responder, embedder, analytics):
    events = EventBus()
    events.subscribe(analytics.handle_event)
    return TriageOrchestrator(
        detectors=InstantDetectorBank(sweep_probability=0.0),
        classifier=classifier,
        responder=responder,
        knowledge_base=KnowledgeBase(embedder=embedder),
        faq=FAQSystem(),
        rules=RulesBook(),
        cost_tracker=CostTracker(),
        events=events,
        classifier_timeout=0.2,
        responder_timeout=0.2,
    )


@pytest.fixture
def client(api_orchestrator, analytics):
    app.dependency_overrides[get_current_user] = override_get_current_user
    app.dependency_overrides[get_orchestrator] = lambda: api_orchestrator
    app.dependency_overrides[get_analytics] = lambda: analytics
    yield TestClient(app)
    app.dependency_overrides.clear()


def _payload(text, **overrides):
    payload = {
        "server_id": "server-1",
        "user_id": "user-1",
        "username": "tester",
        "channel_id": "general",
        "text": text,
    }
    payload.update(overrides)
    return payload


def test_triage_requires_auth():
    response = TestClient(app).post("/api/v1/triage", json=_payload("hello"))

    assert response.status_code == 401


def test_triage_answers_complex_message(client, responder):
    response = client.post("/api/v1/triage", json=_payload("what should I build first?"))

    assert response.status_code == 200
    data = response.json()
    assert data["state"] == "answered"
    assert data["source"] == "generative"
    assert data["response"] == "Here is a helpful answer."
    assert data["classification"] == "complex"
    assert data["moderation_action"] == "none"
    assert data["persona"] == "welcome"
    responder.generate.assert_awaited_once()


def test_triage_moderates_pii(client, classifier):
    response = client.post("/api/v1/triage", json=_payload("call me at 555-123-4567"))

    data = response.json()
    assert data["state"] == "moderated"
    assert data["source"] == "instant"
    assert data["classification"] == "pii"
    assert data["moderation_action"] == "delete"
    assert data["cost_units"] == 0.0
    classifier.classify.assert_not_awaited()


def test_triage_rejects_invalid_message(client):
    response = client.post("/api/v1/triage", json={"server_id": "", "user_id": "u1", "text": "hi"})

    assert response.status_code == 422


def test_report_reflects_processed_messages(client, classifier):
    classifier.classify.return_value = "greeting"
    client.post("/api/v1/triage", json=_payload("hello!"))

    response = client.get("/api/v1/report")

    assert response.status_code == 200
    report = response.json()
    assert report["messages_processed"] == 1
    assert report["cheap_calls"] == 1
    assert report["expensive_calls"] == 0
    assert report["outcomes"]["answered"] == 1
    assert report["total_cost"] == pytest.approx(0.00001)


def test_analytics_summary(client, analytics):
    analytics.track_contribution("server-1", "user-9")

    response = client.get("/api/v1/analytics/server-1")

    assert response.status_code == 200
    data = response.json()
    assert len(data["heatmap"]) == 24
    assert data["top_contributors"] == [{"user_id": "user-9", "count": 1}]
    assert set(data["sentiment"]) == {"positive", "neutral", "negative"}


def test_analytics_requires_auth():
    response = TestClient(app).get("/api/v1/analytics/server-1")

    assert response.status_code == 401


def test_healthz():
    response = TestClient(app).get("/healthz")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Request-ID"].startswith("req_")
