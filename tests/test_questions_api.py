"""Tests for the public question endpoints."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from intake.app.exceptions import ClassificationError
from intake.app.main import create_app
from intake.app.middleware.rate_limit import RateLimitPreset, SlidingWindowLimiter
from intake.app.providers.mock import MockProvider
from intake.app.providers.openai_compatible import OpenAICompatibleProvider
from intake.app.services.triage import FALLBACK_ANSWER

LABOR_QUESTION = "¿Puede mi empleador despedirme sin justa causa?"


@pytest.fixture
def app(orchestrator):
    app = create_app()
    # No lifespan in these tests; the orchestrator uses a stubbed classifier
    app.state.orchestrator = orchestrator
    app.state.rate_limiters = {
        RateLimitPreset.STRICT: SlidingWindowLimiter(1, 900, name="strict"),
        RateLimitPreset.STANDARD: SlidingWindowLimiter(2, 900, name="standard"),
    }
    return app


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)


class TestFilterQuestion:
    """Test POST /api/filter-question."""

    def test_curated_answer(self, client, knowledge_base):
        resp = client.post("/api/filter-question", json={"question": LABOR_QUESTION})

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        data = body["data"]
        assert data["question"] == LABOR_QUESTION
        assert data["category"] == "Laboral"
        assert data["source"] == "curated"
        assert data["matchedEntryId"] == "laboral-1"
        assert data["briefAnswer"] == knowledge_base.entries_for("Laboral")[0].answer
        assert data["needsProfessionalConsultation"] is True
        assert data["confidence"] == 0.82
        assert data["complexity"] == "medium"

    def test_rate_limit_headers(self, client):
        resp = client.post("/api/filter-question", json={"question": LABOR_QUESTION})

        assert resp.headers["X-RateLimit-Limit"] == "2"
        assert resp.headers["X-RateLimit-Remaining"] == "1"
        assert resp.headers["X-RateLimit-Reset"].endswith("Z")

    def test_question_is_trimmed(self, client, stub_classifier):
        client.post("/api/filter-question", json={"question": f"  {LABOR_QUESTION}  "})
        stub_classifier.classify.assert_awaited_once_with(LABOR_QUESTION)

    def test_fallback_answer(self, client, classification_payload):
        classification_payload["briefAnswer"] = ""
        classification_payload["needsProfessionalConsultation"] = False

        resp = client.post(
            "/api/filter-question",
            json={"question": "Tengo una duda muy concreta sobre mi jefe"},
        )

        data = resp.json()["data"]
        assert data["source"] == "generated"
        assert data["briefAnswer"] == FALLBACK_ANSWER
        assert data["needsProfessionalConsultation"] is True
        assert data["matchedEntryId"] is None

    @pytest.mark.parametrize(
        "body",
        [{}, {"question": "corta"}, {"question": "   hola    "}, {"question": "x" * 1001}],
    )
    def test_invalid_question(self, client, stub_classifier, body):
        resp = client.post("/api/filter-question", json=body)

        assert resp.status_code == 400
        data = resp.json()
        assert data["success"] is False
        assert data["error"] == "invalid_input"
        assert "question" in data["fields"]
        stub_classifier.classify.assert_not_awaited()

    def test_invalid_request_does_not_consume_quota(self, client):
        for _ in range(3):
            client.post("/api/filter-question", json={"question": "corta"})

        resp = client.post("/api/filter-question", json={"question": LABOR_QUESTION})
        assert resp.status_code == 200
        assert resp.headers["X-RateLimit-Remaining"] == "1"

    def test_rate_limit_exceeded(self, client, stub_classifier):
        for _ in range(2):
            assert client.post(
                "/api/filter-question", json={"question": LABOR_QUESTION}
            ).status_code == 200

        resp = client.post("/api/filter-question", json={"question": LABOR_QUESTION})

        assert resp.status_code == 429
        body = resp.json()
        assert body["error"] == "rate_limit_exceeded"
        assert 0 < body["retry_after"] <= 900
        assert resp.headers["Retry-After"] == str(body["retry_after"])
        assert resp.headers["X-RateLimit-Remaining"] == "0"
        assert stub_classifier.classify.await_count == 2

    def test_classifier_failure(self, client, stub_classifier):
        stub_classifier.classify.side_effect = ClassificationError("upstream timeout")

        resp = client.post("/api/filter-question", json={"question": LABOR_QUESTION})

        assert resp.status_code == 503
        body = resp.json()
        assert body["success"] is False
        assert body["error"] == "classification_unavailable"
        assert body["message"] == ClassificationError().message
        assert resp.headers["X-RateLimit-Limit"] == "2"
        assert resp.headers["X-RateLimit-Remaining"] == "1"
        assert resp.headers["X-RateLimit-Reset"].endswith("Z")

    def test_unexpected_error(self, client, stub_classifier):
        stub_classifier.classify.side_effect = RuntimeError("bug")

        resp = client.post(
            "/api/filter-question",
            json={"question": LABOR_QUESTION},
            headers={"X-Request-ID": "req-500"},
        )

        assert resp.status_code == 500
        body = resp.json()
        assert body["error"] == "internal_error"
        assert body["request_id"] == "req-500"
        assert "bug" not in body["message"]
        assert resp.headers["X-RateLimit-Remaining"] == "1"


class TestGenerateResponse:
    """Test POST /api/generate-response."""

    def test_detailed_answer(self, client, stub_classifier):
        resp = client.post(
            "/api/generate-response",
            json={"question": "¿Cómo recurro una multa?", "category": "Administrativo"},
        )

        assert resp.status_code == 200
        assert resp.json()["data"] == {
            "question": "¿Cómo recurro una multa?",
            "category": "Administrativo",
            "response": "Respuesta detallada.",
        }
        stub_classifier.generate_detailed_answer.assert_awaited_once_with(
            "¿Cómo recurro una multa?", "Administrativo"
        )

    def test_failure_keeps_strict_headers(self, client, stub_classifier):
        stub_classifier.generate_detailed_answer.side_effect = ClassificationError()

        resp = client.post(
            "/api/generate-response",
            json={"question": LABOR_QUESTION, "category": "Laboral"},
        )

        assert resp.status_code == 503
        assert resp.headers["X-RateLimit-Limit"] == "1"
        assert resp.headers["X-RateLimit-Remaining"] == "0"

    def test_category_required(self, client):
        resp = client.post("/api/generate-response", json={"question": LABOR_QUESTION})

        assert resp.status_code == 400
        assert "category" in resp.json()["fields"]

    def test_uses_strict_limit(self, client):
        body = {"question": LABOR_QUESTION, "category": "Laboral"}

        first = client.post("/api/generate-response", json=body)
        second = client.post("/api/generate-response", json=body)

        assert first.status_code == 200
        assert first.headers["X-RateLimit-Limit"] == "1"
        assert second.status_code == 429

    def test_strict_limit_is_separate_from_standard(self, client):
        client.post(
            "/api/generate-response",
            json={"question": LABOR_QUESTION, "category": "Laboral"},
        )

        resp = client.post("/api/filter-question", json={"question": LABOR_QUESTION})
        assert resp.status_code == 200


class TestMatchQuestion:
    """Test POST /api/match-question."""

    def test_match_with_category(self, client, stub_classifier):
        resp = client.post(
            "/api/match-question",
            json={"question": LABOR_QUESTION, "category": "Laboral"},
        )

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["matched"] is True
        assert data["entryId"] == "laboral-1"
        assert data["category"] == "Laboral"
        assert data["answer"]
        stub_classifier.classify.assert_not_awaited()

    def test_detects_category(self, client):
        resp = client.post("/api/match-question", json={"question": "daños y perjuicios"})

        data = resp.json()["data"]
        assert data["category"] == "Civil"
        assert data["entryId"] == "civil-1"

    def test_no_match(self, client):
        resp = client.post("/api/match-question", json={"question": "Hola, ¿qué tal está?"})

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["matched"] is False
        assert data["category"] is None
        assert data["entryId"] is None
        assert data["answer"] is None


class TestHealthAndRequestId:
    """Test the health endpoint and request id propagation."""

    def test_health(self, client):
        resp = client.get("/api/health")

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["knowledge_base"] == {"version": "2024.1", "entries": 11}

    def test_health_is_not_rate_limited(self, client):
        for _ in range(5):
            assert client.get("/api/health").status_code == 200

    def test_request_id_echoed(self, client):
        resp = client.get("/api/health", headers={"X-Request-ID": "abc-123"})
        assert resp.headers["X-Request-ID"] == "abc-123"

    def test_request_id_generated(self, client):
        resp = client.get("/api/health")
        assert len(resp.headers["X-Request-ID"]) == 36


class TestApplicationLifespan:
    """Run the real startup path with the mock provider."""

    def test_pipeline_with_mock_provider(self):
        with patch(
            "intake.app.main.create_provider",
            side_effect=lambda http_client: MockProvider(http_client=http_client),
        ):
            with TestClient(create_app()) as client:
                resp = client.post(
                    "/api/filter-question", json={"question": "Quiero pedir el divorcio"}
                )

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["category"] == "Familia"
        assert data["matchedEntryId"] == "familia-1"
        assert data["source"] == "curated"

    def test_unconfigured_provider_returns_503(self):
        provider = OpenAICompatibleProvider(
            base_url="https://llm.example/v1", api_key="", model="m"
        )
        with patch("intake.app.main.create_provider", return_value=provider):
            with TestClient(create_app(), raise_server_exceptions=False) as client:
                resp = client.post("/api/filter-question", json={"question": LABOR_QUESTION})

        assert resp.status_code == 503
        assert resp.json()["error"] == "classification_unavailable"
