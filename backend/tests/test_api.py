import json

import pytest
from fastapi.testclient import TestClient

from quizgame.fal_image import ImageResult
from quizgame.main import app
from quizgame.pipeline import RateLimiter
from quizgame.routers import questions
from quizgame.schemas import TypeMatch
from quizgame.settings import settings

from fakes import FakeImages, FakeLLM, breakdown_of


EDISON = {"name": "Edison", "category": "person", "recommendedTypes": ["clue", "guess-image"]}


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(settings, "model_pricing_json", None)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def use_fakes(llm, images=None):
    app.dependency_overrides[questions.get_llm] = lambda: llm
    app.dependency_overrides[questions.get_image_generator] = lambda: images or FakeImages()
    app.dependency_overrides[questions.get_rate_limiter] = lambda: RateLimiter(0)


def sse_events(text):
    events = []
    for frame in text.split("\n\n"):
        if frame.strip():
            assert frame.startswith("data: ")
            events.append(json.loads(frame[len("data: "):]))
    return events


class TestGenerateStream:
    def test_streams_progress_then_result(self, client):
        llm = FakeLLM(breakdown_of(EDISON))
        use_fakes(llm)
        r = client.post("/questions/generate-stream", json={"topic": "Edison", "count": 1})

        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/event-stream")
        assert r.headers["cache-control"] == "no-cache"
        events = sse_events(r.text)
        assert events[0]["step"] == "配置验证"
        assert events[-1]["step"] == "完成"
        result = events[-1]["details"]["result"]
        assert [q["type"] for q in result["questions"]] == ["clue", "guess-image"]
        assert result["questions"][1]["imageUrl"] == "https://cdn.example/img.png"
        assert result["cost"].startswith("$")
        assert any(e["step"] == "生成图片 2" and e["status"] == "success" for e in events)
        assert llm.closed

    def test_invalid_config_is_a_single_error_event(self, client):
        llm = FakeLLM(breakdown_of(EDISON))
        use_fakes(llm)
        r = client.post("/questions/generate-stream", json={"topic": "", "count": 50})

        assert r.status_code == 200
        events = sse_events(r.text)
        assert len(events) == 1
        assert events[0]["step"] == "错误"
        assert {e["field"] for e in events[0]["details"]["errors"]} == {"topic", "count"}
        assert llm.calls == []

    def test_malformed_body(self, client):
        use_fakes(FakeLLM(None))
        r = client.post("/questions/generate-stream", content=b"{not json", headers={"content-type": "application/json"})
        events = sse_events(r.text)
        assert events[0]["details"]["errors"][0]["field"] == "body"

    def test_missing_gemini_key(self, client, monkeypatch):
        monkeypatch.setattr(settings, "gemini_api_key", None)
        r = client.post("/questions/generate-stream", json={"topic": "Edison"})
        assert r.status_code == 503


class TestBatchGenerate:
    def test_returns_summary(self, client):
        use_fakes(FakeLLM(breakdown_of(EDISON)))
        r = client.post("/questions/batch-generate", json={"topic": " Edison ", "count": 1, "includeTypes": ["clue"]})

        assert r.status_code == 200
        body = r.json()
        assert body["success"] is True
        data = body["data"]
        assert data["topic"] == "Edison"
        assert data["summary"] == {"requested": 1, "generated": 1, "failed": 0, "byType": {"clue": 1}}
        assert data["errors"] == []
        assert data["usage"] == {"inputTokens": 200, "outputTokens": 100}

    def test_invalid_config(self, client):
        use_fakes(FakeLLM(None))
        r = client.post("/questions/batch-generate", json={"topic": "Edison", "difficulty": 7})
        assert r.status_code == 400
        assert r.json()["detail"][0]["field"] == "difficulty"

    def test_breakdown_failure(self, client):
        use_fakes(FakeLLM(RuntimeError("model unavailable")))
        r = client.post("/questions/batch-generate", json={"topic": "Edison"})
        assert r.status_code == 502
        assert "model unavailable" in r.json()["detail"]


class TestSingleQuestion:
    def test_matching_on_demand(self, client):
        use_fakes(FakeLLM(None))
        r = client.post("/questions/generate/matching", json={"knowledgePoint": "Inventors", "difficulty": 1})
        assert r.status_code == 200
        data = r.json()["data"]
        assert data["type"] == "matching"
        assert data["knowledgePoint"] == "Inventors"
        assert data["difficulty"] == 1
        assert data["id"].startswith("matching_")

    def test_guess_image_gets_url(self, client):
        use_fakes(FakeLLM(None))
        r = client.post("/questions/generate/guess-image", json={"knowledgePoint": "Edison"})
        assert r.json()["data"]["imageUrl"] == "https://cdn.example/img.png"

    def test_guess_image_without_picture(self, client):
        use_fakes(FakeLLM(None), FakeImages(ImageResult(success=False, error="FAL API key is required")))
        r = client.post("/questions/generate/guess-image", json={"knowledgePoint": "Edison"})
        assert r.status_code == 200
        assert "imageUrl" not in r.json()["data"]

    def test_unknown_type(self, client):
        use_fakes(FakeLLM(None))
        assert client.post("/questions/generate/riddle", json={"knowledgePoint": "Edison"}).status_code == 404

    def test_provider_failure(self, client):
        use_fakes(FakeLLM(None, handler=lambda prompt, schema: RuntimeError("timeout")))
        r = client.post("/questions/generate/clue", json={"knowledgePoint": "Edison"})
        assert r.status_code == 502


def test_match_type(client):
    def handler(prompt, schema):
        assert schema is TypeMatch
        return {"recommendedType": "guess-image", "confidence": 0.8, "alternativeTypes": ["clue"], "reason": "visual"}

    use_fakes(FakeLLM(None, handler))
    r = client.post("/questions/match-type", json={"knowledgePoint": "Eiffel Tower", "language": "en"})
    assert r.status_code == 200
    assert r.json()["data"] == {
        "knowledgePoint": "Eiffel Tower",
        "recommendedType": "guess-image",
        "confidence": 0.8,
        "alternativeTypes": ["clue"],
        "reason": "visual",
    }


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


class TestPricingEndpoints:
    def test_loaded_at_startup(self, client):
        body = client.get("/pricing").json()
        assert body["loaded"] is True
        assert body["models"]["gemini-2.5-flash"] == {"inputPer1M": 0.30, "outputPer1M": 2.50}

    def test_reload_uses_override(self, client, monkeypatch):
        monkeypatch.setattr(settings, "model_pricing_json", '{"custom": {"input_per_1m": 1, "output_per_1m": 2}}')
        body = client.post("/pricing/reload").json()
        assert list(body["models"]) == ["custom"]

    def test_reload_rejects_bad_json(self, client, monkeypatch):
        monkeypatch.setattr(settings, "model_pricing_json", "{broken")
        assert client.post("/pricing/reload").status_code == 500
