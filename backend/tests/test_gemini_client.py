import asyncio
import json

import httpx
import pytest
from pydantic import ValidationError

from quizgame.gemini_client import GeminiClient, extract_json_object
from quizgame.schemas import ClueDraft, KnowledgeBreakdown
from quizgame.settings import settings

from fakes import CLUE


@pytest.fixture(autouse=True)
def studio_settings(monkeypatch):
    monkeypatch.setattr(settings, "gemini_provider", "ai_studio")
    monkeypatch.setattr(settings, "openrouter_api_key", None)


def gemini_reply(text, prompt_tokens=120, output_tokens=80):
    return {
        "candidates": [{"content": {"parts": [{"text": text}]}}],
        "usageMetadata": {"promptTokenCount": prompt_tokens, "candidatesTokenCount": output_tokens},
    }


def make_client(handler, **kwargs):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GeminiClient("test-key", model="gemini-2.5-flash", http_client=http, **kwargs)


class TestExtractJson:
    def test_plain(self):
        assert extract_json_object('{"a": 1}') == {"a": 1}

    def test_fenced_block(self):
        assert extract_json_object('Here you go:\n```json\n{"a": [1, 2]}\n```') == {"a": [1, 2]}

    def test_embedded_braces(self):
        assert extract_json_object('Sure! {"answer": "Edison"} Hope that helps.') == {"answer": "Edison"}

    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            extract_json_object("no json here")


class TestGeminiClient:
    def test_requires_api_key(self, monkeypatch):
        monkeypatch.setattr(settings, "gemini_api_key", None)
        with pytest.raises(ValueError):
            GeminiClient()

    def test_generate_object_sends_schema_and_parses(self):
        seen = {}

        def handler(request):
            seen["url"] = request.url
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=gemini_reply(json.dumps(CLUE)))

        client = make_client(handler)
        out = asyncio.run(client.generate_object("make a clue question", ClueDraft))

        assert isinstance(out.object, ClueDraft)
        assert out.object.answer == "Edison"
        assert out.usage.input_tokens == 120
        assert out.usage.output_tokens == 80
        assert seen["url"].params["key"] == "test-key"
        assert seen["url"].path.endswith("/models/gemini-2.5-flash:generateContent")
        gen_config = seen["body"]["generationConfig"]
        assert gen_config["responseMimeType"] == "application/json"
        assert "clues" in gen_config["responseJsonSchema"]["properties"]
        assert seen["body"]["contents"][0]["parts"][0]["text"] == "make a clue question"

    def test_schema_violation_raises(self):
        def handler(request):
            return httpx.Response(200, json=gemini_reply('{"clues": ["only one"], "answer": "x"}'))

        client = make_client(handler)
        with pytest.raises(ValidationError):
            asyncio.run(client.generate_object("prompt", ClueDraft))

    def test_http_error_without_fallback_raises(self):
        def handler(request):
            return httpx.Response(500, json={"error": "boom"})

        client = make_client(handler)
        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(client.generate_object("prompt", KnowledgeBreakdown))

    def test_unexpected_shape_raises(self):
        def handler(request):
            return httpx.Response(200, json={"candidates": []})

        client = make_client(handler)
        with pytest.raises(RuntimeError, match="Unexpected Gemini response"):
            asyncio.run(client.generate_object("hello", ClueDraft))

    def test_falls_back_to_openrouter(self, monkeypatch):
        monkeypatch.setattr(settings, "openrouter_api_key", "or-key")
        seen = {}

        def primary(request):
            return httpx.Response(503, json={"error": "overloaded"})

        def fallback(request):
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "choices": [{"message": {"content": json.dumps(CLUE)}}],
                    "usage": {"prompt_tokens": 30, "completion_tokens": 20},
                },
            )

        client = make_client(primary)
        asyncio.run(client._fallback_client.aclose())
        client._fallback_client = httpx.AsyncClient(transport=httpx.MockTransport(fallback))

        out = asyncio.run(client.generate_object("make a clue question", ClueDraft))
        assert out.object.answer == "Edison"
        assert out.usage.input_tokens == 30
        assert seen["auth"] == "Bearer or-key"
        assert seen["body"]["response_format"] == {"type": "json_object"}
        assert "JSON schema" in seen["body"]["messages"][0]["content"]
