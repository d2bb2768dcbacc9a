"""Tests for AI titles and metadata."""
import json

import httpx
import pytest

from cliphunter.services import ai_service
from cliphunter.services.ai_service import AIService, parse_json_reply, AIServiceError


class _FakeResponse:
    def __init__(self, status_code: int, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON payload")
        return self._payload


class _FakeClient:
    def __init__(self, response=None, error=None, requests=None, **kwargs):
        self._response = response
        self._error = error
        self._requests = requests if requests is not None else []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def post(self, url, **kwargs):
        self._requests.append((url, kwargs))
        if self._error:
            raise self._error
        return self._response


def _completion(content: str) -> _FakeResponse:
    return _FakeResponse(200, {"choices": [{"message": {"content": content}}]})


def _install(monkeypatch, response=None, error=None):
    requests = []
    monkeypatch.setattr(
        ai_service.httpx,
        "AsyncClient",
        lambda **kwargs: _FakeClient(response=response, error=error, requests=requests),
    )
    return requests


def test_parse_fenced_json():
    assert parse_json_reply('```json\n["a", "b"]\n```') == ["a", "b"]
    assert parse_json_reply('```\n{"k": 1}\n```') == {"k": 1}
    assert parse_json_reply(' ["plain"] ') == ["plain"]


def test_parse_invalid_json():
    with pytest.raises(AIServiceError):
        parse_json_reply("Sure! Here are some titles")


def test_disabled_without_key():
    assert not AIService(None).enabled
    assert AIService("sk-test").enabled


class TestGenerateClipTitles:
    """Tests for overlay title generation."""

    @pytest.mark.asyncio
    async def test_success(self, monkeypatch):
        requests = _install(monkeypatch, _completion(json.dumps(["Wait For It", "No Way", "Clutch"])))

        titles = await AIService("sk-test", "gpt-4o-mini").generate_clip_titles("Big Game", 3)

        assert titles == ["Wait For It", "No Way", "Clutch"]
        url, kwargs = requests[0]
        assert url.endswith("/chat/completions")
        assert kwargs["json"]["model"] == "gpt-4o-mini"
        assert kwargs["json"]["temperature"] == 0.9
        assert kwargs["headers"]["Authorization"] == "Bearer sk-test"

    @pytest.mark.asyncio
    async def test_padded_when_short(self, monkeypatch):
        _install(monkeypatch, _completion('```json\n["Only One"]\n```'))

        titles = await AIService("sk-test").generate_clip_titles("Big Game", 3)

        assert titles == ["Only One", "Moment 2", "Moment 3"]

    @pytest.mark.asyncio
    async def test_truncated_when_long(self, monkeypatch):
        _install(monkeypatch, _completion(json.dumps(["a", "b", "c", "d"])))
        assert await AIService("sk-test").generate_clip_titles("Big Game", 2) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self, monkeypatch):
        _install(monkeypatch, error=httpx.ReadTimeout("slow"))

        titles = await AIService("sk-test").generate_clip_titles("Big Game", 3)

        assert titles == ["Best Moment 1", "Best Moment 2", "Best Moment 3"]

    @pytest.mark.asyncio
    async def test_http_error_falls_back(self, monkeypatch):
        _install(monkeypatch, _FakeResponse(429, {"error": "rate limited"}))
        assert await AIService("sk-test").generate_clip_titles("x", 2) == ["Best Moment 1", "Best Moment 2"]

    @pytest.mark.asyncio
    async def test_non_list_falls_back(self, monkeypatch):
        _install(monkeypatch, _completion('{"titles": ["a"]}'))
        assert await AIService("sk-test").generate_clip_titles("x", 1) == ["Best Moment 1"]

    @pytest.mark.asyncio
    async def test_without_key_falls_back(self, monkeypatch):
        requests = _install(monkeypatch, _completion('["a"]'))
        assert await AIService(None).generate_clip_titles("x", 2) == ["Best Moment 1", "Best Moment 2"]
        assert requests == []


class TestGenerateMetadata:
    """Tests for upload metadata generation."""

    @pytest.mark.asyncio
    async def test_success_with_limits(self, monkeypatch):
        reply = {
            "title": "T" * 150,
            "description": "Watch this!",
            "tags": [f"tag{i}" for i in range(15)],
        }
        _install(monkeypatch, _completion(json.dumps(reply)))

        metadata = await AIService("sk-test").generate_metadata("Big Game", 1, 3)

        assert len(metadata.title) == 100
        assert metadata.description == "Watch this!"
        assert len(metadata.tags) == 10

    @pytest.mark.asyncio
    async def test_invalid_structure_falls_back(self, monkeypatch):
        _install(monkeypatch, _completion('{"title": "only a title"}'))

        metadata = await AIService("sk-test").generate_metadata("Big Game!!", 2, 3)

        assert metadata.title == "Big Game - Highlight 2"
        assert metadata.tags == ["shorts", "viral", "trending", "fyp", "highlight"]

    @pytest.mark.asyncio
    async def test_transport_error_falls_back(self, monkeypatch):
        _install(monkeypatch, error=httpx.ConnectError("down"))

        metadata = await AIService("sk-test").generate_metadata("Big Game", 1, 1)

        assert metadata.title == "Big Game - Highlight 1"
        assert metadata.description
