"""Tests for subtitle generation."""
import httpx
import pytest

from cliphunter.pipeline.subtitles import parse_srt
from cliphunter.services import subtitle_service
from cliphunter.services.subtitle_service import SubtitleService
from cliphunter.utils.ffmpeg import FFmpegError


class _FakeResponse:
    def __init__(self, status_code: int, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON payload")
        return self._payload


class _FakeClient:
    def __init__(self, response=None, error=None, **kwargs):
        self._response = response
        self._error = error

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def post(self, url, **kwargs):
        if self._error:
            raise self._error
        return self._response


@pytest.fixture
def fake_audio(monkeypatch):
    async def extract(video_path, output_path, sample_rate=16000):
        output_path.write_bytes(b"mp3")
        return output_path

    monkeypatch.setattr(subtitle_service, "extract_audio", extract)


@pytest.mark.asyncio
async def test_disabled_returns_none(tmp_path):
    assert await SubtitleService(None).generate_subtitles(tmp_path / "v.mp4", tmp_path) is None


@pytest.mark.asyncio
async def test_writes_srt(tmp_path, monkeypatch, fake_audio):
    payload = {
        "segments": [
            {"start": 0.0, "end": 2.5, "text": " Hello there "},
            {"start": 2.5, "end": 3.0, "text": "   "},
            {"start": 3.0, "end": 5.0, "text": "General Kenobi"},
        ]
    }
    monkeypatch.setattr(
        subtitle_service.httpx,
        "AsyncClient",
        lambda **kwargs: _FakeClient(response=_FakeResponse(200, payload)),
    )

    srt_path = await SubtitleService("sk-test").generate_subtitles(tmp_path / "v.mp4", tmp_path)

    assert srt_path == tmp_path / "subtitles.srt"
    segments = parse_srt(srt_path.read_text())
    assert [s.text for s in segments] == ["Hello there", "General Kenobi"]
    assert not (tmp_path / "audio.mp3").exists()


@pytest.mark.asyncio
async def test_api_failure_returns_none(tmp_path, monkeypatch, fake_audio):
    monkeypatch.setattr(
        subtitle_service.httpx,
        "AsyncClient",
        lambda **kwargs: _FakeClient(error=httpx.ConnectError("down")),
    )

    assert await SubtitleService("sk-test").generate_subtitles(tmp_path / "v.mp4", tmp_path) is None
    assert not (tmp_path / "audio.mp3").exists()


@pytest.mark.asyncio
async def test_bad_status_returns_none(tmp_path, monkeypatch, fake_audio):
    monkeypatch.setattr(
        subtitle_service.httpx,
        "AsyncClient",
        lambda **kwargs: _FakeClient(response=_FakeResponse(500)),
    )

    assert await SubtitleService("sk-test").generate_subtitles(tmp_path / "v.mp4", tmp_path) is None


@pytest.mark.asyncio
async def test_audio_failure_returns_none(tmp_path, monkeypatch):
    async def failing_extract(video_path, output_path, sample_rate=16000):
        raise FFmpegError("Audio extraction failed", stderr="no audio stream")

    monkeypatch.setattr(subtitle_service, "extract_audio", failing_extract)

    assert await SubtitleService("sk-test").generate_subtitles(tmp_path / "v.mp4", tmp_path) is None
