from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from stt_gateway.app.engine.providers import AssemblyAIAdapter
from stt_gateway.app.engine.providers.assemblyai_provider import VERBATIM_PROMPT, _iter_file

from _gateway_fakes import make_settings, run


def test_batch_uploads_creates_and_polls_transcript(tmp_path: Path) -> None:
    calls: list[tuple[str, str]] = []
    captured: dict[str, object] = {}
    statuses = iter(["queued", "processing"])

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((request.method, request.url.path))
        assert request.headers["Authorization"] == "aai-key"
        if request.url.path == "/v2/upload":
            captured["upload"] = request.content
            return httpx.Response(200, json={"upload_url": "https://cdn.example/upload-1"})
        if request.url.path == "/v2/transcript":
            captured["create"] = json.loads(request.content.decode("utf-8"))
            return httpx.Response(200, json={"id": "t-1", "status": "queued"})
        status = next(statuses, "completed")
        if status != "completed":
            return httpx.Response(200, json={"id": "t-1", "status": status})
        return httpx.Response(
            200,
            json={
                "id": "t-1",
                "status": "completed",
                "text": "um open wide",
                "language_code": "en_us",
                "audio_duration": 2,
                "words": [{"text": "um", "confidence": 0.5}, {"text": "open", "confidence": 0.9}, {"text": "wide", "confidence": 1.0}],
                "utterances": [{"speaker": "A"}],
            },
        )

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    adapter = AssemblyAIAdapter(make_settings(UPLOAD_DIR=str(tmp_path)), client=client)

    result = run(adapter.transcribe_batch(b"mp3-bytes", "audio/mpeg", "visit.mp3"))
    run(adapter.close())

    assert result.error is None
    assert result.text == "um open wide"
    assert result.confidence == pytest.approx(0.8)
    assert result.details == {
        "id": "t-1",
        "status": "completed",
        "language_code": "en_us",
        "audio_duration": 2,
        "words_count": 3,
        "speakers": 1,
    }
    assert calls[:2] == [("POST", "/v2/upload"), ("POST", "/v2/transcript")]
    assert calls[2:] == [("GET", "/v2/transcript/t-1")] * 3
    assert captured["upload"] == b"mp3-bytes"
    create = captured["create"]
    assert create["audio_url"] == "https://cdn.example/upload-1"
    assert create["prompt"] == VERBATIM_PROMPT
    assert create["disfluencies"] is True
    assert create["format_text"] is False
    assert create["speaker_labels"] is True
    assert list(tmp_path.iterdir()) == []


def test_transcript_error_status_becomes_result_error(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v2/upload":
            return httpx.Response(200, json={"upload_url": "https://cdn.example/u"})
        if request.url.path == "/v2/transcript":
            return httpx.Response(200, json={"id": "t-2"})
        return httpx.Response(200, json={"id": "t-2", "status": "error", "error": "Audio file is corrupt"})

    adapter = AssemblyAIAdapter(
        make_settings(UPLOAD_DIR=str(tmp_path)),
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    result = run(adapter.transcribe_batch(b"bad", "audio/wav"))
    run(adapter.close())

    assert result.text is None
    assert result.error == "Audio file is corrupt"
    assert isinstance(result.processing_time_ms, int)
    assert list(tmp_path.iterdir()) == []


def test_upload_http_failure_is_captured(tmp_path: Path) -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": "Invalid API key"})

    adapter = AssemblyAIAdapter(
        make_settings(UPLOAD_DIR=str(tmp_path)),
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    result = run(adapter.transcribe_batch(b"audio", "audio/webm"))
    run(adapter.close())

    assert result.text is None
    assert "401" in (result.error or "")
    assert list(tmp_path.iterdir()) == []


def test_upload_body_streams_file_chunks_in_order(tmp_path: Path) -> None:
    source = tmp_path / "clip.wav"
    source.write_bytes(b"abcdefghij")

    async def scenario() -> list[bytes]:
        return [chunk async for chunk in _iter_file(source, chunk_size=4)]

    assert run(scenario()) == [b"abcd", b"efgh", b"ij"]
