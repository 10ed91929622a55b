from __future__ import annotations

from stt_gateway.app.engine.batch import select_providers, transcribe_with_providers
from stt_gateway.app.engine.types import BatchTranscriptResult

from _gateway_fakes import FakeAdapter, make_settings, run


def _adapters(settings, **overrides):
    adapters = {name: FakeAdapter(settings, name) for name in ("assemblyai", "deepgram", "openai")}
    adapters.update(overrides)
    return adapters


def test_every_selected_provider_gets_an_entry_even_when_some_fail() -> None:
    settings = make_settings()
    adapters = _adapters(
        settings,
        deepgram=FakeAdapter(settings, "deepgram", batch_error=RuntimeError("401 Unauthorized")),
    )

    results = run(
        transcribe_with_providers(
            audio_bytes=b"audio",
            mime_type="audio/wav",
            filename="clip.wav",
            requested=["assemblyai", "deepgram", "openai"],
            adapters=adapters,
            settings=settings,
        )
    )

    assert list(results) == ["assemblyai", "deepgram", "openai"]
    for result in results.values():
        assert set(result.to_payload()) >= {"text", "time", "confidence", "error"}
        assert isinstance(result.processing_time_ms, int)
    assert results["deepgram"].text is None
    assert results["deepgram"].error == "401 Unauthorized"
    assert results["assemblyai"].text == "assemblyai transcript"
    assert results["openai"].error is None
    assert adapters["openai"].batch_calls == [(b"audio", "audio/wav", "clip.wav")]


def test_provider_without_credentials_is_left_out() -> None:
    settings = make_settings(ASSEMBLYAI_API_KEY="")
    adapters = _adapters(settings)

    results = run(
        transcribe_with_providers(
            audio_bytes=b"audio",
            mime_type="audio/mpeg",
            filename=None,
            requested=["assemblyai", "deepgram"],
            adapters=adapters,
            settings=settings,
        )
    )

    assert list(results) == ["deepgram"]
    assert adapters["assemblyai"].batch_calls == []


def test_select_providers_drops_unknown_and_duplicate_names() -> None:
    settings = make_settings()

    selected = select_providers(["openai", "whisperx", "openai", "deepgram"], _adapters(settings), settings)

    assert selected == ["openai", "deepgram"]


def test_unexpected_adapter_exception_is_captured() -> None:
    settings = make_settings()

    class ExplodingAdapter(FakeAdapter):
        async def transcribe_batch(self, audio_bytes, mime_type, filename=None) -> BatchTranscriptResult:
            raise ConnectionResetError("reset by peer")

    results = run(
        transcribe_with_providers(
            audio_bytes=b"audio",
            mime_type="audio/webm",
            filename=None,
            requested=["openai"],
            adapters=_adapters(settings, openai=ExplodingAdapter(settings, "openai")),
            settings=settings,
        )
    )

    assert results["openai"].to_payload() == {
        "text": None,
        "time": None,
        "confidence": None,
        "error": "reset by peer",
        "details": None,
    }
