"""Deepgram adapter: pre-recorded REST requests and live websocket sessions."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlencode

import httpx

from ...config import Settings
from ..base import VendorAdapter, mean_word_confidence
from ..normalizer import DeepgramNormalizer, deepgram_error
from ..types import BatchTranscriptResult, ErrorCallback, StreamConfig, TranscriptCallback
from .socket_session import SocketStreamingSession

_LOGGER = logging.getLogger(__name__)


def _flag(value: bool) -> str:
    return "true" if value else "false"


class DeepgramLiveSession(SocketStreamingSession):
    """Streams binary PCM to Deepgram and relays interim/final results.

    ``UtteranceEnd`` is delivered as a final result as well, even when the
    preceding ``Results`` message was already final.
    """

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._normalizer = DeepgramNormalizer()

    def _close_message(self) -> dict[str, Any]:
        return {"type": "CloseStream"}

    async def _handle_message(self, message: dict[str, Any]) -> None:
        error = deepgram_error(message)
        if error:
            await self._fail(error)
            return

        if message.get("type") == "Metadata":
            _LOGGER.debug("Deepgram metadata received.", extra={"request_id": message.get("request_id")})
            return

        transcript = self._normalizer.normalize(message)
        if transcript is not None:
            await self._emit_result(transcript.text, transcript.is_final)


class DeepgramAdapter(VendorAdapter):
    """Deepgram batch + live adapter over ``httpx`` and ``websockets``."""

    provider_name = "deepgram"

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        super().__init__(settings)
        self._base_url = settings.DEEPGRAM_API_URL.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(300.0, connect=10.0))

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Token {self.api_key}"}

    def _batch_params(self) -> dict[str, str]:
        return {
            "model": self._settings.DEEPGRAM_MODEL,
            "language": "en",
            "smart_format": _flag(True),
            "punctuate": _flag(True),
            "paragraphs": _flag(True),
            "utterances": _flag(True),
            "diarize": _flag(True),
            "measurements": _flag(True),
            "detect_language": _flag(True),
        }

    def _live_params(self, config: StreamConfig) -> dict[str, str | int]:
        return {
            "model": self._settings.DEEPGRAM_MODEL,
            "language": "en",
            "smart_format": _flag(True),
            "punctuate": _flag(True),
            "interim_results": _flag(True),
            "utterance_end_ms": self._settings.DEEPGRAM_UTTERANCE_END_MS,
            "vad_events": _flag(True),
            "encoding": "linear16",
            "sample_rate": config.sample_rate,
            "channels": config.channels,
        }

    async def _transcribe(
        self,
        audio_bytes: bytes,
        mime_type: str,
        filename: str | None,
    ) -> BatchTranscriptResult:
        del filename
        response = await self._client.post(
            f"{self._base_url}/v1/listen",
            params=self._batch_params(),
            content=audio_bytes,
            headers={**self._auth_headers(), "Content-Type": mime_type or "application/octet-stream"},
        )
        response.raise_for_status()
        return self._parse_batch_response(response.json())

    def _parse_batch_response(self, body: dict[str, Any]) -> BatchTranscriptResult:
        """Extracts transcript, confidence, and details from a listen response."""
        channel = body["results"]["channels"][0]
        alternative = channel["alternatives"][0]
        words = alternative.get("words") or []
        confidence = mean_word_confidence(words)
        if confidence is None:
            confidence = alternative.get("confidence")
        metadata = body.get("metadata") or {}
        model_info = metadata.get("model_info") or {}
        model_name = next(
            (info.get("name") for info in model_info.values() if isinstance(info, dict) and info.get("name")),
            self._settings.DEEPGRAM_MODEL,
        )
        paragraphs = alternative.get("paragraphs") or {}

        return BatchTranscriptResult(
            text=alternative.get("transcript"),
            processing_time_ms=None,
            confidence=confidence,
            details={
                "model": model_name,
                "language": channel.get("detected_language") or "en",
                "audio_duration": metadata.get("duration"),
                "words_count": len(words),
                "utterances": len(body["results"].get("utterances") or paragraphs.get("paragraphs") or []),
                "processing_time_deepgram": metadata.get("request_duration"),
            },
        )

    def _build_session(
        self,
        config: StreamConfig,
        on_result: TranscriptCallback,
        on_error: ErrorCallback | None,
    ) -> DeepgramLiveSession:
        query = urlencode(self._live_params(config))
        return DeepgramLiveSession(
            provider=self.provider_name,
            url=f"{self._settings.DEEPGRAM_STREAMING_URL}?{query}",
            headers=self._auth_headers(),
            config=config,
            on_result=on_result,
            on_error=on_error,
        )

    async def close(self) -> None:
        await self._client.aclose()
