"""OpenAI adapter: Whisper file transcription and one-second chunk batching.

OpenAI transcription has no raw-PCM streaming input, so the realtime session
buffers frames, cuts them into one-second WAV chunks, and transcribes each
chunk as a final result.
"""

from __future__ import annotations

import logging
from typing import Any

from openai import AsyncOpenAI

from ...config import Settings
from ..base import RealtimeSession, VendorAdapter
from ..normalizer import normalize_openai_chunk
from ..periodic import PeriodicTask
from ..tempfiles import extension_for
from ..types import BatchTranscriptResult, ErrorCallback, SessionState, StreamConfig, TranscriptCallback
from ..wav import pcm_to_wav

_LOGGER = logging.getLogger(__name__)


class OpenAIChunkedSession(RealtimeSession):
    """Pseudo-realtime session that transcribes fixed-duration PCM chunks.

    Bytes beyond a chunk boundary stay buffered for the next cycle. On close
    the chunking loop is stopped and whatever remains is transcribed before
    the session is marked closed.
    """

    def __init__(
        self,
        *,
        client: AsyncOpenAI,
        model: str,
        chunk_seconds: float,
        poll_interval_s: float,
        config: StreamConfig,
        on_result: TranscriptCallback,
        on_error: ErrorCallback | None = None,
    ) -> None:
        super().__init__(provider="openai", config=config, on_result=on_result, on_error=on_error)
        self._client = client
        self._model = model
        self.chunk_bytes = max(int(config.bytes_per_second * chunk_seconds), 2)
        self._buffer = bytearray()
        self._previous_text = ""
        self._ticker = PeriodicTask(self._drain_ready_chunks, poll_interval_s, name="openai-chunker")
        self.chunks_processed = 0
        self.bytes_processed = 0

    @property
    def buffered_bytes(self) -> int:
        return len(self._buffer)

    async def connect(self) -> None:
        self.state = SessionState.CONNECTED

    async def send_audio(self, frame: bytes) -> None:
        if not self.is_open:
            return
        self._buffer.extend(frame)
        self._ticker.start()

    async def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        await self._ticker.stop()
        await self._drain_ready_chunks()
        if self._buffer:
            remainder = bytes(self._buffer)
            self._buffer.clear()
            await self._process_chunk(remainder)
        self.state = SessionState.CLOSED
        _LOGGER.debug(
            "OpenAI chunked session closed.",
            extra={"chunks_processed": self.chunks_processed, "bytes_processed": self.bytes_processed},
        )

    async def _drain_ready_chunks(self) -> None:
        """Transcribes every complete chunk currently buffered."""
        while len(self._buffer) >= self.chunk_bytes:
            chunk = bytes(self._buffer[: self.chunk_bytes])
            del self._buffer[: self.chunk_bytes]
            await self._process_chunk(chunk)

    async def _process_chunk(self, pcm: bytes) -> None:
        wav = pcm_to_wav(pcm, self.config.sample_rate, self.config.channels)
        request: dict[str, Any] = {
            "model": self._model,
            "file": ("chunk.wav", wav, "audio/wav"),
            "response_format": "text",
        }
        if self._previous_text:
            request["prompt"] = self._previous_text
        try:
            response = await self._client.audio.transcriptions.create(**request)
        except Exception as exc:
            _LOGGER.warning("OpenAI chunk transcription failed.", extra={"bytes": len(pcm)}, exc_info=True)
            await self._emit_error(str(exc) or type(exc).__name__)
            return

        self.chunks_processed += 1
        self.bytes_processed += len(pcm)
        transcript = normalize_openai_chunk(response)
        self._previous_text = transcript.text
        await self._emit_result(transcript.text, transcript.is_final)


class OpenAIAdapter(VendorAdapter):
    """OpenAI batch + chunked realtime adapter over the ``openai`` SDK."""

    provider_name = "openai"
    realtime_notice = "Note: OpenAI Whisper processes audio in 1-second chunks (not true real-time streaming)"

    def __init__(self, settings: Settings, client: AsyncOpenAI | None = None) -> None:
        super().__init__(settings)
        self._client = client

    def _require_client(self) -> AsyncOpenAI:
        """Returns the SDK client, creating it on first use."""
        if self._client is None:
            if not self.api_key:
                raise ValueError("OPENAI_API_KEY is required")
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def _transcribe(
        self,
        audio_bytes: bytes,
        mime_type: str,
        filename: str | None,
    ) -> BatchTranscriptResult:
        client = self._require_client()
        model = self._settings.OPENAI_BATCH_MODEL
        # The extension tells Whisper the container format.
        upload_name = f"audio.{extension_for(mime_type, filename)}"
        transcription = await client.audio.transcriptions.create(
            file=(upload_name, audio_bytes, mime_type),
            model=model,
            response_format="verbose_json",
            timestamp_granularities=["word", "segment"],
        )

        words = getattr(transcription, "words", None) or []
        segments = getattr(transcription, "segments", None) or []
        return BatchTranscriptResult(
            text=getattr(transcription, "text", None),
            processing_time_ms=None,
            confidence=None,
            details={
                "model": model,
                "language": getattr(transcription, "language", None),
                "duration": getattr(transcription, "duration", None),
                "words_count": len(words),
                "segments_count": len(segments),
            },
        )

    def _build_session(
        self,
        config: StreamConfig,
        on_result: TranscriptCallback,
        on_error: ErrorCallback | None,
    ) -> OpenAIChunkedSession:
        return OpenAIChunkedSession(
            client=self._require_client(),
            model=self._settings.OPENAI_CHUNK_MODEL,
            chunk_seconds=self._settings.OPENAI_CHUNK_SECONDS,
            poll_interval_s=self._settings.OPENAI_CHUNK_POLL_INTERVAL_S,
            config=config,
            on_result=on_result,
            on_error=on_error,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
