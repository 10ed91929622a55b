"""AssemblyAI adapter: REST batch transcripts and v3 streaming sessions."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any
from urllib.parse import urlencode

import httpx

from ...config import Settings
from ..base import VendorAdapter, mean_word_confidence
from ..normalizer import assemblyai_error, normalize_assemblyai
from ..tempfiles import temp_audio_file
from ..types import BatchTranscriptResult, ErrorCallback, StreamConfig, TranscriptCallback
from .socket_session import SocketStreamingSession

_LOGGER = logging.getLogger(__name__)

VERBATIM_PROMPT = (
    "Transcribe the audio verbatim for a dental appointment. Capture every word exactly as spoken, "
    "including fillers (um, uh), false starts, repetitions, stutters, and partial words. Mark non-speech "
    "events in brackets like (laughter), (sigh), (cough). Do not paraphrase or summarize. Preserve dental "
    "and medical terminology exactly. Do not record numbers spoken as numerals, record them as words."
)

_TERMINAL_STATUSES = frozenset({"completed", "error"})


async def _iter_file(path: Path, chunk_size: int = 64 * 1024) -> AsyncIterator[bytes]:
    """Yields file chunks, reading in a worker thread."""
    handle = await asyncio.to_thread(path.open, "rb")
    try:
        while chunk := await asyncio.to_thread(handle.read, chunk_size):
            yield chunk
    finally:
        await asyncio.to_thread(handle.close)


class AssemblyAIStreamingSession(SocketStreamingSession):
    """Streams binary PCM to AssemblyAI and relays ``Turn`` transcripts."""

    def _close_message(self) -> dict[str, Any]:
        return {"type": "Terminate"}

    async def _handle_message(self, message: dict[str, Any]) -> None:
        error = assemblyai_error(message)
        if error:
            await self._fail(error)
            return

        message_type = message.get("type")
        if message_type == "Begin":
            _LOGGER.debug("AssemblyAI session started.", extra={"session_id": message.get("id")})
            return
        if message_type == "Termination":
            _LOGGER.debug(
                "AssemblyAI session terminated.",
                extra={"audio_duration_seconds": message.get("audio_duration_seconds")},
            )
            return

        transcript = normalize_assemblyai(message)
        if transcript is not None:
            await self._emit_result(transcript.text, transcript.is_final)


class AssemblyAIAdapter(VendorAdapter):
    """AssemblyAI batch + streaming adapter over ``httpx`` and ``websockets``."""

    provider_name = "assemblyai"

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        super().__init__(settings)
        self._base_url = settings.ASSEMBLYAI_API_URL.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(60.0, connect=10.0))

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": self.api_key}

    async def _transcribe(
        self,
        audio_bytes: bytes,
        mime_type: str,
        filename: str | None,
    ) -> BatchTranscriptResult:
        async with temp_audio_file(self._settings.UPLOAD_DIR, audio_bytes, mime_type, filename) as path:
            upload_url = await self._upload(path)
        transcript_id = await self._create_transcript(upload_url)
        completed = await self._wait_for_completion(transcript_id)

        words = completed.get("words") or []
        utterances = completed.get("utterances") or []
        return BatchTranscriptResult(
            text=completed.get("text"),
            processing_time_ms=None,
            confidence=mean_word_confidence(words),
            details={
                "id": completed.get("id"),
                "status": completed.get("status"),
                "language_code": completed.get("language_code"),
                "audio_duration": completed.get("audio_duration"),
                "words_count": len(words),
                "speakers": len(utterances),
            },
        )

    async def _upload(self, path: Path) -> str:
        """Streams a temp file to the upload endpoint and returns its URL."""
        response = await self._client.post(
            f"{self._base_url}/v2/upload",
            content=_iter_file(path),
            headers={**self._auth_headers(), "Content-Type": "application/octet-stream"},
        )
        response.raise_for_status()
        return str(response.json()["upload_url"])

    async def _create_transcript(self, audio_url: str) -> str:
        response = await self._client.post(
            f"{self._base_url}/v2/transcript",
            json={
                "audio_url": audio_url,
                "disfluencies": True,
                "format_text": False,
                "filter_profanity": False,
                "prompt": VERBATIM_PROMPT,
                "language_detection": True,
                "speaker_labels": True,
                "auto_highlights": True,
                "sentiment_analysis": True,
            },
            headers=self._auth_headers(),
        )
        response.raise_for_status()
        transcript_id = str(response.json()["id"])
        _LOGGER.debug("AssemblyAI transcript job created.", extra={"transcript_id": transcript_id})
        return transcript_id

    async def _wait_for_completion(self, transcript_id: str) -> dict[str, Any]:
        """Polls the transcript until it completes.

        Raises:
            RuntimeError: If the transcript finishes with ``status=error``.
        """
        while True:
            response = await self._client.get(
                f"{self._base_url}/v2/transcript/{transcript_id}",
                headers=self._auth_headers(),
            )
            response.raise_for_status()
            body = response.json()
            status = body.get("status")
            if status in _TERMINAL_STATUSES:
                if status == "error":
                    raise RuntimeError(str(body.get("error") or "AssemblyAI transcription failed"))
                return body
            await asyncio.sleep(self._settings.ASSEMBLYAI_POLL_INTERVAL_S)

    def _build_session(
        self,
        config: StreamConfig,
        on_result: TranscriptCallback,
        on_error: ErrorCallback | None,
    ) -> AssemblyAIStreamingSession:
        if config.channels != 1:
            raise ValueError(f"AssemblyAI streaming requires mono audio, got {config.channels} channels")
        query = urlencode({"sample_rate": config.sample_rate, "encoding": "pcm_s16le"})
        return AssemblyAIStreamingSession(
            provider=self.provider_name,
            url=f"{self._settings.ASSEMBLYAI_STREAMING_URL}?{query}",
            headers=self._auth_headers(),
            config=config,
            on_result=on_result,
            on_error=on_error,
        )

    async def close(self) -> None:
        await self._client.aclose()
