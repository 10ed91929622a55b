"""Base abstractions for vendor adapters and their realtime sessions."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from abc import ABC, abstractmethod
from typing import Any

from ..config import Settings
from .errors import SessionConnectTimeout, TransportError
from .types import (
    BatchTranscriptResult,
    ErrorCallback,
    SessionState,
    StreamConfig,
    TranscriptCallback,
)

_LOGGER = logging.getLogger(__name__)


class RealtimeSession(ABC):
    """One live transcription session for one provider and one client.

    Subclasses bring the transport to a ready state in ``connect()`` and push
    transcript updates through ``_emit_result`` in provider order.
    """

    def __init__(
        self,
        *,
        provider: str,
        config: StreamConfig,
        on_result: TranscriptCallback,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self.provider = provider
        self.config = config
        self.state = SessionState.CONNECTING
        self.last_audio_at = time.monotonic()
        self._on_result = on_result
        self._on_error = on_error
        self._closing = False

    @property
    def is_open(self) -> bool:
        """Returns whether the session accepts audio."""
        return self.state is SessionState.CONNECTED and not self._closing

    def mark_audio_sent(self) -> None:
        """Records the time of the latest successful frame delivery."""
        self.last_audio_at = time.monotonic()

    def latency_ms(self) -> int:
        """Milliseconds elapsed since the latest delivered frame."""
        return int((time.monotonic() - self.last_audio_at) * 1000)

    @abstractmethod
    async def connect(self) -> None:
        """Establishes the provider transport and marks the session connected."""

    @abstractmethod
    async def send_audio(self, frame: bytes) -> None:
        """Forwards one PCM frame. No-op when the session is not open."""

    @abstractmethod
    async def close(self) -> None:
        """Flushes buffered audio and tears the transport down. Idempotent."""

    async def abort(self) -> None:
        """Releases a session that never became ready."""
        self._closing = True
        self.state = SessionState.ERRORED

    async def _emit_result(self, text: str, is_final: bool) -> None:
        await self._on_result(text, is_final)

    async def _emit_error(self, message: str) -> None:
        if self._on_error is None:
            return
        await self._on_error(message)


class VendorAdapter(ABC):
    """Uniform batch + realtime surface over one provider's APIs.

    Attributes:
        provider_name: Provider identifier used as registry and result key.
        realtime_notice: Optional informational message sent to the client
            once a realtime session for this provider is ready.
    """

    provider_name: str = ""
    realtime_notice: str | None = None

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    @property
    def api_key(self) -> str:
        """Credential for this adapter's provider."""
        return self._settings.credential_for(self.provider_name)

    async def transcribe_batch(
        self,
        audio_bytes: bytes,
        mime_type: str,
        filename: str | None = None,
    ) -> BatchTranscriptResult:
        """Transcribes one complete audio buffer.

        Provider failures never raise; they are captured into the returned
        result's ``error`` field along with the elapsed time.

        Args:
            audio_bytes: Full uploaded audio.
            mime_type: Upload content type, used for container hints.
            filename: Client-supplied filename when known.

        Returns:
            Completed or failed ``BatchTranscriptResult``.
        """
        started = time.monotonic()
        _LOGGER.debug(
            "Starting batch transcription.",
            extra={"provider": self.provider_name, "bytes": len(audio_bytes), "mime_type": mime_type},
        )
        try:
            result = await self._transcribe(audio_bytes, mime_type, filename)
        except Exception as exc:
            elapsed_ms = int((time.monotonic() - started) * 1000)
            _LOGGER.warning(
                "Batch transcription failed.",
                extra={"provider": self.provider_name, "elapsed_ms": elapsed_ms},
                exc_info=True,
            )
            return BatchTranscriptResult.failure(str(exc) or type(exc).__name__, elapsed_ms)
        result.processing_time_ms = int((time.monotonic() - started) * 1000)
        _LOGGER.debug(
            "Batch transcription completed.",
            extra={"provider": self.provider_name, "elapsed_ms": result.processing_time_ms},
        )
        return result

    async def create_realtime_session(
        self,
        config: StreamConfig,
        on_result: TranscriptCallback,
        on_error: ErrorCallback | None = None,
    ) -> RealtimeSession:
        """Opens a realtime session bounded by the configured connect timeout.

        Raises:
            SessionConnectTimeout: If the transport is not ready in time.
            TransportError: If the transport fails while connecting.
        """
        try:
            session = self._build_session(config, on_result, on_error)
        except Exception as exc:
            raise TransportError(str(exc) or type(exc).__name__, provider=self.provider_name) from exc
        timeout_s = self._settings.REALTIME_CONNECT_TIMEOUT_S
        try:
            await asyncio.wait_for(session.connect(), timeout=timeout_s)
        except asyncio.TimeoutError as exc:
            with contextlib.suppress(Exception):
                await session.abort()
            raise SessionConnectTimeout(
                f"{self.provider_name} connection timeout",
                provider=self.provider_name,
            ) from exc
        except TransportError:
            with contextlib.suppress(Exception):
                await session.abort()
            raise
        except Exception as exc:
            with contextlib.suppress(Exception):
                await session.abort()
            raise TransportError(str(exc) or type(exc).__name__, provider=self.provider_name) from exc
        except BaseException:
            # Cancelled while connecting.
            with contextlib.suppress(Exception):
                await session.abort()
            raise
        _LOGGER.info("Realtime session connected.", extra={"provider": self.provider_name})
        return session

    async def close(self) -> None:
        """Releases adapter-owned clients."""

    @abstractmethod
    async def _transcribe(
        self,
        audio_bytes: bytes,
        mime_type: str,
        filename: str | None,
    ) -> BatchTranscriptResult:
        """Runs the provider batch round trip. May raise on failure."""

    @abstractmethod
    def _build_session(
        self,
        config: StreamConfig,
        on_result: TranscriptCallback,
        on_error: ErrorCallback | None,
    ) -> RealtimeSession:
        """Constructs an unconnected provider session."""


def mean_word_confidence(words: Any) -> float | None:
    """Averages ``confidence`` across provider word objects or dicts."""
    if not words:
        return None
    total = 0.0
    for word in words:
        value = word.get("confidence") if isinstance(word, dict) else getattr(word, "confidence", None)
        total += value or 0.0
    return total / len(words)
