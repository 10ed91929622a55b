"""Shared type definitions for transcription adapters and the audio relay."""

from __future__ import annotations

import enum
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

# Callback used by sessions to push one normalized transcript update.
TranscriptCallback = Callable[[str, bool], Awaitable[None]]

# Callback used by sessions to report a provider-scoped failure message.
ErrorCallback = Callable[[str], Awaitable[None]]


class SessionState(str, enum.Enum):
    """Connection state of one realtime provider session."""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"
    ERRORED = "errored"


@dataclass(slots=True, frozen=True)
class StreamConfig:
    """Audio format and provider selection requested by ``startStream``.

    Attributes:
        providers: Requested provider identifiers, in client order.
        sample_rate: PCM sample rate in Hz.
        encoding: Client encoding label (only ``pcm16`` is produced by the UI).
        channels: Channel count of inbound frames.
    """

    providers: tuple[str, ...] = ()
    sample_rate: int = 16000
    encoding: str = "pcm16"
    channels: int = 1

    @property
    def bytes_per_second(self) -> int:
        """Byte rate of 16-bit PCM at this sample rate and channel count."""
        return self.sample_rate * 2 * self.channels


@dataclass(slots=True, frozen=True)
class TranscriptResult:
    """Normalized transcript update relayed to the client."""

    provider: str
    text: str
    is_final: bool
    latency_ms: int

    def to_payload(self) -> dict[str, Any]:
        """Serializes to the ``transcriptResult`` wire shape."""
        return {
            "provider": self.provider,
            "transcript": self.text,
            "isFinal": self.is_final,
            "latencyMs": self.latency_ms,
        }


@dataclass(slots=True)
class BatchTranscriptResult:
    """Outcome of one provider transcribing one uploaded buffer.

    Attributes:
        text: Full transcript, ``None`` on failure.
        processing_time_ms: Wall-clock time spent on the provider round trip.
        confidence: Mean word confidence when the provider reports one.
        error: Failure message, ``None`` on success.
        details: Provider-specific metadata (model, language, counts).
    """

    text: str | None
    processing_time_ms: int | None
    confidence: float | None = None
    error: str | None = None
    details: dict[str, Any] | None = field(default=None)

    @classmethod
    def failure(cls, message: str, processing_time_ms: int | None = None) -> BatchTranscriptResult:
        """Builds a failed result carrying only the error message."""
        return cls(text=None, processing_time_ms=processing_time_ms, error=message)

    def to_payload(self) -> dict[str, Any]:
        """Serializes using the client's ``{text, time, confidence, error}`` keys."""
        return {
            "text": self.text,
            "time": self.processing_time_ms,
            "confidence": self.confidence,
            "error": self.error,
            "details": self.details,
        }
