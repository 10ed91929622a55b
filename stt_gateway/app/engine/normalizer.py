"""Maps provider-native transcript events onto ``(text, is_final)`` updates.

No deduplication happens here: if a provider signals completion twice for
the same speech (for example Deepgram ``is_final`` results followed by an
``UtteranceEnd``), both are forwarded as final updates.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(slots=True, frozen=True)
class NormalizedTranscript:
    """Provider-agnostic transcript update."""

    text: str
    is_final: bool


def normalize_assemblyai(message: dict[str, Any]) -> NormalizedTranscript | None:
    """Maps an AssemblyAI streaming message.

    ``Turn`` messages are partial until ``end_of_turn`` is set, at which point
    the turn transcript is final. Session bookkeeping messages yield nothing.
    """
    if message.get("type") != "Turn":
        return None
    return NormalizedTranscript(
        text=str(message.get("transcript") or ""),
        is_final=bool(message.get("end_of_turn")),
    )


def assemblyai_error(message: dict[str, Any]) -> str | None:
    """Extracts an error description from an AssemblyAI message, if any."""
    error = message.get("error")
    if error:
        return str(error)
    if message.get("type") == "Error":
        return str(message.get("message") or message.get("description") or "AssemblyAI error")
    return None


def _first_alternative_text(channel: Any) -> str | None:
    if not isinstance(channel, dict):
        return None
    alternatives = channel.get("alternatives")
    if not isinstance(alternatives, list) or not alternatives:
        return None
    first = alternatives[0]
    if not isinstance(first, dict):
        return None
    return str(first.get("transcript") or "")


class DeepgramNormalizer:
    """Stateful mapper for Deepgram live messages.

    ``UtteranceEnd`` carries no transcript of its own, so the text of the most
    recent ``Results`` message is re-emitted as final when one arrives. This
    can repeat a transcript that was already delivered as final.
    """

    def __init__(self) -> None:
        self._last_text: str | None = None

    def normalize(self, message: dict[str, Any]) -> NormalizedTranscript | None:
        message_type = message.get("type")
        if message_type == "Results":
            text = _first_alternative_text(message.get("channel"))
            if text is None:
                return None
            self._last_text = text
            return NormalizedTranscript(text=text, is_final=bool(message.get("is_final")))

        if message_type == "UtteranceEnd":
            text = _first_alternative_text(message.get("channel"))
            if text is None:
                text = self._last_text
            self._last_text = None
            if not text:
                return None
            return NormalizedTranscript(text=text, is_final=True)

        return None


def deepgram_error(message: dict[str, Any]) -> str | None:
    """Extracts an error description from a Deepgram message, if any."""
    if message.get("type") != "Error":
        return None
    return str(message.get("description") or message.get("message") or "Deepgram error")


def normalize_openai_chunk(text: Any) -> NormalizedTranscript:
    """Every chunk transcription is final."""
    return NormalizedTranscript(text=str(text or "").strip(), is_final=True)
