"""Concurrent batch transcription across the requested providers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence

from ..config import Settings
from .base import VendorAdapter
from .types import BatchTranscriptResult

_LOGGER = logging.getLogger(__name__)


def select_providers(
    requested: Sequence[str],
    adapters: Mapping[str, VendorAdapter],
    settings: Settings,
) -> list[str]:
    """Keeps requested providers that have an adapter and a credential.

    Unknown or unconfigured providers are skipped rather than failing the
    request. Duplicates are dropped, first occurrence wins.
    """
    selected: list[str] = []
    for provider in dict.fromkeys(requested):
        if provider not in adapters:
            _LOGGER.info("Skipping unknown provider.", extra={"provider": provider})
            continue
        if not settings.has_credentials(provider):
            _LOGGER.info("Skipping provider without credentials.", extra={"provider": provider})
            continue
        selected.append(provider)
    return selected


async def transcribe_with_providers(
    *,
    audio_bytes: bytes,
    mime_type: str,
    filename: str | None,
    requested: Sequence[str],
    adapters: Mapping[str, VendorAdapter],
    settings: Settings,
) -> dict[str, BatchTranscriptResult]:
    """Runs every selected provider's batch transcription concurrently.

    Returns:
        Mapping of provider to its result; failed providers carry ``error``.
    """
    selected = select_providers(requested, adapters, settings)
    _LOGGER.debug(
        "Dispatching batch transcription.",
        extra={"requested": list(requested), "selected": selected, "bytes": len(audio_bytes)},
    )
    outcomes = await asyncio.gather(
        *(_transcribe_one(provider, adapters[provider], audio_bytes, mime_type, filename) for provider in selected)
    )
    return dict(zip(selected, outcomes))


async def _transcribe_one(
    provider: str,
    adapter: VendorAdapter,
    audio_bytes: bytes,
    mime_type: str,
    filename: str | None,
) -> BatchTranscriptResult:
    try:
        return await adapter.transcribe_batch(audio_bytes, mime_type, filename)
    except Exception as exc:
        _LOGGER.exception("Batch adapter raised unexpectedly.", extra={"provider": provider})
        return BatchTranscriptResult.failure(str(exc) or type(exc).__name__)
