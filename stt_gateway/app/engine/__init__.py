"""Vendor adapters, session registry, audio relay, and result normalization."""

from .base import RealtimeSession, VendorAdapter
from .batch import select_providers, transcribe_with_providers
from .factory import create_adapter, create_adapters, supported_providers
from .registry import SessionRegistry
from .relay import AudioRelay
from .types import BatchTranscriptResult, SessionState, StreamConfig, TranscriptResult

__all__ = [
    "AudioRelay",
    "BatchTranscriptResult",
    "RealtimeSession",
    "SessionRegistry",
    "SessionState",
    "StreamConfig",
    "TranscriptResult",
    "VendorAdapter",
    "create_adapter",
    "create_adapters",
    "select_providers",
    "supported_providers",
    "transcribe_with_providers",
]
