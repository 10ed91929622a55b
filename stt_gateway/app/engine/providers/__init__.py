"""Vendor adapters and their realtime session implementations."""

from .assemblyai_provider import AssemblyAIAdapter, AssemblyAIStreamingSession
from .deepgram_provider import DeepgramAdapter, DeepgramLiveSession
from .openai_provider import OpenAIAdapter, OpenAIChunkedSession
from .socket_session import SocketStreamingSession

__all__ = [
    "AssemblyAIAdapter",
    "AssemblyAIStreamingSession",
    "DeepgramAdapter",
    "DeepgramLiveSession",
    "OpenAIAdapter",
    "OpenAIChunkedSession",
    "SocketStreamingSession",
]
