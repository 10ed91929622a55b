"""Client websocket bridge for live multi-provider transcription.

This module translates data in both directions:
1. Client control events and binary audio frames -> provider sessions.
2. Provider transcript updates and failures -> client JSON events.

Wire format: text frames carry ``{"event": <name>, "data": {...}}``; binary
frames are raw PCM ``audioData``.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import Mapping
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from ..config import Settings
from ..engine.base import RealtimeSession, VendorAdapter
from ..engine.batch import select_providers
from ..engine.registry import SessionRegistry
from ..engine.relay import AudioRelay
from ..engine.types import StreamConfig, TranscriptResult

_LOGGER = logging.getLogger(__name__)

SUPPORTED_ENCODINGS = frozenset({"pcm16"})


def parse_stream_config(data: Any) -> StreamConfig:
    """Validates a ``startStream`` payload.

    Both ``providers`` and the legacy ``services`` key are accepted.

    Raises:
        ValueError: If the payload is malformed.
    """
    if not isinstance(data, dict):
        raise ValueError("startStream payload must be an object")
    providers = data.get("providers", data.get("services", []))
    if not isinstance(providers, list) or not all(isinstance(name, str) for name in providers):
        raise ValueError("providers must be a list of provider names")
    try:
        sample_rate = int(data.get("sampleRate", 16000))
        channels = int(data.get("channels", 1))
    except (TypeError, ValueError) as exc:
        raise ValueError("sampleRate and channels must be integers") from exc
    if sample_rate <= 0 or channels <= 0:
        raise ValueError("sampleRate and channels must be positive")
    encoding = data.get("encoding", "pcm16")
    if encoding not in SUPPORTED_ENCODINGS:
        raise ValueError(f"Unsupported encoding: {encoding}")
    return StreamConfig(
        providers=tuple(providers),
        sample_rate=sample_rate,
        encoding=encoding,
        channels=channels,
    )


class StreamHandler:
    """Coordinates one client connection with its provider sessions.

    Usage pattern:
    1. ``main.py`` creates one ``StreamHandler`` per websocket connection.
    2. ``start()`` accepts the socket and starts the message loop.
    3. ``wait_until_done()`` blocks while client frames are received.
    4. ``shutdown()`` is called in a ``finally`` block to release sessions.
    """

    def __init__(
        self,
        websocket: WebSocket,
        *,
        adapters: Mapping[str, VendorAdapter],
        settings: Settings,
    ) -> None:
        self.websocket = websocket
        self.registry = SessionRegistry()
        self.relay = AudioRelay(self.registry, on_delivery_error=self._emit_service_error)
        self._adapters = adapters
        self._settings = settings
        self._message_loop_task: asyncio.Task[None] | None = None
        self._is_shutting_down = False
        self._results_sent = 0
        client = getattr(websocket, "client", None)
        _LOGGER.debug("StreamHandler initialized.", extra={"client": str(client)})

    async def start(self) -> None:
        """Accepts the websocket and starts the message loop."""
        await self.websocket.accept()
        self._message_loop_task = asyncio.create_task(self._message_loop())
        _LOGGER.debug("StreamHandler message loop started.")

    async def wait_until_done(self) -> None:
        """Waits for the client to disconnect, then shuts down."""
        if not self._message_loop_task:
            return
        try:
            await self._message_loop_task
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        """Idempotently closes every session, the loop task, and the socket."""
        if self._is_shutting_down:
            return
        self._is_shutting_down = True

        task = self._message_loop_task
        if task and task is not asyncio.current_task():
            if not task.done():
                task.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await task

        await self._close_sessions()

        if self.websocket.client_state != WebSocketState.DISCONNECTED:
            with contextlib.suppress(Exception):
                await self.websocket.close()
        _LOGGER.debug(
            "StreamHandler shutdown completed.",
            extra={
                "frames_relayed": self.relay.frames_relayed,
                "bytes_relayed": self.relay.bytes_relayed,
                "results_sent": self._results_sent,
                "delivery_failures": self.relay.delivery_failures,
            },
        )

    async def _message_loop(self) -> None:
        """Consumes client frames until the connection ends."""
        try:
            while not self._is_shutting_down:
                message = await self.websocket.receive()
                if message.get("type") == "websocket.disconnect":
                    _LOGGER.info("Client websocket disconnected.")
                    return
                frame = message.get("bytes")
                if frame is not None:
                    await self.relay.relay(frame)
                    continue
                text = message.get("text")
                if text is None:
                    continue
                try:
                    payload = json.loads(text)
                except json.JSONDecodeError:
                    _LOGGER.warning("Received non-JSON control message from client.")
                    continue
                if not isinstance(payload, dict):
                    continue
                await self._handle_client_event(str(payload.get("event") or ""), payload.get("data"))
        except asyncio.CancelledError:
            raise
        except WebSocketDisconnect:
            _LOGGER.info("Client websocket disconnected.")

    async def _handle_client_event(self, event: str, data: Any) -> None:
        """Routes one client control event by name."""
        _LOGGER.debug("Routing client event.", extra={"event_type": event})
        if event == "startStream":
            await self._handle_start_stream(data)
            return
        if event == "endStream":
            await self._handle_end_stream()
            return
        _LOGGER.debug("Ignoring unknown client event.", extra={"event_type": event})

    async def _handle_start_stream(self, data: Any) -> None:
        """Opens one session per requested, configured provider."""
        try:
            config = parse_stream_config(data)
        except ValueError as exc:
            await self._emit("streamError", {"message": str(exc)})
            return
        if not config.providers:
            await self._emit("streamError", {"message": "No providers selected"})
            return

        # A repeated startStream replaces the sessions of the previous stream.
        if len(self.registry):
            await self._close_sessions()

        selected = select_providers(config.providers, self._adapters, self._settings)
        outcomes = await asyncio.gather(
            *(self._open_session(provider, config) for provider in selected),
            return_exceptions=True,
        )

        notices: list[tuple[str, str]] = []
        for provider, outcome in zip(selected, outcomes):
            if isinstance(outcome, BaseException):
                _LOGGER.warning(
                    "Realtime session failed to start.",
                    extra={"provider": provider, "error": str(outcome)},
                )
                await self._emit("streamError", {"provider": provider, "message": str(outcome)})
                continue
            notice = self._adapters[provider].realtime_notice
            if notice:
                notices.append((provider, notice))

        if len(self.registry) or len(selected) == 0:
            ready = [provider for provider in selected if provider in self.registry]
            await self._emit("streamReady", {"providers": ready})
        for provider, notice in notices:
            await self._emit("serviceInfo", {"provider": provider, "message": notice})

    async def _open_session(self, provider: str, config: StreamConfig) -> RealtimeSession:
        adapter = self._adapters[provider]

        async def on_result(text: str, is_final: bool) -> None:
            await self._emit_transcript(provider, text, is_final)

        async def on_error(message: str) -> None:
            await self._emit_service_error(provider, message)

        session = await adapter.create_realtime_session(config, on_result, on_error)
        # Registered on connect; shutdown closes it even if startStream is cancelled.
        self.registry.add(provider, session)
        return session

    async def _close_sessions(self) -> None:
        """Delivers queued audio, then closes and forgets every session."""
        await self.relay.flush()
        await self.registry.remove_all()

    async def _handle_end_stream(self) -> None:
        await self._close_sessions()
        await self._emit("streamEnded", {})

    async def _emit_transcript(self, provider: str, text: str, is_final: bool) -> None:
        session = self.registry.get(provider)
        result = TranscriptResult(
            provider=provider,
            text=text,
            is_final=is_final,
            latency_ms=session.latency_ms() if session else 0,
        )
        self._results_sent += 1
        await self._emit("transcriptResult", result.to_payload())

    async def _emit_service_error(self, provider: str, message: str) -> None:
        await self._emit("serviceError", {"provider": provider, "message": message})

    async def _emit(self, event: str, data: dict[str, Any]) -> None:
        """Sends one JSON event unless the client is already gone."""
        if self.websocket.client_state != WebSocketState.CONNECTED:
            return
        try:
            await self.websocket.send_text(json.dumps({"event": event, "data": data}))
        except (WebSocketDisconnect, RuntimeError):
            _LOGGER.debug("Dropping client event after disconnect.", extra={"event_type": event})
