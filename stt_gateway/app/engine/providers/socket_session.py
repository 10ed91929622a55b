"""Shared websocket transport for providers that stream raw PCM frames."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from abc import abstractmethod
from typing import Any

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed

from ..base import RealtimeSession
from ..errors import DeliveryError
from ..types import ErrorCallback, SessionState, StreamConfig, TranscriptCallback

_LOGGER = logging.getLogger(__name__)

# How long close() waits for trailing provider results after the close message.
CLOSE_GRACE_S = 5.0


class SocketStreamingSession(RealtimeSession):
    """Realtime session backed by one persistent provider websocket.

    Lifecycle:
    1. ``connect()`` opens the socket and starts ``_receive_loop``.
    2. ``send_audio()`` writes binary PCM frames while the session is open.
    3. ``close()`` sends the provider's close message, waits briefly for the
       provider to flush trailing results, then closes the socket.
    """

    def __init__(
        self,
        *,
        provider: str,
        url: str,
        headers: dict[str, str],
        config: StreamConfig,
        on_result: TranscriptCallback,
        on_error: ErrorCallback | None = None,
    ) -> None:
        super().__init__(provider=provider, config=config, on_result=on_result, on_error=on_error)
        self._url = url
        self._headers = headers
        self._ws: ClientConnection | None = None
        self._receive_task: asyncio.Task[None] | None = None
        self.frames_sent = 0
        self.messages_received = 0

    async def connect(self) -> None:
        _LOGGER.debug("Opening provider websocket.", extra={"provider": self.provider})
        self._ws = await connect(self._url, additional_headers=self._headers)
        self.state = SessionState.CONNECTED
        self._receive_task = asyncio.create_task(
            self._receive_loop(),
            name=f"{self.provider}-receive",
        )

    async def send_audio(self, frame: bytes) -> None:
        if not self.is_open or self._ws is None:
            return
        try:
            await self._ws.send(frame)
        except ConnectionClosed as exc:
            self.state = SessionState.ERRORED
            raise DeliveryError(f"{self.provider} connection closed", provider=self.provider) from exc
        self.frames_sent += 1

    async def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        ws = self._ws
        if ws is not None and self.state is SessionState.CONNECTED:
            with contextlib.suppress(Exception):
                await ws.send(json.dumps(self._close_message()))
            await self._wait_for_receive_loop(CLOSE_GRACE_S)
        if ws is not None:
            with contextlib.suppress(Exception):
                await ws.close()
        await self._cancel_receive_loop()
        if self.state is not SessionState.ERRORED:
            self.state = SessionState.CLOSED
        _LOGGER.debug(
            "Provider websocket session closed.",
            extra={
                "provider": self.provider,
                "frames_sent": self.frames_sent,
                "messages_received": self.messages_received,
            },
        )

    async def abort(self) -> None:
        await super().abort()
        if self._ws is not None:
            with contextlib.suppress(Exception):
                await self._ws.close()
        await self._cancel_receive_loop()

    async def _receive_loop(self) -> None:
        """Consumes provider messages until the socket closes."""
        assert self._ws is not None
        try:
            async for raw in self._ws:
                if isinstance(raw, bytes):
                    continue
                try:
                    message = json.loads(raw)
                except json.JSONDecodeError:
                    _LOGGER.warning("Received non-JSON message from provider.", extra={"provider": self.provider})
                    continue
                if not isinstance(message, dict):
                    continue
                self.messages_received += 1
                await self._handle_message(message)
        except asyncio.CancelledError:
            raise
        except ConnectionClosed as exc:
            if self._closing:
                _LOGGER.debug(
                    "Provider websocket closed during shutdown.",
                    extra={"provider": self.provider, "code": getattr(exc.rcvd, "code", None)},
                )
                return
            _LOGGER.warning(
                "Provider websocket closed unexpectedly.",
                extra={"provider": self.provider, "code": getattr(exc.rcvd, "code", None)},
            )
            self.state = SessionState.ERRORED
            await self._emit_error(f"{self.provider} connection closed unexpectedly")
            return
        except Exception:
            _LOGGER.exception("Provider receive loop failed.", extra={"provider": self.provider})
            self.state = SessionState.ERRORED
            await self._emit_error(f"{self.provider} receive loop failed")
            return
        if not self._closing and self.state is SessionState.CONNECTED:
            _LOGGER.info("Provider websocket closed by remote.", extra={"provider": self.provider})
            self.state = SessionState.CLOSED

    async def _wait_for_receive_loop(self, timeout_s: float) -> None:
        task = self._receive_task
        if task is None or task.done() or task is asyncio.current_task():
            return
        with contextlib.suppress(asyncio.TimeoutError, asyncio.CancelledError):
            await asyncio.wait_for(asyncio.shield(task), timeout=timeout_s)

    async def _cancel_receive_loop(self) -> None:
        task = self._receive_task
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()
        if task and task is not asyncio.current_task():
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await task

    async def _fail(self, message: str) -> None:
        """Marks the session errored and reports a provider-scoped failure."""
        _LOGGER.warning("Provider reported an error.", extra={"provider": self.provider, "error": message})
        self.state = SessionState.ERRORED
        await self._emit_error(message)
        if self._ws is not None:
            with contextlib.suppress(Exception):
                await self._ws.close()

    @abstractmethod
    def _close_message(self) -> dict[str, Any]:
        """Provider message that asks the server to flush and terminate."""

    @abstractmethod
    async def _handle_message(self, message: dict[str, Any]) -> None:
        """Routes one decoded provider message."""
