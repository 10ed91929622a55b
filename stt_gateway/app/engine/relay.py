"""Fans inbound audio frames out to every registered realtime session."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from .base import RealtimeSession
from .registry import SessionRegistry

_LOGGER = logging.getLogger(__name__)

# Callback invoked with ``(provider, message)`` when one delivery fails.
DeliveryErrorCallback = Callable[[str, str], Awaitable[None]]

# Upper bound for flushing queued frames before sessions are closed.
FLUSH_TIMEOUT_S = 2.0


@dataclass(slots=True)
class _DeliveryLane:
    session: RealtimeSession
    queue: asyncio.Queue[bytes]
    task: asyncio.Task[None]


class AudioRelay:
    """Forwards each frame to all sessions independently.

    Every session gets its own queue and writer task, so a provider that
    stalls only delays its own frames. Frames reach one provider in the order
    they were relayed. A failed delivery is reported for that provider only;
    the session is left registered and keeps receiving later frames.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        *,
        on_delivery_error: DeliveryErrorCallback | None = None,
    ) -> None:
        self._registry = registry
        self._on_delivery_error = on_delivery_error
        self._lanes: dict[str, _DeliveryLane] = {}
        self.frames_relayed = 0
        self.bytes_relayed = 0
        self.delivery_failures: dict[str, int] = {}

    def pending_frames(self, provider: str) -> int:
        """Frames queued for ``provider`` but not yet delivered."""
        lane = self._lanes.get(provider)
        return lane.queue.qsize() if lane else 0

    async def relay(self, frame: bytes) -> None:
        """Queues one frame for every session currently in the registry."""
        targets = list(self._registry)
        if not targets:
            return
        self.frames_relayed += 1
        self.bytes_relayed += len(frame)
        for provider, session in targets:
            self._lane_for(provider, session).queue.put_nowait(frame)

    async def flush(self, timeout_s: float = FLUSH_TIMEOUT_S) -> None:
        """Waits for queued frames to drain, then stops every writer task.

        Frames still queued for a provider that does not drain within
        ``timeout_s`` are dropped.
        """
        lanes = list(self._lanes.items())
        self._lanes.clear()
        if not lanes:
            return
        await asyncio.gather(*(self._wait_for_lane(provider, lane, timeout_s) for provider, lane in lanes))
        for _provider, lane in lanes:
            lane.task.cancel()
        for _provider, lane in lanes:
            with contextlib.suppress(asyncio.CancelledError):
                await lane.task

    def _lane_for(self, provider: str, session: RealtimeSession) -> _DeliveryLane:
        lane = self._lanes.get(provider)
        if lane is not None and lane.session is session:
            return lane
        if lane is not None:
            lane.task.cancel()
        queue: asyncio.Queue[bytes] = asyncio.Queue()
        lane = _DeliveryLane(
            session=session,
            queue=queue,
            task=asyncio.create_task(self._drain_lane(provider, session, queue), name=f"{provider}-delivery"),
        )
        self._lanes[provider] = lane
        return lane

    async def _drain_lane(self, provider: str, session: RealtimeSession, queue: asyncio.Queue[bytes]) -> None:
        while True:
            frame = await queue.get()
            try:
                await self._deliver(provider, session, frame)
            finally:
                queue.task_done()

    @staticmethod
    async def _wait_for_lane(provider: str, lane: _DeliveryLane, timeout_s: float) -> None:
        try:
            await asyncio.wait_for(lane.queue.join(), timeout=timeout_s)
        except asyncio.TimeoutError:
            _LOGGER.warning(
                "Dropping undelivered audio frames.",
                extra={"provider": provider, "pending_frames": lane.queue.qsize()},
            )

    async def _deliver(self, provider: str, session: RealtimeSession, frame: bytes) -> None:
        try:
            await session.send_audio(frame)
        except Exception as exc:
            self.delivery_failures[provider] = self.delivery_failures.get(provider, 0) + 1
            _LOGGER.warning(
                "Audio delivery failed.",
                extra={"provider": provider, "failures": self.delivery_failures[provider]},
                exc_info=True,
            )
            if self._on_delivery_error is not None:
                try:
                    await self._on_delivery_error(provider, str(exc) or type(exc).__name__)
                except Exception:
                    _LOGGER.exception("Delivery error callback failed.", extra={"provider": provider})
            return
        session.mark_audio_sent()
