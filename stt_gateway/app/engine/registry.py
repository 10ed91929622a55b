"""Per-connection mapping from provider identifier to realtime session."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator

from .base import RealtimeSession

_LOGGER = logging.getLogger(__name__)


class SessionRegistry:
    """Holds at most one realtime session per provider for one client.

    Sessions that error out stay registered; they ignore further audio until
    ``remove_all()`` closes them.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, RealtimeSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, provider: object) -> bool:
        return provider in self._sessions

    def __iter__(self) -> Iterator[tuple[str, RealtimeSession]]:
        return iter(list(self._sessions.items()))

    def add(self, provider: str, session: RealtimeSession) -> None:
        """Registers a session.

        Raises:
            ValueError: If a session for ``provider`` is already registered.
        """
        if provider in self._sessions:
            raise ValueError(f"A {provider} session is already registered")
        self._sessions[provider] = session
        _LOGGER.debug("Session registered.", extra={"provider": provider, "session_count": len(self._sessions)})

    def get(self, provider: str) -> RealtimeSession | None:
        return self._sessions.get(provider)

    def providers(self) -> list[str]:
        """Registered providers in registration order."""
        return list(self._sessions)

    async def remove_all(self) -> None:
        """Closes every session and clears the registry.

        A failing close is logged and never prevents the other sessions from
        closing.
        """
        entries = list(self._sessions.items())
        if not entries:
            return
        _LOGGER.debug("Closing registered sessions.", extra={"providers": [name for name, _ in entries]})
        await asyncio.gather(*(self._close_one(provider, session) for provider, session in entries))
        self._sessions.clear()

    @staticmethod
    async def _close_one(provider: str, session: RealtimeSession) -> None:
        try:
            await session.close()
        except Exception:
            _LOGGER.exception("Failed to close realtime session.", extra={"provider": provider})
