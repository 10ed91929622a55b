"""Exception types raised by adapters, sessions, and the relay."""

from __future__ import annotations


class SttGatewayError(Exception):
    """Base class for gateway errors scoped to one provider."""

    def __init__(self, message: str, *, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class TransportError(SttGatewayError):
    """Realtime transport could not be established or failed while open."""


class SessionConnectTimeout(TransportError):
    """Realtime transport did not reach a ready state in time."""


class DeliveryError(SttGatewayError):
    """Forwarding one audio frame to a session failed."""


class UnsupportedProviderError(ValueError):
    """Requested provider identifier has no adapter."""
