"""Factory for constructing vendor adapters keyed by provider identifier."""

from __future__ import annotations

import logging

from ..config import PROVIDER_NAMES, Settings
from .base import VendorAdapter
from .errors import UnsupportedProviderError
from .providers.assemblyai_provider import AssemblyAIAdapter
from .providers.deepgram_provider import DeepgramAdapter
from .providers.openai_provider import OpenAIAdapter

_LOGGER = logging.getLogger(__name__)

_ADAPTER_TYPES: dict[str, type[VendorAdapter]] = {
    "assemblyai": AssemblyAIAdapter,
    "deepgram": DeepgramAdapter,
    "openai": OpenAIAdapter,
}


def create_adapter(provider: str, settings: Settings) -> VendorAdapter:
    """Builds the adapter for one provider.

    Args:
        provider: Provider identifier (for example ``deepgram``).
        settings: Settings carrying credentials and provider options.

    Returns:
        A concrete ``VendorAdapter`` instance.

    Raises:
        UnsupportedProviderError: If provider is not recognized.
    """
    normalized = provider.strip().lower()
    _LOGGER.debug(
        "Creating vendor adapter.",
        extra={"requested_provider": provider, "normalized_provider": normalized},
    )
    adapter_type = _ADAPTER_TYPES.get(normalized)
    if adapter_type is None:
        raise UnsupportedProviderError(f"Unsupported provider: {provider}")
    return adapter_type(settings)


def create_adapters(settings: Settings) -> dict[str, VendorAdapter]:
    """Builds one adapter per supported provider."""
    return {name: create_adapter(name, settings) for name in supported_providers()}


def supported_providers() -> tuple[str, ...]:
    """Returns known provider identifiers for documentation and validation."""
    return PROVIDER_NAMES
