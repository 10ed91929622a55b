"""FastAPI entrypoint for batch and live speech-to-text comparison.

This module performs four primary responsibilities:
1. Report liveness, provider credential status, and connection metrics.
2. Fan uploaded audio out to every requested provider's batch API.
3. Host the websocket endpoint that relays live audio to provider sessions.
4. Manage process-lifecycle resources such as the vendor adapters.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Mapping
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

import uvicorn
from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile, WebSocket, WebSocketDisconnect, status

from .config import Settings, settings
from .engine.base import VendorAdapter
from .engine.batch import transcribe_with_providers
from .engine.factory import create_adapters
from .ws.stream_handler import StreamHandler

_LOGGER = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = frozenset({"audio/mpeg", "audio/mp3", "audio/wav", "audio/x-m4a", "audio/webm"})


def _configure_logging() -> None:
    """Configures runtime log level for gateway lifecycle tracing."""
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    websockets_level = getattr(logging, settings.WEBSOCKETS_LOG_LEVEL.upper(), logging.INFO)
    httpx_level = getattr(logging, settings.HTTPX_LOG_LEVEL.upper(), logging.WARNING)
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )
    else:
        root_logger.setLevel(level)

    _LOGGER.setLevel(level)
    logging.getLogger("stt_gateway").setLevel(level)
    logging.getLogger("websockets").setLevel(websockets_level)
    logging.getLogger("websockets.client").setLevel(websockets_level)
    logging.getLogger("httpx").setLevel(httpx_level)
    _LOGGER.debug(
        "Logging configured for stt gateway.",
        extra={
            "log_level": settings.LOG_LEVEL,
            "websockets_log_level": settings.WEBSOCKETS_LOG_LEVEL,
            "httpx_log_level": settings.HTTPX_LOG_LEVEL,
            "providers": settings.provider_status(),
        },
    )


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_services(raw: str | None) -> list[str]:
    """Decodes the ``services`` form field.

    Raises:
        HTTPException: If the field is not a non-empty JSON list of strings.
    """
    try:
        services = json.loads(raw or "[]")
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="services must be a JSON array") from exc
    if not isinstance(services, list) or not all(isinstance(name, str) for name in services):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="services must be a JSON array")
    if not services:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No services selected")
    return services


def create_app(
    app_settings: Settings | None = None,
    adapters: Mapping[str, VendorAdapter] | None = None,
) -> FastAPI:
    """Builds the gateway application.

    Args:
        app_settings: Settings to use; defaults to the environment-backed
            module ``settings``.
        adapters: Prebuilt adapters keyed by provider. When omitted, one
            adapter per supported provider is created at startup.

    Returns:
        Configured FastAPI application.
    """
    active_settings = app_settings or settings

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        _LOGGER.debug("STT gateway lifespan startup beginning.")
        app.state.adapters = dict(adapters) if adapters is not None else create_adapters(active_settings)
        app.state.started_at = time.monotonic()
        app.state.handlers = set()
        try:
            yield
        finally:
            _LOGGER.debug("STT gateway lifespan shutdown beginning.")
            for provider, adapter in app.state.adapters.items():
                try:
                    await adapter.close()
                except Exception:
                    _LOGGER.exception("Failed to close vendor adapter.", extra={"provider": provider})

    app = FastAPI(lifespan=_lifespan)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        """Returns liveness plus which providers have credentials."""
        return {
            "status": "healthy",
            "services": active_settings.provider_status(),
            "timestamp": _utc_timestamp(),
        }

    @app.get("/metrics")
    async def metrics(request: Request) -> dict[str, Any]:
        """Returns process uptime and live connection counts."""
        handlers: set[StreamHandler] = request.app.state.handlers
        return {
            "uptime": round(time.monotonic() - request.app.state.started_at, 3),
            "connections": len(handlers),
            "activeSessions": sum(len(handler.registry) for handler in handlers),
            "timestamp": _utc_timestamp(),
        }

    @app.post("/transcribe-batch")
    async def transcribe_batch(
        request: Request,
        audio: UploadFile | None = File(default=None),
        services: str | None = Form(default=None),
    ) -> dict[str, Any]:
        """Transcribes one uploaded file with every requested provider.

        Raises:
            HTTPException: 400 for a missing, oversized, or unsupported file,
                or when no services are requested.
        """
        if audio is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No audio file provided")
        requested = _parse_services(services)
        mime_type = audio.content_type or ""
        if mime_type not in ALLOWED_MIME_TYPES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid file type. Only mp3, wav, m4a, and webm are allowed.",
            )
        audio_bytes = await audio.read()
        if len(audio_bytes) > active_settings.MAX_UPLOAD_BYTES:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File too large")

        _LOGGER.info(
            "Batch transcription requested.",
            extra={"services": requested, "bytes": len(audio_bytes), "mime_type": mime_type},
        )
        results = await transcribe_with_providers(
            audio_bytes=audio_bytes,
            mime_type=mime_type,
            filename=audio.filename,
            requested=requested,
            adapters=request.app.state.adapters,
            settings=active_settings,
        )
        return {
            "mode": "batch",
            "results": {provider: result.to_payload() for provider, result in results.items()},
            "audioInfo": {"size": len(audio_bytes), "mimeType": mime_type},
        }

    @app.websocket("/stream")
    async def stream(websocket: WebSocket) -> None:
        """Handles one live comparison websocket lifecycle."""
        _LOGGER.debug("Stream websocket connection received.", extra={"client": str(websocket.client)})
        handlers: set[StreamHandler] = websocket.app.state.handlers
        handler = StreamHandler(websocket, adapters=websocket.app.state.adapters, settings=active_settings)
        handlers.add(handler)
        try:
            await handler.start()
            await handler.wait_until_done()
        except WebSocketDisconnect:
            _LOGGER.info("Stream websocket disconnected.")
        except Exception:
            _LOGGER.exception("Unhandled error while processing live stream.")
            raise
        finally:
            handlers.discard(handler)
            await handler.shutdown()

    return app


_configure_logging()
app = create_app()


def run() -> None:
    """Serves the gateway with uvicorn on the configured port."""
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
