"""Ephemeral temp files for providers that upload from disk."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import secrets
from collections.abc import AsyncIterator
from pathlib import Path

_LOGGER = logging.getLogger(__name__)

_MIME_EXTENSIONS = {
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/x-m4a": "m4a",
    "audio/mp4": "m4a",
    "audio/webm": "webm",
}


def extension_for(mime_type: str | None, filename: str | None = None) -> str:
    """Picks a file extension providers can use to sniff the container."""
    if mime_type and mime_type in _MIME_EXTENSIONS:
        return _MIME_EXTENSIONS[mime_type]
    if filename and "." in filename:
        return filename.rsplit(".", 1)[1].lower()
    if mime_type and "/" in mime_type:
        return mime_type.split("/", 1)[1]
    return "mp3"


def remove_temp_file(path: Path) -> None:
    """Deletes a temp file; failures are logged and swallowed."""
    try:
        path.unlink(missing_ok=True)
    except OSError:
        _LOGGER.warning("Failed to delete temp file.", extra={"path": str(path)}, exc_info=True)


def _write_file(path: Path, audio_bytes: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(audio_bytes)


@contextlib.asynccontextmanager
async def temp_audio_file(
    directory: str | Path,
    audio_bytes: bytes,
    mime_type: str | None,
    filename: str | None = None,
) -> AsyncIterator[Path]:
    """Writes audio to a uniquely named temp file and removes it on exit.

    The file is deleted on both success and failure of the enclosed block.
    Disk writes and deletes run in a worker thread.
    """
    root = Path(directory)
    path = root / f"temp_{secrets.token_hex(16)}.{extension_for(mime_type, filename)}"
    try:
        await asyncio.to_thread(_write_file, path, audio_bytes)
        _LOGGER.debug("Wrote temp audio file.", extra={"path": str(path), "bytes": len(audio_bytes)})
        yield path
    finally:
        await asyncio.to_thread(remove_temp_file, path)
