from __future__ import annotations

import threading
from pathlib import Path

import pytest

from stt_gateway.app.engine.tempfiles import extension_for, remove_temp_file, temp_audio_file

from _gateway_fakes import run


@pytest.mark.parametrize(
    ("mime_type", "filename", "expected"),
    [
        ("audio/mpeg", None, "mp3"),
        ("audio/x-m4a", "memo.m4a", "m4a"),
        ("audio/webm", None, "webm"),
        (None, "Clip.WAV", "wav"),
        ("audio/ogg", None, "ogg"),
        (None, None, "mp3"),
    ],
)
def test_extension_for(mime_type: str | None, filename: str | None, expected: str) -> None:
    assert extension_for(mime_type, filename) == expected


def test_temp_file_is_written_then_removed(tmp_path: Path) -> None:
    async def scenario() -> Path:
        async with temp_audio_file(tmp_path / "uploads", b"audio", "audio/wav") as path:
            assert path.read_bytes() == b"audio"
            assert path.name.startswith("temp_")
            assert path.suffix == ".wav"
        return path

    path = run(scenario())

    assert not path.exists()
    assert list((tmp_path / "uploads").iterdir()) == []


def test_temp_file_is_removed_when_block_raises(tmp_path: Path) -> None:
    written: list[Path] = []

    async def scenario() -> None:
        async with temp_audio_file(tmp_path, b"audio", "audio/mpeg") as path:
            written.append(path)
            raise RuntimeError("provider failed")

    with pytest.raises(RuntimeError):
        run(scenario())

    assert not written[0].exists()


def test_temp_file_disk_io_runs_off_the_event_loop_thread(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    threads: dict[str, int] = {}
    path_type = type(tmp_path)
    original_write = path_type.write_bytes
    original_unlink = path_type.unlink

    def recording_write(self: Path, data: bytes) -> int:
        threads["write"] = threading.get_ident()
        return original_write(self, data)

    def recording_unlink(self: Path, missing_ok: bool = False) -> None:
        threads["unlink"] = threading.get_ident()
        original_unlink(self, missing_ok=missing_ok)

    monkeypatch.setattr(path_type, "write_bytes", recording_write)
    monkeypatch.setattr(path_type, "unlink", recording_unlink)

    async def scenario() -> int:
        async with temp_audio_file(tmp_path, b"audio", "audio/wav"):
            pass
        return threading.get_ident()

    loop_thread = run(scenario())

    assert threads["write"] != loop_thread
    assert threads["unlink"] != loop_thread
    assert list(tmp_path.iterdir()) == []


def test_remove_temp_file_swallows_os_errors(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    target = tmp_path / "temp_x.mp3"
    target.write_bytes(b"x")

    def _raise(self: Path, missing_ok: bool = False) -> None:
        raise PermissionError("read-only filesystem")

    monkeypatch.setattr(type(target), "unlink", _raise)

    remove_temp_file(target)


def test_remove_temp_file_ignores_missing_file(tmp_path: Path) -> None:
    remove_temp_file(tmp_path / "never-written.wav")
