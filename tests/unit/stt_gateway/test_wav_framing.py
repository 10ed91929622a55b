from __future__ import annotations

import struct

from stt_gateway.app.engine.wav import WAV_HEADER_SIZE, pcm_to_wav


def test_header_describes_mono_16_bit_pcm() -> None:
    pcm = b"\x01\x02" * 800

    wav = pcm_to_wav(pcm, 16000)

    assert len(wav) == WAV_HEADER_SIZE + len(pcm)
    fields = struct.unpack("<4sI4s4sIHHIIHH4sI", wav[:WAV_HEADER_SIZE])
    assert fields == (b"RIFF", 36 + len(pcm), b"WAVE", b"fmt ", 16, 1, 1, 16000, 32000, 2, 16, b"data", len(pcm))
    assert wav[WAV_HEADER_SIZE:] == pcm


def test_header_accounts_for_channel_count() -> None:
    wav = pcm_to_wav(b"\x00" * 8, 48000, channels=2)

    channels, sample_rate, byte_rate, block_align = struct.unpack("<HIIH", wav[22:34])
    assert (channels, sample_rate, byte_rate, block_align) == (2, 48000, 192000, 4)


def test_empty_pcm_still_produces_valid_header() -> None:
    wav = pcm_to_wav(b"", 16000)

    assert len(wav) == WAV_HEADER_SIZE
    assert struct.unpack("<I", wav[40:44]) == (0,)
