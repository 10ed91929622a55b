"""Minimal RIFF/WAVE framing for raw linear PCM."""

from __future__ import annotations

import struct

WAV_HEADER_SIZE = 44

_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")


def pcm_to_wav(pcm: bytes, sample_rate: int, channels: int = 1, bits_per_sample: int = 16) -> bytes:
    """Prepends a 44-byte PCM WAV header to raw sample bytes.

    Args:
        pcm: Little-endian PCM samples.
        sample_rate: Samples per second per channel.
        channels: Interleaved channel count.
        bits_per_sample: Sample width in bits.

    Returns:
        Self-describing WAV bytes.
    """
    block_align = channels * bits_per_sample // 8
    header = _HEADER.pack(
        b"RIFF",
        36 + len(pcm),
        b"WAVE",
        b"fmt ",
        16,  # fmt chunk size
        1,  # PCM
        channels,
        sample_rate,
        sample_rate * block_align,
        block_align,
        bits_per_sample,
        b"data",
        len(pcm),
    )
    return header + pcm
