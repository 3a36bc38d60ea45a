"""
Audio Codec Utilities.

The provider returns base64-encoded raw PCM (signed 16-bit little-endian,
mono, 24 kHz). These helpers turn that transport payload into bytes, join
per-segment payloads, and wrap the result in a canonical 44-byte RIFF/WAVE
header.

Key Functions:
    decode_payload: base64 text -> raw PCM bytes
    encode_wav: raw PCM bytes -> WAV container
    concatenate_pcm: ordered byte-level join of PCM buffers
    split_wav: parse a container produced by encode_wav
    probe_wav: frame count / sample rate / duration via soundfile

Header Layout (all integers little-endian):
    0  "RIFF"          4  36 + data_len     8  "WAVE"
    12 "fmt "          16 16 (fmt size)     20 1 (PCM)
    22 channels        24 sample_rate       28 byte_rate
    32 block_align     34 bits_per_sample
    36 "data"          40 data_len          44 samples...

Example:
    >>> pcm = decode_payload(output.audio_b64)
    >>> wav = encode_wav(pcm)
    >>> len(wav) == 44 + len(pcm)
    True
"""
from __future__ import annotations

import base64
import binascii
import io
import struct
from dataclasses import dataclass
from typing import Iterable, Tuple

import numpy as np
import soundfile as sf

from voice_studio.core.logging import debug, get_logger
from voice_studio.utils.timeit import timeit

_LOG = get_logger("voice-studio.audio")

WAV_HEADER_SIZE = 44

_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")


@dataclass(frozen=True)
class WavHeader:
    """Decoded fields of a canonical PCM WAV header."""
    channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_length: int
    riff_length: int


@dataclass(frozen=True)
class WavInfo:
    frames: int
    sample_rate: int
    channels: int
    duration_s: float
    peak: float


def decode_payload(b64_text: str) -> bytes:
    """
    Decode a base64 transport payload into raw PCM bytes.

    Raises:
        ValueError: If the payload is not valid base64.
    """
    try:
        return base64.b64decode(b64_text, validate=True)
    except (binascii.Error, TypeError) as e:
        raise ValueError(f"malformed audio payload: {e}") from e


def encode_wav(
    pcm: bytes,
    sample_rate: int = 24000,
    channels: int = 1,
    bits_per_sample: int = 16,
) -> bytes:
    """
    Wrap raw PCM samples in a 44-byte RIFF/WAVE header.

    Args:
        pcm: Raw interleaved samples.
        sample_rate: Samples per second.
        channels: Channel count.
        bits_per_sample: Sample width in bits.

    Returns:
        The header followed by ``pcm`` unchanged.
    """
    block_align = channels * (bits_per_sample // 8)
    byte_rate = sample_rate * block_align
    data_length = len(pcm)

    with timeit("wav_encode") as t:
        header = _HEADER.pack(
            b"RIFF",
            36 + data_length,
            b"WAVE",
            b"fmt ",
            16,
            1,
            channels,
            sample_rate,
            byte_rate,
            block_align,
            bits_per_sample,
            b"data",
            data_length,
        )
        out = header + bytes(pcm)

    debug(_LOG, "wav_encoded", bytes=len(out), sr=sample_rate, seconds=round(t.seconds, 6))
    return out


def concatenate_pcm(buffers: Iterable[bytes]) -> bytes:
    """Join PCM buffers byte-for-byte in the given order."""
    return b"".join(buffers)


def split_wav(wav_bytes: bytes) -> Tuple[WavHeader, bytes]:
    """
    Parse a canonical 44-byte-header WAV container.

    Raises:
        ValueError: If the bytes are not a PCM WAV with the canonical layout.
    """
    if len(wav_bytes) < WAV_HEADER_SIZE:
        raise ValueError(f"WAV too short: {len(wav_bytes)} bytes")

    (riff, riff_len, wave, fmt, fmt_size, fmt_tag, channels, sample_rate,
     byte_rate, block_align, bits, data_tag, data_len) = _HEADER.unpack_from(wav_bytes, 0)

    if riff != b"RIFF" or wave != b"WAVE" or fmt != b"fmt " or data_tag != b"data":
        raise ValueError("not a canonical RIFF/WAVE container")
    if fmt_size != 16 or fmt_tag != 1:
        raise ValueError(f"unsupported fmt chunk (size={fmt_size}, tag={fmt_tag})")

    header = WavHeader(
        channels=channels,
        sample_rate=sample_rate,
        byte_rate=byte_rate,
        block_align=block_align,
        bits_per_sample=bits,
        data_length=data_len,
        riff_length=riff_len,
    )
    return header, wav_bytes[WAV_HEADER_SIZE:WAV_HEADER_SIZE + data_len]


def probe_wav(wav_bytes: bytes) -> WavInfo:
    """
    Read frame count, sample rate and peak level of a WAV via soundfile.

    Used by the CLI summary and tests to confirm a container decodes with a
    real WAV reader, not only with split_wav.
    """
    data, sr = sf.read(io.BytesIO(wav_bytes), dtype="float32", always_2d=True)
    frames = int(data.shape[0])
    peak = float(np.max(np.abs(data))) if frames else 0.0
    return WavInfo(
        frames=frames,
        sample_rate=int(sr),
        channels=int(data.shape[1]),
        duration_s=frames / float(sr) if sr else 0.0,
        peak=peak,
    )
