"""Tests for the WAV codec helpers."""
from __future__ import annotations

import base64
import struct

import pytest


class TestDecodePayload:
    """Test base64 transport decoding."""

    def test_decodes(self):
        from voice_studio.utils.audio import decode_payload

        assert decode_payload(base64.b64encode(b"\x01\x02\x03\x04").decode()) == b"\x01\x02\x03\x04"

    def test_malformed_raises_value_error(self):
        from voice_studio.utils.audio import decode_payload

        with pytest.raises(ValueError):
            decode_payload("not base64!!")


class TestEncodeWav:
    """Test the 44-byte header layout."""

    def test_header_fields(self):
        from voice_studio.utils.audio import encode_wav

        pcm = bytes(range(200))
        wav = encode_wav(pcm)

        assert len(wav) == 44 + len(pcm)
        assert wav[0:4] == b"RIFF"
        assert struct.unpack_from("<I", wav, 4)[0] == 36 + len(pcm)
        assert wav[8:12] == b"WAVE"
        assert wav[12:16] == b"fmt "
        assert struct.unpack_from("<I", wav, 16)[0] == 16
        assert struct.unpack_from("<H", wav, 20)[0] == 1
        assert struct.unpack_from("<H", wav, 22)[0] == 1
        assert struct.unpack_from("<I", wav, 24)[0] == 24000
        assert struct.unpack_from("<I", wav, 28)[0] == 48000
        assert struct.unpack_from("<H", wav, 32)[0] == 2
        assert struct.unpack_from("<H", wav, 34)[0] == 16
        assert wav[36:40] == b"data"
        assert struct.unpack_from("<I", wav, 40)[0] == len(pcm)
        assert wav[44:] == pcm

    def test_stereo_rates(self):
        from voice_studio.utils.audio import split_wav, encode_wav

        header, _ = split_wav(encode_wav(b"\x00" * 16, sample_rate=44100, channels=2, bits_per_sample=16))
        assert header.block_align == 4
        assert header.byte_rate == 44100 * 4

    def test_empty_pcm(self):
        from voice_studio.utils.audio import encode_wav, split_wav

        wav = encode_wav(b"")
        assert len(wav) == 44
        header, pcm = split_wav(wav)
        assert header.data_length == 0
        assert pcm == b""


class TestConcatenate:
    """Test ordered concatenation."""

    def test_order_and_length(self):
        from voice_studio.utils.audio import concatenate_pcm, encode_wav, split_wav

        buffers = [b"\x01\x00" * 3, b"\x02\x00" * 5, b"\x03\x00"]
        joined = concatenate_pcm(buffers)
        assert joined == b"".join(buffers)

        header, pcm = split_wav(encode_wav(joined))
        assert header.data_length == sum(len(b) for b in buffers)
        assert pcm == joined


class TestSplitAndProbe:
    """Test parsing and probing."""

    def test_split_rejects_garbage(self):
        from voice_studio.utils.audio import split_wav

        with pytest.raises(ValueError):
            split_wav(b"RIFF")
        with pytest.raises(ValueError):
            split_wav(b"X" * 60)

    def test_probe_reads_with_soundfile(self):
        import numpy as np
        from voice_studio.utils.audio import encode_wav, probe_wav

        samples = (np.sin(np.linspace(0, 20, 2400)) * 16000).astype("<i2")
        info = probe_wav(encode_wav(samples.tobytes()))

        assert info.sample_rate == 24000
        assert info.channels == 1
        assert info.frames == 2400
        assert info.duration_s == pytest.approx(0.1)
        assert 0.0 < info.peak <= 1.0
