"""
voice-studio: batch text-to-speech generation over a remote provider.

Long text is split into sentence-bounded segments, each segment is sent to
the synthesis provider by a pool of credential-bound workers, and the raw
PCM results are stitched back together, in source order, into one WAV file.

Key Features:
    - Deterministic sentence-packing segmentation
    - One worker per credential (API key), partial failure tolerated
    - Rolling usage quota for the shared credential
    - Per-segment regeneration, selection and merged export
    - FastAPI endpoints, a CLI and Prometheus metrics

Example Usage:
    >>> from voice_studio.services import StudioService
    >>> from voice_studio.core.config import Settings
    >>>
    >>> service = StudioService(Settings(raw={}), user_keys=["AIza..."])
    >>> service.load_text("Xin chào. Hôm nay trời đẹp.")
    >>> result = asyncio.run(service.generate_all())
    >>> with open(result.filename, "wb") as f:
    ...     f.write(result.wav_bytes)
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
