"""
Utility Modules for voice-studio.

    - audio.py: PCM payload decoding and WAV container encoding/parsing
    - timeit.py: Performance measurement utilities
"""
