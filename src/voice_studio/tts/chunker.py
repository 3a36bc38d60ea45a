"""
Text Segmentation for Batch Generation.

Long input is cut into segments the provider can synthesize in one call.
Segments are built from whole sentences and packed greedily up to a word
budget, so every segment boundary falls on a sentence boundary.

Rules:
    - A sentence is a maximal run of text ending in . ! or ? (a run such as
      "?!" or "..." stays with its sentence); trailing text with no
      terminal mark is a sentence of its own. A run that opens the text
      ("...and so") is kept at the front of the next sentence, and text
      made only of marks is one sentence, so no character is dropped.
    - Sentences are appended to the running segment until the next one
      would push its word count past ``max_words``; then the running
      segment is emitted and the sentence starts a new one.
    - A single sentence longer than ``max_words`` is never split.

Example:
    >>> segment_text("One two. Three four five. Six.", max_words=3).chunks
    ['One two.', 'Three four five.', 'Six.']
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List

from voice_studio.core.logging import get_logger, verbose
from voice_studio.utils.timeit import timeit

_LOG = get_logger("voice-studio.chunker")

# Keeps delimiter runs with their sentence; leading or lone runs are kept too
_SENT_SPLIT = re.compile(r"[.!?]*[^.!?]+[.!?]+|[.!?]*[^.!?]+$|[.!?]+$")


@dataclass
class ChunkResult:
    """
    Result of a segmentation run.

    Attributes:
        chunks: Ordered, whitespace-trimmed segment texts.
        timings_s: Timing measurements in seconds.
    """
    chunks: List[str]
    timings_s: Dict[str, float]


def _word_count(text: str) -> int:
    return len(text.split())


def split_sentences(text: str) -> List[str]:
    """Return the sentence units of ``text`` (untrimmed, in order)."""
    return _SENT_SPLIT.findall(text)


def segment_text(text: str, max_words: int = 100) -> ChunkResult:
    """
    Pack sentences into segments of at most ``max_words`` words.

    Args:
        text: Input text; may be empty or whitespace.
        max_words: Word budget per segment. Must be positive.

    Returns:
        ChunkResult; ``chunks`` is empty for blank input.
    """
    if max_words <= 0:
        raise ValueError(f"max_words must be positive, got {max_words}")

    timings: Dict[str, float] = {}

    with timeit("segment") as t:
        out: List[str] = []
        current = ""

        for sentence in split_sentences(text):
            if current and _word_count(current + sentence) > max_words:
                out.append(current.strip())
                current = sentence
            else:
                current += sentence

        if current.strip():
            out.append(current.strip())

        out = [c for c in out if c]

    timings["segment"] = t.seconds
    verbose(_LOG, "segmented", segments=len(out), max_words=max_words, seconds=round(timings["segment"], 4))

    return ChunkResult(chunks=out, timings_s=timings)
